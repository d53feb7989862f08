"""OpenMRS idgen IdentifierSource resource."""

from typing import TypedDict


class IdentifierSource(TypedDict, total=False):
    uuid: str
    name: str
    display: str
    identifierType: dict[str, str]
