"""OpenMRS Relationship resource."""

from typing import TypedDict


class Relationship(TypedDict):
    personA: str
    personB: str
    relationshipType: str
