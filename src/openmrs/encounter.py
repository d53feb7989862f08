"""OpenMRS Encounter resource."""

from typing import Any, TypedDict


class EncounterProvider(TypedDict):
    provider: str
    encounterRole: str


class Encounter(TypedDict, total=False):
    encounterDatetime: str
    patient: str
    encounterType: str
    location: str
    encounterProviders: list[EncounterProvider]
    form: str
    visit: str
    obs: list[dict[str, Any]]
