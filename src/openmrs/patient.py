"""OpenMRS Patient resource and its nested person types."""

from typing import Any, TypedDict


class PersonName(TypedDict, total=False):
    uuid: str
    preferred: bool
    givenName: str
    middleName: str
    familyName: str


class Person(TypedDict, total=False):
    uuid: str
    names: list[PersonName]
    gender: str
    birthdate: str
    birthdateEstimated: bool
    attributes: list[dict[str, Any]]
    addresses: list[dict[str, str]]
    dead: bool
    deathDate: str | None


class PatientIdentifier(TypedDict, total=False):
    uuid: str
    identifier: str
    identifierType: str
    location: str
    preferred: bool


class Patient(TypedDict, total=False):
    uuid: str
    identifiers: list[PatientIdentifier]
    person: Person
