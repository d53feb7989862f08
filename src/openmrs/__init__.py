"""OpenMRS REST payload types."""

from openmrs.encounter import Encounter, EncounterProvider
from openmrs.identifier_source import IdentifierSource
from openmrs.observation import Observation, ObservationFetchResponse, ObservationValue
from openmrs.patient import Patient, PatientIdentifier, Person, PersonName
from openmrs.relationship import Relationship

__all__ = [
    "Encounter",
    "EncounterProvider",
    "IdentifierSource",
    "Observation",
    "ObservationFetchResponse",
    "ObservationValue",
    "Patient",
    "PatientIdentifier",
    "Person",
    "PersonName",
    "Relationship",
]
