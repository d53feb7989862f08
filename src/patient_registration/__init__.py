"""Client functions for the OpenMRS patient registration REST API."""

from patient_registration.cancellation import CancellationToken, RequestCancelledError
from patient_registration.config import (
    UUID_IDENTIFIER,
    UUID_TELEPHONE_NUMBER,
    RegistrationConfig,
    load_config,
)
from patient_registration.openmrs_fetch import FetchResponse, OpenmrsClient
from patient_registration.photo import PhotoFile, PhotoObservation, data_uri_to_file
from patient_registration.query_cache import QueryCache, QueryResult
from patient_registration.registration_resource import PatientRegistrationClient

__all__ = [
    "UUID_IDENTIFIER",
    "UUID_TELEPHONE_NUMBER",
    "CancellationToken",
    "FetchResponse",
    "OpenmrsClient",
    "PatientRegistrationClient",
    "PhotoFile",
    "PhotoObservation",
    "QueryCache",
    "QueryResult",
    "RegistrationConfig",
    "RequestCancelledError",
    "data_uri_to_file",
    "load_config",
]
