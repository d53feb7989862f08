"""
Process-wide configuration for the patient registration client.

Values are read from the environment once, the first time :func:`load_config`
is called, and shared by every client built without an explicit config.
"""

import os
from dataclasses import dataclass
from functools import cache

# Identifier type UUID for the OpenMRS ID assigned to every registered patient.
UUID_IDENTIFIER = "05a29f94-c0ed-11e2-94be-8c13b969e334"
# Person attribute type UUID holding a patient's telephone number.
UUID_TELEPHONE_NUMBER = "14d4f066-15f5-102d-96e4-000c29c2a5d7"

REST_API_ROOT = "/ws/rest/v1"

DEFAULT_BASE_URL = "http://localhost:8080/openmrs"
DEFAULT_TIMEOUT = 10
DEFAULT_PATIENT_PHOTO_CONCEPT_UUID = "736e8771-e501-4615-bfa7-570c03f4bef5"
DEFAULT_PATIENT_PHOTO_UPLOAD_URL = f"{REST_API_ROOT}/obs"
DEFAULT_QUERY_CACHE_TTL = 60.0


@dataclass(frozen=True)
class RegistrationConfig:
    """
    Settings shared by the transport and the registration client.

    :param base_url: Server root that REST paths are appended to, e.g.
        ``https://demo.openmrs.org/openmrs``.
    :param timeout: Default timeout in seconds for HTTP calls.
    :param patient_photo_concept_uuid: Concept identifying patient photo
        observations.
    :param patient_photo_upload_url: Endpoint photos are posted to when the
        caller does not supply one.
    :param query_cache_ttl: Seconds a cached read stays fresh.
    """

    base_url: str = DEFAULT_BASE_URL
    timeout: int = DEFAULT_TIMEOUT
    patient_photo_concept_uuid: str = DEFAULT_PATIENT_PHOTO_CONCEPT_UUID
    patient_photo_upload_url: str = DEFAULT_PATIENT_PHOTO_UPLOAD_URL
    query_cache_ttl: float = DEFAULT_QUERY_CACHE_TTL

    @classmethod
    def from_env(cls) -> "RegistrationConfig":
        """
        Build a config from ``OPENMRS_*`` environment variables, falling back to
        the defaults for any that are unset.

        :raises RuntimeError: If a numeric variable cannot be parsed.
        """
        return cls(
            base_url=os.getenv("OPENMRS_BASE_URL", DEFAULT_BASE_URL),
            timeout=_int_from_env("OPENMRS_TIMEOUT", DEFAULT_TIMEOUT),
            patient_photo_concept_uuid=os.getenv(
                "OPENMRS_PATIENT_PHOTO_CONCEPT_UUID",
                DEFAULT_PATIENT_PHOTO_CONCEPT_UUID,
            ),
            patient_photo_upload_url=os.getenv(
                "OPENMRS_PATIENT_PHOTO_UPLOAD_URL", DEFAULT_PATIENT_PHOTO_UPLOAD_URL
            ),
            query_cache_ttl=_float_from_env(
                "OPENMRS_QUERY_CACHE_TTL", DEFAULT_QUERY_CACHE_TTL
            ),
        )


def _int_from_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError as err:
        raise RuntimeError(f"{name} must be an integer, got {value!r}") from err


def _float_from_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError as err:
        raise RuntimeError(f"{name} must be a number, got {value!r}") from err


@cache
def load_config() -> RegistrationConfig:
    """Return the process-wide config, reading the environment on first use."""
    return RegistrationConfig.from_env()
