"""Pytest configuration and shared fixtures for the registration client tests."""

import pytest
from stubs.stub_openmrs import OpenmrsRestStub

from patient_registration.config import RegistrationConfig
from patient_registration.openmrs_fetch import OpenmrsClient
from patient_registration.query_cache import QueryCache
from patient_registration.registration_resource import PatientRegistrationClient

BASE_URL = "https://openmrs.test/openmrs"


class FakeClock:
    """Manually advanced stand-in for :func:`time.monotonic`."""

    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def config() -> RegistrationConfig:
    return RegistrationConfig(base_url=BASE_URL, timeout=5)


@pytest.fixture
def stub() -> OpenmrsRestStub:
    return OpenmrsRestStub()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def openmrs_client(
    config: RegistrationConfig, stub: OpenmrsRestStub
) -> OpenmrsClient:
    """An :class:`OpenmrsClient` whose requests are served by the in-memory stub."""
    client = OpenmrsClient(config=config)
    client.request_method = stub.request
    return client


@pytest.fixture
def registration(
    openmrs_client: OpenmrsClient, config: RegistrationConfig, clock: FakeClock
) -> PatientRegistrationClient:
    return PatientRegistrationClient(
        openmrs_client,
        config=config,
        cache=QueryCache(ttl=config.query_cache_ttl, clock=clock),
    )


@pytest.fixture
def patient_uuid(stub: OpenmrsRestStub) -> str:
    """Seed a registered patient and return its UUID."""
    return stub.upsert_patient(
        {
            "identifiers": [
                {
                    "identifier": "100001",
                    "identifierType": "05a29f94-c0ed-11e2-94be-8c13b969e334",
                    "preferred": True,
                }
            ],
            "person": {
                "names": [{"givenName": "Jane", "familyName": "Jackson"}],
                "gender": "F",
                "birthdate": "1952-05-31",
            },
        }
    )
