"""Pytest configuration and shared fixtures for the integration tests."""

import socket
import threading
import time
from collections.abc import Generator

import pytest
import requests
from stubs.stub_openmrs import OpenmrsRestStub
from stubs.stub_server import create_app

from patient_registration.config import RegistrationConfig
from patient_registration.openmrs_fetch import OpenmrsClient
from patient_registration.query_cache import QueryCache
from patient_registration.registration_resource import PatientRegistrationClient


@pytest.fixture(scope="module")
def openmrs_stub() -> OpenmrsRestStub:
    return OpenmrsRestStub()


@pytest.fixture(scope="module")
def openmrs_url(openmrs_stub: OpenmrsRestStub) -> str:
    """Start the stub OpenMRS server in a separate thread and return its base URL.

    Tests in a module share one server and one stub backend.
    """
    # Use port 0 to let the OS assign a free port
    sock = socket.socket()
    sock.bind(("", 0))
    port = sock.getsockname()[1]
    sock.close()

    app = create_app(openmrs_stub)

    def run_app() -> None:
        app.run(port=port, debug=False, use_reloader=False)

    # Daemon threads terminate with the test process, so no explicit cleanup
    thread = threading.Thread(target=run_app, daemon=True)
    thread.start()

    url = f"http://localhost:{port}"
    max_retries = 10
    retry_delay = 0.1

    for _ in range(max_retries):
        try:
            response = requests.get(f"{url}/health", timeout=1)
            if response.status_code == 200:
                break
        except requests.exceptions.RequestException:
            time.sleep(retry_delay)
    else:
        raise RuntimeError(f"Stub OpenMRS server failed to start on {url}")

    return f"{url}/openmrs"


@pytest.fixture
def registration(
    openmrs_url: str,
) -> Generator[PatientRegistrationClient, None, None]:
    """A registration client talking to the stub server over HTTP."""
    config = RegistrationConfig(base_url=openmrs_url, timeout=5)
    with requests.Session() as session:
        yield PatientRegistrationClient(
            OpenmrsClient(session=session, config=config),
            config=config,
            cache=QueryCache(ttl=config.query_cache_ttl),
        )
