"""
Module: patient_registration.openmrs_fetch

Thin transport over :mod:`requests` for the OpenMRS REST API.

Usage:
    Instantiate an OpenmrsClient with:
        - base_url: Server root, e.g. ``https://demo.openmrs.org/openmrs``.
        - session: Optional authenticated :class:`requests.Session` supplied by
          the host application.
        - timeout: Default per-call timeout in seconds.

    Use the `fetch` method to issue one request:
        Parameters:
            - path (str): REST path such as ``/ws/rest/v1/patient``, or an
              absolute URL which is used unchanged.
            - method (str): HTTP method.
            - cancel_token (CancellationToken | None): Optional caller token.

    Returns:
        A FetchResponse holding the status code, parsed JSON body and headers.

HTTP and network errors raised by :mod:`requests` are propagated unchanged.
"""

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

import requests
from requests import Response

from patient_registration.cancellation import CancellationToken
from patient_registration.config import RegistrationConfig, load_config

logger = logging.getLogger(__name__)

RequestCallable = Callable[..., Response]


@dataclass(frozen=True)
class FetchResponse:
    """
    Parsed response returned by every client operation.

    :param status_code: HTTP status code.
    :param data: Parsed JSON body, or ``None`` when the body is empty or not JSON.
    :param headers: Response headers.
    """

    status_code: int
    data: Any = None
    headers: dict[str, str] = field(default_factory=dict)


class OpenmrsClient:
    """
    Issues single requests against an OpenMRS server.

    ``request_method`` has the signature of :func:`requests.request` and may be
    replaced, e.g. to route calls into a stub backend.
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        session: requests.Session | None = None,
        timeout: int | None = None,
        config: RegistrationConfig | None = None,
    ) -> None:
        """
        :param base_url: Server root. Defaults to the configured base URL.
        :param session: Optional session carrying authentication cookies or
            headers. When omitted each call uses :func:`requests.request`.
        :param timeout: Default timeout in seconds for HTTP calls.
        :param config: Settings to fall back on. Defaults to :func:`load_config`.
        """
        config = config or load_config()
        self.base_url = (base_url or config.base_url).rstrip("/")
        self.timeout = config.timeout if timeout is None else timeout
        self.session = session
        self.request_method: RequestCallable = (
            session.request if session is not None else requests.request
        )

    def url_for(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def fetch(
        self,
        path: str,
        method: str = "GET",
        *,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, str] | None = None,
        data: str | Mapping[str, str] | None = None,
        files: Mapping[str, tuple[str, bytes, str]] | None = None,
        cancel_token: CancellationToken | None = None,
        timeout: int | None = None,
    ) -> FetchResponse:
        """
        Send one request and parse the response.

        :param path: REST path or absolute URL.
        :param method: HTTP method.
        :param headers: Request headers.
        :param params: Query string parameters.
        :param data: Pre-encoded body, or form fields for a multipart body.
        :param files: Multipart file fields as ``(filename, content, mime type)``.
        :param cancel_token: Checked before sending and after the response
            arrives.
        :param timeout: Per-call timeout (defaults to the client-level timeout).
        :returns: The parsed response.
        :raises RequestCancelledError: If the token is cancelled.
        :raises requests.HTTPError: If the server answers with a non-2xx status.
        :raises requests.RequestException: On network failure.
        """
        url = self.url_for(path)

        if cancel_token is not None and cancel_token.cancelled:
            logger.warning("Cancelled %s %s before sending", method, url)
            cancel_token.raise_if_cancelled()

        logger.debug("%s %s", method, url)
        response = self.request_method(
            method,
            url,
            headers=dict(headers or {}),
            params=params,
            data=data,
            files=files,
            timeout=self.timeout if timeout is None else timeout,
        )

        if cancel_token is not None and cancel_token.cancelled:
            logger.warning("Discarding response to cancelled %s %s", method, url)
            cancel_token.raise_if_cancelled()

        response.raise_for_status()

        return FetchResponse(
            status_code=response.status_code,
            data=_parse_body(response),
            headers=dict(response.headers),
        )


def _parse_body(response: Response) -> Any:
    if not response.content:
        return None
    if "json" not in response.headers.get("Content-Type", ""):
        return None
    return response.json()
