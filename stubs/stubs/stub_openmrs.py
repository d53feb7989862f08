"""
In-memory OpenMRS REST API stub.

Implements only the endpoints used by patient registration, under
``/ws/rest/v1``:

* ``POST /patient`` and ``POST /patient/{uuid}``, ``GET /patient?q=``
* ``GET /person?q=``, ``DELETE /person/{uuid}/name/{uuid}``
* ``POST /encounter``
* ``GET /idgen/identifiersource``, ``POST /idgen/identifiersource/{uuid}/identifier``
* ``POST /relationship``, ``POST|DELETE /relationship/{uuid}``
* ``POST /obs`` (multipart photo upload), ``GET /obs?patient=&concept=``
* ``POST /patient/{uuid}/identifier[/{uuid}]``,
  ``DELETE /patient/{uuid}/identifier/{uuid}?purge``

The stub does **not** validate payloads beyond what it needs to store them.
"""

from __future__ import annotations

import json
import re
import uuid
from collections.abc import Callable
from http.client import responses as http_responses
from typing import Any
from urllib.parse import parse_qs, urlsplit

from patient_registration.config import REST_API_ROOT, UUID_IDENTIFIER
from requests import Response
from requests.structures import CaseInsensitiveDict

Handler = Callable[..., Response]


def _create_response(status_code: int, json_data: Any = None) -> Response:
    """
    Create a :class:`requests.Response` object for the stub.

    :param status_code: HTTP status code.
    :param json_data: JSON body, or ``None`` for an empty body.
    :return: A :class:`requests.Response` instance.
    """
    response = Response()
    response.status_code = status_code
    response.reason = http_responses.get(status_code, "Unknown")
    response.encoding = "utf-8"
    if json_data is None:
        response.headers = CaseInsensitiveDict()
        response._content = b""  # noqa: SLF001
    else:
        response.headers = CaseInsensitiveDict({"Content-Type": "application/json"})
        response._content = json.dumps(json_data).encode("utf-8")  # noqa: SLF001
    return response


def _error_response(status_code: int, message: str) -> Response:
    return _create_response(status_code, {"error": {"message": message}})


def _name_display(name: dict[str, Any]) -> str:
    parts = [name.get("givenName"), name.get("middleName"), name.get("familyName")]
    return " ".join(part for part in parts if part)


class OpenmrsRestStub:
    """
    Minimal in-memory stand-in for an OpenMRS server.

    :meth:`request` has the signature of :func:`requests.request`, so it can be
    assigned to ``OpenmrsClient.request_method``. Every call is appended to
    :attr:`calls` for inspection by tests.
    """

    DEFAULT_SOURCE_UUID = "8549f706-7e85-4c1d-9424-217d50a2988b"

    def __init__(self) -> None:
        self.persons: dict[str, dict[str, Any]] = {}
        self.patients: dict[str, dict[str, Any]] = {}
        self.encounters: dict[str, dict[str, Any]] = {}
        self.relationships: dict[str, dict[str, Any]] = {}
        self.observations: list[dict[str, Any]] = []
        self.identifier_sources: dict[str, dict[str, Any]] = {}
        self.calls: list[dict[str, Any]] = []

        self.upsert_identifier_source(
            self.DEFAULT_SOURCE_UUID,
            name="Generator for OpenMRS ID",
            identifier_type=UUID_IDENTIFIER,
            prefix="10000",
        )

        patient = r"/patient/(?P<patient>[^/]+)"
        identifier = rf"{patient}/identifier/(?P<identifier>[^/]+)"
        relationship = r"/relationship/(?P<relationship>[^/]+)"
        routes: list[tuple[str, str, Handler]] = [
            ("GET", r"/person", self._search_persons),
            (
                "DELETE",
                r"/person/(?P<person>[^/]+)/name/(?P<name>[^/]+)",
                self._delete_person_name,
            ),
            ("GET", r"/patient", self._search_patients),
            ("POST", r"/patient", self._create_patient),
            ("POST", patient, self._update_patient),
            ("POST", rf"{patient}/identifier", self._add_identifier),
            ("POST", identifier, self._update_identifier),
            ("DELETE", identifier, self._delete_identifier),
            ("POST", r"/encounter", self._create_encounter),
            ("GET", r"/idgen/identifiersource", self._list_sources),
            (
                "POST",
                r"/idgen/identifiersource/(?P<source>[^/]+)/identifier",
                self._generate_identifier,
            ),
            ("POST", r"/relationship", self._create_relationship),
            ("POST", relationship, self._update_relationship),
            ("DELETE", relationship, self._delete_relationship),
            ("GET", r"/obs", self._search_obs),
            ("POST", r"/obs", self._create_obs),
        ]
        self._routes = [
            (method, re.compile(pattern), handler) for method, pattern, handler in routes
        ]

    # ---------------------------
    # Public API for tests
    # ---------------------------

    def upsert_patient(self, patient: dict[str, Any]) -> str:
        """
        Insert or replace a patient and its person record.

        :param patient: Patient payload; a ``uuid`` is assigned when missing.
        :return: The patient UUID.
        """
        patient_uuid = patient.get("uuid") or str(uuid.uuid4())
        person = dict(patient.get("person", {}))
        person["uuid"] = patient_uuid
        person["names"] = [
            {**name, "uuid": name.get("uuid") or str(uuid.uuid4())}
            for name in person.get("names", [])
        ]
        identifiers = [
            {**ident, "uuid": ident.get("uuid") or str(uuid.uuid4())}
            for ident in patient.get("identifiers", [])
        ]
        self.persons[patient_uuid] = person
        self.patients[patient_uuid] = {
            "uuid": patient_uuid,
            "identifiers": identifiers,
            "person": person,
        }
        return patient_uuid

    def upsert_identifier_source(
        self, source_uuid: str, name: str, identifier_type: str, prefix: str
    ) -> None:
        self.identifier_sources[source_uuid] = {
            "uuid": source_uuid,
            "name": name,
            "display": name,
            "identifierType": {"uuid": identifier_type},
            "prefix": prefix,
            "next": 1,
        }

    def request(
        self,
        method: str,
        url: str,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        data: str | dict[str, str] | None = None,
        files: dict[str, tuple[str, bytes, str]] | None = None,
        timeout: int | None = None,  # noqa: ARG002 # NOSONAR S1172 (ignored in stub)
    ) -> Response:
        """
        Route a request to the matching endpoint handler.

        :return: A :class:`requests.Response` with a JSON body, an empty ``204``,
            or a ``404``/``400`` error body.
        """
        headers_in = CaseInsensitiveDict(headers or {})
        parts = urlsplit(url)
        query = {
            key: values[-1]
            for key, values in parse_qs(parts.query, keep_blank_values=True).items()
        }
        query.update(params or {})

        self.calls.append(
            {
                "method": method,
                "url": url,
                "headers": dict(headers_in),
                "params": dict(params or {}),
                "data": data,
                "files": files,
            }
        )

        root = parts.path.find(REST_API_ROOT)
        if root == -1:
            return _error_response(404, f"Not a REST path: {parts.path}")
        path = parts.path[root + len(REST_API_ROOT) :].rstrip("/")
        base = f"{parts.scheme}://{parts.netloc}{parts.path[:root]}"

        body: Any = None
        if isinstance(data, str) and "json" in headers_in.get("Content-Type", ""):
            try:
                body = json.loads(data)
            except json.JSONDecodeError:
                return _error_response(400, "Request body is not valid JSON")

        for route_method, pattern, handler in self._routes:
            match = pattern.fullmatch(path)
            if route_method == method.upper() and match:
                return handler(
                    body=body,
                    query=query,
                    form=data if isinstance(data, dict) else {},
                    files=files or {},
                    base=base,
                    **match.groupdict(),
                )

        return _error_response(404, f"No handler for {method} {path}")

    # ---------------------------
    # Persons and patients
    # ---------------------------

    def _search_persons(self, query: dict[str, str], **_: Any) -> Response:
        term = query.get("q", "").lower()
        results = [
            {"uuid": person_uuid, "display": _name_display(person["names"][0])}
            for person_uuid, person in self.persons.items()
            if person.get("names")
            and any(term in _name_display(name).lower() for name in person["names"])
        ]
        return _create_response(200, {"results": results})

    def _search_patients(self, query: dict[str, str], **_: Any) -> Response:
        term = query.get("q", "").lower()
        results = []
        for patient_uuid, patient in self.patients.items():
            names = [_name_display(n).lower() for n in patient["person"]["names"]]
            idents = [i.get("identifier", "").lower() for i in patient["identifiers"]]
            if any(term in value for value in names + idents):
                results.append({"uuid": patient_uuid, "identifiers": idents})
        return _create_response(200, {"results": results})

    def _create_patient(self, body: dict[str, Any] | None, **_: Any) -> Response:
        if not body:
            return _error_response(400, "Patient body is required")
        patient_uuid = self.upsert_patient(body)
        return _create_response(201, self.patients[patient_uuid])

    def _update_patient(
        self, body: dict[str, Any] | None, patient: str, **_: Any
    ) -> Response:
        if patient not in self.patients:
            return _error_response(404, f"Patient {patient} not found")
        merged = {**self.patients[patient], **(body or {}), "uuid": patient}
        self.upsert_patient(merged)
        return _create_response(200, self.patients[patient])

    def _delete_person_name(self, person: str, name: str, **_: Any) -> Response:
        record = self.persons.get(person)
        if record is None or not any(n["uuid"] == name for n in record["names"]):
            return _error_response(404, f"Name {name} not found")
        record["names"] = [n for n in record["names"] if n["uuid"] != name]
        return _create_response(204)

    # ---------------------------
    # Encounters and relationships
    # ---------------------------

    def _create_encounter(self, body: dict[str, Any] | None, **_: Any) -> Response:
        if not body:
            return _error_response(400, "Encounter body is required")
        encounter = {**body, "uuid": str(uuid.uuid4())}
        self.encounters[encounter["uuid"]] = encounter
        return _create_response(201, encounter)

    def _create_relationship(self, body: dict[str, Any] | None, **_: Any) -> Response:
        if not body or "relationshipType" not in body:
            return _error_response(400, "relationshipType is required")
        relationship = {**body, "uuid": str(uuid.uuid4())}
        self.relationships[relationship["uuid"]] = relationship
        return _create_response(201, relationship)

    def _update_relationship(
        self, body: dict[str, Any] | None, relationship: str, **_: Any
    ) -> Response:
        if relationship not in self.relationships:
            return _error_response(404, f"Relationship {relationship} not found")
        self.relationships[relationship].update(body or {})
        return _create_response(200, self.relationships[relationship])

    def _delete_relationship(self, relationship: str, **_: Any) -> Response:
        if self.relationships.pop(relationship, None) is None:
            return _error_response(404, f"Relationship {relationship} not found")
        return _create_response(204)

    # ---------------------------
    # Identifiers
    # ---------------------------

    def _list_sources(self, query: dict[str, str], **_: Any) -> Response:
        identifier_type = query.get("identifierType")
        results = [
            {k: v for k, v in source.items() if k not in ("prefix", "next")}
            for source in self.identifier_sources.values()
            if identifier_type is None
            or source["identifierType"]["uuid"] == identifier_type
        ]
        return _create_response(200, {"results": results})

    def _generate_identifier(self, source: str, **_: Any) -> Response:
        record = self.identifier_sources.get(source)
        if record is None:
            return _error_response(404, f"Identifier source {source} not found")
        identifier = f"{record['prefix']}{record['next']}"
        record["next"] += 1
        return _create_response(201, {"identifier": identifier})

    def _add_identifier(
        self, body: dict[str, Any] | None, patient: str, **_: Any
    ) -> Response:
        if patient not in self.patients:
            return _error_response(404, f"Patient {patient} not found")
        if not body or "identifier" not in body:
            return _error_response(400, "identifier is required")
        identifier = {**body, "uuid": str(uuid.uuid4())}
        self.patients[patient]["identifiers"].append(identifier)
        return _create_response(201, identifier)

    def _find_identifier(self, patient: str, identifier: str) -> dict[str, Any] | None:
        record = self.patients.get(patient)
        if record is None:
            return None
        return next(
            (i for i in record["identifiers"] if i["uuid"] == identifier), None
        )

    def _update_identifier(
        self, body: dict[str, Any] | None, patient: str, identifier: str, **_: Any
    ) -> Response:
        record = self._find_identifier(patient, identifier)
        if record is None:
            return _error_response(404, f"Identifier {identifier} not found")
        record.update(body or {})
        return _create_response(200, record)

    def _delete_identifier(
        self, query: dict[str, str], patient: str, identifier: str, **_: Any
    ) -> Response:
        record = self._find_identifier(patient, identifier)
        if record is None:
            return _error_response(404, f"Identifier {identifier} not found")
        if "purge" not in query:
            return _error_response(400, "Identifiers can only be purged")
        self.patients[patient]["identifiers"].remove(record)
        return _create_response(204)

    # ---------------------------
    # Observations
    # ---------------------------

    def _create_obs(
        self,
        form: dict[str, str],
        files: dict[str, tuple[str, bytes, str]],
        base: str,
        **_: Any,
    ) -> Response:
        if "file" not in files or "json" not in form:
            return _error_response(400, "Complex obs needs 'file' and 'json' parts")
        metadata = json.loads(form["json"])
        filename, _content, _mime = files["file"]
        obs_uuid = str(uuid.uuid4())
        observation = {
            "uuid": obs_uuid,
            "display": f"Patient photo: {filename}",
            "person": metadata["person"],
            "concept": metadata["concept"],
            "obsDatetime": metadata["obsDatetime"],
            "value": {
                "display": filename,
                "links": {
                    "rel": "self",
                    "uri": f"{base}{REST_API_ROOT}/obs/{obs_uuid}/value",
                },
            },
        }
        self.observations.append(observation)
        return _create_response(201, observation)

    def _search_obs(self, query: dict[str, str], **_: Any) -> Response:
        matches = [
            obs
            for obs in self.observations
            if obs["person"] == query.get("patient")
            and obs["concept"] == query.get("concept")
        ]
        matches.sort(key=lambda obs: obs["obsDatetime"], reverse=True)
        return _create_response(200, {"results": matches})
