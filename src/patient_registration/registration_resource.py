"""
Module: patient_registration.registration_resource

REST operations used by the patient registration workflow: saving patients,
encounters and relationships, minting and editing identifiers, uploading and
reading the patient photo, and searching existing people.

Every write issues exactly one request through :class:`OpenmrsClient` and
returns its :class:`FetchResponse`. HTTP and network errors are not mapped;
they surface as the :mod:`requests` exceptions raised by the transport.

Usage:

    registration = PatientRegistrationClient(OpenmrsClient(session=session))
    response = registration.save_patient(patient)
    photo = registration.patient_photo(response.data["uuid"])
"""

import json
import logging
from typing import Any

from openmrs.encounter import Encounter
from openmrs.identifier_source import IdentifierSource
from openmrs.patient import Patient, PatientIdentifier
from openmrs.relationship import Relationship

from patient_registration.cancellation import CancellationToken
from patient_registration.config import (
    REST_API_ROOT,
    RegistrationConfig,
    load_config,
)
from patient_registration.openmrs_fetch import FetchResponse, OpenmrsClient
from patient_registration.photo import PhotoObservation, data_uri_to_file
from patient_registration.query_cache import QueryCache, QueryResult

logger = logging.getLogger(__name__)

JSON_HEADERS = {"Content-Type": "application/json"}


class PatientRegistrationClient:
    """
    Client for the registration endpoints of the OpenMRS REST API.

    Attributes:
        client (OpenmrsClient): Transport used for every request.
        config (RegistrationConfig): Photo concept, upload URL and cache TTL.
        cache (QueryCache): Backs :meth:`patient_photo` and
            :meth:`identifier_sources`.
    """

    def __init__(
        self,
        client: OpenmrsClient,
        *,
        config: RegistrationConfig | None = None,
        cache: QueryCache | None = None,
    ) -> None:
        self.client = client
        self.config = config or load_config()
        self.cache = cache or QueryCache(ttl=self.config.query_cache_ttl)

    def _post_json(
        self,
        path: str,
        body: Any,
        cancel_token: CancellationToken | None,
    ) -> FetchResponse:
        return self.client.fetch(
            path,
            "POST",
            headers=JSON_HEADERS,
            data=json.dumps(body),
            cancel_token=cancel_token,
        )

    def _delete(
        self, path: str, cancel_token: CancellationToken | None
    ) -> FetchResponse:
        return self.client.fetch(path, "DELETE", cancel_token=cancel_token)

    # ----------------------------- patients ---------------------------------

    def save_patient(
        self,
        patient: Patient | None,
        update_patient_uuid: str | None = None,
        *,
        cancel_token: CancellationToken | None = None,
    ) -> FetchResponse:
        """
        Create a patient, or update one when ``update_patient_uuid`` is given.

        :param patient: Patient payload, sent as-is.
        :param update_patient_uuid: UUID of the patient being edited.
        :param cancel_token: Optional caller cancellation token.
        """
        return self._post_json(
            f"{REST_API_ROOT}/patient/{update_patient_uuid or ''}",
            patient,
            cancel_token,
        )

    def save_encounter(
        self,
        encounter: Encounter,
        *,
        cancel_token: CancellationToken | None = None,
    ) -> FetchResponse:
        return self._post_json(f"{REST_API_ROOT}/encounter", encounter, cancel_token)

    def delete_person_name(
        self,
        name_uuid: str,
        person_uuid: str,
        *,
        cancel_token: CancellationToken | None = None,
    ) -> FetchResponse:
        return self._delete(
            f"{REST_API_ROOT}/person/{person_uuid}/name/{name_uuid}", cancel_token
        )

    def fetch_person(
        self,
        query: str,
        *,
        cancel_token: CancellationToken | None = None,
    ) -> FetchResponse:
        """
        Search people by name or identifier, falling back to a patient search.

        The person search is tried first. When it has results, they are returned
        as ``{"results": [...]}``; otherwise the patient search response is
        returned unchanged, so callers must accept either shape.

        :param query: Free-text search term.
        :param cancel_token: Shared by both searches.
        """
        person_response = self.client.fetch(
            f"{REST_API_ROOT}/person",
            params={"q": query},
            cancel_token=cancel_token,
        )
        results = (person_response.data or {}).get("results", [])
        if results:
            return FetchResponse(
                status_code=person_response.status_code,
                data={"results": results},
                headers=person_response.headers,
            )

        logger.debug("No person matched, falling back to patient search")
        return self.client.fetch(
            f"{REST_API_ROOT}/patient",
            params={"q": query},
            cancel_token=cancel_token,
        )

    # ---------------------------- identifiers -------------------------------

    def generate_identifier(
        self,
        source: str,
        *,
        cancel_token: CancellationToken | None = None,
    ) -> FetchResponse:
        """
        Ask an identifier source to mint a new identifier.

        Not idempotent: every call consumes a new identifier, including calls
        whose response is lost.

        :param source: UUID of the identifier source.
        :param cancel_token: Optional caller cancellation token.
        """
        return self._post_json(
            f"{REST_API_ROOT}/idgen/identifiersource/{source}/identifier",
            {},
            cancel_token,
        )

    def identifier_sources(
        self, identifier_type_uuid: str
    ) -> QueryResult[list[IdentifierSource]]:
        """
        List the identifier sources that can mint identifiers of a type.

        Sources rarely change, so a successful result is cached for the life of
        the cache.
        """
        path = f"{REST_API_ROOT}/idgen/identifiersource"
        params = {"v": "full", "identifierType": identifier_type_uuid}
        key = (path, tuple(params.items())) if identifier_type_uuid else None

        def fetcher() -> list[IdentifierSource]:
            response = self.client.fetch(path, params=params)
            return list((response.data or {}).get("results", []))

        return self.cache.query(key, fetcher, immutable=True)

    def add_patient_identifier(
        self,
        patient_uuid: str,
        patient_identifier: PatientIdentifier,
        *,
        cancel_token: CancellationToken | None = None,
    ) -> FetchResponse:
        return self._post_json(
            f"{REST_API_ROOT}/patient/{patient_uuid}/identifier/",
            patient_identifier,
            cancel_token,
        )

    def update_patient_identifier(
        self,
        patient_uuid: str,
        identifier_uuid: str,
        identifier: str,
        *,
        cancel_token: CancellationToken | None = None,
    ) -> FetchResponse:
        return self._post_json(
            f"{REST_API_ROOT}/patient/{patient_uuid}/identifier/{identifier_uuid}",
            {"identifier": identifier},
            cancel_token,
        )

    def delete_patient_identifier(
        self,
        patient_uuid: str,
        patient_identifier_uuid: str,
        *,
        cancel_token: CancellationToken | None = None,
    ) -> FetchResponse:
        """Purge an identifier; purged identifiers cannot be restored."""
        return self._delete(
            f"{REST_API_ROOT}/patient/{patient_uuid}/identifier/"
            f"{patient_identifier_uuid}?purge",
            cancel_token,
        )

    # --------------------------- relationships ------------------------------

    def save_relationship(
        self,
        relationship: Relationship,
        *,
        cancel_token: CancellationToken | None = None,
    ) -> FetchResponse:
        return self._post_json(
            f"{REST_API_ROOT}/relationship", relationship, cancel_token
        )

    def update_relationship(
        self,
        relationship_uuid: str,
        relationship: Relationship | dict[str, str],
        *,
        cancel_token: CancellationToken | None = None,
    ) -> FetchResponse:
        """Change only the type of an existing relationship."""
        return self._post_json(
            f"{REST_API_ROOT}/relationship/{relationship_uuid}",
            {"relationshipType": relationship["relationshipType"]},
            cancel_token,
        )

    def delete_relationship(
        self,
        relationship_uuid: str,
        *,
        cancel_token: CancellationToken | None = None,
    ) -> FetchResponse:
        return self._delete(
            f"{REST_API_ROOT}/relationship/{relationship_uuid}", cancel_token
        )

    # ------------------------------- photo ----------------------------------

    def save_patient_photo(
        self,
        patient_uuid: str,
        content: str,
        url: str | None,
        date: str,
        concept_uuid: str,
        *,
        cancel_token: CancellationToken | None = None,
    ) -> FetchResponse:
        """
        Upload a patient photo as a complex observation.

        :param patient_uuid: Patient the photo belongs to.
        :param content: Photo as a ``data:<mime>;base64,<payload>`` URI.
        :param url: Upload endpoint; ``None`` uses the configured upload URL.
        :param date: Observation date-time.
        :param concept_uuid: Concept the observation is recorded against.
        :param cancel_token: Optional caller cancellation token.
        :raises binascii.Error: If ``content`` is not a valid base64 data URI.
        """
        photo = data_uri_to_file(content)
        metadata = {
            "person": patient_uuid,
            "concept": concept_uuid,
            "groupMembers": [],
            "obsDatetime": date,
        }

        response = self.client.fetch(
            url or self.config.patient_photo_upload_url,
            "POST",
            data={"patient": patient_uuid, "json": json.dumps(metadata)},
            files={"file": photo.as_multipart()},
            cancel_token=cancel_token,
        )
        photo_key = self._patient_photo_key(patient_uuid)
        if photo_key is not None:
            self.cache.invalidate(photo_key)
        return response

    def patient_photo(self, patient_uuid: str) -> QueryResult[PhotoObservation]:
        """
        Read the most recent photo observation for a patient.

        No request is made when ``patient_uuid`` is empty; the idle result is
        returned instead.
        """
        key = self._patient_photo_key(patient_uuid)

        def fetcher() -> PhotoObservation | None:
            response = self.client.fetch(
                f"{REST_API_ROOT}/obs", params=self._patient_photo_params(patient_uuid)
            )
            results = (response.data or {}).get("results", [])
            if not results:
                return None
            return PhotoObservation.from_observation(results[0])

        return self.cache.query(key, fetcher)

    def _patient_photo_params(self, patient_uuid: str) -> dict[str, str]:
        return {
            "patient": patient_uuid,
            "concept": self.config.patient_photo_concept_uuid,
            "v": "full",
        }

    def _patient_photo_key(self, patient_uuid: str) -> tuple[Any, ...] | None:
        if not patient_uuid:
            return None
        params = self._patient_photo_params(patient_uuid)
        return (f"{REST_API_ROOT}/obs", tuple(params.items()))
