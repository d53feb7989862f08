"""OpenMRS Obs resource, as returned by ``GET /obs?v=full``."""

from typing import TypedDict


class ObservationLink(TypedDict):
    rel: str
    uri: str


class ObservationValue(TypedDict, total=False):
    display: str
    links: ObservationLink


class Observation(TypedDict):
    display: str
    obsDatetime: str
    uuid: str
    value: ObservationValue


class ObservationFetchResponse(TypedDict):
    results: list[Observation]
