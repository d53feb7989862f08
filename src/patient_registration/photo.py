"""
Patient photo helpers: data URI decoding for upload and the read-only photo
projection of an observation.
"""

import base64
import binascii
import re
from dataclasses import dataclass

from openmrs.observation import Observation

PHOTO_FILENAME = "patient-photo.png"
ASCII_WHITESPACE = re.compile(r"[\t\n\f\r ]")


@dataclass(frozen=True)
class PhotoFile:
    """
    Binary photo ready to be sent as a multipart file field.

    :param name: File name reported to the server.
    :param content: Decoded image bytes.
    :param content_type: MIME type declared by the data URI.
    """

    name: str
    content: bytes
    content_type: str

    def as_multipart(self) -> tuple[str, bytes, str]:
        """Return the ``(filename, content, content type)`` tuple requests expects."""
        return (self.name, self.content, self.content_type)


@dataclass(frozen=True)
class PhotoObservation:
    date_time: str
    image_src: str | None

    @classmethod
    def from_observation(cls, observation: Observation) -> "PhotoObservation":
        return cls(
            date_time=observation["obsDatetime"],
            image_src=observation.get("value", {}).get("links", {}).get("uri"),
        )


def data_uri_to_file(data_uri: str) -> PhotoFile:
    """
    Decode a ``data:<mime>;base64,<payload>`` URI into a :class:`PhotoFile`.

    The file is always named ``patient-photo.png``, whatever the declared MIME
    type.

    Whitespace in the payload is ignored and trailing ``=`` padding is optional.

    :param data_uri: The data URI produced by the capture widget.
    :returns: The decoded photo.
    :raises binascii.Error: If the URI has no comma or the payload is not valid
        base64.
    """
    header, separator, payload = data_uri.partition(",")
    if not separator:
        raise binascii.Error("Data URI has no ',' between header and payload")

    content = _forgiving_b64decode(payload)
    mime_type = header.partition(":")[2].split(";", 1)[0]

    return PhotoFile(name=PHOTO_FILENAME, content=content, content_type=mime_type)


def _forgiving_b64decode(payload: str) -> bytes:
    payload = ASCII_WHITESPACE.sub("", payload)
    if len(payload) % 4 == 1:
        raise binascii.Error("Invalid base64 payload length")
    return base64.b64decode(payload + "=" * (-len(payload) % 4), validate=True)
