"""
Flask application serving :class:`OpenmrsRestStub` over real HTTP.

Used by the integration tests, which start it on a free local port so the
client is exercised through :mod:`requests` end to end.
"""

from __future__ import annotations

import os
from typing import Any

from flask import Flask, request
from flask.wrappers import Response as FlaskResponse

from stubs.stub_openmrs import OpenmrsRestStub


def create_app(stub: OpenmrsRestStub | None = None) -> Flask:
    """
    Build a Flask app that forwards every ``/openmrs`` request to ``stub``.

    :param stub: Backend to serve. A freshly seeded stub is used when omitted.
    """
    app = Flask(__name__)
    backend = stub or OpenmrsRestStub()
    app.config["OPENMRS_STUB"] = backend

    @app.route("/health", methods=["GET"])
    def health_check() -> dict[str, Any]:
        return {"status": "healthy"}

    @app.route("/openmrs/<path:path>", methods=["GET", "POST", "DELETE"])
    def openmrs(path: str) -> FlaskResponse:  # noqa: ARG001 (path is in request.url)
        data: str | dict[str, str]
        if request.files:
            data = request.form.to_dict()
            files = {
                name: (
                    upload.filename or name,
                    upload.read(),
                    upload.mimetype,
                )
                for name, upload in request.files.items()
            }
        else:
            data = request.get_data(as_text=True)
            files = None

        response = backend.request(
            request.method,
            request.url,
            headers=dict(request.headers),
            data=data,
            files=files,
        )

        return FlaskResponse(
            response.content,
            status=response.status_code,
            content_type=response.headers.get("Content-Type"),
        )

    return app


if __name__ == "__main__":
    host = os.getenv("FLASK_HOST")
    if host is None:
        raise RuntimeError("FLASK_HOST environment variable is not set.")
    create_app().run(host=host, port=int(os.getenv("FLASK_PORT", "8080")))
