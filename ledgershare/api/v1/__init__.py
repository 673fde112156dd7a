"""
API v1 - LedgerShare REST API

Versioned endpoints with OpenAPI/Swagger documentation.
"""

from flask import Blueprint
from flask_restx import Api

from .namespaces import files_ns, maintenance_ns, verify_ns


def create_api_blueprint(api_version: str = "v1") -> Blueprint:
    """
    Build the v1 blueprint with its own Api instance.

    flask-restx binds an Api to the first app its blueprint is registered
    on, so every application gets a fresh blueprint.

    Args:
        api_version: Version segment of the URL prefix

    Returns:
        Blueprint mounted at /api/<api_version>
    """
    blueprint = Blueprint("api_v1", __name__, url_prefix=f"/api/{api_version}")

    api = Api(
        blueprint,
        version="1.0",
        title="LedgerShare API",
        description="View- and time-limited file sharing with ledger-anchored integrity proofs",
        doc="/docs",  # Swagger UI at /api/v1/docs
    )

    api.add_namespace(files_ns, path="/files")
    api.add_namespace(verify_ns, path="/verify")
    api.add_namespace(maintenance_ns, path="/maintenance")

    return blueprint


__all__ = ["create_api_blueprint"]
