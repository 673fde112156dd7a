"""
API Models for request/response validation and Swagger documentation
"""

from flask_restx import Model, fields, reqparse
from werkzeug.datastructures import FileStorage

# =============================================================================
# Request Models
# =============================================================================

upload_parser = reqparse.RequestParser()
upload_parser.add_argument(
    "file", location="files", type=FileStorage, required=True, help="File to share"
)
upload_parser.add_argument(
    "uploader_address", location="form", required=True, help="Uploader wallet address"
)
upload_parser.add_argument(
    "view_limit", location="form", type=int, default=1, help="Number of downloads allowed"
)
upload_parser.add_argument(
    "expiry_hours", location="form", type=float, default=24, help="Lifetime in hours"
)
upload_parser.add_argument(
    "anonymous_mode", location="form", default="false", help="Hide the uploader in previews"
)

verify_request = Model(
    "VerifyRequest",
    {
        "file_hash": fields.String(
            required=True,
            description="SHA-256 digest of the file, hex encoded",
            example="9f86d081884c7d659a2feaa0c55ad015a3bf4f1b2b0b822cd15d6c15b0f00a08",
        ),
        "anchor_id": fields.String(
            required=False,
            description="Ledger transaction to verify against (optional)",
        ),
    },
)

# =============================================================================
# Response Models
# =============================================================================

file_metadata = Model(
    "FileMetadata",
    {
        "id": fields.String(description="Record identifier"),
        "filename": fields.String(description="Original file name"),
        "file_size": fields.Integer(description="Size in bytes"),
        "mime_type": fields.String(description="Content type", allow_null=True),
        "views_remaining": fields.Integer(description="Downloads left"),
        "view_limit": fields.Integer(description="Downloads granted at creation"),
        "expiry_time": fields.DateTime(description="Expiry deadline (ISO 8601)"),
        "created_at": fields.DateTime(description="Creation time (ISO 8601)"),
        "file_hash": fields.String(description="Anchored SHA-256 digest"),
        "anchor_id": fields.String(description="Ledger transaction id"),
        "anchor_block": fields.Integer(description="Ledger position", allow_null=True),
        "status": fields.String(description="Record status", enum=["active", "expired", "deleted"]),
        "uploader_address": fields.String(
            description="Uploader wallet, absent in anonymous mode"
        ),
    },
)

anchor_receipt = Model(
    "AnchorReceipt",
    {
        "anchor_id": fields.String(description="Ledger transaction id"),
        "anchor_block": fields.Integer(description="Ledger position", allow_null=True),
    },
)

upload_response = Model(
    "UploadResponse",
    {
        "access_token": fields.String(description="Token granting download rights"),
        "file": fields.Nested(file_metadata),
        "anchor": fields.Nested(anchor_receipt),
    },
)

deletion_receipt = Model(
    "DeletionReceipt",
    {
        "id": fields.String(description="Record identifier"),
        "filename": fields.String(description="Original file name"),
        "file_size": fields.Integer(description="Size in bytes"),
        "file_hash": fields.String(description="Anchored SHA-256 digest"),
        "uploader_address": fields.String(description="Uploader wallet"),
        "views_remaining_at_deletion": fields.Integer(description="Downloads left when deleted"),
        "expiry_time": fields.DateTime(description="Expiry deadline (ISO 8601)"),
        "anchor_id": fields.String(description="Ledger transaction id"),
        "anchor_block": fields.Integer(description="Ledger position", allow_null=True),
        "deleted_at": fields.DateTime(description="Deletion time (ISO 8601)"),
    },
)

verify_response = Model(
    "VerifyResponse",
    {
        "verified": fields.Boolean(description="Whether the hash matches the ledger"),
        "provided_hash": fields.String(description="Hash supplied by the caller"),
        "anchored_hash": fields.String(description="Hash found on the ledger", allow_null=True),
        "timestamp": fields.DateTime(description="Anchor time", allow_null=True),
        "uploader": fields.String(description="Anchoring wallet", allow_null=True),
        "anchor_id": fields.String(description="Ledger transaction id", allow_null=True),
    },
)

sweep_response = Model(
    "SweepResponse",
    {
        "accepted": fields.Boolean(description="Whether a new sweep was started"),
        "message": fields.String(description="Outcome"),
    },
)

error_response = Model(
    "ErrorResponse",
    {
        "error": fields.String(description="Error category"),
        "code": fields.String(description="Error code"),
        "title": fields.String(description="Short title"),
        "message": fields.String(description="User-facing message"),
        "action": fields.String(description="Suggested action"),
        "retryable": fields.Boolean(description="Whether retrying may succeed"),
    },
)

# Models documented by each namespace; registered when the namespaces load
FILES_MODELS = (file_metadata, anchor_receipt, upload_response, deletion_receipt, error_response)
VERIFY_MODELS = (verify_request, verify_response, error_response)
MAINTENANCE_MODELS = (sweep_response,)
