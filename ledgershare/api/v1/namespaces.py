"""
API Namespaces - Organized endpoint groups
"""

import unicodedata
from urllib.parse import quote

from flask import Response, current_app, request
from flask_restx import Namespace, Resource
from werkzeug.exceptions import RequestEntityTooLarge

from ledgershare.api.v1.models import (
    FILES_MODELS,
    MAINTENANCE_MODELS,
    VERIFY_MODELS,
    deletion_receipt,
    error_response,
    file_metadata,
    sweep_response,
    upload_parser,
    upload_response,
    verify_request,
    verify_response,
)
from ledgershare.application.file_share_service import FileShareService
from ledgershare.application.reclamation_scheduler import ReclamationScheduler
from ledgershare.domain.errors import (
    DomainError,
    ErrorCategory,
    create_error_response,
    error_response_for,
)

TRUE_VALUES = ("1", "true", "yes", "on")


def _service() -> FileShareService:
    return current_app.container.resolve(FileShareService)


def _system_error(message: str):
    current_app.logger.exception(message)
    return create_error_response(ErrorCategory.SYSTEM_ERROR, message, status_code=500)


def _attachment_names(filename: str) -> dict:
    """Content-Disposition parameters, with an RFC 5987 name for non-ASCII files."""
    simple = unicodedata.normalize("NFKD", filename).encode("ascii", "ignore").decode("ascii")
    if simple == filename:
        return {"filename": filename}
    quoted = quote(filename, safe="!#$&+^`|~")
    return {"filename": simple or "download", "filename*": f"UTF-8''{quoted}"}


# =============================================================================
# Files Namespace - Upload, preview, download and deletion
# =============================================================================

files_ns = Namespace("files", description="Shared file operations")
for _model in FILES_MODELS:
    files_ns.add_model(_model.name, _model)


@files_ns.route("")
class FileUpload(Resource):
    """Upload a file"""

    @files_ns.doc("upload_file")
    @files_ns.expect(upload_parser)
    @files_ns.response(201, "Created", upload_response)
    @files_ns.response(400, "Bad Request", error_response)
    @files_ns.response(413, "File Too Large", error_response)
    @files_ns.response(502, "Ledger Rejected", error_response)
    @files_ns.response(503, "Ledger Unavailable", error_response)
    def post(self):
        """
        Upload a file and anchor its hash

        The file is stored, hashed and anchored on the ledger before its
        record is created. Returns the access token for the share link.
        """
        try:
            upload = request.files.get("file")
        except RequestEntityTooLarge:
            return create_error_response(
                ErrorCategory.FILE_TOO_LARGE, "Request body too large", status_code=413
            )

        if upload is None or not upload.filename:
            return create_error_response(
                ErrorCategory.INVALID_REQUEST, "Missing 'file' in request", status_code=400
            )

        form = request.form
        uploader_address = form.get("uploader_address", "").strip()
        if not uploader_address:
            return create_error_response(
                ErrorCategory.INVALID_REQUEST,
                "Missing 'uploader_address' in request",
                status_code=400,
            )

        try:
            view_limit = int(form.get("view_limit", 1))
            expiry_hours = float(form.get("expiry_hours", 24))
        except (TypeError, ValueError):
            return create_error_response(
                ErrorCategory.INVALID_REQUEST,
                "'view_limit' and 'expiry_hours' must be numbers",
                status_code=400,
            )
        anonymous_mode = form.get("anonymous_mode", "false").strip().lower() in TRUE_VALUES

        try:
            record = _service().upload(
                stream=upload.stream,
                filename=upload.filename,
                uploader_address=uploader_address,
                view_limit=view_limit,
                expiry_hours=expiry_hours,
                anonymous_mode=anonymous_mode,
                mime_type=upload.mimetype or None,
            )
        except DomainError as e:
            current_app.logger.warning(f"[API_V1] Upload rejected: {e}")
            return error_response_for(e)
        except Exception as e:
            return _system_error(f"Unexpected error uploading file: {e}")

        current_app.logger.info(
            f"[API_V1] Created record {record.id} for token {record.access_token[:8]}..."
        )
        return {
            "access_token": record.access_token,
            "file": record.to_metadata(),
            "anchor": {"anchor_id": record.anchor_id, "anchor_block": record.anchor_block},
        }, 201


@files_ns.route("/<string:token>")
@files_ns.param("token", "The access token")
class FilePreview(Resource):
    """Preview a shared file"""

    @files_ns.doc("preview_file")
    @files_ns.response(200, "Success", file_metadata)
    @files_ns.response(400, "Invalid Token", error_response)
    @files_ns.response(404, "File Not Found", error_response)
    @files_ns.response(410, "File Gone", error_response)
    def get(self, token):
        """
        Get file metadata without consuming a view
        """
        try:
            record = _service().preview(token)
            return record.to_metadata(), 200
        except DomainError as e:
            return error_response_for(e)
        except Exception as e:
            return _system_error(f"Unexpected error previewing token {token[:8]}: {e}")


@files_ns.route("/<string:token>/download")
@files_ns.param("token", "The access token")
class FileDownload(Resource):
    """Download a shared file"""

    @files_ns.doc("download_file")
    @files_ns.response(200, "File content")
    @files_ns.response(400, "Invalid Token", error_response)
    @files_ns.response(404, "File Not Found", error_response)
    @files_ns.response(410, "File Gone", error_response)
    @files_ns.response(503, "Busy", error_response)
    def get(self, token):
        """
        Download the file, consuming one view

        When the last view is consumed, the file is purged once the
        transfer has completed.
        """
        try:
            result = _service().download(token)
        except DomainError as e:
            return error_response_for(e)
        except Exception as e:
            return _system_error(f"Unexpected error downloading token {token[:8]}: {e}")

        record = result.record
        current_app.logger.info(
            f"[API_V1] Serving record {record.id} for token {token[:8]} "
            f"({result.receipt.views_remaining} view(s) left)"
        )

        response = Response(
            result.iter_chunks(),
            mimetype=record.mime_type or "application/octet-stream",
        )
        response.headers.set(
            "Content-Disposition", "attachment", **_attachment_names(record.filename or "download")
        )
        response.headers["Content-Length"] = str(record.file_size)
        response.headers["X-Views-Remaining"] = str(result.receipt.views_remaining)
        response.call_on_close(result.complete)
        return response


@files_ns.route("/id/<string:file_id>")
@files_ns.param("file_id", "The record identifier")
class FileDelete(Resource):
    """Delete a shared file"""

    @files_ns.doc("delete_file")
    @files_ns.response(200, "Deleted", deletion_receipt)
    @files_ns.response(401, "Missing Authentication", error_response)
    @files_ns.response(403, "Forbidden", error_response)
    @files_ns.response(404, "File Not Found", error_response)
    @files_ns.response(410, "Already Deleted", error_response)
    def delete(self, file_id):
        """
        Delete a file as its uploader

        Requires the X-Wallet-Address, X-Message and X-Signature headers;
        the signature must recover to the uploading wallet.
        """
        address = request.headers.get("X-Wallet-Address", "").strip()
        message = request.headers.get("X-Message", "")
        signature = request.headers.get("X-Signature", "").strip()
        if not address or not message or not signature:
            return create_error_response(
                ErrorCategory.MISSING_AUTH_HEADERS,
                "X-Wallet-Address, X-Message and X-Signature headers are required",
            )

        try:
            receipt = _service().delete_owned(file_id, address, message, signature)
            current_app.logger.info(f"[API_V1] Record {file_id} deleted by its uploader")
            return receipt.to_dict(), 200
        except DomainError as e:
            current_app.logger.warning(f"[API_V1] Delete of record {file_id} refused: {e}")
            return error_response_for(e)
        except Exception as e:
            return _system_error(f"Unexpected error deleting record {file_id}: {e}")


# =============================================================================
# Verify Namespace - Hash verification against the ledger
# =============================================================================

verify_ns = Namespace("verify", description="Integrity verification")
for _model in VERIFY_MODELS:
    verify_ns.add_model(_model.name, _model)


@verify_ns.route("")
class Verify(Resource):
    """Verify a file hash"""

    @verify_ns.doc("verify_hash")
    @verify_ns.expect(verify_request, validate=True)
    @verify_ns.response(200, "Success", verify_response)
    @verify_ns.response(400, "Bad Request", error_response)
    @verify_ns.response(503, "Ledger Unavailable", error_response)
    def post(self):
        """
        Compare a file hash with the anchor recorded on the ledger
        """
        data = request.get_json()
        file_hash = (data.get("file_hash") or "").strip()
        anchor_id = (data.get("anchor_id") or "").strip() or None

        if not file_hash:
            return create_error_response(
                ErrorCategory.INVALID_REQUEST, "Missing 'file_hash' in request body"
            )

        try:
            return _service().verify(file_hash, anchor_id).to_dict(), 200
        except DomainError as e:
            return error_response_for(e)
        except Exception as e:
            return _system_error(f"Unexpected error verifying hash: {e}")


# =============================================================================
# Maintenance Namespace - Reclamation sweeps
# =============================================================================

maintenance_ns = Namespace("maintenance", description="Maintenance operations")
for _model in MAINTENANCE_MODELS:
    maintenance_ns.add_model(_model.name, _model)


@maintenance_ns.route("/sweep")
class Sweep(Resource):
    """Trigger a reclamation sweep"""

    @maintenance_ns.doc("trigger_sweep")
    @maintenance_ns.response(202, "Accepted", sweep_response)
    def post(self):
        """
        Start a reclamation sweep in the background

        Returns immediately. A trigger while a sweep is running is dropped.
        """
        try:
            scheduler = current_app.container.resolve(ReclamationScheduler)
            started = scheduler.trigger()
        except Exception as e:
            return _system_error(f"Failed to trigger sweep: {e}")

        message = "Sweep started" if started else "Sweep already in progress"
        return {"accepted": started, "message": message}, 202
