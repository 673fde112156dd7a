"""
Unit tests for API REST endpoints.

Runs the real application services over in-memory collaborators behind
the Flask test client, so status codes and payloads are checked end to
end without Redis.
"""

import io
import time
from datetime import timedelta
from unittest.mock import Mock, patch

import pytest

from ledgershare.app_factory import create_app
from ledgershare.application.download_result import DownloadResult
from ledgershare.application.dependency_container import DependencyContainer
from ledgershare.application.file_share_service import FileShareService
from ledgershare.application.reclamation_scheduler import ReclamationScheduler
from ledgershare.config.settings import AppConfig
from ledgershare.domain.file_records.value_objects import FileStatus
from ledgershare.domain.ledger.repositories import AnchorLedger

from tests.fixtures.domain_fixtures import FILE_HASH, FIXED_NOW, OTHER_WALLET, UPLOADER


@pytest.fixture
def container(file_share_service, scheduler, ledger):
    container = DependencyContainer()
    container.register_singleton(FileShareService, file_share_service)
    container.register_singleton(ReclamationScheduler, scheduler)
    container.register_singleton(AnchorLedger, ledger)
    return container


@pytest.fixture
def flask_app(container):
    app = create_app(config=AppConfig(), container=container, start_scheduler=False)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(flask_app):
    return flask_app.test_client()


def upload(client, content=b"hello world", **form):
    data = {
        "file": (io.BytesIO(content), "hello.txt"),
        "uploader_address": UPLOADER,
        "view_limit": "2",
        "expiry_hours": "24",
    }
    data.update(form)
    return client.post("/api/v1/files", data=data, content_type="multipart/form-data")


# =============================================================================
# Upload
# =============================================================================

class TestUploadEndpoint:
    def test_upload_returns_token_metadata_and_anchor(self, client, ledger):
        response = upload(client)

        assert response.status_code == 201
        body = response.get_json()
        assert len(body["access_token"]) == 64
        assert body["file"]["filename"] == "hello.txt"
        assert body["file"]["views_remaining"] == 2
        assert body["file"]["uploader_address"] == UPLOADER
        assert body["anchor"]["anchor_id"] == ledger.lookup(body["file"]["file_hash"]).anchor_id

    def test_anonymous_upload_hides_uploader(self, client):
        body = upload(client, anonymous_mode="true").get_json()
        assert "uploader_address" not in body["file"]

    def test_missing_file(self, client):
        response = client.post(
            "/api/v1/files",
            data={"uploader_address": UPLOADER},
            content_type="multipart/form-data",
        )
        assert response.status_code == 400
        assert response.get_json()["error"] == "invalid_request"

    def test_missing_uploader(self, client):
        response = upload(client, uploader_address="")
        assert response.status_code == 400

    def test_non_numeric_view_limit(self, client):
        response = upload(client, view_limit="many")
        assert response.status_code == 400

    def test_view_limit_out_of_range(self, client, storage):
        response = upload(client, view_limit="0")
        assert response.status_code == 400
        assert storage.blobs == {}

    def test_invalid_wallet(self, client):
        response = upload(client, uploader_address="0x1234")
        assert response.status_code == 400
        assert response.get_json()["error"] == "invalid_wallet_address"

    def test_file_over_service_limit(self, client):
        response = upload(client, content=b"x" * 4096)
        assert response.status_code == 413
        assert response.get_json()["error"] == "file_too_large"

    def test_ledger_outage_is_retryable_503(self, client, ledger, storage):
        ledger.fail_next(*(TimeoutError() for _ in range(3)))

        response = upload(client)

        assert response.status_code == 503
        body = response.get_json()
        assert body["error"] == "ledger_unavailable"
        assert body["retryable"] is True
        assert storage.blobs == {}

    def test_ledger_rejection_is_502(self, client, ledger):
        from ledgershare.domain.errors import LedgerRejectedError

        ledger.fail_next(LedgerRejectedError("declined"))
        response = upload(client)
        assert response.status_code == 502


# =============================================================================
# Preview and download
# =============================================================================

class TestPreviewEndpoint:
    def test_preview(self, client, stored_record):
        record = stored_record(view_limit=3)

        response = client.get(f"/api/v1/files/{record.access_token}")

        assert response.status_code == 200
        assert response.get_json()["views_remaining"] == 3

    def test_unknown_token(self, client):
        response = client.get(f"/api/v1/files/{'e' * 64}")
        assert response.status_code == 404
        assert response.get_json()["error"] == "file_not_found"

    def test_malformed_token(self, client):
        response = client.get("/api/v1/files/short")
        assert response.status_code == 400
        assert response.get_json()["error"] == "invalid_access_token"

    def test_expired(self, client, stored_record):
        record = stored_record(expiry_time=FIXED_NOW - timedelta(seconds=1))

        response = client.get(f"/api/v1/files/{record.access_token}")

        assert response.status_code == 410
        assert response.get_json()["error"] == "file_expired"

    def test_unexpected_error_is_500(self, client, container):
        service = Mock()
        service.preview.side_effect = RuntimeError("boom")
        container.override(FileShareService, service)

        response = client.get(f"/api/v1/files/{'a' * 64}")

        assert response.status_code == 500
        assert response.get_json()["error"] == "system_error"


class TestDownloadEndpoint:
    def test_streams_file_as_attachment(self, client, stored_record):
        record = stored_record(content=b"file body", view_limit=2, filename="report.pdf")

        response = client.get(f"/api/v1/files/{record.access_token}/download", buffered=True)

        assert response.status_code == 200
        assert response.data == b"file body"
        assert response.headers["Content-Disposition"] == "attachment; filename=report.pdf"
        assert response.headers["X-Views-Remaining"] == "1"
        assert response.mimetype == "application/pdf"

    def test_non_ascii_filename(self, client, stored_record):
        record = stored_record(filename="résumé.pdf")

        response = client.get(f"/api/v1/files/{record.access_token}/download", buffered=True)

        assert "filename*=UTF-8''r%C3%A9sum%C3%A9.pdf" in response.headers["Content-Disposition"]

    def test_last_view_purges_after_transfer(self, client, records, storage, stored_record):
        record = stored_record(content=b"once", view_limit=1)

        response = client.get(f"/api/v1/files/{record.access_token}/download", buffered=True)

        assert response.data == b"once"
        assert records.get(record.id).status is FileStatus.DELETED
        assert not storage.exists(record.blob_ref)

        again = client.get(f"/api/v1/files/{record.access_token}/download")
        assert again.status_code == 410
        assert again.get_json()["error"] == "file_not_active"

    def test_completion_hook_runs_when_response_closes(self, client, stored_record):
        record = stored_record(content=b"body", view_limit=3)

        with patch.object(DownloadResult, "complete", autospec=True) as complete:
            response = client.get(f"/api/v1/files/{record.access_token}/download", buffered=True)

        assert response.data == b"body"
        complete.assert_called_once()

    def test_view_left_keeps_record_active(self, client, records, storage, stored_record):
        record = stored_record(content=b"twice", view_limit=2)

        client.get(f"/api/v1/files/{record.access_token}/download", buffered=True)

        assert records.get(record.id).status is FileStatus.ACTIVE
        assert storage.exists(record.blob_ref)

    def test_missing_blob(self, client, storage, stored_record):
        record = stored_record()
        storage.blobs.clear()

        response = client.get(f"/api/v1/files/{record.access_token}/download")

        assert response.status_code == 404
        assert response.get_json()["error"] == "file_not_found_on_disk"


# =============================================================================
# Owner deletion
# =============================================================================

class TestDeleteEndpoint:
    def delete(self, client, record_id, address=UPLOADER, signature="sig-owner"):
        return client.delete(
            f"/api/v1/files/id/{record_id}",
            headers={
                "X-Wallet-Address": address,
                "X-Message": "delete my file",
                "X-Signature": signature,
            },
        )

    def test_missing_headers(self, client, stored_record):
        record = stored_record()
        response = client.delete(f"/api/v1/files/id/{record.id}")
        assert response.status_code == 401
        assert response.get_json()["error"] == "missing_auth_headers"

    def test_owner_deletes(self, client, records, recoverer, stored_record):
        record = stored_record()
        recoverer.sign("sig-owner", UPLOADER)

        response = self.delete(client, record.id)

        assert response.status_code == 200
        assert response.get_json()["id"] == record.id
        assert records.get(record.id).status is FileStatus.DELETED

    def test_second_delete_is_gone(self, client, recoverer, stored_record):
        record = stored_record()
        recoverer.sign("sig-owner", UPLOADER)
        self.delete(client, record.id)

        response = self.delete(client, record.id)

        assert response.status_code == 410
        assert response.get_json()["error"] == "already_deleted"

    def test_wrong_signer_is_forbidden(self, client, records, recoverer, stored_record):
        record = stored_record()
        recoverer.sign("sig-other", OTHER_WALLET)

        response = self.delete(client, record.id, signature="sig-other")

        assert response.status_code == 403
        assert response.get_json()["retryable"] is False
        assert records.get(record.id).status is FileStatus.ACTIVE

    def test_unknown_record(self, client, recoverer):
        recoverer.sign("sig-owner", UPLOADER)
        response = self.delete(client, "missing")
        assert response.status_code == 404


# =============================================================================
# Verify and maintenance
# =============================================================================

class TestVerifyEndpoint:
    def test_verifies_anchored_hash(self, client, ledger):
        ledger.submit(FILE_HASH, FIXED_NOW, UPLOADER)

        response = client.post("/api/v1/verify", json={"file_hash": FILE_HASH.upper()})

        assert response.status_code == 200
        body = response.get_json()
        assert body["verified"] is True
        assert body["uploader"] == UPLOADER

    def test_unknown_hash_is_not_verified(self, client):
        response = client.post("/api/v1/verify", json={"file_hash": "ab" * 32})
        assert response.status_code == 200
        assert response.get_json()["verified"] is False

    def test_malformed_hash(self, client):
        response = client.post("/api/v1/verify", json={"file_hash": "xyz"})
        assert response.status_code == 400
        assert response.get_json()["error"] == "invalid_file_hash"

    def test_missing_hash(self, client):
        response = client.post("/api/v1/verify", json={})
        assert response.status_code == 400


class TestMaintenanceEndpoint:
    def test_trigger_sweep_is_accepted(self, client, scheduler, records, stored_record):
        record = stored_record(status=FileStatus.EXPIRED)

        response = client.post("/api/v1/maintenance/sweep")

        assert response.status_code == 202
        assert response.get_json()["accepted"] is True
        deadline = time.monotonic() + 5
        while records.get(record.id) is not None and time.monotonic() < deadline:
            time.sleep(0.01)
        assert records.get(record.id) is None

    def test_trigger_while_running_is_dropped(self, client, container):
        scheduler = Mock()
        scheduler.trigger.return_value = False
        container.override(ReclamationScheduler, scheduler)

        response = client.post("/api/v1/maintenance/sweep")

        assert response.status_code == 202
        assert response.get_json()["accepted"] is False


class TestHealthEndpoint:
    def test_healthy(self, client, ledger):
        ledger.submit(FILE_HASH, FIXED_NOW, UPLOADER)

        with patch("ledgershare.app_factory.redis_health_check", return_value=True):
            response = client.get("/health")

        assert response.status_code == 200
        body = response.get_json()
        assert body["redis"] == "connected"
        assert body["ledger"] == {"anchors": 1}
        assert body["scheduler"]["running"] is False

    def test_redis_down_is_degraded(self, client):
        with patch("ledgershare.app_factory.redis_health_check", return_value=False):
            response = client.get("/health")

        assert response.status_code == 503
        assert response.get_json()["status"] == "degraded"


# =============================================================================
# App factory
# =============================================================================

class TestSchedulerLifecycle:
    def test_started_scheduler_is_stopped_at_exit(self):
        container = DependencyContainer()
        scheduler = Mock(spec=ReclamationScheduler)
        container.register_singleton(ReclamationScheduler, scheduler)

        with patch("ledgershare.app_factory.atexit.register") as register:
            create_app(config=AppConfig(), container=container, start_scheduler=True)

        scheduler.start.assert_called_once_with()
        register.assert_called_once()
        hook, *args = register.call_args.args
        hook(*args)
        scheduler.stop.assert_called_once()

    def test_no_exit_hook_without_scheduler(self, container):
        with patch("ledgershare.app_factory.atexit.register") as register:
            create_app(config=AppConfig(), container=container, start_scheduler=False)

        register.assert_not_called()
