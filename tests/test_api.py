"""
Tests for the Transfer Gateway handlers.

Tests:
- Public key exchange
- External upload status codes
- Authenticated upload / download / delete / list
- Response bodies never leak key material
"""

import pytest
import base64
import tempfile
from pathlib import Path

from hybridvault.api.handlers import TransferGateway, INTEGRITY_HEADER
from hybridvault.auth.principal import Principal, ROLE_ADMIN
from hybridvault.files.file_store import FileStore
from hybridvault.integration.event_logger import EventLogger, EventType
from hybridvault.keys.key_store import KeyStore
from hybridvault.ledger.integrity_ledger import IntegrityLedger
from hybridvault.transfer.envelope import REQUIRED_FIELDS
from hybridvault.transfer.sender import build_upload_payload
from hybridvault.transfer.service import TransferService, NO_CONTAMINATION, CONTAMINATED


ALICE = Principal("alice")
ADMIN = Principal("bob", ROLE_ADMIN)

_KEYS_DIR = tempfile.TemporaryDirectory()
KEY_STORE = KeyStore(_KEYS_DIR.name).initialize()


def make_gateway(tmpdir, max_payload_bytes=1024 * 1024):
    root = Path(tmpdir)
    audit = EventLogger()
    service = TransferService(
        IntegrityLedger(root / "fileMetadata.json"),
        FileStore(root / "Files"),
        KEY_STORE,
        audit,
    )
    return TransferGateway(service, KEY_STORE, max_payload_bytes=max_payload_bytes), service


def external_payload(data=b"partner data", filename="partner.csv"):
    return build_upload_payload(data, filename, KEY_STORE.key_exchange_bundle(), "partner-a")


class TestPublicKey:
    """Tests for the key exchange endpoint."""

    def test_bundle(self):
        """Response carries the public key and transport key."""
        with tempfile.TemporaryDirectory() as tmpdir:
            gateway, service = make_gateway(tmpdir)
            response = gateway.public_key()

            assert response.status == 200
            assert response.body['success']
            assert response.body['publicKey'] == KEY_STORE.public_key_pem
            assert response.body['algorithm']['symmetric'] == 'AES-256-CBC'
            assert 'step5' in response.body['instructions']
            assert "PRIVATE" not in str(response.body)

    def test_key_exchange_audited(self):
        """Handing out the bundle is recorded."""
        with tempfile.TemporaryDirectory() as tmpdir:
            gateway, service = make_gateway(tmpdir)
            gateway.public_key()
            assert service.event_logger.get_events_by_type(EventType.KEY_EXCHANGE)

    def test_describe_external_upload(self):
        """Description lists every required field."""
        with tempfile.TemporaryDirectory() as tmpdir:
            gateway, _ = make_gateway(tmpdir)
            body = gateway.describe_external_upload().body
            assert set(body['requiredFields']) == set(REQUIRED_FIELDS)


class TestExternalUpload:
    """Tests for third-party submissions."""

    def test_accepted(self):
        """Valid payload is stored and reported clean."""
        with tempfile.TemporaryDirectory() as tmpdir:
            gateway, service = make_gateway(tmpdir)
            response = gateway.external_upload(external_payload())

            assert response.status == 200
            assert response.body['file']['integrityStatus'] == NO_CONTAMINATION
            assert response.body['file']['originalName'] == "partner.csv"
            assert service.list_external()[0]['id'] == response.body['file']['id']

    def test_missing_fields(self):
        """Missing hmac gives 400 with the required list."""
        with tempfile.TemporaryDirectory() as tmpdir:
            gateway, _ = make_gateway(tmpdir)
            payload = external_payload()
            del payload['hmac']

            response = gateway.external_upload(payload)
            assert response.status == 400
            assert response.body['error'] == 'Missing required fields'
            assert response.body['required'] == list(REQUIRED_FIELDS)
            assert response.body['missing'] == ['hmac']

    def test_not_an_object(self):
        """A JSON list is rejected."""
        with tempfile.TemporaryDirectory() as tmpdir:
            gateway, _ = make_gateway(tmpdir)
            assert gateway.external_upload([]).status == 400

    def test_tampered(self):
        """Flipped ciphertext gives 400 Contaminated and stores nothing."""
        with tempfile.TemporaryDirectory() as tmpdir:
            gateway, service = make_gateway(tmpdir)
            payload = external_payload()
            data = bytearray(base64.b64decode(payload['encryptedData']))
            data[0] ^= 0x80
            payload['encryptedData'] = base64.b64encode(bytes(data)).decode()

            response = gateway.external_upload(payload)
            assert response.status == 400
            assert response.body['integrityStatus'] == CONTAMINATED
            assert response.body['kind'] == 'integrity_violation'
            assert service.list_external() == []

    def test_bad_wrapped_key(self):
        """Undecryptable key gives 400 with the unwrap kind."""
        with tempfile.TemporaryDirectory() as tmpdir:
            gateway, _ = make_gateway(tmpdir)
            payload = external_payload()
            payload['encryptedKey'] = base64.b64encode(b"\x00" * 256).decode()

            response = gateway.external_upload(payload)
            assert response.status == 400
            assert response.body['kind'] == 'key_unwrap_error'

    def test_bad_iv(self):
        """Malformed IV gives 400 with the payload kind."""
        with tempfile.TemporaryDirectory() as tmpdir:
            gateway, _ = make_gateway(tmpdir)
            payload = external_payload()
            payload['iv'] = "xyz"

            response = gateway.external_upload(payload)
            assert response.status == 400
            assert response.body['kind'] == 'payload_decrypt_error'

    def test_too_large(self):
        """Oversized payload gives 413 before any crypto."""
        with tempfile.TemporaryDirectory() as tmpdir:
            gateway, _ = make_gateway(tmpdir, max_payload_bytes=64)
            response = gateway.external_upload(external_payload(b"x" * 1000))
            assert response.status == 413

    def test_error_body_has_no_keys(self):
        """Failure responses carry no key material."""
        with tempfile.TemporaryDirectory() as tmpdir:
            gateway, _ = make_gateway(tmpdir)
            payload = external_payload()
            payload['hmac'] = "00" * 32

            body = str(gateway.external_upload(payload).body)
            assert KEY_STORE.transport_mac_key.hex() not in body


class TestAuthenticated:
    """Tests for upload, download, delete and list."""

    def test_upload_requires_admin(self):
        """Non-admins get 403 and unauthenticated callers 401."""
        with tempfile.TemporaryDirectory() as tmpdir:
            gateway, _ = make_gateway(tmpdir)
            assert gateway.upload(ALICE, "a.txt", b"x", "carol").status == 403
            assert gateway.upload(None, "a.txt", b"x", "carol").status == 401

    def test_upload_missing_target(self):
        """Missing target user gives 400."""
        with tempfile.TemporaryDirectory() as tmpdir:
            gateway, _ = make_gateway(tmpdir)
            assert gateway.upload(ADMIN, "a.txt", b"x", "").status == 400

    def test_upload_and_download(self):
        """Owner downloads bytes with a clean integrity header."""
        with tempfile.TemporaryDirectory() as tmpdir:
            gateway, _ = make_gateway(tmpdir)
            file_id = gateway.upload(ADMIN, "a.txt", b"content", "alice").body['fileId']

            response = gateway.download(ALICE, file_id)
            assert response.status == 200
            assert response.content == b"content"
            assert response.headers[INTEGRITY_HEADER] == NO_CONTAMINATION
            assert response.headers['Content-Type'] == 'application/octet-stream'
            assert 'a.txt' in response.headers['Content-Disposition']

    def test_download_contaminated(self):
        """Tampered bytes are still served but flagged."""
        with tempfile.TemporaryDirectory() as tmpdir:
            gateway, _ = make_gateway(tmpdir)
            file_id = gateway.upload(ADMIN, "a.txt", b"content", "alice").body['fileId']
            (Path(tmpdir) / "Files" / "alice" / f"{file_id}_a.txt").write_bytes(b"c0ntent")

            response = gateway.download(ALICE, file_id)
            assert response.headers[INTEGRITY_HEADER] == CONTAMINATED

    def test_verify_only(self):
        """Verify-only returns the verdict without content."""
        with tempfile.TemporaryDirectory() as tmpdir:
            gateway, _ = make_gateway(tmpdir)
            file_id = gateway.upload(ADMIN, "a.txt", b"content", "alice").body['fileId']

            response = gateway.download(ALICE, file_id, verify_only=True)
            assert response.content is None
            assert response.body == {'valid': True, 'message': NO_CONTAMINATION,
                                     'filename': 'a.txt'}

    def test_download_errors(self):
        """Distinct statuses for unknown id, other owner and no id."""
        with tempfile.TemporaryDirectory() as tmpdir:
            gateway, _ = make_gateway(tmpdir)
            file_id = gateway.upload(ADMIN, "a.txt", b"content", "alice").body['fileId']

            assert gateway.download(ALICE, "file_0_000000").status == 404
            assert gateway.download(Principal("carol"), file_id).status == 403
            assert gateway.download(ALICE, "").status == 400
            assert gateway.download(None, file_id).status == 401

    def test_download_missing_on_disk(self):
        """Missing bytes give 404 with the on-disk message."""
        with tempfile.TemporaryDirectory() as tmpdir:
            gateway, _ = make_gateway(tmpdir)
            file_id = gateway.upload(ADMIN, "a.txt", b"content", "alice").body['fileId']
            (Path(tmpdir) / "Files" / "alice" / f"{file_id}_a.txt").unlink()

            response = gateway.download(ALICE, file_id)
            assert response.status == 404
            assert response.body['error'] == "File not found on disk"

    def test_delete(self):
        """Admin deletes; second delete is 404; non-admin 403."""
        with tempfile.TemporaryDirectory() as tmpdir:
            gateway, _ = make_gateway(tmpdir)
            file_id = gateway.upload(ADMIN, "a.txt", b"content", "alice").body['fileId']

            assert gateway.delete(ALICE, file_id).status == 403
            assert gateway.delete(ADMIN, file_id).status == 200
            assert gateway.delete(ADMIN, file_id).status == 404

    def test_list(self):
        """Users see their own files; admins can see everything."""
        with tempfile.TemporaryDirectory() as tmpdir:
            gateway, _ = make_gateway(tmpdir)
            gateway.upload(ADMIN, "a.txt", b"1", "alice")
            gateway.upload(ADMIN, "b.txt", b"2", "carol")

            assert len(gateway.list_files(ALICE).body['files']) == 1
            assert len(gateway.list_files(ALICE, admin_view=True).body['files']) == 1
            assert len(gateway.list_files(ADMIN, admin_view=True).body['files']) == 2
            assert gateway.list_files(None).status == 401

    def test_custom_admin_predicate(self):
        """Host-supplied predicate gates admin endpoints."""
        with tempfile.TemporaryDirectory() as tmpdir:
            _, service = make_gateway(tmpdir)
            gateway = TransferGateway(service, KEY_STORE,
                                      is_admin=lambda p: p.principal_id == "alice")
            assert gateway.upload(ALICE, "a.txt", b"x", "carol").status == 200
            assert gateway.upload(ADMIN, "a.txt", b"x", "carol").status == 403

    def test_hostile_filename_in_header(self):
        """Quotes and CR/LF in a filename cannot break out of the header."""
        with tempfile.TemporaryDirectory() as tmpdir:
            gateway, _ = make_gateway(tmpdir)
            filename = 'x".txt\r\nSet-Cookie: a=b'
            file_id = gateway.upload(ADMIN, filename, b"content", "alice").body['fileId']

            disposition = gateway.download(ALICE, file_id).headers['Content-Disposition']
            assert '\r' not in disposition
            assert '\n' not in disposition
            assert disposition == 'attachment; filename="x_.txt__Set-Cookie__a_b"'

    def test_overlong_filename(self):
        """A filename past the storage limit is a client error."""
        with tempfile.TemporaryDirectory() as tmpdir:
            gateway, service = make_gateway(tmpdir)
            response = gateway.upload(ADMIN, "a" * 400 + ".txt", b"x", "alice")
            assert response.status == 400
            assert response.body['kind'] == 'validation_error'
            assert service.list_for("alice") == []

    def test_overlong_external_filename(self):
        """Same limit applies to third-party envelopes."""
        with tempfile.TemporaryDirectory() as tmpdir:
            gateway, service = make_gateway(tmpdir)
            response = gateway.external_upload(external_payload(filename="b" * 400))
            assert response.status == 400
            assert service.list_external() == []
