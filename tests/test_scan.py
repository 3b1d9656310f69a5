"""Tests for the QR code scanner entry point."""

import base64
from urllib.parse import quote

import pytest

import auth_tui_scan
from auth_tui import InvalidScheme, Kind, read_store_file
from auth_tui_scan import main, records_from_qr_data

TOTP_URI = "otpauth://totp/GitHub:octocat?secret=MFRGG&issuer=GitHub"


class FakeDetector:

    def __init__(self, data):
        self.data = data

    def detectAndDecode(self, img):
        return self.data, None, None


class FakeCV2:
    """Stands in for OpenCV: every image decodes to the given QR text"""

    def __init__(self, data):
        self.data = data

    def imread(self, path):
        return object()

    def QRCodeDetector(self):
        return FakeDetector(self.data)


@pytest.fixture
def image(tmp_path):
    path = tmp_path / "qr.png"
    path.write_bytes(b"\x89PNG")
    return path


@pytest.fixture
def fake_cv2(monkeypatch):
    def install(data):
        monkeypatch.setattr(auth_tui_scan, "cv2", FakeCV2(data))
    return install


class TestRecordsFromQRData:

    def test_otpauth_uri(self):
        [record] = records_from_qr_data(TOTP_URI)
        assert record.issuer == "GitHub"
        assert record.label == "octocat"

    def test_migration_uri(self):
        entry = b"\x0a\x03abc\x12\x03bob\x30\x01"
        payload = b"\x0a" + bytes([len(entry)]) + entry
        uri = "otpauth-migration://offline?data=" + quote(base64.b64encode(payload).decode(), safe="")
        [record] = records_from_qr_data(uri)
        assert record.label == "bob"
        assert record.kind is Kind.HOTP

    def test_unsupported(self):
        with pytest.raises(InvalidScheme):
            records_from_qr_data("https://example.com")


class TestScan:

    def test_imports_scanned_uri(self, tmp_path, image, fake_cv2, capsys):
        fake_cv2(TOTP_URI)
        secrets = tmp_path / "secrets"
        main(["-f", str(secrets), str(image)])

        assert "✓ Imported 1 entries" in capsys.readouterr().out
        store, _ = read_store_file(secrets)
        assert [r.display_name for r in store] == ["GitHub:octocat"]

    def test_second_scan_skips_existing(self, tmp_path, image, fake_cv2, capsys):
        fake_cv2(TOTP_URI)
        secrets = tmp_path / "secrets"
        main(["-f", str(secrets), str(image)])
        main(["-f", str(secrets), str(image)])

        output = capsys.readouterr().out
        assert "Skipping 'GitHub:octocat' (already exists)" in output
        assert len(secrets.read_text().splitlines()) == 1

    def test_dry_run(self, tmp_path, image, fake_cv2, capsys):
        fake_cv2(TOTP_URI)
        secrets = tmp_path / "secrets"
        main(["-f", str(secrets), "--dry-run", str(image)])
        assert "Dry run" in capsys.readouterr().out
        assert not secrets.exists()

    def test_no_qr_code(self, tmp_path, image, fake_cv2, capsys):
        fake_cv2("")
        with pytest.raises(SystemExit) as excinfo:
            main(["-f", str(tmp_path / "secrets"), str(image)])
        assert excinfo.value.code == 1
        assert "No QR code found" in capsys.readouterr().out

    def test_unsupported_qr_code(self, tmp_path, image, fake_cv2, capsys):
        fake_cv2("https://example.com")
        with pytest.raises(SystemExit):
            main(["-f", str(tmp_path / "secrets"), str(image)])
        assert "Unsupported QR code" in capsys.readouterr().out

    def test_missing_image(self, tmp_path, fake_cv2, capsys):
        fake_cv2(TOTP_URI)
        with pytest.raises(SystemExit):
            main(["-f", str(tmp_path / "secrets"), str(tmp_path / "absent.png")])
        assert "File not found" in capsys.readouterr().out

    def test_opencv_missing(self, tmp_path, image, monkeypatch, capsys):
        monkeypatch.setattr(auth_tui_scan, "load_cv2", lambda: False)
        with pytest.raises(SystemExit):
            main(["-f", str(tmp_path / "secrets"), str(image)])
        assert "opencv-python-headless required" in capsys.readouterr().out
