"""Tests for the auth-tui command line."""

import pytest

import auth_tui
from auth_tui import SHOW_CURSOR, main, read_store_file

RFC_SECRET = "GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ"


@pytest.fixture
def secrets_file(tmp_path, monkeypatch):
    """Isolated secrets file; clipboard disabled"""
    monkeypatch.setattr(auth_tui, "CLIPBOARD_AVAILABLE", False)
    monkeypatch.delenv("AUTH_TUI_FILE", raising=False)
    return tmp_path / "secrets"


@pytest.fixture
def import_file(tmp_path):
    path = tmp_path / "import.txt"
    path.write_text(
        "# exported tokens\n"
        "otpauth://totp/GitHub:octocat?secret=MFRGG&issuer=GitHub\n"
        "otpauth://totp/missing?issuer=nobody\n"
        "\n"
        "otpauth://hotp/counter?secret=MFRGGZA&counter=2\n"
    )
    return path


def run(secrets_file, *args):
    main(["-f", str(secrets_file), *args])


class TestImport:

    def test_imports_and_reports_skipped(self, secrets_file, import_file, capsys):
        run(secrets_file, "import", str(import_file))
        output = capsys.readouterr().out

        assert "Skipping line 3: missing secret parameter" in output
        assert "Imported 'GitHub:octocat'" in output
        assert "✓ Imported 2 entries, skipped 1" in output
        store, errors = read_store_file(secrets_file)
        assert errors == []
        assert [r.label for r in store] == ["octocat", "counter"]

    def test_import_twice_adds_nothing(self, secrets_file, import_file, capsys):
        run(secrets_file, "import", str(import_file))
        first = secrets_file.read_text()
        run(secrets_file, "import", str(import_file))

        assert "✓ Imported 0 entries, skipped 3" in capsys.readouterr().out
        assert secrets_file.read_text() == first

    def test_dry_run_writes_nothing(self, secrets_file, import_file, capsys):
        run(secrets_file, "import", "--dry-run", str(import_file))
        assert "Dry run" in capsys.readouterr().out
        assert not secrets_file.exists()

    def test_missing_import_file(self, secrets_file, tmp_path, capsys):
        with pytest.raises(SystemExit) as excinfo:
            run(secrets_file, "import", str(tmp_path / "absent.txt"))
        assert excinfo.value.code == 1
        assert "absent.txt" in capsys.readouterr().out

    def test_unreadable_store(self, tmp_path, import_file, capsys):
        with pytest.raises(SystemExit) as excinfo:
            run(tmp_path, "import", str(import_file))
        assert excinfo.value.code == 1
        assert "Error:" in capsys.readouterr().out


class TestExport:

    def test_writes_canonical_uris(self, secrets_file, import_file, tmp_path, capsys):
        run(secrets_file, "import", str(import_file))
        out_path = tmp_path / "backup.txt"
        run(secrets_file, "export", str(out_path))

        assert "✓ Exported 2 entries" in capsys.readouterr().out
        assert out_path.read_text().splitlines() == [
            "otpauth://totp/GitHub:octocat?secret=MFRGG&issuer=GitHub&algorithm=SHA1&digits=6&period=30",
            "otpauth://hotp/counter?secret=MFRGGZA&algorithm=SHA1&digits=6&period=30&counter=2",
        ]

    def test_export_empty_store(self, secrets_file, tmp_path):
        out_path = tmp_path / "backup.txt"
        run(secrets_file, "export", str(out_path))
        assert out_path.read_text() == ""


class TestAdd:

    def test_add_totp(self, secrets_file, capsys):
        run(secrets_file, "add", "alice", "mfrg g", "--issuer", "Example", "--digits", "8")
        assert "✓ Added 'Example:alice'" in capsys.readouterr().out
        assert secrets_file.read_text() == (
            "otpauth://totp/Example:alice?secret=MFRGG&issuer=Example&algorithm=SHA1&digits=8&period=30\n"
        )

    def test_add_duplicate(self, secrets_file, capsys):
        run(secrets_file, "add", "alice", "MFRGG")
        run(secrets_file, "add", "alice", "MFRGG")
        assert "already exists" in capsys.readouterr().out
        assert len(secrets_file.read_text().splitlines()) == 1

    @pytest.mark.parametrize("extra", [["--digits", "12"], ["--period", "0"], ["--counter", "-1"]])
    def test_add_invalid_parameters(self, secrets_file, extra, capsys):
        with pytest.raises(SystemExit) as excinfo:
            run(secrets_file, "add", "alice", "MFRGG", *extra)
        assert excinfo.value.code == 1
        assert capsys.readouterr().out.startswith("Error:")
        assert not secrets_file.exists()

    def test_add_invalid_secret(self, secrets_file, capsys):
        with pytest.raises(SystemExit):
            run(secrets_file, "add", "alice", "not base32!")
        assert "Invalid secret key format" in capsys.readouterr().out


class TestGet:

    def test_totp_code(self, secrets_file, monkeypatch, capsys):
        run(secrets_file, "add", "rfc", RFC_SECRET, "--digits", "8")
        capsys.readouterr()
        monkeypatch.setattr(auth_tui.time, "time", lambda: 59.0)

        run(secrets_file, "get", "rfc", "--verbose")
        assert capsys.readouterr().out.splitlines() == ["94287082", "Valid for 1s"]

    def test_hotp_advances_persisted_counter(self, secrets_file, capsys):
        run(secrets_file, "add", "rfc", RFC_SECRET, "--hotp")
        capsys.readouterr()

        for _ in range(3):
            run(secrets_file, "get", "rfc")
        assert capsys.readouterr().out.splitlines() == ["755224", "287082", "359152"]
        store, _ = read_store_file(secrets_file)
        assert store[0].counter == 3

    def test_copies_to_clipboard(self, secrets_file, monkeypatch, capsys):
        copied = []
        monkeypatch.setattr(auth_tui, "CLIPBOARD_AVAILABLE", True)
        monkeypatch.setattr(auth_tui.pyperclip, "copy", copied.append)
        run(secrets_file, "add", "rfc", RFC_SECRET, "--hotp")
        run(secrets_file, "get", "rfc")
        assert copied == ["755224"]
        assert "(copied to clipboard)" in capsys.readouterr().out

    def test_unknown_label(self, secrets_file, capsys):
        with pytest.raises(SystemExit) as excinfo:
            run(secrets_file, "get", "nobody")
        assert excinfo.value.code == 1
        assert "'nobody' not found" in capsys.readouterr().out

    def test_ambiguous_label(self, secrets_file, capsys):
        run(secrets_file, "add", "alice", "MFRGG", "--issuer", "One")
        run(secrets_file, "add", "alice", "MFRGG", "--issuer", "Two")
        with pytest.raises(SystemExit):
            run(secrets_file, "get", "alice")
        assert "ambiguous" in capsys.readouterr().out
        run(secrets_file, "get", "two:alice")


class TestListAndRemove:

    def test_list(self, secrets_file, import_file, capsys):
        run(secrets_file, "import", str(import_file))
        capsys.readouterr()
        run(secrets_file, "list")
        lines = capsys.readouterr().out.splitlines()
        assert lines[0].split() == ["Label", "Issuer", "Type", "Algorithm", "Digits"]
        assert lines[2].split() == ["octocat", "GitHub", "TOTP", "SHA1", "6"]
        assert lines[3].split() == ["counter", "-", "HOTP", "SHA1", "6"]

    def test_list_empty(self, secrets_file, capsys):
        run(secrets_file, "list")
        assert "No OTP secrets stored" in capsys.readouterr().out

    def test_remove_with_force(self, secrets_file, import_file, capsys):
        run(secrets_file, "import", str(import_file))
        run(secrets_file, "remove", "octocat", "--force")
        assert "✓ Removed 'GitHub:octocat'" in capsys.readouterr().out
        store, _ = read_store_file(secrets_file)
        assert [r.label for r in store] == ["counter"]

    def test_remove_cancelled(self, secrets_file, import_file, monkeypatch, capsys):
        run(secrets_file, "import", str(import_file))
        monkeypatch.setattr("builtins.input", lambda prompt: "n")
        run(secrets_file, "remove", "octocat")
        assert "Cancelled" in capsys.readouterr().out
        store, _ = read_store_file(secrets_file)
        assert len(store) == 2


class TestDisplay:

    def test_empty_store_prints_hint(self, secrets_file, capsys):
        run(secrets_file)
        assert "No secrets found" in capsys.readouterr().out

    def test_runs_display_with_loaded_store(self, secrets_file, import_file, monkeypatch, capsys):
        run(secrets_file, "import", str(import_file))
        seen = []

        def fake_run_display(store, **kwargs):
            seen.append(store)
            assert not kwargs["cancelled"]()
            return 1

        monkeypatch.setattr(auth_tui, "run_display", fake_run_display)
        run(secrets_file)
        assert [r.label for r in seen[0]] == ["octocat", "counter"]

    def test_interrupt_restores_cursor(self, secrets_file, import_file, monkeypatch, capsys):
        run(secrets_file, "import", str(import_file))
        capsys.readouterr()

        def interrupted(store, **kwargs):
            raise KeyboardInterrupt

        monkeypatch.setattr(auth_tui, "run_display", interrupted)
        run(secrets_file)
        assert capsys.readouterr().out.endswith(SHOW_CURSOR)

    def test_warns_about_bad_lines(self, secrets_file, monkeypatch, capsys):
        secrets_file.write_text("otpauth://totp/a?secret=MFRGG\nbroken\n")
        monkeypatch.setattr(auth_tui, "run_display", lambda store, **kwargs: 1)
        run(secrets_file)
        assert f"Warning: {secrets_file}:2:" in capsys.readouterr().out
