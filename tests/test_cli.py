"""Tests for the command line interface."""

import json

import pytest

from files_core.cli import common
from files_core.cli import credentials as credential_cmds
from files_core.cli import documents as document_cmds
from files_core.cli import folders as folder_cmds
from files_core.cli import logs as log_cmds
from files_core.cli import users as user_cmds
from files_core.cli.main import main, sync
from files_core.container import build_container
from files_core.exceptions import ValidationFailed
from files_core.models.schemas import UserCreate


@pytest.fixture
def cli_container(test_settings, connector, monkeypatch):
    """Every command run shares one container wired to the temporary database"""
    container = build_container(test_settings, connector=connector)
    monkeypatch.setattr(common, "create_container", lambda: container)
    monkeypatch.setattr(common.console, "width", 200)
    return container


@pytest.fixture
def alice_cli(cli_container, capsys):
    user_cmds.create(email="alice@example.com", name="Alice", password="wonderland")
    capsys.readouterr()
    return "alice@example.com"


class TestTemplates:
    def test_json_and_flag_override(self, tmp_path):
        path = tmp_path / "user.json"
        path.write_text(json.dumps({"email": "a@example.com", "name": "From file", "password": "p"}))

        data = common.load_input(UserCreate, path, name="From flag", password=None)
        assert data.name == "From flag"
        assert data.password == "p"

    def test_yaml(self, tmp_path):
        path = tmp_path / "sync.yaml"
        path.write_text("owner_email: a@example.com\nfolder_ref: inbox/\n")
        assert common.read_template(path) == {"owner_email": "a@example.com", "folder_ref": "inbox/"}

    def test_missing_template(self, tmp_path):
        with pytest.raises(ValidationFailed):
            common.read_template(tmp_path / "nope.json")

    def test_template_must_be_object(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ValidationFailed):
            common.read_template(path)


class TestUserCommands:
    def test_create_and_list(self, alice_cli, capsys):
        user_cmds.list_users()
        out = capsys.readouterr().out
        assert "alice@example.com" in out
        assert "Alice" in out

    def test_verify(self, alice_cli, capsys):
        user_cmds.verify(email=alice_cli, password="wonderland")
        assert "Valid credentials" in capsys.readouterr().out
        assert user_cmds.verify(email=alice_cli, password="wrong") == 1

    def test_update_and_read(self, alice_cli, capsys):
        user_cmds.update(email=alice_cli, name="Alice Martin")
        user_cmds.read(email=alice_cli)
        assert "Alice Martin" in capsys.readouterr().out


class TestDocumentCommands:
    def test_create_from_yaml_template(self, alice_cli, tmp_path, capsys):
        source = tmp_path / "report.pdf"
        source.write_bytes(b"%PDF-1.4 body")
        template = tmp_path / "document.yaml"
        template.write_text(
            f"name: Report\nowner_email: {alice_cli}\nfile_path: {source}\ntags:\n  - finance\n"
        )

        document_cmds.create(template=template)
        assert "Document created: Report" in capsys.readouterr().out

        document_cmds.read(name="Report", owner_email=alice_cli)
        out = capsys.readouterr().out
        assert "finance" in out
        assert "pdf" in out

    def test_download(self, alice_cli, tmp_path, cli_container, capsys):
        source = tmp_path / "notes.txt"
        source.write_bytes(b"remember the milk")
        document_cmds.create(name="Notes", owner_email=alice_cli, file_path=str(source))
        capsys.readouterr()

        async def _first(c):
            return (await c.documents.list())[0]

        document = common.run(_first)
        target = tmp_path / "out.txt"
        document_cmds.download(str(document.id), alice_cli, output=target)
        assert target.read_bytes() == b"remember the milk"

    def test_list_empty(self, alice_cli, capsys):
        document_cmds.list_documents(owner_email=alice_cli)
        assert "No documents found" in capsys.readouterr().out


class TestOtherCommands:
    def test_folder_create_and_list(self, alice_cli, capsys):
        folder_cmds.create(name="Reports", owner_email=alice_cli)
        folder_cmds.list_folders(owner_email=alice_cli)
        assert "Reports" in capsys.readouterr().out

    def test_credentials(self, alice_cli, capsys):
        credential_cmds.set_credentials(user_email=alice_cli, email="alice-key", password="alice-secret")
        credential_cmds.show(alice_cli)
        out = capsys.readouterr().out
        assert "alice-key" in out
        assert "alice-secret" not in out

    def test_sync_and_logs(self, alice_cli, object_store, capsys):
        object_store.put("remote.txt", b"from the bucket")

        sync(owner_email=alice_cli)
        assert "1 created, 0 updated" in capsys.readouterr().out

        log_cmds.list_logs(filter_type="action", action="document_sync")
        assert "DOCUMENT_SYNC" in capsys.readouterr().out


class TestMain:
    def test_unknown_user_exits_1(self, cli_container, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["user", "read", "--email", "nobody@example.com"])
        assert exc.value.code == 1
        assert "User not found" in capsys.readouterr().out

    def test_invalid_input_exits_1(self, cli_container, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["user", "create", "--email", "not-an-email", "--name", "X", "--password", "p"])
        assert exc.value.code == 1
        assert "Invalid input" in capsys.readouterr().out

    def test_version(self):
        import files_core
        from files_core.config import settings

        assert files_core.__version__ == settings.VERSION
