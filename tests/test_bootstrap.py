"""Unit tests for auth/bootstrap.py and the seed-admin CLI command.

Covers:
- seed_admin() creates a verified admin from Settings
- seeding twice is a no-op
- missing credentials skip seeding
- `main.py seed-admin` exits 1 without credentials and 0 once seeded
"""

import pytest

import main as cli
from auth.bootstrap import seed_admin
from auth.credentials import verify_password
from auth.models import ADMIN
from auth.store import PrincipalStore
from core.config import Settings

SECRET = "s" * 32


@pytest.fixture
def mem_store():
    s = PrincipalStore("sqlite:///:memory:")
    yield s
    s.close()


def _settings(**overrides) -> Settings:
    values = {"secret_key": SECRET, "admin_email": "Root@ForsaLearn.ma", "admin_password": "rootpass1"}
    values.update(overrides)
    return Settings(**values)


def test_seed_creates_verified_admin(mem_store):
    admin_id = seed_admin(mem_store, _settings())
    assert admin_id is not None
    admin = mem_store.get_by_id(admin_id, include_secret=True)
    assert admin.role == ADMIN
    assert admin.email == "root@forsalearn.ma"
    assert admin.is_email_verified is True
    assert admin.first_name == "Admin"
    assert verify_password("rootpass1", admin.hashed_password)


def test_seed_is_idempotent(mem_store):
    settings = _settings()
    assert seed_admin(mem_store, settings) is not None
    assert seed_admin(mem_store, settings) is None
    assert mem_store.count() == 1


@pytest.mark.parametrize("overrides", [{"admin_email": ""}, {"admin_password": ""}])
def test_seed_skipped_without_credentials(mem_store, overrides):
    assert seed_admin(mem_store, _settings(**overrides)) is None
    assert mem_store.count() == 0


class TestSeedAdminCommand:
    def test_missing_credentials_exit_1(self, monkeypatch, capsys):
        monkeypatch.setattr(cli, "get_settings", lambda: _settings(admin_email="", admin_password=""))
        assert cli.main(["seed-admin"]) == 1
        assert "ADMIN_EMAIL" in capsys.readouterr().out

    def test_seed_then_noop(self, monkeypatch, capsys, tmp_path):
        db_url = f"sqlite:///{tmp_path / 'cli.db'}"
        monkeypatch.setattr(cli, "get_settings", lambda: _settings(database_url=db_url))

        assert cli.main(["seed-admin"]) == 0
        assert "created" in capsys.readouterr().out
        assert cli.main(["seed-admin"]) == 0
        assert "already exists" in capsys.readouterr().out

    def test_no_command_prints_help(self, capsys):
        assert cli.main([]) == 0
        assert "seed-admin" in capsys.readouterr().out
