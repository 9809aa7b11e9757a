"""
Tests for slotwise/database.py - engine options per driver.
"""
from unittest.mock import MagicMock

from slotwise.database import _engine_options


def _settings(url, env="production"):
    settings = MagicMock()
    settings.database_url = url
    settings.app_env = env
    settings.database_pool_size = 20
    settings.database_max_overflow = 10
    return settings


class TestEngineOptions:
    def test_postgres_gets_pool_sizing(self):
        options = _engine_options(_settings("postgresql+asyncpg://u:p@db/slotwise"))
        assert options["pool_size"] == 20
        assert options["max_overflow"] == 10
        assert options["pool_pre_ping"] is True
        assert options["echo"] is False

    def test_sqlite_has_no_pool_arguments(self):
        options = _engine_options(_settings("sqlite+aiosqlite:///./dev.db", env="development"))
        assert options == {"echo": True}
