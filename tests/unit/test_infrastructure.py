"""Settings, logging setup and client lifecycle."""

from __future__ import annotations

import logging

import pytest
import structlog

from edugame.config import Settings, get_settings
from edugame.database import get_engine
from edugame.logging_config import setup_logging
from edugame.redis_client import close_redis, get_optional_redis, get_redis, init_redis


class TestSettings:
    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("EDUGAME_DEFAULT_DAILY_GOAL", "5")
        monkeypatch.setenv("EDUGAME_LEADERBOARD_WEEK_START", "6")
        settings = Settings()
        assert settings.default_daily_goal == 5
        assert settings.leaderboard_week_start == 6

    def test_cached(self):
        assert get_settings() is get_settings()


@pytest.mark.usefixtures("restore_logging")
class TestLogging:
    def test_stdlib_and_structlog_share_handler(self):
        setup_logging(Settings(log_format="console", log_level="DEBUG"))
        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, structlog.stdlib.ProcessorFormatter)
        assert root.level == logging.DEBUG

    def test_json_format(self, capsys):
        setup_logging(Settings(log_format="json", app_version="9.9.9"))
        logging.getLogger("edugame.test").warning("plain stdlib message")
        err = capsys.readouterr().err
        assert '"service": "edugame"' in err
        assert '"version": "9.9.9"' in err
        assert "plain stdlib message" in err


class TestClients:
    def test_engine_requires_init(self):
        with pytest.raises(RuntimeError):
            get_engine()

    @pytest.mark.asyncio
    async def test_redis_lifecycle(self):
        with pytest.raises(RuntimeError):
            get_redis()
        await init_redis("redis://localhost:6379/0")
        assert get_redis() is not None
        await close_redis()
        with pytest.raises(RuntimeError):
            get_redis()
        assert get_optional_redis() is None

    @pytest.mark.asyncio
    async def test_empty_redis_url_disables_cache(self):
        assert await init_redis("") is None
        assert get_optional_redis() is None
        with pytest.raises(RuntimeError):
            get_redis()
        await close_redis()
