from __future__ import annotations
import logging

from asset_intake.logging_setup import LOG_NAME, setup_logging
from asset_intake.settings import Settings


def test_settings_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("ASSET_DATA_ROOT", str(tmp_path))
    monkeypatch.setenv("DUPLICATE_CHECK_CONCURRENCY", "0")
    monkeypatch.setenv("USE_POSTGRES", "true")

    s = Settings()
    assert s.ASSET_DATA_ROOT == tmp_path
    assert s.DUPLICATE_CHECK_CONCURRENCY == 0
    assert s.USE_POSTGRES is True
    assert s.LEGACY_SKU_CODE == "ATS"


def test_setup_logging_creates_log_dir(tmp_path):
    path = setup_logging(Settings(ASSET_DATA_ROOT=tmp_path))

    assert path == tmp_path / "logs" / LOG_NAME
    assert path.parent.is_dir()
    root_files = [getattr(h, "baseFilename", "") for h in logging.getLogger().handlers]
    assert any(f.endswith(LOG_NAME) for f in root_files)


def test_sql_echo_follows_db_echo(tmp_path):
    setup_logging(Settings(ASSET_DATA_ROOT=tmp_path, DB_ECHO=False))
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING

    setup_logging(Settings(ASSET_DATA_ROOT=tmp_path, DB_ECHO=True, LOG_LEVEL="debug"))
    assert logging.getLogger("sqlalchemy.engine").level == logging.INFO
    assert logging.getLogger("uvicorn").level == logging.DEBUG
