from __future__ import annotations

import types

import pytest
from alembic.config import Config

from scripts import run_migrations as runner


def _config(url: str = runner.URL_PLACEHOLDER) -> Config:
    config = Config()
    config.set_main_option("sqlalchemy.url", url)
    return config


def test_resolve_database_url_prefers_env(monkeypatch) -> None:
    monkeypatch.setenv("SCHEDULER_DATABASE_URL", "sqlite://")
    config = _config()
    assert runner.resolve_database_url(config) == "sqlite://"
    assert config.get_main_option("sqlalchemy.url") == "sqlite://"


def test_resolve_database_url_keeps_explicit_url(monkeypatch) -> None:
    monkeypatch.delenv("SCHEDULER_DATABASE_URL", raising=False)
    assert runner.resolve_database_url(_config("postgresql://db/scheduler")) == "postgresql://db/scheduler"


def test_resolve_database_url_requires_a_source(monkeypatch) -> None:
    monkeypatch.delenv("SCHEDULER_DATABASE_URL", raising=False)
    with pytest.raises(RuntimeError):
        runner.resolve_database_url(_config(""))


def test_wait_for_database_succeeds_with_sqlite(tmp_path) -> None:
    runner.wait_for_database(f"sqlite:///{tmp_path / 'ready.sqlite'}", timeout=2, poll_interval=0.1)


def test_wait_for_database_times_out(monkeypatch) -> None:
    class DummyEngine:
        def connect(self) -> types.SimpleNamespace:
            raise runner.OperationalError("SELECT 1", {}, Exception("boom"))

        def dispose(self) -> None:
            pass

    monkeypatch.setattr(runner, "create_engine", lambda *_, **__: DummyEngine())
    with pytest.raises(RuntimeError):
        runner.wait_for_database("postgresql://example", timeout=0, poll_interval=0)


def test_run_migrations_invokes_upgrade(monkeypatch) -> None:
    monkeypatch.setenv("SCHEDULER_DATABASE_URL", "sqlite://")
    config = runner.load_config(str(runner.BACKEND_ROOT / "alembic.ini"))
    recorded: dict[str, object] = {}

    def fake_wait(url: str, *, timeout: float, poll_interval: float) -> None:
        recorded["wait"] = (url, timeout, poll_interval)

    def fake_upgrade(cfg, revision: str, **kwargs) -> None:
        recorded["revision"] = revision
        recorded["script_location"] = cfg.get_main_option("script_location")

    monkeypatch.setattr(runner, "wait_for_database", fake_wait)
    monkeypatch.setattr(runner.command, "upgrade", fake_upgrade)

    runner.run_migrations("head", timeout=5, poll_interval=0.1, config=config)

    assert recorded["revision"] == "head"
    assert recorded["wait"] == ("sqlite://", 5, 0.1)
    assert str(recorded["script_location"]).endswith("alembic")


def test_upgrade_creates_schedule_tables(tmp_path, monkeypatch) -> None:
    database = tmp_path / "migrated.sqlite"
    monkeypatch.setenv("SCHEDULER_DATABASE_URL", f"sqlite:///{database}")
    config = runner.load_config(str(runner.BACKEND_ROOT / "alembic.ini"))

    runner.run_migrations("head", timeout=2, poll_interval=0.1, config=config)

    from sqlalchemy import create_engine, inspect

    engine = create_engine(f"sqlite:///{database}")
    try:
        tables = set(inspect(engine).get_table_names())
    finally:
        engine.dispose()
    assert {"schedule_profiles", "scheduled_sessions", "schedule_audit_events"} <= tables
