"""
Configuration loader tests
"""

from planner_sync.config.loader import ConfigLoader, get_config, load_config


def test_env_var_substitution(tmp_path, monkeypatch):
    monkeypatch.setenv("PLANNER_TEST_URL", "https://db.example.com")
    config_file = tmp_path / "custom.toml"
    config_file.write_text(
        '[remote]\nurl = "${PLANNER_TEST_URL}"\napi_key = "${PLANNER_TEST_MISSING:fallback}"\n',
        encoding="utf-8",
    )

    loader = ConfigLoader(str(config_file))
    loader.load()

    assert loader.get("remote.url") == "https://db.example.com"
    assert loader.get("remote.api_key") == "fallback"
    assert loader.get("remote.nothing", 5) == 5


def test_yaml_config(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("migration:\n  clear_local_after: true\n", encoding="utf-8")

    loader = ConfigLoader(str(config_file))
    loader.load()

    assert loader.get("migration.clear_local_after") is True


def test_default_config_is_created(tmp_path):
    config_file = tmp_path / "fresh" / "config.toml"
    loader = ConfigLoader(str(config_file))
    config = loader.load()

    assert config_file.exists()
    assert "remote" in config
    assert loader.get("migration.clear_local_after") is False


def test_set_persists(tmp_path):
    config_file = tmp_path / "config.toml"
    loader = ConfigLoader(str(config_file))
    loader.load()

    assert loader.set("remote.owner_id", "owner-9")
    assert ConfigLoader(str(config_file)).load()["remote"]["owner_id"] == "owner-9"


def test_global_config_uses_env_file(isolated_config):
    assert get_config().config_file == str(isolated_config)
    assert load_config()["remote"]["api_key"] == "anon-key"


def test_setup_logging_writes_to_configured_dir(tmp_path):
    import logging

    from planner_sync.core.logger import (
        MIGRATION_LOGGER,
        get_logger,
        setup_logging,
    )

    root = logging.getLogger()
    migration_logger = logging.getLogger(MIGRATION_LOGGER)
    previous = list(root.handlers)
    try:
        manager = setup_logging()
        get_logger("planner_sync.tests").error("logging check")
        get_logger("planner_sync.migration.orchestrator").info("run started")
        get_logger("planner_sync.core.db").info("store opened")
        for handler in root.handlers + migration_logger.handlers:
            handler.flush()

        logs_dir = tmp_path / "logs"
        assert manager.logs_dir == logs_dir
        assert (logs_dir / "planner_sync.log").exists()
        assert "logging check" in (logs_dir / "error.log").read_text()
        journal = (logs_dir / "migration.log").read_text()
        assert "run started" in journal
        assert "store opened" not in journal

        # A second call replaces the handlers instead of stacking them
        setup_logging()
        assert len(migration_logger.handlers) == 1
    finally:
        for handler in root.handlers + migration_logger.handlers:
            handler.close()
        root.handlers[:] = previous
        migration_logger.handlers.clear()


def test_parse_size():
    from planner_sync.core.logger import parse_size

    assert parse_size("2KB") == 2048
    assert parse_size("10mb") == 10 * 1024 * 1024
    assert parse_size(4096) == 4096
