import logging

import pytest
import structlog
from pydantic import ValidationError
from structlog.testing import capture_logs

from neoquery.core.config import Settings, settings
from neoquery.core.logging import (
    clear_log_context,
    get_log_context,
    info,
    scoped_log_context,
    set_log_context,
    setup_logging,
    update_log_context,
)
from neoquery.core.logging.setup import add_query_context


@pytest.fixture(autouse=True)
def clean_log_context():
    clear_log_context()
    yield
    clear_log_context()


def test_settings_defaults(monkeypatch):
    for name in ("NEO4J_URI", "NEO4J_DATABASE", "LOG_QUERY_PARAMS"):
        monkeypatch.delenv(name, raising=False)
    config = Settings(_env_file=None)
    assert config.neo4j_uri == "bolt://localhost:7687"
    assert config.neo4j_database is None
    assert config.log_query_params is False


def test_settings_read_the_environment(monkeypatch):
    monkeypatch.setenv("NEO4J_URI", "neo4j://graph:7687")
    monkeypatch.setenv("NEO4J_DATABASE", "analytics")
    monkeypatch.setenv("NEO4J_PASSWORD", "s3cret")
    monkeypatch.setenv("LOG_QUERY_PARAMS", "true")

    config = Settings(_env_file=None)

    assert config.neo4j_uri == "neo4j://graph:7687"
    assert config.neo4j_database == "analytics"
    assert config.neo4j_password.get_secret_value() == "s3cret"
    assert "s3cret" not in repr(config)
    assert config.log_query_params is True


def test_settings_reject_an_empty_pool(monkeypatch):
    monkeypatch.setenv("NEO4J_MAX_CONNECTION_POOL_SIZE", "0")
    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_log_context_round_trip():
    set_log_context({"request_id": "r1"})
    update_log_context("user", "ada")
    assert get_log_context() == {"request_id": "r1", "user": "ada"}

    context = get_log_context()
    context["mutated"] = True
    assert "mutated" not in get_log_context()

    clear_log_context()
    assert get_log_context() == {}


def test_log_with_context_merges_context_and_extra():
    set_log_context({"request_id": "r1"})
    with capture_logs() as logs:
        info("Built Cypher query", extra={"param_count": 6})
    assert logs == [
        {"event": "Built Cypher query", "log_level": "info", "request_id": "r1", "param_count": 6},
    ]


def test_query_context_redacts_param_values(monkeypatch):
    monkeypatch.setattr(settings, "log_query_params", False)
    event = add_query_context(None, "debug", {"event": "q", "extra": {"params": {"b": 1, "a": "secret"}}})
    assert event["extra"]["params"] == ["a", "b"]

    monkeypatch.setattr(settings, "log_query_params", True)
    event = add_query_context(None, "debug", {"event": "q", "extra": {"params": {"a": "secret"}}})
    assert event["extra"]["params"] == {"a": "secret"}


def test_query_context_names_the_error_type():
    event = add_query_context(None, "error", {"event": "failed", "error": KeyError("k")})
    assert event["error_type"] == "KeyError"


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    structlog.reset_defaults()
    root.handlers = handlers
    root.setLevel(level)


def test_setup_logging_configures_structlog_and_stdlib(restore_logging):
    setup_logging("debug")

    root = logging.getLogger()
    assert root.level == logging.DEBUG
    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0].formatter, structlog.stdlib.ProcessorFormatter)
    assert add_query_context in structlog.get_config()["processors"]


def test_scoped_log_context_restores_the_outer_context():
    set_log_context({"request_id": "r1"})
    with scoped_log_context(query_returns=["page1"]) as context:
        assert context == {"request_id": "r1", "query_returns": ["page1"]}
        assert get_log_context()["query_returns"] == ["page1"]
    assert get_log_context() == {"request_id": "r1"}
