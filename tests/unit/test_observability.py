"""Unit tests for Prometheus metrics and Sentry setup"""
import sys
import pytest
from unittest.mock import AsyncMock

from prometheus_client import REGISTRY

from dojo_scoring import config as config_module
from dojo_scoring.exceptions import StoreError, ValidationError
from dojo_scoring.observability.sentry_config import _before_send, init_sentry


def _sample(name, **labels):
    return REGISTRY.get_sample_value(name, labels) or 0.0


@pytest.mark.asyncio
async def test_ingestion_counters(service, test_user_id):
    labels = {"event_type": "exam_completed", "category": "learning", "origin": "external"}
    ingested_before = _sample("scoring_events_ingested_total", **labels)
    synthetic_before = _sample(
        "scoring_events_ingested_total", event_type="level_up", category="achievement", origin="synthetic"
    )
    level_ups_before = _sample("scoring_level_ups_total")

    await service.create_event(test_user_id, "exam_completed")

    assert _sample("scoring_events_ingested_total", **labels) == ingested_before + 1
    assert _sample(
        "scoring_events_ingested_total", event_type="level_up", category="achievement", origin="synthetic"
    ) == synthetic_before + 1
    assert _sample("scoring_level_ups_total") == level_ups_before + 1


@pytest.mark.asyncio
async def test_validation_errors_counted(service):
    before = _sample("scoring_ingestion_errors_total", error_type="validation")

    with pytest.raises(ValidationError):
        await service.create_event("", "quiz_completed")

    assert _sample("scoring_ingestion_errors_total", error_type="validation") == before + 1


@pytest.mark.asyncio
async def test_metrics_save_failure_counted(service, test_user_id):
    before = _sample("scoring_ingestion_errors_total", error_type="store")
    service.metrics_store.save = AsyncMock(side_effect=TimeoutError("metrics store timeout"))

    with pytest.raises(StoreError) as exc_info:
        await service.create_event(test_user_id, "quiz_completed")

    assert exc_info.value.store == "metrics"
    assert _sample("scoring_ingestion_errors_total", error_type="store") == before + 1


@pytest.mark.asyncio
async def test_leaderboard_read_failure_counted(service, test_user_id):
    before = _sample("scoring_ingestion_errors_total", error_type="leaderboard")
    service.leaderboard_store.get_all = AsyncMock(side_effect=ConnectionError("snapshot store down"))

    event = await service.create_event(test_user_id, "quiz_completed")

    assert event.points == 50
    assert _sample("scoring_ingestion_errors_total", error_type="leaderboard") == before + 1


def test_sentry_disabled(monkeypatch):
    monkeypatch.setattr(config_module, "ENABLE_SENTRY", False)
    assert init_sentry() is False


def test_sentry_without_dsn(monkeypatch):
    monkeypatch.setattr(config_module, "ENABLE_SENTRY", True)
    monkeypatch.setattr(config_module, "SENTRY_DSN", "")
    assert init_sentry() is False


def test_before_send_drops_validation_errors():
    try:
        raise ValidationError("bad request", field="user_id")
    except ValidationError:
        hint = {"exc_info": sys.exc_info()}

    assert _before_send({"event_id": "1"}, hint) is None


def test_before_send_keeps_other_errors():
    try:
        raise RuntimeError("engine fault")
    except RuntimeError:
        hint = {"exc_info": sys.exc_info()}

    event = {"event_id": "2"}
    assert _before_send(event, hint) is event
    assert _before_send(event, {}) is event
