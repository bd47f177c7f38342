from datetime import datetime, timezone

import pytest

from matter_opening.core.config import load_settings
from matter_opening.core.errors import ValidationError
from matter_opening.core.normalization import local_timestamp, normalize_initials, normalize_timezone


def test_settings_read_prefixed_environment(monkeypatch):
    monkeypatch.setenv("MATTER_OPENING_API_BASE_URL", "http://backend.test/api/")
    monkeypatch.setenv("MATTER_OPENING_STEP_TIMEOUT", "12.5")
    monkeypatch.setenv("MATTER_OPENING_REPORT_DELAY", "not-a-number")
    monkeypatch.setenv("MATTER_OPENING_QUEUE_BACKEND", " Celery ")
    settings = load_settings()
    assert settings.api_base_url == "http://backend.test/api"
    assert settings.step_timeout == 12.5
    assert settings.report_delay == 1.2
    assert settings.queue_backend == "celery"


def test_initials_are_normalized():
    assert normalize_initials(" ab ") == "AB"
    with pytest.raises(ValidationError):
        normalize_initials("a1")
    with pytest.raises(ValidationError):
        normalize_initials("")


def test_unknown_timezone_falls_back_to_utc():
    assert normalize_timezone("Mars/Olympus") == "UTC"


def test_local_timestamp_uses_report_format():
    moment = datetime(2024, 7, 1, 12, 30, 5, tzinfo=timezone.utc)
    assert local_timestamp(moment, "Europe/London") == "01/07/2024, 13:30:05"
