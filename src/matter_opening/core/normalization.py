"""Normalization helpers for operator initials, timestamps and timezone defaults."""

from __future__ import annotations

import os
from datetime import datetime, timezone
from typing import Dict, Optional

from zoneinfo import ZoneInfo

from matter_opening.core.errors import ValidationError
from matter_opening.core.models import FORM_VERSION

DEFAULT_TIMEZONE = os.getenv("MATTER_OPENING_TIMEZONE", "Europe/London")


def normalize_initials(value: Optional[str]) -> str:
    initials = (value or "").strip().upper()
    if not initials or not initials.isalpha():
        raise ValidationError(f"Invalid operator initials: {value!r}")
    return initials


def normalize_timezone(value: Optional[str]) -> str:
    if not value:
        value = DEFAULT_TIMEZONE
    try:
        ZoneInfo(value)
    except Exception:
        return "UTC"
    return value


def local_timestamp(moment: Optional[datetime] = None, tz_name: Optional[str] = None) -> str:
    moment = moment or datetime.now(timezone.utc)
    return moment.astimezone(ZoneInfo(normalize_timezone(tz_name))).strftime("%d/%m/%Y, %H:%M:%S")


def build_meta(tz_name: Optional[str] = None) -> Dict[str, str]:
    return {
        "timezone": normalize_timezone(tz_name),
        "form_version": FORM_VERSION,
        "datetime_format": "YYYY-MM-DDTHH:mm:ssZ",
    }
