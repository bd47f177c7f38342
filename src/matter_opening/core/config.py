"""Configuration helpers for filesystem layout and runtime settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


def _env(name: str, default: str) -> str:
    return os.getenv(f"MATTER_OPENING_{name}", default)


def _env_float(name: str, default: float) -> float:
    raw = _env(name, "")
    if not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class PathsConfig:
    root: Path
    outputs_dir: Path

    @staticmethod
    def from_root(root: Path) -> "PathsConfig":
        root = root.resolve()
        return PathsConfig(root=root, outputs_dir=root / "outputs")


@dataclass(frozen=True)
class Settings:
    api_base_url: str = "http://localhost:8080/api"
    http_timeout: float = 30.0
    step_timeout: float = 90.0
    run_deadline: float = 600.0
    report_delay: float = 1.2
    report_recipient: str = "matter-opening-reports@example.com"
    report_sender: str = "automations@example.com"
    report_timezone: str = "Europe/London"
    queue_backend: str = "memory"
    redis_url: str = "redis://localhost:6379/0"
    jobs_key: str = "matter_opening:jobs"
    max_jobs: int = 100


def resolve_repo_root() -> Path:
    env_root = Path.cwd()
    for parent in [env_root] + list(env_root.parents):
        if (parent / "pyproject.toml").exists():
            return parent
    return env_root


def load_paths() -> PathsConfig:
    return PathsConfig.from_root(resolve_repo_root())


def load_settings() -> Settings:
    defaults = Settings()
    return Settings(
        api_base_url=_env("API_BASE_URL", defaults.api_base_url).rstrip("/"),
        http_timeout=_env_float("HTTP_TIMEOUT", defaults.http_timeout),
        step_timeout=_env_float("STEP_TIMEOUT", defaults.step_timeout),
        run_deadline=_env_float("RUN_DEADLINE", defaults.run_deadline),
        report_delay=_env_float("REPORT_DELAY", defaults.report_delay),
        report_recipient=_env("REPORT_RECIPIENT", defaults.report_recipient),
        report_sender=_env("REPORT_SENDER", defaults.report_sender),
        report_timezone=_env("TIMEZONE", defaults.report_timezone),
        queue_backend=_env("QUEUE_BACKEND", defaults.queue_backend).strip().lower(),
        redis_url=_env("REDIS_URL", os.getenv("CELERY_BROKER_URL", defaults.redis_url)),
        jobs_key=_env("JOBS_KEY", defaults.jobs_key),
        max_jobs=int(_env_float("MAX_JOBS", defaults.max_jobs)),
    )
