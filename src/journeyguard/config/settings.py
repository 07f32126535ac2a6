from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool) -> bool:
    val = os.getenv(name)
    if val is None:
        return default
    return val.lower() in {"1", "true", "yes", "on"}


@dataclass
class Settings:
    artifacts_root: str = os.getenv("ARTIFACTS_ROOT", "artifacts")
    storage_dir: str = os.getenv("STORAGE_DIR", ".journeyguard")
    headless: bool = _env_bool("HEADLESS", True)
    parallel: int = int(os.getenv("PARALLEL", "1"))
    fail_fast: bool = _env_bool("FAIL_FAST", False)
    attempt_timeout_ms: int = int(os.getenv("ATTEMPT_TIMEOUT_MS", "30000"))
    pattern_window: int = int(os.getenv("PATTERN_WINDOW", "10"))
    enable_screenshots: bool = _env_bool("ENABLE_SCREENSHOTS", True)
    enable_flows: bool = _env_bool("ENABLE_FLOWS", True)
    event_backend: str = os.getenv("EVENT_BACKEND", "inmemory")
    redis_url: str | None = os.getenv("REDIS_URL")
    worker_concurrency: int = int(os.getenv("WORKER_CONCURRENCY", "1"))
    otel_enabled: bool = _env_bool("OTEL_ENABLED", False)
    otel_service_name: str = os.getenv("OTEL_SERVICE_NAME", "journeyguard")
    otel_endpoint: str = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "")
    environment: str = os.getenv("ENVIRONMENT", "development")
    app_version: str = os.getenv("APP_VERSION", "unknown")


settings = Settings()
