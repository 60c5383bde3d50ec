"""Root conftest: pins test settings before any booking_sync module is imported."""
from __future__ import annotations

import os
from pathlib import Path

_TEST_DEFAULTS = {
    "API_BASE_URL": "http://test",
    "RECONNECT_DELAY_MIN": "0",
    "RECONNECT_DELAY_MAX": "0",
    "RECONNECT_JITTER": "0",
    "LOG_LEVEL": "DEBUG",
}

_env_test = Path(__file__).resolve().parent / ".env.test"
if _env_test.exists():
    for line in _env_test.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        key, _, value = line.partition("=")
        os.environ.setdefault(key.strip(), value.strip())

for key, value in _TEST_DEFAULTS.items():
    os.environ.setdefault(key, value)
