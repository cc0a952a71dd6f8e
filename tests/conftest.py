from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any, Iterator

import pytest


ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

# Every variable load_config() reads; a developer's shell must not leak into tests.
CONFIG_ENV_VARS = (
    "SUMS_USERNAME",
    "SUMS_PASSWORD",
    "SUMS_GROUP_ID",
    "SUMS_BASE_URL",
    "SUMS_DASHBOARD_ORIGIN",
    "WEBDRIVER_ADDRESS",
    "SUMS_ACTION_TIMEOUT_MS",
    "SUMS_NAVIGATION_TIMEOUT_MS",
    "SUMS_PROBE_TIMEOUT_MS",
    "SUMS_STUDENT_ID_FORMAT",
    "SUMS_ROW_POLICY",
    "SUMS_DEBUG_DIR",
    "LOG_LEVEL",
    "LOG_FILE",
)


def pytest_configure(config: Any) -> None:
    config.addinivalue_line(
        "markers",
        "browser: integration tests that drive a real Chromium over CDP (set RUN_BROWSER_INTEGRATION=1)",
    )


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for name in CONFIG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def restore_root_logging() -> Iterator[None]:
    # configure_logging() replaces root handlers with force=True.
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for h in root.handlers:
        if h not in handlers:
            h.close()
    root.handlers[:] = handlers
    root.setLevel(level)
