from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Literal, Optional, Union
from urllib.parse import urlparse

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .models import StudentIdFormat
from .portal.locators import DEFAULT_BASE_URL, DEFAULT_DASHBOARD_ORIGIN, PortalLocators, SiteUrls
from .portal.session import SessionSettings


_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z0-9_]+)\}")


def _expand_env_vars(value: object) -> object:
    if isinstance(value, str):
        def repl(match: re.Match[str]) -> str:
            var = match.group(1)
            return os.getenv(var, "")

        return _ENV_VAR_PATTERN.sub(repl, value)
    if isinstance(value, list):
        return [_expand_env_vars(v) for v in value]
    if isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    return value


def _deep_merge(base: object, override: object) -> object:
    if isinstance(base, dict) and isinstance(override, dict):
        out = dict(base)
        for k, v in override.items():
            if k in out:
                out[k] = _deep_merge(out[k], v)
            else:
                out[k] = v
        return out
    return override


def _env_optional(name: str) -> Optional[str]:
    raw = (os.getenv(name, "") or "").strip()
    return raw or None


def _default_config_from_env() -> dict:
    """
    Env-only config so most users only need `.env`; a YAML file is an optional override.

    Unset numeric/choice variables are left out so the model defaults apply.
    """
    raw: dict = {
        "sums": {
            "username": os.getenv("SUMS_USERNAME", ""),
            "password": os.getenv("SUMS_PASSWORD", ""),
            "group_id": _env_optional("SUMS_GROUP_ID"),
            "base_url": os.getenv("SUMS_BASE_URL", DEFAULT_BASE_URL),
            "dashboard_origin": os.getenv("SUMS_DASHBOARD_ORIGIN", DEFAULT_DASHBOARD_ORIGIN),
        },
        "webdriver": {
            "address": os.getenv("WEBDRIVER_ADDRESS", "http://localhost:9515"),
            "action_timeout_ms": _env_optional("SUMS_ACTION_TIMEOUT_MS"),
            "navigation_timeout_ms": _env_optional("SUMS_NAVIGATION_TIMEOUT_MS"),
            "probe_timeout_ms": _env_optional("SUMS_PROBE_TIMEOUT_MS"),
        },
        "scrape": {
            "student_id_format": _env_optional("SUMS_STUDENT_ID_FORMAT"),
            "row_policy": _env_optional("SUMS_ROW_POLICY"),
            "debug_dir": os.getenv("SUMS_DEBUG_DIR", ""),
        },
        "logging": {
            "level": os.getenv("LOG_LEVEL", "INFO"),
            "file_path": os.getenv("LOG_FILE", ""),
        },
    }
    return {
        section: {k: v for k, v in values.items() if v is not None}
        for section, values in raw.items()
    }


def _require_full_url(value: str, field: str) -> str:
    s = (value or "").strip().rstrip("/")
    parsed = urlparse(s)
    if not parsed.scheme or not parsed.netloc:
        raise ValueError(f"{field} must be a full URL like 'https://example.org' (got: {value!r})")
    return s


class SumsConfig(BaseModel):
    username: str = ""
    password: str = Field(default="", repr=False)
    group_id: Optional[int] = Field(default=None, ge=0, le=65535)
    base_url: str = DEFAULT_BASE_URL
    dashboard_origin: str = DEFAULT_DASHBOARD_ORIGIN

    @field_validator("base_url")
    @classmethod
    def _validate_base_url(cls, v: str) -> str:
        return _require_full_url(v, "sums.base_url")

    @field_validator("dashboard_origin")
    @classmethod
    def _validate_dashboard_origin(cls, v: str) -> str:
        return _require_full_url(v, "sums.dashboard_origin")

    def require_credentials(self) -> None:
        if not self.username or not self.password:
            raise ValueError("SUMS credentials missing: set SUMS_USERNAME and SUMS_PASSWORD (or sums.username/password)")


class WebDriverConfig(BaseModel):
    # CDP endpoint of a running Chromium (`--remote-debugging-port`), or a Playwright server ws:// URL.
    address: str = "http://localhost:9515"
    action_timeout_ms: int = Field(default=10_000, gt=0)
    navigation_timeout_ms: int = Field(default=30_000, gt=0)
    probe_timeout_ms: int = Field(default=3_000, gt=0)

    @field_validator("address")
    @classmethod
    def _validate_address(cls, v: str) -> str:
        s = (v or "").strip()
        parsed = urlparse(s)
        if parsed.scheme not in {"http", "https", "ws", "wss"} or not parsed.netloc:
            raise ValueError(f"webdriver.address must look like 'http://localhost:9515' (got: {v!r})")
        return s


class ScrapeConfig(BaseModel):
    student_id_format: StudentIdFormat = "int"
    row_policy: Literal["strict", "collect"] = "strict"
    debug_dir: str = ""


class LoggingConfig(BaseModel):
    level: str = "INFO"
    file_path: str = ""


class AppConfig(BaseModel):
    sums: SumsConfig = SumsConfig()
    webdriver: WebDriverConfig = WebDriverConfig()
    scrape: ScrapeConfig = ScrapeConfig()
    logging: LoggingConfig = LoggingConfig()
    # Overrides for individual PortalLocators fields, e.g. {"login_error": "css=.alert-danger"}
    locators: dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _validate_locators(self) -> "AppConfig":
        # Raises on unknown locator names so typos don't silently fall back to defaults.
        PortalLocators().with_overrides(self.locators)
        return self

    def portal_locators(self) -> PortalLocators:
        return PortalLocators().with_overrides(self.locators)

    def site_urls(self) -> SiteUrls:
        return SiteUrls(base_url=self.sums.base_url, dashboard_origin=self.sums.dashboard_origin)

    def session_settings(self) -> SessionSettings:
        return SessionSettings(
            action_timeout_ms=self.webdriver.action_timeout_ms,
            navigation_timeout_ms=self.webdriver.navigation_timeout_ms,
            probe_timeout_ms=self.webdriver.probe_timeout_ms,
            debug_dir=self.scrape.debug_dir or None,
        )


def load_config(path: Union[str, Path, None] = None) -> AppConfig:
    raw: dict = {}
    if path:
        p = Path(path)
        if p.exists():
            raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
            raw = _expand_env_vars(raw)  # supports ${ENV_VAR} in YAML

    merged = _deep_merge(_default_config_from_env(), raw)
    return AppConfig.model_validate(merged)
