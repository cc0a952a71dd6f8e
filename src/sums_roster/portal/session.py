from __future__ import annotations

import logging
import re
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, Optional
from urllib.parse import urlparse

from playwright.sync_api import Browser, BrowserContext, Page, Playwright, sync_playwright
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from ..errors import NavigationTimeoutError, SessionClosedError, SessionCreateError, TransportError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionSettings:
    # Default for clicks/fills/locates; Playwright waits up to this long for the element.
    action_timeout_ms: int = 10_000
    navigation_timeout_ms: int = 30_000
    # How long the login-error probe waits before concluding the element is absent.
    probe_timeout_ms: int = 3_000
    connect_timeout_ms: int = 30_000
    debug_dir: Optional[str] = None


def _short(msg: str) -> str:
    # Playwright errors carry a multi-line call log; the first line is the useful part.
    return (msg or "").strip().splitlines()[0] if (msg or "").strip() else ""


class BrowserSession:
    """
    One connection to a remote Chromium (CDP `http://host:port` or Playwright server `ws://...`),
    one browser context and one page.

    Every method is a blocking remote call. Not safe for concurrent use: the page has a single
    focused document and concurrent commands would race against the same DOM.
    """

    def __init__(
        self,
        *,
        playwright: Playwright,
        browser: Browser,
        context: BrowserContext,
        page: Page,
        settings: SessionSettings,
    ) -> None:
        self._playwright = playwright
        self._browser = browser
        self._context = context
        self._page = page
        self.settings = settings
        self._closed = False

    @classmethod
    def connect(cls, endpoint: str, settings: Optional[SessionSettings] = None) -> "BrowserSession":
        settings = settings or SessionSettings()
        scheme = urlparse(endpoint).scheme.lower()
        logger.info("Connecting to browser automation endpoint %s", endpoint)

        pw: Optional[Playwright] = None
        browser: Optional[Browser] = None
        try:
            pw = sync_playwright().start()
            if scheme in {"ws", "wss"}:
                browser = pw.chromium.connect(endpoint, timeout=settings.connect_timeout_ms)
            else:
                browser = pw.chromium.connect_over_cdp(endpoint, timeout=settings.connect_timeout_ms)
            ctx = browser.new_context(color_scheme="light")
            ctx.set_default_timeout(settings.action_timeout_ms)
            ctx.set_default_navigation_timeout(settings.navigation_timeout_ms)
            page = ctx.new_page()
        except Exception as e:
            # Release whatever was acquired before the failure.
            if browser is not None:
                try:
                    browser.close()
                except Exception:
                    logger.debug("Failed to close browser after connect failure.", exc_info=True)
            if pw is not None:
                try:
                    pw.stop()
                except Exception:
                    logger.debug("Failed to stop Playwright after connect failure.", exc_info=True)
            raise SessionCreateError("connect", f"{endpoint}: {_short(str(e))}") from e

        logger.debug("Browser session ready (endpoint=%s)", endpoint)
        return cls(playwright=pw, browser=browser, context=ctx, page=page, settings=settings)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def current_url(self) -> str:
        if self._closed:
            return ""
        return self._page.url or ""

    @contextmanager
    def _command(self, operation: str) -> Iterator[None]:
        if self._closed:
            raise SessionClosedError(operation, "session is closed")
        try:
            yield
        except PlaywrightError as e:
            raise TransportError(operation, _short(str(e))) from e

    def goto(self, url: str) -> None:
        logger.debug("goto %s", url)
        with self._command(f"goto {url}"):
            self._page.goto(url, wait_until="domcontentloaded")

    def click(self, selector: str) -> None:
        logger.debug("click %s", selector)
        with self._command(f"click {selector}"):
            self._page.locator(selector).first.click()

    def fill(self, selector: str, value: str, *, within: Optional[str] = None) -> None:
        # Never log `value`: this is used for passwords.
        logger.debug("fill %s%s", selector, f" (within {within})" if within else "")
        with self._command(f"fill {selector}"):
            scope = self._page.locator(within).first if within else self._page
            scope.locator(selector).first.fill(value)

    def submit_form(self, selector: str) -> None:
        """
        Submit the form and wait for the resulting page. `requestSubmit` fires the form's submit
        handlers, like a user pressing the submit button.
        """
        logger.debug("submit %s", selector)
        with self._command(f"submit {selector}"):
            form = self._page.locator(selector).first
            with self._page.expect_navigation(wait_until="domcontentloaded"):
                form.evaluate("f => (f.requestSubmit ? f.requestSubmit() : f.submit())")

    def select_option(self, selector: str, value: str) -> None:
        logger.debug("select %s value=%s", selector, value)
        with self._command(f"select {selector}"):
            self._page.locator(selector).first.select_option(value=value)

    def evaluate_on(self, selector: str, script: str) -> Any:
        with self._command(f"execute script on {selector}"):
            return self._page.locator(selector).first.evaluate(script)

    def probe_text(self, selector: str, *, timeout_ms: Optional[int] = None) -> Optional[str]:
        """
        Return the element's text if it shows up within the probe timeout, else None.

        Only "not found in time" maps to None; any other failure is a TransportError.
        """
        timeout = self.settings.probe_timeout_ms if timeout_ms is None else timeout_ms
        with self._command(f"probe {selector}"):
            loc = self._page.locator(selector).first
            try:
                loc.wait_for(state="attached", timeout=timeout)
            except PlaywrightTimeoutError:
                logger.debug("probe %s: not present after %sms", selector, timeout)
                return None
            return loc.inner_text().strip()

    def is_visible(self, selector: str) -> bool:
        # Immediate check, no auto-wait.
        with self._command(f"check visibility of {selector}"):
            return self._page.locator(selector).first.is_visible()

    def pause(self, ms: int) -> None:
        with self._command("pause"):
            self._page.wait_for_timeout(ms)

    def exists(self, selector: str, *, timeout_ms: Optional[int] = None) -> bool:
        timeout = self.settings.action_timeout_ms if timeout_ms is None else timeout_ms
        with self._command(f"locate {selector}"):
            try:
                self._page.locator(selector).first.wait_for(state="attached", timeout=timeout)
            except PlaywrightTimeoutError:
                return False
            return True

    def wait_for_url_prefix(self, prefix: str, *, timeout_ms: Optional[int] = None) -> None:
        timeout = self.settings.navigation_timeout_ms if timeout_ms is None else timeout_ms
        logger.debug("waiting for url prefix %s (timeout=%sms)", prefix, timeout)
        with self._command(f"wait for url {prefix}"):
            try:
                self._page.wait_for_url(
                    lambda url: url.startswith(prefix), timeout=timeout, wait_until="domcontentloaded"
                )
            except PlaywrightTimeoutError as e:
                raise NavigationTimeoutError(prefix, timeout, last_url=self._page.url) from e

    def save_debug(self, name_prefix: str) -> None:
        """
        Best-effort: screenshot + HTML + body text of the current page under `settings.debug_dir`.
        """
        if not self.settings.debug_dir or self._closed:
            return
        safe = re.sub(r"[^a-zA-Z0-9_-]+", "_", name_prefix).strip("_")[:60] or "debug"
        try:
            out_dir = Path(self.settings.debug_dir)
            out_dir.mkdir(parents=True, exist_ok=True)
            self._page.screenshot(path=str(out_dir / f"{safe}.png"), full_page=True)
            (out_dir / f"{safe}.html").write_text(self._page.content(), encoding="utf-8")
            try:
                (out_dir / f"{safe}.txt").write_text(self._page.inner_text("body"), encoding="utf-8")
            except Exception:
                logger.debug("Failed to capture page text for debug.", exc_info=True)
            logger.info("Saved debug artifacts to %s/%s.*", out_dir, safe)
        except Exception:
            logger.debug("Failed to save debug artifacts.", exc_info=True)

    def close(self) -> None:
        """
        Tear the browser down. Idempotent: only the first call does anything.
        """
        if self._closed:
            return
        self._closed = True
        logger.debug("Closing browser session")
        for what, fn in (
            ("context", self._context.close),
            ("browser", self._browser.close),
            ("playwright", self._playwright.stop),
        ):
            try:
                fn()
            except Exception:
                logger.warning("Failed to close %s during teardown.", what, exc_info=True)

    def __enter__(self) -> "BrowserSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
