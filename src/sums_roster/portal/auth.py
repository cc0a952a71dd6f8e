from __future__ import annotations

import logging

from ..errors import AuthRejectedError
from .locators import PortalLocators, SiteUrls
from .session import BrowserSession


logger = logging.getLogger(__name__)


class AuthenticationFlow:
    """
    Logs into the SU site through the university SSO.

    The SSO never shows an explicit success signal. The only reliable discriminator is the error
    paragraph it renders on a bad login: if the probe finds it we were rejected, if the probe times out
    without finding it we are in.
    """

    def __init__(self, session: BrowserSession, *, locators: PortalLocators, urls: SiteUrls) -> None:
        self.session = session
        self.locators = locators
        self.urls = urls

    def authenticate(self, username: str, password: str) -> None:
        loc = self.locators

        logger.info("Opening %s", self.urls.base_url)
        self.session.goto(self.urls.base_url)

        # User icon in the top right, then "Student login" in the menu it opens.
        self.session.click(loc.account_menu_trigger)
        self.session.click(loc.student_login_entry)

        logger.info("Submitting SSO login form (username=%s)", username)
        self.session.fill(loc.username_field, username, within=loc.login_form)
        self.session.fill(loc.password_field, password, within=loc.login_form)
        self.session.submit_form(loc.login_form)

        # probe_text raises TransportError for anything other than "not there in time".
        error_text = self.session.probe_text(loc.login_error)
        if error_text is not None:
            logger.warning("SSO rejected the login: %s", error_text)
            raise AuthRejectedError(error_text)

        logger.info("Authenticated (url=%s)", self.session.current_url)
