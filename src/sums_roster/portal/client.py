from __future__ import annotations

import logging
import weakref
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from ..errors import (
    AuthRejectedError,
    ExtractionError,
    NavigationTimeoutError,
    NotAuthenticatedError,
    TransportError,
)
from ..models import AuthOutcome, Member, RosterExtraction, SessionIdentity, StudentIdFormat
from .auth import AuthenticationFlow
from .extractor import TableExtractor
from .locators import PortalLocators, SiteUrls
from .navigator import RosterNavigator
from .session import BrowserSession, SessionSettings


logger = logging.getLogger(__name__)

SessionFactory = Callable[[str, SessionSettings], BrowserSession]


def _close_session(session: BrowserSession) -> None:
    session.close()


class SumsClient:
    """
    Scrapes one SUMS group's member roster through one remote browser.

    Usage:

        with SumsClient(group_id, "http://localhost:9515") as client:
            client.authenticate(username, password)
            members = client.list_members()

    The browser is acquired in the constructor and torn down exactly once: on `close()` / leaving the
    `with` block, after a transport fault or navigation timeout (the remote page is then in an unknown
    state), or when the client is garbage collected.

    Single-owner: do not share an instance between threads.
    """

    def __init__(
        self,
        group_id: int,
        endpoint: str,
        *,
        settings: Optional[SessionSettings] = None,
        locators: Optional[PortalLocators] = None,
        urls: Optional[SiteUrls] = None,
        student_id_format: StudentIdFormat = "int",
        session_factory: Optional[SessionFactory] = None,
    ) -> None:
        self.identity = SessionIdentity(group_id=group_id, endpoint=endpoint)
        self.settings = settings or SessionSettings()
        self.locators = locators or PortalLocators()
        self.urls = urls or SiteUrls()
        self.student_id_format = student_id_format

        factory = session_factory or BrowserSession.connect
        self._session = factory(self.identity.endpoint, self.settings)
        self._finalizer = weakref.finalize(self, _close_session, self._session)
        self._authenticated = False

    @property
    def group_id(self) -> int:
        return self.identity.group_id

    @property
    def authenticated(self) -> bool:
        return self._authenticated

    @property
    def closed(self) -> bool:
        return not self._finalizer.alive

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        try:
            yield
        except (TransportError, NavigationTimeoutError) as e:
            logger.error("%s failed, tearing down browser session: %s", operation, e)
            self._session.save_debug(f"{operation}_failure")
            self.close()
            raise
        except (AuthRejectedError, ExtractionError):
            self._session.save_debug(f"{operation}_failure")
            raise

    def authenticate(self, username: str, password: str) -> None:
        """
        Log in through the SU SSO. Raises AuthRejectedError with the site's message on bad credentials.
        """
        self._authenticated = False
        with self._guard("authenticate"):
            AuthenticationFlow(self._session, locators=self.locators, urls=self.urls).authenticate(
                username, password
            )
        self._authenticated = True

    def try_authenticate(self, username: str, password: str) -> AuthOutcome:
        try:
            self.authenticate(username, password)
        except AuthRejectedError as e:
            return AuthOutcome.rejected(e.reason)
        except TransportError as e:
            return AuthOutcome.transport_failure(str(e))
        return AuthOutcome.authenticated()

    def list_members(self) -> list[Member]:
        """
        The full roster in table order, or an exception: never a truncated or partially parsed list.
        """
        return self._extract(policy="strict").members

    def collect_members(self) -> RosterExtraction:
        """
        Like `list_members`, but rows that fail to parse are skipped and reported in `row_errors`.
        """
        return self._extract(policy="collect")

    def _extract(self, *, policy: str) -> RosterExtraction:
        if not self._authenticated:
            raise NotAuthenticatedError("authenticate() must succeed before listing members")

        with self._guard("list_members"):
            RosterNavigator(self._session, locators=self.locators, urls=self.urls).navigate_to_member_table(
                self.group_id
            )
            result = TableExtractor(
                self._session, locators=self.locators, student_id_format=self.student_id_format
            ).extract(policy=policy)

        logger.info(
            "Extracted %s members for group %s (row errors: %s)",
            len(result.members),
            self.group_id,
            len(result.row_errors),
        )
        return result

    def close(self) -> None:
        # finalize() runs the callback at most once, whichever of close()/GC/exit gets there first.
        self._finalizer()

    def __enter__(self) -> "SumsClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
