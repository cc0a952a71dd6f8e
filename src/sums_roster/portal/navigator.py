from __future__ import annotations

import logging
from functools import lru_cache
from importlib import resources

from ..errors import ExtractionError
from .locators import PortalLocators, SiteUrls
from .session import BrowserSession


logger = logging.getLogger(__name__)

SHOW_ALL_SCRIPT = "add_show_all_entries.js"


@lru_cache(maxsize=None)
def load_script(name: str) -> str:
    return resources.files("sums_roster.portal").joinpath("js", name).read_text(encoding="utf-8")


class RosterNavigator:
    """
    Takes an authenticated session to a group's member table and makes every row visible.
    """

    def __init__(self, session: BrowserSession, *, locators: PortalLocators, urls: SiteUrls) -> None:
        self.session = session
        self.locators = locators
        self.urls = urls

    def navigate_to_member_table(self, group_id: int) -> None:
        self.open_dashboard()

        # Going straight to the group URL is less fragile than clicking through the dashboard.
        url = self.urls.members_url(group_id)
        logger.info("Opening member list for group %s", group_id)
        self.session.goto(url)

        self.expand_page_size()

    def open_dashboard(self) -> None:
        # The SSO session cookie is only exchanged for a SUMS one by following the dashboard link.
        self.session.click(self.locators.account_menu_trigger)
        self.session.click(self.locators.dashboard_entry or self.urls.dashboard_link_selector())
        self.session.wait_for_url_prefix(self.urls.dashboard_origin)
        logger.info("On SUMS dashboard (url=%s)", self.session.current_url)

    def expand_page_size(self) -> str:
        """
        The DataTable shows a handful of rows per page by default. Add and select an oversized
        "Show N entries" option so extraction sees the whole roster.
        """
        select = self.locators.page_size_select

        # DataTables builds the control when it initialises, which can be well after DOMContentLoaded.
        if not self.session.exists(select, timeout_ms=self.session.settings.navigation_timeout_ms):
            raise ExtractionError(
                f"Page-size control not found on the member list ({select}); refusing to extract a partial roster"
            )
        value = self.session.evaluate_on(select, load_script(SHOW_ALL_SCRIPT))
        if value is None:
            raise ExtractionError(f"Page-size control {select} is not a <select>; cannot expand the page size")
        value = str(value)

        # Selecting through the control fires the change event DataTables listens to.
        self.session.select_option(select, value)
        logger.debug("Page size set to %s", value)
        return value
