from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Mapping
from urllib.parse import urlparse


DEFAULT_BASE_URL = "https://su.nottingham.ac.uk"
DEFAULT_DASHBOARD_ORIGIN = "https://sums.su.nottingham.ac.uk"


@dataclass(frozen=True)
class PortalLocators:
    """
    The SU site and the SUMS dashboard are third-party pages; their markup may change over time.
    Keep every locator here (Playwright selector syntax: css, `xpath=`, `id=`, `text=`) so markup
    drift is a config change (`locators:` in YAML), not a code change.

    The positional XPaths below are known to be brittle: they match the SSO login page layout at the
    time of writing and have no stable id to anchor on.

    Two defaults follow other settings instead of being fixed strings:
    - `dashboard_entry` left empty means "the account-menu link into `SiteUrls.dashboard_origin`",
      so moving SUMS to another host only needs `SUMS_DASHBOARD_ORIGIN`.
    - The page-size script runs on whatever element `page_size_select` locates; it has no selector
      of its own.
    """

    # Account menu (top right) on the SU site
    account_menu_trigger: str = "#userActionsInvoker"
    student_login_entry: str = 'xpath=//*[@id="userActions"]/ul/li[1]/a[1]'
    dashboard_entry: str = ""

    # University SSO login page
    login_form: str = "xpath=/html/body/div/div/div/div[1]/form"
    username_field: str = "#username"
    password_field: str = "#password"
    # Only rendered when the SSO rejects the credentials.
    login_error: str = "xpath=/html/body/div/div/div/div[1]/section/p"

    # SUMS members DataTable
    page_size_select: str = "#group-member-list-datatable_length select"
    member_table_body: str = "#group-member-list-datatable > tbody"
    member_table_info: str = "#group-member-list-datatable_info"
    # Shown by DataTables while an ajax load or redraw is in flight.
    member_table_processing: str = "#group-member-list-datatable_processing"

    def with_overrides(self, overrides: Mapping[str, str]) -> "PortalLocators":
        known = {f.name for f in fields(self)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ValueError(f"Unknown locator name(s): {', '.join(unknown)} (known: {', '.join(sorted(known))})")
        cleaned = {k: str(v).strip() for k, v in overrides.items() if str(v or "").strip()}
        return replace(self, **cleaned)


@dataclass(frozen=True)
class SiteUrls:
    """
    Computed once per client and passed down explicitly.
    """

    base_url: str = DEFAULT_BASE_URL
    dashboard_origin: str = DEFAULT_DASHBOARD_ORIGIN

    def __post_init__(self) -> None:
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))
        object.__setattr__(self, "dashboard_origin", self.dashboard_origin.rstrip("/"))

    def members_url(self, group_id: int) -> str:
        return f"{self.dashboard_origin}/groups/{int(group_id)}/members"

    def dashboard_link_selector(self) -> str:
        host = urlparse(self.dashboard_origin).netloc
        return f'#userActions a[href*="{host}"]'
