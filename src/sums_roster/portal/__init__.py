from .client import SumsClient
from .locators import PortalLocators, SiteUrls
from .session import BrowserSession, SessionSettings

__all__ = [
    "SumsClient",
    "BrowserSession",
    "SessionSettings",
    "PortalLocators",
    "SiteUrls",
]
