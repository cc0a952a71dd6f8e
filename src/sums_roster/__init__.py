from .errors import (
    AuthRejectedError,
    ExtractionError,
    NavigationTimeoutError,
    NotAuthenticatedError,
    SessionClosedError,
    SessionCreateError,
    SumsClientError,
    TransportError,
)
from .models import AuthOutcome, Member, MemberType, RosterExtraction, RowError, SessionIdentity
from .portal import BrowserSession, PortalLocators, SessionSettings, SiteUrls, SumsClient

__all__ = [
    "SumsClient",
    "BrowserSession",
    "SessionSettings",
    "PortalLocators",
    "SiteUrls",
    "Member",
    "MemberType",
    "SessionIdentity",
    "AuthOutcome",
    "RosterExtraction",
    "RowError",
    "SumsClientError",
    "TransportError",
    "SessionCreateError",
    "SessionClosedError",
    "AuthRejectedError",
    "NavigationTimeoutError",
    "ExtractionError",
    "NotAuthenticatedError",
]
