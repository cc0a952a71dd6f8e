from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Literal, Union
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator


StudentId = Union[int, str]
StudentIdFormat = Literal["int", "str"]


class MemberType(str, Enum):
    # The members table only ever lists students; extend when SUMS exposes other kinds.
    STUDENT = "Student"


class Member(BaseModel):
    model_config = ConfigDict(frozen=True)

    student_id: StudentId
    name: str
    member_type: MemberType = MemberType.STUDENT
    subscription_purchased: str
    date_joined: date


class SessionIdentity(BaseModel):
    """
    Which group we scrape and which automation endpoint drives the browser.
    Fixed for the lifetime of a `SumsClient`.
    """

    model_config = ConfigDict(frozen=True)

    group_id: int = Field(ge=0, le=65535)
    endpoint: str

    @field_validator("endpoint")
    @classmethod
    def _validate_endpoint(cls, v: str) -> str:
        s = (v or "").strip()
        parsed = urlparse(s)
        if parsed.scheme not in {"http", "https", "ws", "wss"} or not parsed.netloc:
            raise ValueError(f"endpoint must be a URL like 'http://localhost:9515' (got: {v!r})")
        return s


class AuthOutcome(BaseModel):
    """
    Value form of an authentication attempt (see `SumsClient.try_authenticate`).
    """

    model_config = ConfigDict(frozen=True)

    status: Literal["authenticated", "rejected", "transport_failure"]
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.status == "authenticated"

    @classmethod
    def authenticated(cls) -> "AuthOutcome":
        return cls(status="authenticated")

    @classmethod
    def rejected(cls, reason: str) -> "AuthOutcome":
        return cls(status="rejected", detail=reason)

    @classmethod
    def transport_failure(cls, cause: str) -> "AuthOutcome":
        return cls(status="transport_failure", detail=cause)


class RowError(BaseModel):
    row_index: int
    cells: list[str]
    message: str


class RosterExtraction(BaseModel):
    """
    Result of a skip-and-collect extraction: the rows that parsed, plus one error per row that did not.
    """

    members: list[Member] = Field(default_factory=list)
    row_errors: list[RowError] = Field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.row_errors
