from __future__ import annotations

import gc

import pytest
from pydantic import ValidationError

from fakes import FakeSession, factory_for, member_row
from sums_roster.errors import (
    AuthRejectedError,
    ExtractionError,
    NavigationTimeoutError,
    NotAuthenticatedError,
    SessionClosedError,
    SessionCreateError,
    TransportError,
)
from sums_roster.portal.client import SumsClient
from sums_roster.portal.session import SessionSettings

ENDPOINT = "http://localhost:9515"


def _client(session: FakeSession, **kw) -> SumsClient:
    return SumsClient(213, ENDPOINT, session_factory=factory_for(session), **kw)


def test_identity_is_exposed() -> None:
    s = FakeSession()
    with _client(s) as c:
        assert c.group_id == 213
        assert c.identity.endpoint == ENDPOINT
    assert s.close_calls == 1


@pytest.mark.parametrize("group_id", [-1, 65536])
def test_group_id_must_fit_u16(group_id: int) -> None:
    with pytest.raises(ValidationError):
        SumsClient(group_id, ENDPOINT, session_factory=factory_for(FakeSession()))


def test_endpoint_must_be_url() -> None:
    s = FakeSession()
    with pytest.raises(ValidationError):
        SumsClient(213, "localhost:9515", session_factory=factory_for(s))
    # Validation happens before any browser is acquired.
    assert s.close_calls == 0


def test_settings_are_passed_to_session_factory() -> None:
    s = FakeSession()
    settings = SessionSettings(action_timeout_ms=1234)
    with _client(s, settings=settings):
        assert s.settings is settings


def test_scenario_250_members_default_page_size_25() -> None:
    s = FakeSession(rows=[member_row(i) for i in range(250)], default_page_size=25)
    with _client(s) as c:
        c.authenticate("user", "secret")
        members = c.list_members()

    assert len(members) == 250
    assert [m.student_id for m in members] == [4300000 + i for i in range(250)]
    assert all(m.subscription_purchased == "Gold" for m in members)
    assert s.close_calls == 1


def test_list_members_requires_authentication() -> None:
    s = FakeSession(rows=[member_row(0)])
    with _client(s) as c:
        with pytest.raises(NotAuthenticatedError):
            c.list_members()
        # Nothing was sent to the browser.
        assert s.calls == []


def test_teardown_once_on_auth_rejection() -> None:
    s = FakeSession(login_error="Bad password")
    with pytest.raises(AuthRejectedError):
        with _client(s) as c:
            c.authenticate("user", "wrong")
    assert not c.authenticated
    assert s.close_calls == 1
    assert s.debug_saved == ["authenticate_failure"]


def test_rejection_keeps_session_usable_for_retry() -> None:
    s = FakeSession(login_error="Bad password")
    with _client(s) as c:
        with pytest.raises(AuthRejectedError):
            c.authenticate("user", "wrong")
        assert not c.closed
        s.login_error = None
        c.authenticate("user", "right")
        assert c.authenticated
    assert s.close_calls == 1


def test_transport_fault_tears_down_immediately() -> None:
    s = FakeSession(fail_on={"click": TransportError("click", "connection reset")})
    with _client(s) as c:
        with pytest.raises(TransportError):
            c.authenticate("user", "secret")
        assert c.closed
        assert s.close_calls == 1
        # Further use doesn't touch the browser again.
        with pytest.raises(SessionClosedError):
            c.authenticate("user", "secret")
    assert s.close_calls == 1


def test_navigation_timeout_tears_down() -> None:
    s = FakeSession(rows=[member_row(0)], dashboard_landing_url="https://elsewhere.example/")
    with _client(s) as c:
        c.authenticate("user", "secret")
        with pytest.raises(NavigationTimeoutError):
            c.list_members()
        assert c.closed
    assert s.close_calls == 1


def test_teardown_once_on_extraction_fault() -> None:
    rows = [member_row(i) for i in range(3)]
    rows[1][4] = "not-a-date"
    s = FakeSession(rows=rows)
    with pytest.raises(ExtractionError):
        with _client(s) as c:
            c.authenticate("user", "secret")
            c.list_members()
    assert s.close_calls == 1


def test_collect_members_reports_row_errors() -> None:
    rows = [member_row(i) for i in range(3)]
    rows[1][0] = "N/A"
    s = FakeSession(rows=rows)
    with _client(s) as c:
        c.authenticate("user", "secret")
        out = c.collect_members()
    assert [m.student_id for m in out.members] == [4300000, 4300002]
    assert out.row_errors[0].row_index == 1


def test_each_call_extracts_fresh() -> None:
    s = FakeSession(rows=[member_row(0)])
    with _client(s) as c:
        c.authenticate("user", "secret")
        first = c.list_members()
        s.rows = [member_row(0), member_row(1)]
        second = c.list_members()
    assert len(first) == 1
    assert len(second) == 2


def test_try_authenticate_outcomes() -> None:
    with _client(FakeSession()) as c:
        assert c.try_authenticate("u", "p").ok

    with _client(FakeSession(login_error="Invalid credentials")) as c:
        out = c.try_authenticate("u", "p")
        assert out.status == "rejected"
        assert out.detail == "Invalid credentials"

    with _client(FakeSession(fail_on={"goto": TransportError("goto", "dns")})) as c:
        out = c.try_authenticate("u", "p")
        assert out.status == "transport_failure"
        assert "dns" in out.detail


def test_close_is_idempotent() -> None:
    s = FakeSession()
    c = _client(s)
    c.close()
    c.close()
    with c:
        pass
    assert s.close_calls == 1


def test_discarded_client_releases_browser() -> None:
    s = FakeSession()
    c = _client(s)
    del c
    gc.collect()
    assert s.close_calls == 1


def test_session_create_failure_propagates() -> None:
    def _boom(endpoint: str, settings: SessionSettings):
        raise SessionCreateError("connect", f"{endpoint}: refused")

    with pytest.raises(SessionCreateError):
        SumsClient(213, ENDPOINT, session_factory=_boom)
