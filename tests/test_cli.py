from __future__ import annotations

import csv
import io
import json
from datetime import date
from pathlib import Path

import pytest

from fakes import FakeSession, factory_for, member_row
from sums_roster import cli
from sums_roster.errors import TransportError
from sums_roster.models import Member
from sums_roster.portal.client import SumsClient


pytestmark = pytest.mark.usefixtures("restore_root_logging")


@pytest.fixture
def cfg_path(tmp_path: Path, clean_env: pytest.MonkeyPatch) -> Path:
    p = tmp_path / "config.yaml"
    p.write_text(
        """
sums:
  username: "u"
  password: "p"
  group_id: 213
""",
        encoding="utf-8",
    )
    return p


def _use_fake(monkeypatch: pytest.MonkeyPatch, session: FakeSession) -> list[int]:
    seen_groups: list[int] = []

    def _make_client(cfg, group_id: int) -> SumsClient:
        seen_groups.append(group_id)
        return SumsClient(
            group_id,
            cfg.webdriver.address,
            urls=cfg.site_urls(),
            student_id_format=cfg.scrape.student_id_format,
            session_factory=factory_for(session),
        )

    monkeypatch.setattr(cli, "_make_client", _make_client)
    return seen_groups


def _argv(tmp_path: Path, cfg_path: Path, *rest: str) -> list[str]:
    return ["--env-file", str(tmp_path / "none.env"), *rest[:1], "--config", str(cfg_path), *rest[1:]]


def test_render_roster_json_and_csv() -> None:
    members = [
        Member(student_id=123456, name="Jane Doe", subscription_purchased="Gold", date_joined=date(2023, 9, 1)),
    ]
    data = json.loads(cli.render_roster(members, "json"))
    assert data == [
        {
            "student_id": 123456,
            "name": "Jane Doe",
            "member_type": "Student",
            "subscription_purchased": "Gold",
            "date_joined": "2023-09-01",
        }
    ]

    rows = list(csv.DictReader(io.StringIO(cli.render_roster(members, "csv"))))
    assert rows == [
        {
            "student_id": "123456",
            "name": "Jane Doe",
            "member_type": "Student",
            "subscription_purchased": "Gold",
            "date_joined": "2023-09-01",
        }
    ]


def test_list_members_to_stdout(tmp_path: Path, cfg_path: Path, monkeypatch, capsys) -> None:
    s = FakeSession(rows=[member_row(i) for i in range(30)])
    groups = _use_fake(monkeypatch, s)

    rc = cli.main(_argv(tmp_path, cfg_path, "list-members"))
    assert rc == cli.EXIT_OK
    assert groups == [213]
    data = json.loads(capsys.readouterr().out)
    assert len(data) == 30
    assert s.close_calls == 1


def test_list_members_group_override_and_filter(tmp_path: Path, cfg_path: Path, monkeypatch) -> None:
    s = FakeSession(rows=[member_row(i) for i in range(28)])
    groups = _use_fake(monkeypatch, s)
    out = tmp_path / "out" / "roster.csv"

    rc = cli.main(
        _argv(
            tmp_path,
            cfg_path,
            "list-members",
            "--group-id",
            "7",
            "--format",
            "csv",
            "--out",
            str(out),
            "--joined-since",
            "2023-09-20",
        )
    )
    assert rc == cli.EXIT_OK
    assert groups == [7]
    rows = list(csv.DictReader(io.StringIO(out.read_text(encoding="utf-8"))))
    assert [r["date_joined"] for r in rows] == [f"2023-09-{d}" for d in range(20, 29)]


def test_list_members_auth_rejected_exit_code(tmp_path: Path, cfg_path: Path, monkeypatch, capsys) -> None:
    s = FakeSession(login_error="Invalid username or password")
    _use_fake(monkeypatch, s)
    rc = cli.main(_argv(tmp_path, cfg_path, "list-members"))
    assert rc == cli.EXIT_AUTH_REJECTED
    assert capsys.readouterr().out == ""
    assert s.close_calls == 1


def test_list_members_bad_row_strict_fails(tmp_path: Path, cfg_path: Path, monkeypatch, capsys) -> None:
    rows = [member_row(i) for i in range(3)]
    rows[2][4] = "not-a-date"
    _use_fake(monkeypatch, FakeSession(rows=rows))
    rc = cli.main(_argv(tmp_path, cfg_path, "list-members"))
    assert rc == cli.EXIT_ERROR
    assert capsys.readouterr().out == ""


def test_list_members_collect_policy_exit_code(tmp_path: Path, cfg_path: Path, monkeypatch, capsys) -> None:
    monkeypatch.setenv("SUMS_ROW_POLICY", "collect")
    rows = [member_row(i) for i in range(3)]
    rows[2][4] = "not-a-date"
    _use_fake(monkeypatch, FakeSession(rows=rows))
    rc = cli.main(_argv(tmp_path, cfg_path, "list-members"))
    assert rc == cli.EXIT_ROW_ERRORS
    assert len(json.loads(capsys.readouterr().out)) == 2


def test_check_login(tmp_path: Path, cfg_path: Path, monkeypatch) -> None:
    _use_fake(monkeypatch, FakeSession())
    assert cli.main(_argv(tmp_path, cfg_path, "check-login")) == cli.EXIT_OK

    _use_fake(monkeypatch, FakeSession(login_error="Nope"))
    assert cli.main(_argv(tmp_path, cfg_path, "check-login")) == cli.EXIT_AUTH_REJECTED

    _use_fake(monkeypatch, FakeSession(fail_on={"goto": TransportError("goto", "dns")}))
    assert cli.main(_argv(tmp_path, cfg_path, "check-login")) == cli.EXIT_ERROR


def test_missing_group_id_exits(tmp_path: Path, clean_env) -> None:
    p = tmp_path / "config.yaml"
    p.write_text("sums:\n  username: u\n  password: p\n", encoding="utf-8")
    with pytest.raises(SystemExit, match="--group-id"):
        cli.main(_argv(tmp_path, p, "list-members"))


@pytest.mark.parametrize("group_id", ["70000", "-1"])
def test_out_of_range_group_id_exits_cleanly(tmp_path: Path, cfg_path: Path, monkeypatch, group_id: str) -> None:
    s = FakeSession(rows=[member_row(0)])
    groups = _use_fake(monkeypatch, s)
    with pytest.raises(SystemExit, match="between 0 and 65535"):
        cli.main(_argv(tmp_path, cfg_path, "list-members", "--group-id", group_id))
    # Rejected before any browser session is opened.
    assert groups == []
