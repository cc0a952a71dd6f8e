from __future__ import annotations

import argparse
import csv
import io
import json
import logging
import os
import sys
import time
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .config import AppConfig, load_config
from .errors import AuthRejectedError, SumsClientError
from .logging_config import configure_logging
from .models import Member, RowError
from .portal.client import SumsClient
from .util.dates import parse_iso_date


logger = logging.getLogger("sums_roster")

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_AUTH_REJECTED = 2
EXIT_ROW_ERRORS = 3

MAX_GROUP_ID = 65535

CSV_FIELDS = ("student_id", "name", "member_type", "subscription_purchased", "date_joined")


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="sums-roster")
    p.add_argument(
        "--env-file",
        default=".env",
        help="Path to a dotenv file (default: .env). If missing, env vars must already be set.",
    )

    sub = p.add_subparsers(dest="cmd", required=True)

    check = sub.add_parser("check-login", help="Log into the SU site and report whether the credentials work")
    check.add_argument("--config", default="config.yaml", help="Path to YAML config (default: config.yaml)")

    members = sub.add_parser("list-members", help="Log in and print the member roster of a SUMS group")
    members.add_argument("--config", default="config.yaml", help="Path to YAML config (default: config.yaml)")
    members.add_argument(
        "--group-id",
        type=int,
        default=None,
        help="SUMS group ID (default: sums.group_id / SUMS_GROUP_ID)",
    )
    members.add_argument("--format", choices=("json", "csv"), default="json", help="Output format (default: json)")
    members.add_argument("--out", default="", help="Write the roster to this file instead of stdout")
    members.add_argument(
        "--joined-since",
        default="",
        help="Only output members who joined on/after this date (YYYY-MM-DD).",
    )

    return p


def _make_client(cfg: AppConfig, group_id: int) -> SumsClient:
    return SumsClient(
        group_id,
        cfg.webdriver.address,
        settings=cfg.session_settings(),
        locators=cfg.portal_locators(),
        urls=cfg.site_urls(),
        student_id_format=cfg.scrape.student_id_format,
    )


def render_roster(members: list[Member], fmt: str) -> str:
    if fmt == "json":
        return json.dumps([m.model_dump(mode="json") for m in members], indent=2, ensure_ascii=False) + "\n"
    if fmt == "csv":
        buf = io.StringIO()
        writer = csv.DictWriter(buf, fieldnames=list(CSV_FIELDS), lineterminator="\n")
        writer.writeheader()
        for m in members:
            writer.writerow(m.model_dump(mode="json"))
        return buf.getvalue()
    raise ValueError(f"Unknown output format: {fmt!r}")


def _write_output(text: str, out: str) -> None:
    if not out:
        sys.stdout.write(text)
        sys.stdout.flush()
        return
    path = Path(out)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    logger.info("Wrote roster to %s", path)


def _log_row_errors(row_errors: list[RowError]) -> None:
    for err in row_errors:
        logger.warning("Row %s skipped: %s (cells=%s)", err.row_index, err.message, err.cells)


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    env_path = Path(args.env_file)
    if env_path.exists():
        load_dotenv(env_path)

    # Default logging: can be overridden once config is loaded.
    configure_logging(level=os.getenv("LOG_LEVEL", "INFO"))

    cfg = load_config(args.config)
    configure_logging(
        level=cfg.logging.level,
        file_path=cfg.logging.file_path or None,
        secrets=[cfg.sums.password or ""],
    )

    try:
        cfg.sums.require_credentials()
    except ValueError as e:
        raise SystemExit(str(e))

    if args.cmd == "check-login":
        # Any group ID will do: login never touches the group.
        group_id = cfg.sums.group_id if cfg.sums.group_id is not None else 0
        try:
            with _make_client(cfg, group_id) as client:
                outcome = client.try_authenticate(cfg.sums.username, cfg.sums.password)
        except SumsClientError as e:
            logger.error("Login check failed: %s", e)
            return EXIT_ERROR

        if outcome.ok:
            logger.info("Login OK")
            return EXIT_OK
        if outcome.status == "rejected":
            logger.error("Login rejected by the SSO: %s", outcome.detail)
            return EXIT_AUTH_REJECTED
        logger.error("Login check failed: %s", outcome.detail)
        return EXIT_ERROR

    if args.cmd == "list-members":
        group_id = args.group_id if args.group_id is not None else cfg.sums.group_id
        if group_id is None:
            raise SystemExit("No group configured. Pass --group-id or set SUMS_GROUP_ID.")
        if not 0 <= group_id <= MAX_GROUP_ID:
            raise SystemExit(f"--group-id must be between 0 and {MAX_GROUP_ID} (got {group_id}).")

        joined_since = None
        if args.joined_since:
            try:
                joined_since = parse_iso_date(args.joined_since)
            except ValueError as e:
                raise SystemExit(f"--joined-since: {e}")

        t0 = time.time()
        row_errors: list[RowError] = []
        try:
            with _make_client(cfg, group_id) as client:
                client.authenticate(cfg.sums.username, cfg.sums.password)
                if cfg.scrape.row_policy == "collect":
                    result = client.collect_members()
                    members, row_errors = result.members, result.row_errors
                else:
                    members = client.list_members()
        except AuthRejectedError as e:
            logger.error("Login rejected by the SSO: %s", e.reason)
            return EXIT_AUTH_REJECTED
        except SumsClientError as e:
            logger.error("Roster extraction failed: %s", e)
            return EXIT_ERROR

        logger.info("Roster extracted (members=%s seconds=%.2f)", len(members), time.time() - t0)

        if joined_since:
            members = [m for m in members if m.date_joined >= joined_since]
            logger.info("Filtered to %s members joined on/after %s", len(members), joined_since.isoformat())

        _write_output(render_roster(members, args.format), args.out)

        if row_errors:
            _log_row_errors(row_errors)
            return EXIT_ROW_ERRORS
        return EXIT_OK

    raise SystemExit(f"Unknown command: {args.cmd}")
