from __future__ import annotations

import logging
import re
import time
from typing import Literal, Optional, Sequence

from ..errors import ExtractionError
from ..models import Member, MemberType, RosterExtraction, RowError, StudentIdFormat
from ..util.dates import parse_iso_date
from ..util.ids import parse_student_id
from .locators import PortalLocators
from .session import BrowserSession


logger = logging.getLogger(__name__)

RowPolicy = Literal["strict", "collect"]

# Column positions in the SUMS member table. Column 2 is display-only and not part of the model.
COL_STUDENT_ID = 0
COL_NAME = 1
COL_SUBSCRIPTION = 3
COL_DATE_JOINED = 4
MIN_CELLS = COL_DATE_JOINED + 1

_TOTAL_ENTRIES_RE = re.compile(r"\bof\s+([\d,]+)\s+entries", re.I)
# DataTables' sLoadingRecords / sProcessing placeholders; these mean "not rendered yet", not "empty".
_LOADING_PLACEHOLDER_RE = re.compile(r"^\s*(loading|processing)\b", re.I)
LOADING_POLL_MS = 500

# Direct <tr> children of the tbody and their direct <td>/<th> cells, in document order.
# DataTables renders a single `td.dataTables_empty` row when there is no data.
_READ_ROWS_JS = """
tbody => Array.from(tbody.children)
  .filter(r => r.tagName === "TR")
  .map(r => ({
    cells: Array.from(r.children)
      .filter(c => c.tagName === "TD" || c.tagName === "TH")
      .map(c => (c.innerText || c.textContent || "").trim()),
    placeholder: r.querySelector("td.dataTables_empty") !== null,
  }))
"""


def parse_member_row(
    cells: Sequence[str],
    *,
    student_id_format: StudentIdFormat = "int",
    row_index: Optional[int] = None,
) -> Member:
    if len(cells) < MIN_CELLS:
        raise ExtractionError(f"expected at least {MIN_CELLS} cells, got {len(cells)}", row_index=row_index)

    try:
        student_id = parse_student_id(cells[COL_STUDENT_ID], fmt=student_id_format)
    except ValueError as e:
        raise ExtractionError(f"bad student ID: {e}", row_index=row_index) from e

    try:
        date_joined = parse_iso_date(cells[COL_DATE_JOINED])
    except ValueError as e:
        raise ExtractionError(f"bad date joined: {e}", row_index=row_index) from e

    return Member(
        student_id=student_id,
        name=cells[COL_NAME].strip(),
        member_type=MemberType.STUDENT,
        subscription_purchased=cells[COL_SUBSCRIPTION].strip(),
        date_joined=date_joined,
    )


def build_roster(
    rows: Sequence[Sequence[str]],
    *,
    student_id_format: StudentIdFormat = "int",
    policy: RowPolicy = "strict",
) -> RosterExtraction:
    """
    Turn raw row cells into members, in row order.

    - strict: the first bad row raises ExtractionError (a partially wrong roster is worse than none).
    - collect: bad rows are recorded in `row_errors` and skipped; the caller decides what to do.
    """
    if policy not in ("strict", "collect"):
        raise ValueError(f"Unknown row policy: {policy!r}")

    out = RosterExtraction()
    for idx, cells in enumerate(rows):
        try:
            out.members.append(parse_member_row(cells, student_id_format=student_id_format, row_index=idx))
        except ExtractionError as e:
            if policy == "strict":
                raise
            logger.warning("Skipping member row %s: %s", idx, e)
            out.row_errors.append(RowError(row_index=idx, cells=list(cells), message=str(e)))
    return out


def parse_total_entries(info_text: str) -> Optional[int]:
    """
    "Showing 1 to 25 of 250 entries" -> 250. Returns None when the text doesn't look like DataTables info.
    """
    m = _TOTAL_ENTRIES_RE.search(info_text or "")
    if not m:
        return None
    return int(m.group(1).replace(",", ""))


class TableExtractor:
    def __init__(
        self,
        session: BrowserSession,
        *,
        locators: PortalLocators,
        student_id_format: StudentIdFormat = "int",
    ) -> None:
        self.session = session
        self.locators = locators
        self.student_id_format = student_id_format

    def read_rows(self) -> list[list[str]]:
        """
        Rows as rendered, once the table has finished loading. A table that is still loading when
        the navigation timeout runs out is an error, never an empty roster.
        """
        body = self.locators.member_table_body
        if not self.session.exists(body):
            raise ExtractionError(f"Member table body not found ({body})")

        timeout_ms = self.session.settings.navigation_timeout_ms
        deadline = time.time() + (timeout_ms / 1000)
        while True:
            rows = self._read_loaded_rows(body)
            if rows is not None:
                break
            if time.time() >= deadline:
                raise ExtractionError(f"Member table still loading after {timeout_ms}ms")
            logger.debug("Member table still loading; waiting")
            self.session.pause(LOADING_POLL_MS)

        logger.info("Read %s member rows", len(rows))
        return rows

    def _read_loaded_rows(self, body: str) -> Optional[list[list[str]]]:
        # None while DataTables is still fetching or drawing.
        if self.session.is_visible(self.locators.member_table_processing):
            return None

        raw = self.session.evaluate_on(body, _READ_ROWS_JS) or []
        rows: list[list[str]] = []
        for item in raw:
            cells = [str(c) for c in item.get("cells", [])]
            if item.get("placeholder"):
                if _LOADING_PLACEHOLDER_RE.match(" ".join(cells)):
                    return None
                # "No data available in table"
                continue
            rows.append(cells)
        return rows
    def check_complete(self, row_count: int) -> None:
        info = self.session.probe_text(self.locators.member_table_info)
        if info is None:
            logger.debug("Table info element not present; skipping completeness check.")
            return
        total = parse_total_entries(info)
        if total is None:
            logger.debug("Could not parse table info text %r; skipping completeness check.", info)
            return
        if total != row_count:
            raise ExtractionError(
                f"Member table shows {row_count} rows but reports {total} entries; page-size expansion did not take effect"
            )

    def extract(self, *, policy: RowPolicy = "strict") -> RosterExtraction:
        rows = self.read_rows()
        self.check_complete(len(rows))
        return build_roster(rows, student_id_format=self.student_id_format, policy=policy)

    def extract_members(self) -> list[Member]:
        return self.extract(policy="strict").members
