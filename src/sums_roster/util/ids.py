from __future__ import annotations

from ..models import StudentId, StudentIdFormat


def parse_student_id(value: str, *, fmt: StudentIdFormat = "int") -> StudentId:
    """
    Validate a student ID cell and convert it to the configured representation.

    - "int": non-negative integer. IDs with a leading zero are rejected because the integer
      would not round-trip to the ID shown on the page.
    - "str": the validated digit string, verbatim.
    """
    if value is None:
        raise ValueError("parse_student_id: value is None")
    s = value.strip()
    if not s:
        raise ValueError("parse_student_id: empty string")
    # str.isdigit() also accepts e.g. superscript digits; only plain ASCII IDs are valid.
    if not (s.isascii() and s.isdigit()):
        raise ValueError(f"parse_student_id: not a numeric ID: {value!r}")

    if fmt == "str":
        return s
    if fmt != "int":
        raise ValueError(f"parse_student_id: unknown format {fmt!r}")
    if len(s) > 1 and s.startswith("0"):
        raise ValueError(
            f"parse_student_id: {s!r} has a leading zero and would lose it as an integer "
            "(set student_id_format to 'str' for this deployment)"
        )
    return int(s)
