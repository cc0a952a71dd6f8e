from .dates import parse_iso_date
from .ids import parse_student_id

__all__ = ["parse_iso_date", "parse_student_id"]
