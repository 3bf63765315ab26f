"""Diagnostics collected while parsing and validating a document.

Nothing in the parse path raises on malformed markup. Problems are recorded
as :class:`Diagnostic` records and returned next to the (possibly missing) IR,
so a caller sees every anomaly of one input in a single batch.
"""

import json
from dataclasses import asdict, dataclass
from enum import Enum


class Category(str, Enum):
    SYNTAX_WARNING = "SyntaxWarning"  # line misclassified, recovered as lyric
    SCHEMA_VIOLATION = "SchemaViolation"
    RANGE_VIOLATION = "RangeViolation"  # parameter out of bounds
    UNKNOWN_CUE = "UnknownCue"
    TEMPO_MAP_CONFLICT = "TempoMapConflict"
    IO_ERROR = "IOError"


class Severity(str, Enum):
    WARNING = "warning"
    ERROR = "error"
    FATAL = "fatal"  # no IR is emitted for the input


@dataclass(frozen=True)
class Diagnostic:
    category: Category
    severity: Severity
    message: str
    line: int | None = None
    field: str | None = None
    source: str | None = None

    @property
    def is_fatal(self) -> bool:
        return self.severity is Severity.FATAL

    @property
    def is_error(self) -> bool:
        """True for errors and fatal diagnostics."""
        return self.severity is not Severity.WARNING

    def to_dict(self) -> dict:
        data = asdict(self)
        data["category"] = self.category.value
        data["severity"] = self.severity.value
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)


def warning(category: Category, message: str, line: int | None = None, field: str | None = None) -> Diagnostic:
    return Diagnostic(category, Severity.WARNING, message, line=line, field=field)


def error(category: Category, message: str, line: int | None = None, field: str | None = None) -> Diagnostic:
    return Diagnostic(category, Severity.ERROR, message, line=line, field=field)


def fatal(category: Category, message: str, line: int | None = None, field: str | None = None) -> Diagnostic:
    return Diagnostic(category, Severity.FATAL, message, line=line, field=field)


def has_fatal(diagnostics) -> bool:
    return any(d.is_fatal for d in diagnostics)


def has_errors(diagnostics) -> bool:
    return any(d.is_error for d in diagnostics)
