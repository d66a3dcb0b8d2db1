"""
Adapter error taxonomy and helpers to classify backend failures.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

ALREADY_KEYWORD = "already"

# IoTDB status codes are reported as "<code>: <message>" by the client libraries.
_IOTDB_STATUS_RE = re.compile(r"(?:^|\s|\()(\d{3})(?::|\))")
_ALREADY_EXISTS_CODE = "300"


class TsdbError(Exception):
    """Base class for adapter errors.

    Carries the executed query/insert text (when there is one) so failures can
    be reproduced manually.
    """

    def __init__(self, message: str = "", *, query_text: str | None = None):
        super().__init__(message)
        self.query_text = query_text


class DBConnectionError(TsdbError):
    """Opening or closing a transport connection failed."""


class ExecutionError(TsdbError):
    """The backend rejected a query or insert."""


class SchemaRegistrationError(TsdbError):
    """Schema registration failed for a reason other than already-exists."""


class MalformedResponseError(TsdbError):
    """A REST response did not have the expected JSON shape."""


class ConfigurationError(TsdbError, ValueError):
    """Unknown or unsupported adapter configuration."""


@dataclass(frozen=True, slots=True)
class VerificationMismatch:
    """Row count returned by a verification query differs from the expected count.

    Reported through logging only; it never changes the operation's Status.
    """

    query_text: str
    expected: int
    actual: int

    def __str__(self) -> str:
        return (
            f"Using SQL: {self.query_text}, expected line: {self.expected} "
            f"but was: {self.actual}"
        )


def iotdb_status_code(exc: BaseException) -> str | None:
    """Return the IoTDB status code carried by an error, if any."""
    code = getattr(exc, "code", None) or getattr(exc, "status_code", None)
    if code is not None:
        return str(code)
    m = _IOTDB_STATUS_RE.search(str(exc or ""))
    return m.group(1) if m else None


def is_already_exists(exc: BaseException) -> bool:
    """True when a registration failure only says the series/table already exists."""
    msg = str(exc or "").lower()
    if ALREADY_KEYWORD in msg:
        return True
    return iotdb_status_code(exc) == _ALREADY_EXISTS_CODE


def is_missing_data(exc: BaseException) -> bool:
    """True when a cleanup failure only says there was nothing to delete."""
    msg = str(exc or "").lower()
    return "not exist" in msg or "does not match any" in msg


def classify_error(exc: BaseException) -> str:
    """
    Return a stable, low-cardinality category for an execution error.

    Prefers the IoTDB status code when one is present, otherwise the
    exception type of the root cause.
    """
    root: BaseException = exc
    while isinstance(root, TsdbError) and root.__cause__ is not None:
        root = root.__cause__
    code = iotdb_status_code(root)
    if code:
        return f"IOTDB_STATUS_{code}"
    return type(root).__name__
