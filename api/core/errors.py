"""
Database failure taxonomy.

Driver errors are translated into a closed `ErrorKind` vocabulary. The
PostgreSQL-specific part is the `PG_ERROR_KINDS` table keyed by SQLSTATE;
porting to another engine means replacing that table and `_TYPE_KINDS`.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum

import asyncpg

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    DUPLICATE_ENTRY = "duplicate_entry"
    FOREIGN_KEY_VIOLATION = "foreign_key_violation"
    NOT_NULL_VIOLATION = "not_null_violation"
    VALUE_TOO_LONG = "value_too_long"
    SYNTAX_ERROR = "syntax_error"
    SERIALIZATION_FAILURE = "serialization_failure"
    UNSUPPORTED_FEATURE = "unsupported_feature"
    DEADLOCK = "deadlock"
    PRIVILEGE_VIOLATION = "privilege_violation"
    TYPE_MISMATCH = "type_mismatch"
    CONNECTION_FAILURE = "connection_failure"
    READ_ONLY = "read_only"
    NOT_FOUND = "not_found"
    TOO_MANY_ROWS = "too_many_rows"
    TRANSACTION_FAILURE = "transaction_failure"
    STATEMENT_PREPARATION_FAILURE = "statement_preparation_failure"
    UNKNOWN = "unknown"
    # Produced by the repository itself, never by the SQLSTATE table.
    EDIT_CONFLICT = "edit_conflict"


PG_ERROR_KINDS: dict[str, ErrorKind] = {
    "23505": ErrorKind.DUPLICATE_ENTRY,  # unique_violation
    "42P05": ErrorKind.DUPLICATE_ENTRY,  # duplicate_prepared_statement
    "23503": ErrorKind.FOREIGN_KEY_VIOLATION,
    "23502": ErrorKind.NOT_NULL_VIOLATION,
    "22001": ErrorKind.VALUE_TOO_LONG,  # string_data_right_truncation
    "42601": ErrorKind.SYNTAX_ERROR,
    "40001": ErrorKind.SERIALIZATION_FAILURE,
    "0A000": ErrorKind.UNSUPPORTED_FEATURE,
    "40P01": ErrorKind.DEADLOCK,
    "42501": ErrorKind.PRIVILEGE_VIOLATION,  # insufficient_privilege
    "42883": ErrorKind.TYPE_MISMATCH,  # undefined_function (operator/type mismatch)
    "42804": ErrorKind.TYPE_MISMATCH,  # datatype_mismatch
    "22P02": ErrorKind.TYPE_MISMATCH,  # invalid_text_representation, e.g. bad enum label
    "08000": ErrorKind.CONNECTION_FAILURE,
    "08003": ErrorKind.CONNECTION_FAILURE,
    "08006": ErrorKind.CONNECTION_FAILURE,
    "25006": ErrorKind.READ_ONLY,  # read_only_sql_transaction
    "21000": ErrorKind.TOO_MANY_ROWS,  # cardinality_violation
    "25P02": ErrorKind.TRANSACTION_FAILURE,  # in_failed_sql_transaction
    "26000": ErrorKind.STATEMENT_PREPARATION_FAILURE,  # invalid_sql_statement_name
}

# Checked in order; subclasses before their bases.
_TYPE_KINDS: tuple[tuple[type[BaseException] | tuple[type[BaseException], ...], ErrorKind], ...] = (
    (asyncpg.exceptions.DataError, ErrorKind.TYPE_MISMATCH),
    (asyncpg.exceptions.ConnectionDoesNotExistError, ErrorKind.CONNECTION_FAILURE),
    ((asyncio.TimeoutError, TimeoutError), ErrorKind.TRANSACTION_FAILURE),
    ((ConnectionError, OSError), ErrorKind.CONNECTION_FAILURE),
    (asyncpg.exceptions.InterfaceError, ErrorKind.TRANSACTION_FAILURE),
)


class DatabaseError(RuntimeError):
    """A classified data-access failure."""

    def __init__(self, kind: ErrorKind, message: str | None = None) -> None:
        super().__init__(message or kind.value.replace("_", " "))
        self.kind = kind


class RecordNotFoundError(DatabaseError):
    def __init__(self, message: str = "record not found") -> None:
        super().__init__(ErrorKind.NOT_FOUND, message)


class EditConflictError(DatabaseError):
    """The row is gone or its version no longer matches the caller's."""

    def __init__(self, message: str = "edit conflict") -> None:
        super().__init__(ErrorKind.EDIT_CONFLICT, message)


def kind_for(exc: BaseException) -> ErrorKind:
    """Pure lookup, no logging."""
    if isinstance(exc, DatabaseError):
        return exc.kind

    sqlstate = getattr(exc, "sqlstate", None)
    if isinstance(sqlstate, str) and sqlstate:
        kind = PG_ERROR_KINDS.get(sqlstate)
        if kind is not None:
            return kind
        if sqlstate.startswith("08"):
            return ErrorKind.CONNECTION_FAILURE
        return ErrorKind.UNKNOWN

    for types, kind in _TYPE_KINDS:
        if isinstance(exc, types):
            return kind
    return ErrorKind.UNKNOWN


def classify(exc: BaseException, *, stacklevel: int = 1) -> ErrorKind:
    """
    Translate a driver failure into an `ErrorKind` and log it once.

    The record's filename and lineno point at the code that called `classify`
    (or `stacklevel` frames above it); `LOG_FORMAT` renders them as the trace.
    Callers must not log the same error again.
    """
    kind = kind_for(exc)
    logger.error(
        "database_error kind=%s sqlstate=%s error=%s",
        kind.value,
        getattr(exc, "sqlstate", None),
        str(exc) or type(exc).__name__,
        stacklevel=stacklevel + 1,
    )
    return kind
