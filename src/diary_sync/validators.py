"""
Input validation functions for the diary sync service.

Parses and checks caller-supplied dates, timestamps, directions and
pagination windows before they reach the stores.  Every failure raises
``InvalidRequestError``.
"""

from datetime import date, datetime, timezone

from diary_sync.errors import InvalidRequestError

MAX_QUERY_LENGTH = 1000
MAX_PAGE_SIZE = 1000


# ---------------------------------------------------------------------------
# Error message formatting helpers
# ---------------------------------------------------------------------------


def format_validation_error(field_name: str, reason: str) -> str:
    """
    Generate consistent error message for validation failures.

    Args:
        field_name: Human-readable field name (e.g., "Diary date")
        reason: Description of validation failure (e.g., "cannot be empty")

    Returns:
        Formatted error message string
    """
    return f"{field_name} {reason}"


def parse_date(value: "str | date", field_name: str = "Diary date") -> date:
    """
    Parse an ISO ``YYYY-MM-DD`` date.

    Args:
        value: String or date to parse
        field_name: Field name used in the error message

    Returns:
        The parsed date

    Raises:
        InvalidRequestError: If the value is empty or not a calendar date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value or not str(value).strip():
        raise InvalidRequestError(
            format_validation_error(field_name, "cannot be empty")
        )
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError:
        raise InvalidRequestError(
            format_validation_error(
                field_name, f"'{value}' is not a valid YYYY-MM-DD date"
            )
        ) from None


def parse_sync_datetime(value: "str | datetime") -> datetime:
    """
    Parse an episode's ISO 8601 sync timestamp.

    Naive timestamps are taken as UTC.

    Raises:
        InvalidRequestError: If the value is empty or not a timestamp
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        if not value or not str(value).strip():
            raise InvalidRequestError(
                format_validation_error("Sync datetime", "cannot be empty")
            )
        try:
            parsed = datetime.fromisoformat(str(value).strip())
        except ValueError:
            raise InvalidRequestError(
                format_validation_error(
                    "Sync datetime",
                    f"'{value}' is not a valid ISO 8601 timestamp",
                )
            ) from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def validate_query(query: str) -> str:
    """
    Validate a search query.

    Returns:
        The stripped query

    Raises:
        InvalidRequestError: If the query is empty or too long
    """
    if query is None or not query.strip():
        raise InvalidRequestError(
            format_validation_error("Search query", "cannot be empty")
        )
    if len(query) > MAX_QUERY_LENGTH:
        raise InvalidRequestError(
            format_validation_error(
                "Search query",
                f"exceeds maximum length ({len(query)} > {MAX_QUERY_LENGTH} characters)",
            )
        )
    return query.strip()


def validate_window(start: int = 0, limit: "int | None" = None) -> None:
    """
    Validate a pagination window.

    Validation rules:
        - start must be >= 0
        - limit, when given, must be between 1 and MAX_PAGE_SIZE

    Raises:
        InvalidRequestError: If either bound is out of range
    """
    if start < 0:
        raise InvalidRequestError(
            format_validation_error("Start", f"must be >= 0 (got {start})")
        )
    if limit is not None and not (1 <= limit <= MAX_PAGE_SIZE):
        raise InvalidRequestError(
            format_validation_error(
                "Limit", f"must be between 1 and {MAX_PAGE_SIZE} (got {limit})"
            )
        )


def validate_date_range(
    min_date: "date | None", max_date: "date | None"
) -> None:
    """
    Reject an inverted date range.

    Raises:
        InvalidRequestError: If min_date is after max_date
    """
    if min_date is not None and max_date is not None and min_date > max_date:
        raise InvalidRequestError(
            format_validation_error(
                "Date range",
                f"is empty: {min_date} is after {max_date}",
            )
        )
