"""
Argument validation shared by the writers.

Every check here runs before the first durable write, so a rejected request
never leaves partial state behind.
"""

from datetime import date, datetime
from typing import Optional, Union

from fluxquant.accounting.reports import ExclusionReason
from fluxquant.exceptions import InvalidArgumentError


def require_non_negative_int(name: str, value) -> int:
    """
    Validate a quantity or quota.

    bool is rejected even though it subclasses int; so are floats, including
    integral ones, because counters must keep integer precision end to end.
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgumentError(f"{name} must be an integer, got {value!r}", field=name)
    if value < 0:
        raise InvalidArgumentError(f"{name} must be >= 0, got {value}", field=name)
    return value


def parse_log_date(value: Union[date, str]) -> date:
    """Accept a calendar date or an ISO 'YYYY-MM-DD' string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return datetime.strptime(value.strip(), '%Y-%m-%d').date()
        except ValueError:
            pass
    raise InvalidArgumentError(f"log_date must be a date or YYYY-MM-DD string, got {value!r}",
                               field='log_date')


def parse_exclusion_reason(value) -> Optional[ExclusionReason]:
    if value is None or isinstance(value, ExclusionReason):
        return value
    try:
        return ExclusionReason(value)
    except ValueError:
        allowed = ', '.join(r.value for r in ExclusionReason)
        raise InvalidArgumentError(f"Unknown exclusion reason {value!r} (expected one of: {allowed})",
                                   field='exclusion_reason') from None


def check_text_length(name: str, value: Optional[str], max_length: int) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidArgumentError(f"{name} must be a string", field=name)
    if len(value) > max_length:
        raise InvalidArgumentError(f"{name} exceeds {max_length} characters", field=name)
    return value


def require_reason(value, max_length: int) -> str:
    """Quota adjustment reasons are mandatory and stored stripped."""
    if not isinstance(value, str) or not value.strip():
        raise InvalidArgumentError("reason is required", field='reason')
    reason = value.strip()
    if len(reason) > max_length:
        raise InvalidArgumentError(f"reason exceeds {max_length} characters", field='reason')
    return reason
