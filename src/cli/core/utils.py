"""Shared constants and formatting helpers for FluxQuant CLI."""

from typing import Dict


EXIT_SUCCESS = 0
EXIT_NOT_FOUND = 1
EXIT_ERROR = 2


def fmt_int(value) -> str:
    return '{:,}'.format(value) if value is not None else "N/A"


def fmt_percent(progress: Dict) -> str:
    """Display percent, with the raw value appended when it exceeds 100."""
    shown = f"{progress['display_percent']}%"
    if progress['percent'] > 100:
        shown += f" ({progress['percent']}%)"
    return shown


def progress_style(progress: Dict) -> str:
    if progress['is_completed']:
        return "green"
    if progress['is_lagging']:
        return "red"
    return "yellow"


def enum_value(value) -> str:
    return getattr(value, 'value', value) or "-"
