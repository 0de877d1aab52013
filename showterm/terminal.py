"""
Terminal dimension lookup
"""
import os
import sys

from pydantic import BaseModel

DEFAULT_COLUMNS = 80
DEFAULT_ROWS = 25


class TerminalDimensions(BaseModel):
    columns: int = DEFAULT_COLUMNS
    rows: int = DEFAULT_ROWS


def _query_size():
    for stream in (sys.stdout, sys.stdin, sys.stderr):
        try:
            return os.get_terminal_size(stream.fileno())
        except (AttributeError, ValueError, OSError):
            continue
    return None


def terminal_size() -> TerminalDimensions:
    """Current size of the controlling terminal, 80x25 if it cannot be read"""
    size = _query_size()
    if size is None or size.columns == 0 or size.lines == 0:
        return TerminalDimensions()
    return TerminalDimensions(columns=size.columns, rows=size.lines)
