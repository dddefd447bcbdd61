"""
habitchallenge.constants — Shared Constants & Helpers
======================================================

Single source of truth for business bounds and the day-window helper used by
every "did they log today?" query.
"""

from __future__ import annotations

import string
from datetime import date, datetime, time, timedelta

# ---------------------------------------------------------------------------
# Challenge bounds
# ---------------------------------------------------------------------------
MIN_MEMBERS = 2
MAX_MEMBERS = 1000

# ---------------------------------------------------------------------------
# Invite codes: 8 symbols from [A-Z0-9]
# ---------------------------------------------------------------------------
INVITE_CODE_ALPHABET = string.ascii_uppercase + string.digits
INVITE_CODE_LENGTH = 8

# ---------------------------------------------------------------------------
# System join reasons recorded on Participation rows
# ---------------------------------------------------------------------------
LEADER_JOIN_REASON = "Leader joined automatically"
APPROVAL_JOIN_REASON = "Joined through approved application"

# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


def day_window(day: date) -> tuple[datetime, datetime]:
    """Return the half-open ``[00:00, next 00:00)`` window for *day*."""
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


def paginate(items: list, page: int, page_size: int) -> list:
    """Slice a fully materialised list into one 1-based page."""
    offset = (max(page, 1) - 1) * page_size
    return items[offset:offset + page_size]
