# cs2_stats/models.py

import re
from enum import Enum
from typing import Any, Dict, Set, Tuple

STEAM_ID64_RE = re.compile(r'^\d{17}$')


class IdentifierStatus(str, Enum):
    """Lifecycle states of a queued Steam ID."""

    PENDING = 'pending'
    PROCESSING = 'processing'
    COMPLETED = 'completed'
    FAILED = 'failed'


class LogPhase(str, Enum):
    STARTED = 'started'
    SUCCESS = 'success'
    FAILED = 'failed'


class IllegalTransitionError(ValueError):
    """Raised when a status change is not part of the queue state machine."""


# processing -> pending is only used by the stale-row recovery pass.
ALLOWED_TRANSITIONS: Dict[IdentifierStatus, Set[IdentifierStatus]] = {
    IdentifierStatus.PENDING: {IdentifierStatus.PROCESSING},
    IdentifierStatus.PROCESSING: {
        IdentifierStatus.COMPLETED,
        IdentifierStatus.FAILED,
        IdentifierStatus.PENDING,
    },
    IdentifierStatus.COMPLETED: {IdentifierStatus.PENDING},
    IdentifierStatus.FAILED: {IdentifierStatus.PENDING},
}


def validate_transition(current, new) -> IdentifierStatus:
    """
    Check that a status change is allowed.

    Args:
        current: Current status (enum member or its string value)
        new: Requested status (enum member or its string value)

    Returns:
        The requested status as an IdentifierStatus

    Raises:
        IllegalTransitionError: If either status is unknown or the move is not allowed
    """
    try:
        current_status = IdentifierStatus(current)
        new_status = IdentifierStatus(new)
    except ValueError as e:
        raise IllegalTransitionError(str(e)) from e

    if new_status not in ALLOWED_TRANSITIONS[current_status]:
        raise IllegalTransitionError(
            f"Illegal status transition {current_status.value} -> {new_status.value}"
        )
    return new_status


def is_valid_steam_id(value: Any) -> bool:
    """True for a 17-digit SteamID64 string."""
    return bool(STEAM_ID64_RE.match(str(value or '').strip()))


# Stat columns written by a successful scrape, in table order.
STAT_FIELDS: Tuple[str, ...] = (
    'kd_ratio',
    'hltv_rating',
    'win_rate',
    'headshot_percentage',
    'adr',
    'matches_played',
    'matches_won',
    'matches_lost',
    'matches_tied',
    'kills',
    'deaths',
    'assists',
    'headshots',
    'total_damage',
    'rounds_played',
    'clutch_success',
    'entry_success',
)

# Columns that may be used to rank players.
RANKABLE_FIELDS: Tuple[str, ...] = (
    'kd_ratio',
    'hltv_rating',
    'matches_played',
    'kills',
    'adr',
    'matches_won',
)
