"""Persisting user notifications.

``notify`` writes through whatever handle it is given, so inside a
transaction the notification commits or rolls back with the rest of the unit
of work. ``notify_best_effort`` wraps the write in a savepoint: a failure is
logged and only the notification is lost.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from ..exceptions import StorageError
from ..schemas import RosterRecord
from ..store import Queryable, Transaction
from ..time_utils import utcnow

LOGGER = logging.getLogger(__name__)

MATCH_REQUEST = "match_request"
MATCH_ACCEPTED = "match_accepted"
MATCH_ACCEPTED_DEFERRED = "match_accepted_deferred"
MATCH_REJECTED = "match_rejected"
RATING_CONSOLIDATED = "rating_consolidated"


async def notify(
    db: Queryable,
    user_id: int,
    notification_type: str,
    title: str,
    message: str,
    related_id: Optional[int] = None,
) -> int | None:
    result = await db.run(
        "INSERT INTO notifications (user_id, type, title, message, related_id, is_read, created_at) "
        "VALUES (?, ?, ?, ?, ?, ?, ?)",
        (user_id, notification_type, title, message, related_id, False, utcnow()),
    )
    LOGGER.debug("Notification %s queued for user=%s related=%s", notification_type, user_id, related_id)
    return result.last_id


async def notify_best_effort(
    tx: Transaction,
    user_id: int,
    notification_type: str,
    title: str,
    message: str,
    related_id: Optional[int] = None,
) -> bool:
    """Write a notification without risking the enclosing transaction."""

    try:
        async with tx.savepoint() as nested:
            await notify(nested, user_id, notification_type, title, message, related_id)
    except StorageError as exc:
        LOGGER.warning(
            "Skipping %s notification for user=%s: %s",
            notification_type,
            user_id,
            exc.detail,
        )
        return False
    return True


def bound_users(rosters: Iterable[RosterRecord]) -> list[tuple[RosterRecord, int]]:
    """Roster entries with a user attached; placeholders receive nothing."""

    return [(roster, roster.user_id) for roster in rosters if roster.user_id is not None]


def signed(value: int) -> str:
    return f"+{value}" if value > 0 else str(value)
