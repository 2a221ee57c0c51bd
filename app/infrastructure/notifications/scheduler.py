"""Deferred delivery scheduler.

Holds notifications whose ``scheduled_for`` is in the future and promotes
them into the dispatch path once they become due. The scheduler never talks
to a provider itself; it owns the "is it time yet / is it already running"
bookkeeping and delegates the channel fan-out to a dispatch callable.

Usage Example:
    scheduler = DeliveryScheduler(dispatch=dispatcher.dispatch)
    scheduler.schedule(notification, at=datetime(2024, 1, 1, 9, tzinfo=timezone.utc))

    # Called periodically by jobs/scheduled_tasks.py
    stats = scheduler.process_scheduled_notifications()
"""

import threading
from datetime import datetime
from typing import Callable, Dict, List, Optional, Set

import structlog

from infrastructure.logging import bind_dispatch_context
from infrastructure.notifications.clock import Clock, SystemClock, ensure_utc
from infrastructure.notifications.dispatcher import DispatchOutcome
from infrastructure.notifications.exceptions import InvalidSchedule
from infrastructure.notifications.models import Notification, NotificationStatus

logger = structlog.get_logger()

DispatchFn = Callable[[Notification], DispatchOutcome]


class DeliveryScheduler:
    """Keyed store of deferred notifications plus an in-flight gate.

    The in-flight set is claimed under the scheduler lock while a sweep
    selects its work, so two overlapping sweeps never hand the same
    notification to dispatch. ``cancel`` only prevents future pickup; an
    attempt already handed to dispatch runs to completion.

    Attributes:
        dispatch: Callable performing the channel fan-out for one notification
        clock: Time source for due and expiry checks
        on_complete: Optional callback receiving each notification's final
            state after a sweep dispatched it (including failures)
    """

    def __init__(
        self,
        dispatch: DispatchFn,
        clock: Optional[Clock] = None,
        on_complete: Optional[Callable[[Notification], None]] = None,
    ):
        self._dispatch = dispatch
        self._clock = clock or SystemClock()
        self._on_complete = on_complete
        self._scheduled: Dict[str, Notification] = {}
        self._in_flight: Set[str] = set()
        self._lock = threading.Lock()

    def schedule(self, notification: Notification, at: datetime) -> Notification:
        """Store ``notification`` for dispatch at ``at``.

        Raises:
            InvalidSchedule: ``at`` is not strictly in the future.
            InvalidStateTransition: the notification is not pending.
        """
        at = ensure_utc(at)
        now = self._clock.now()
        if at <= now:
            raise InvalidSchedule(at, now)

        scheduled = notification.reschedule(at)
        with self._lock:
            self._scheduled[scheduled.id] = scheduled

        logger.info(
            "notification_scheduled",
            notification_id=scheduled.id,
            scheduled_for=at.isoformat(),
            recurring=self._is_recurring(scheduled),
        )
        return scheduled

    def cancel(self, notification_id: str) -> bool:
        """Drop a notification from the store and the in-flight set.

        Returns:
            True when something was removed; cancelling twice is harmless.
        """
        with self._lock:
            removed = self._scheduled.pop(notification_id, None) is not None
            in_flight = notification_id in self._in_flight
            self._in_flight.discard(notification_id)

        if removed or in_flight:
            logger.info(
                "scheduled_notification_cancelled",
                notification_id=notification_id,
                was_in_flight=in_flight,
            )
        return removed or in_flight

    def get_scheduled_notifications(self) -> List[Notification]:
        """All stored notifications that are due, in-flight ones included."""
        now = self._clock.now()
        with self._lock:
            due = [n for n in self._scheduled.values() if n.is_due(now)]
        return sorted(due, key=lambda n: n.scheduled_for)

    def get_scheduled_notification(self, notification_id: str) -> Optional[Notification]:
        with self._lock:
            return self._scheduled.get(notification_id)

    def is_in_flight(self, notification_id: str) -> bool:
        with self._lock:
            return notification_id in self._in_flight

    def process_scheduled_notifications(self) -> Dict[str, int]:
        """Dispatch every due, pending, not in-flight notification.

        Expired notifications are dropped without a dispatch attempt. An
        exception while dispatching one notification fails that notification
        and the sweep carries on with the rest.

        Returns:
            Counters: due, dispatched, sent, failed, expired, skipped.
        """
        now = self._clock.now()
        stats = {
            "due": 0,
            "dispatched": 0,
            "sent": 0,
            "failed": 0,
            "expired": 0,
            "skipped": 0,
        }

        with self._lock:
            selected: List[Notification] = []
            for notification in list(self._scheduled.values()):
                if not notification.is_due(now):
                    continue
                stats["due"] += 1
                if notification.id in self._in_flight:
                    stats["skipped"] += 1
                    continue
                if notification.is_expired(now):
                    del self._scheduled[notification.id]
                    stats["expired"] += 1
                    logger.info(
                        "scheduled_notification_expired",
                        notification_id=notification.id,
                    )
                    continue
                if notification.status != NotificationStatus.PENDING:
                    stats["skipped"] += 1
                    continue
                self._in_flight.add(notification.id)
                selected.append(notification)

        selected.sort(key=lambda n: n.scheduled_for)
        for notification in selected:
            final = self._run_one(notification, now)
            stats["dispatched"] += 1
            if final.status == NotificationStatus.FAILED:
                stats["failed"] += 1
            else:
                stats["sent"] += 1
            if self._complete(notification.id, final) and self._on_complete is not None:
                self._on_complete(final)

        if stats["due"]:
            logger.info("scheduled_sweep_completed", **stats)
        return stats

    def _run_one(self, notification: Notification, now: datetime) -> Notification:
        with bind_dispatch_context(
            notification_id=notification.id, user_id=notification.user_id
        ):
            try:
                processing = notification.mark_as_processing(at=now)
                return self._dispatch(processing).notification
            except Exception as e:
                logger.error(
                    "scheduled_dispatch_failed",
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )
                return self._fail(notification, str(e))

    def _fail(self, notification: Notification, reason: str) -> Notification:
        if notification.status == NotificationStatus.FAILED and not notification.can_retry:
            return notification
        return notification.mark_as_failed(reason, at=self._clock.now())

    def _complete(self, notification_id: str, final: Notification) -> bool:
        """Release the in-flight claim. False when cancelled mid-flight."""
        with self._lock:
            if notification_id not in self._in_flight:
                return False
            self._in_flight.discard(notification_id)
            if self._is_recurring(final):
                self._scheduled[notification_id] = final
            else:
                self._scheduled.pop(notification_id, None)
        return True

    def purge_expired(self) -> int:
        """Remove expired entries that are not in flight. Returns how many."""
        now = self._clock.now()
        with self._lock:
            expired = [
                notification_id
                for notification_id, notification in self._scheduled.items()
                if notification.is_expired(now) and notification_id not in self._in_flight
            ]
            for notification_id in expired:
                del self._scheduled[notification_id]

        if expired:
            logger.info("scheduled_notifications_purged", count=len(expired))
        return len(expired)

    def get_scheduler_stats(self) -> Dict[str, int]:
        now = self._clock.now()
        with self._lock:
            notifications = list(self._scheduled.values())
            in_flight = len(self._in_flight)
        due = sum(1 for n in notifications if n.is_due(now))
        return {
            "total": len(notifications),
            "due": due,
            "scheduled": len(notifications) - due,
            "in_flight": in_flight,
        }

    def clear(self) -> None:
        with self._lock:
            self._scheduled.clear()
            self._in_flight.clear()

    @staticmethod
    def _is_recurring(notification: Notification) -> bool:
        return bool(notification.metadata.get("recurring"))
