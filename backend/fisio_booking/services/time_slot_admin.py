"""
Admin management of available time windows.

Windows are never deleted, only deactivated (is_active = 0).
Every change invalidates the affected date and is broadcast.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import AtomicInsertTechnicalError, BookingValidationError, TransientQueryFailure
from ..models.generated import AvailableTimeSlots as DBTimeSlot
from .slots.cache import AvailabilityCache
from .slots.channel import SlotChangeChannel
from .slots.config import BookingConfig, get_booking_config, minutes_to_time_str, time_str_to_minutes
from .slots.invalidator import invalidate_cache_and_notify

logger = logging.getLogger(__name__)


@dataclass
class WindowBatchResult:
    created: list[DBTimeSlot] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)  # date → reason


def validate_window(
    db: Session,
    target_date: date,
    start_time: str,
    end_time: str,
    *,
    exclude_id: int | None = None,
    config: BookingConfig | None = None,
) -> tuple[str, str]:
    """
    Check a window against the rules and the date's other active windows.

    Touching windows (end == start) are fine, they merge when slots are
    generated. Any real overlap is rejected.

    Returns:
        Normalized ("HH:MM", "HH:MM")
    """
    config = config or get_booking_config()

    start_min = time_str_to_minutes(start_time)
    end_min = time_str_to_minutes(end_time)
    if end_min <= start_min:
        raise BookingValidationError("End time must be after start time")
    if end_min - start_min < config.min_window_minutes:
        raise BookingValidationError(
            f"Windows must be at least {config.min_window_minutes} minutes long"
        )

    query = db.query(DBTimeSlot).filter(
        DBTimeSlot.date == target_date.isoformat(),
        DBTimeSlot.is_active == 1,
    )
    if exclude_id is not None:
        query = query.filter(DBTimeSlot.id != exclude_id)
    try:
        others = query.all()
    except SQLAlchemyError as e:
        db.rollback()
        raise TransientQueryFailure("Could not load existing windows, please retry") from e

    for other in others:
        other_start = time_str_to_minutes(other.start_time)
        other_end = time_str_to_minutes(other.end_time)
        if start_min < other_end and end_min > other_start:
            raise BookingValidationError(
                f"Overlaps the window {minutes_to_time_str(other_start)}-"
                f"{minutes_to_time_str(other_end)} on {target_date.isoformat()}"
            )

    return minutes_to_time_str(start_min), minutes_to_time_str(end_min)


def create_windows(
    db: Session,
    dates: list[date],
    start_time: str,
    end_time: str,
    *,
    admin_only: bool = False,
    now: datetime | None = None,
    cache: AvailabilityCache | None = None,
    channel: SlotChangeChannel | None = None,
    config: BookingConfig | None = None,
) -> WindowBatchResult:
    """
    Add the same window to several dates.

    Each date succeeds or fails on its own; failures are reported per date.
    """
    now = now or datetime.now()
    result = WindowBatchResult()

    for target_date in sorted(set(dates)):
        key = target_date.isoformat()
        if target_date < now.date():
            result.failed[key] = "Cannot add opening hours to a past day"
            continue
        try:
            start, end = validate_window(db, target_date, start_time, end_time, config=config)
        except BookingValidationError as e:
            result.failed[key] = e.reason
            continue

        window = DBTimeSlot(
            date=key,
            start_time=start,
            end_time=end,
            is_active=1,
            admin_only=1 if admin_only else 0,
        )
        try:
            db.add(window)
            db.commit()
            db.refresh(window)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to create window on {key}: {e}")
            result.failed[key] = "Could not save the window"
            continue

        result.created.append(window)
        invalidate_cache_and_notify(cache, channel, target_date, reason="window-created")

    logger.info(
        f"Windows {start_time}-{end_time}: {len(result.created)} created, "
        f"{len(result.failed)} failed"
    )
    return result


def update_window(
    db: Session,
    window_id: int,
    *,
    start_time: str | None = None,
    end_time: str | None = None,
    admin_only: bool | None = None,
    cache: AvailabilityCache | None = None,
    channel: SlotChangeChannel | None = None,
    config: BookingConfig | None = None,
) -> DBTimeSlot:
    window = db.get(DBTimeSlot, window_id)
    if window is None or not window.is_active:
        raise LookupError(f"Window {window_id} not found")

    target_date = date.fromisoformat(window.date)
    start, end = validate_window(
        db,
        target_date,
        start_time or window.start_time,
        end_time or window.end_time,
        exclude_id=window.id,
        config=config,
    )
    window.start_time = start
    window.end_time = end
    if admin_only is not None:
        window.admin_only = 1 if admin_only else 0
    window.updated_at = datetime.utcnow().strftime("%Y-%m-%d %H:%M:%S")

    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to update window {window_id}: {e}")
        raise AtomicInsertTechnicalError(f"Could not save window {window_id}") from e
    db.refresh(window)

    invalidate_cache_and_notify(cache, channel, target_date, reason="window-updated")
    return window


def deactivate_window(
    db: Session,
    window_id: int,
    *,
    cache: AvailabilityCache | None = None,
    channel: SlotChangeChannel | None = None,
) -> DBTimeSlot:
    """Soft delete."""
    window = db.get(DBTimeSlot, window_id)
    if window is None or not window.is_active:
        raise LookupError(f"Window {window_id} not found")

    window.is_active = 0
    window.updated_at = datetime.utcnow().strftime("%Y-%m-%d %H:%M:%S")
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to deactivate window {window_id}: {e}")
        raise AtomicInsertTechnicalError(f"Could not deactivate window {window_id}") from e
    db.refresh(window)

    invalidate_cache_and_notify(cache, channel, window.date, reason="window-deleted")
    return window
