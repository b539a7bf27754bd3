"""Celery tasks for staff compensation."""
from __future__ import annotations

import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=3, default_retry_delay=30)
def recompute_camp_compensation(self, *, camp_id: str):
    """Recompute the pending compensation records of one camp."""
    from compensation.exceptions import CompensationNotFound
    from compensation.services import recompute_pending

    try:
        updated = recompute_pending(camp_id)
    except CompensationNotFound:
        logger.warning("recompute_camp_compensation: camp %s no longer exists", camp_id)
        return 0
    except Exception as exc:
        logger.exception("recompute_camp_compensation failed: %s", exc)
        raise self.retry(exc=exc)
    return updated


@shared_task
def recompute_open_camps():
    """
    Scheduled hourly (Celery Beat). Recompute pending records of every camp
    that ended less than COMPENSATION_RECOMPUTE_WINDOW_DAYS ago.
    """
    from compensation.services import camps_with_pending_compensation, recompute_pending

    camp_ids = list(camps_with_pending_compensation().values_list("pk", flat=True))
    updated = 0
    failed = 0
    for camp_id in camp_ids:
        try:
            updated += recompute_pending(camp_id)
        except Exception as exc:
            failed += 1
            logger.exception("recompute_open_camps: camp %s failed: %s", camp_id, exc)
    logger.info(
        "recompute_open_camps: %d record(s) updated across %d camp(s), %d failed",
        updated,
        len(camp_ids),
        failed,
    )
    return updated
