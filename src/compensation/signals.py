"""Signals: recompute pending compensation when a camp's results change."""
from __future__ import annotations

import logging

from django.db import transaction
from django.db.models.signals import post_save, pre_save
from django.dispatch import receiver

logger = logging.getLogger(__name__)


def _recompute_now(*, camp_id) -> None:
    """Best-effort local recompute for immediate dashboard consistency."""
    from compensation.services import recompute_pending

    recompute_pending(camp_id)


def _queue_recompute(*, camp_id, sync_recompute: bool = True) -> None:
    def _dispatch() -> None:
        queued = False
        try:
            from compensation.tasks import recompute_camp_compensation

            recompute_camp_compensation.delay(camp_id=str(camp_id))
            queued = True
        except Exception as exc:
            logger.warning("compensation async dispatch failed: %s", exc, exc_info=True)

        if sync_recompute:
            # Keep staff totals current even when workers are unavailable.
            try:
                _recompute_now(camp_id=camp_id)
            except Exception as exc:
                # Never let a signal crash the camp update.
                level = logger.warning if queued else logger.error
                level("compensation sync recompute failed: %s", exc, exc_info=True)

    # Run after commit so the recompute reads the committed facts.
    try:
        transaction.on_commit(_dispatch)
    except Exception:
        _dispatch()


@receiver(pre_save, sender="camps.Camp")
def on_camp_pre_save(sender, instance, **kwargs):
    """Capture the previous facts to detect changes in post_save."""
    if instance._state.adding:
        instance._previous_facts = None
        return
    previous = (
        sender.objects
        .filter(pk=instance.pk)
        .values(*sender.FACT_FIELDS)
        .first()
    )
    instance._previous_facts = previous


@receiver(post_save, sender="camps.Camp")
def on_camp_saved(sender, instance, created, **kwargs):
    """Queue a recompute when enrollment, CSAT, budget or speakers changed."""
    from camps.services import facts_changed

    if created:
        return
    previous = getattr(instance, "_previous_facts", None)
    if previous is not None and not facts_changed(previous, instance):
        return
    _queue_recompute(camp_id=instance.pk)
