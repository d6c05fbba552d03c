"""
Event intake.

ReferralPlaced, PurchaseActivated and DirectReferralCountChanged arrive as
already validated events from the surrounding platform. Each task books its
ledger entries into the open daily period, under that period's config
snapshot.
"""
import logging

from celery import shared_task

from .exceptions import IdempotencyConflict, PlacementError
from .models import Distributor
from .utils import apply_direct_referral_count, handle_referral_placed, mark_active_buyer

logger = logging.getLogger(__name__)


def _event_period():
    from core.settings.config import load_commission_config
    from core.settlement.utils import current_daily_period

    period = current_daily_period(load_commission_config())
    return period, period.config


@shared_task(bind=True, max_retries=3, default_retry_delay=60)
def referral_placed(self, distributor_id, referrer_id=None, preferred_side=None):
    """
    Place a new distributor and count the referral for the referrer.

    PlacementError is not retried: the caller must pick another referrer
    or escalate.
    """
    try:
        period, config = _event_period()
        result, bonus = handle_referral_placed(
            distributor_id, referrer_id, config, period, preferred_side=preferred_side
        )
    except PlacementError as e:
        logger.error(f"Placement rejected for {distributor_id} (referrer {referrer_id}): {e}")
        return {'status': 'rejected', 'distributor_id': distributor_id, 'error': str(e)}
    except Exception as e:
        logger.error(
            f"Error in referral_placed task for {distributor_id}: {e}. "
            f"Attempt {self.request.retries + 1}/{self.max_retries}"
        )
        if self.request.retries < self.max_retries:
            raise self.retry(exc=e, countdown=60 * (self.request.retries + 1))
        raise

    return {
        'status': 'placed',
        'distributor_id': result.distributor_id,
        'parent_id': result.parent_id,
        'side': result.side,
        'depth': result.depth,
        'spillover': result.spillover,
        'activation_bonus_id': bonus.pk if bonus else None,
    }


@shared_task(bind=True, max_retries=3, default_retry_delay=60)
def purchase_activated(self, distributor_id, amount_paid=None):
    """Mark the distributor as Active Buyer and pay any direct commission"""
    try:
        period, config = _event_period()
        entry = mark_active_buyer(distributor_id, amount_paid, config, period)
    except Distributor.DoesNotExist:
        logger.error(f"PurchaseActivated for unknown distributor {distributor_id}, ignoring")
        return {'status': 'unknown_distributor', 'distributor_id': distributor_id}
    except Exception as e:
        logger.error(
            f"Error in purchase_activated task for {distributor_id}: {e}. "
            f"Attempt {self.request.retries + 1}/{self.max_retries}"
        )
        if self.request.retries < self.max_retries:
            raise self.retry(exc=e, countdown=60 * (self.request.retries + 1))
        raise

    return {
        'status': 'processed',
        'distributor_id': distributor_id,
        'direct_commission_id': entry.pk if entry else None,
    }


@shared_task(bind=True, max_retries=3, default_retry_delay=60)
def direct_referral_count_changed(self, distributor_id, new_count):
    """Store the new count and run the activation check"""
    try:
        period, config = _event_period()
        bonus = apply_direct_referral_count(distributor_id, new_count, config, period)
    except IdempotencyConflict as e:
        # Duplicate delivery, not an error
        logger.info(f"Duplicate DirectReferralCountChanged for {distributor_id} ignored: {e}")
        return {'status': 'duplicate', 'distributor_id': distributor_id}
    except Distributor.DoesNotExist:
        logger.error(f"DirectReferralCountChanged for unknown distributor {distributor_id}, ignoring")
        return {'status': 'unknown_distributor', 'distributor_id': distributor_id}
    except Exception as e:
        logger.error(
            f"Error in direct_referral_count_changed task for {distributor_id}: {e}. "
            f"Attempt {self.request.retries + 1}/{self.max_retries}"
        )
        if self.request.retries < self.max_retries:
            raise self.retry(exc=e, countdown=60 * (self.request.retries + 1))
        raise

    return {
        'status': 'processed',
        'distributor_id': distributor_id,
        'activation_bonus_id': bonus.pk if bonus else None,
    }
