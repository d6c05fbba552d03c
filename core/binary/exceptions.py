"""
Error taxonomy for the compensation engine.

PlacementError and ConfigInvariantViolation are rejections the caller must act on.
IdempotencyConflict marks a duplicate event delivery and is absorbed by the
event handlers. PartialPeriodFailure reports distributors whose settlement
pipeline errored in a run; they are retried on the next scheduler tick.
"""


class CompensationError(Exception):
    """Base class for engine errors"""


class PlacementError(CompensationError):
    """Referrer missing, distributor already placed, or tree depth exhausted"""


class ConfigInvariantViolation(CompensationError):
    def __init__(self, violations):
        if isinstance(violations, str):
            violations = [violations]
        self.violations = list(violations)
        super().__init__('; '.join(self.violations))


class IdempotencyConflict(CompensationError):
    """An event that may only be applied once was delivered again"""


class PartialPeriodFailure(CompensationError):
    def __init__(self, period_id, failed_distributor_ids):
        self.period_id = period_id
        self.failed_distributor_ids = list(failed_distributor_ids)
        super().__init__(
            f"Settlement of period {period_id} failed for "
            f"{len(self.failed_distributor_ids)} distributor(s): {', '.join(self.failed_distributor_ids)}"
        )
