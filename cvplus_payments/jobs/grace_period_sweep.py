"""
Grace Period Sweep Job.

Deletes grace periods whose end date has passed. The entitlement resolver
already ignores (and lazily deletes) expired grace periods on read; this
job removes the ones nobody asks about again.

Run as a daily cron job:
    python -m cvplus_payments.jobs.grace_period_sweep

Configuration:
- GRACE_PERIOD_SWEEP_BATCH_SIZE: Records to delete per batch (default: 500)
"""

import logging
import os
import sys
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from cvplus_payments.database.session import DatabaseNotConfiguredError, session_scope
from cvplus_payments.models.base import utcnow
from cvplus_payments.repositories.entitlement_repository import EntitlementRepository

logger = logging.getLogger(__name__)

GRACE_PERIOD_SWEEP_BATCH_SIZE = int(os.getenv("GRACE_PERIOD_SWEEP_BATCH_SIZE", "500"))


class GracePeriodSweep:
    """Batched deletion of expired grace periods. Safe to re-run."""

    def __init__(
        self,
        db_session,
        batch_size: int = GRACE_PERIOD_SWEEP_BATCH_SIZE,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db_session
        self.batch_size = batch_size
        self.cutoff_date = (clock or utcnow)()
        self._entitlements = EntitlementRepository(db_session)
        self.stats: Dict[str, Any] = {
            "grace_periods_deleted": 0,
            "batches": 0,
            "errors": 0,
        }

    def run(self) -> Dict[str, Any]:
        """
        Delete expired grace periods in batches.

        Returns:
            Statistics dictionary
        """
        start_time = utcnow()
        logger.info("Starting grace period sweep", extra={
            "cutoff_date": self.cutoff_date.isoformat(),
            "batch_size": self.batch_size,
        })

        try:
            while True:
                deleted = self._entitlements.delete_expired_grace_periods(
                    self.cutoff_date, batch_size=self.batch_size
                )
                if deleted == 0:
                    break

                self.stats["batches"] += 1
                self.stats["grace_periods_deleted"] += deleted
                logger.info(f"Deleted {deleted} grace_periods records (batch)", extra={
                    "batch_size": deleted,
                    "total_deleted": self.stats["grace_periods_deleted"],
                })

                if deleted < self.batch_size:
                    break
        except Exception as e:
            self.stats["errors"] += 1
            self.db.rollback()
            logger.error("Error sweeping grace periods", extra={"error": str(e)}, exc_info=True)

        self.stats["duration_seconds"] = (utcnow() - start_time).total_seconds()
        self.stats["cutoff_date"] = self.cutoff_date.isoformat()

        logger.info("Grace period sweep completed", extra=self.stats)
        return self.stats


def main():
    """Main entry point for the grace period sweep job."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    logger.info("Grace Period Sweep starting")

    try:
        with session_scope() as session:
            stats = GracePeriodSweep(session).run()
    except DatabaseNotConfiguredError as e:
        logger.error("Grace Period Sweep failed", extra={"error": str(e)}, exc_info=True)
        sys.exit(1)

    if stats["errors"]:
        sys.exit(1)

    logger.info("Grace Period Sweep finished")


if __name__ == "__main__":
    main()
