"""
Celery tasks for TCT.

Periodic alert maintenance: the trip alert sweep (tracking loss and delay
warnings over ongoing trips) and the duplicate active alert reconciliation.
The engine services are async, so each task runs them in its own event
loop on a one-shot worker session.
"""
import asyncio
import logging

from app.core.celery_app import celery_app
from app.db.database import worker_session
from app.services.alerts.engine import reconcile_duplicate_alerts, run_alert_sweep

logger = logging.getLogger(__name__)


async def _sweep() -> dict:
    async with worker_session() as session:
        report = await run_alert_sweep(session)
        return {
            "trips_checked": report.trips_checked,
            "alerts_created": [t.value for t in report.changes.created],
            "alerts_resolved": [t.value for t in report.changes.resolved],
        }


async def _reconcile() -> int:
    async with worker_session() as session:
        return await reconcile_duplicate_alerts(session)


@celery_app.task(
    bind=True,
    name="app.services.tasks.run_trip_alert_sweep",
    max_retries=2,
)
def run_trip_alert_sweep(self) -> dict:
    """
    Evaluate tracking-lost and delay alerts for every ongoing trip.

    Returns:
        Summary dict (trips checked, alert types created / resolved)
    """
    logger.info("Starting trip alert sweep")
    try:
        summary = asyncio.run(_sweep())
    except Exception as e:
        logger.error(f"Trip alert sweep failed: {e}")
        raise self.retry(exc=e)

    logger.info(f"Trip alert sweep completed: {summary}")
    return summary


@celery_app.task(
    bind=True,
    name="app.services.tasks.reconcile_alerts",
    max_retries=2,
)
def reconcile_alerts(self) -> dict:
    """Dismiss duplicate active alerts left behind by concurrent detectors."""
    try:
        dismissed = asyncio.run(_reconcile())
    except Exception as e:
        logger.error(f"Alert reconciliation failed: {e}")
        raise self.retry(exc=e)

    return {"dismissed": dismissed}
