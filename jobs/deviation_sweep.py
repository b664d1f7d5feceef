"""
Deviation sweep background job.

Runs deviation detection for every employee, then delivers pending alerts
to managers. This job should be run nightly via CRON.

Usage:
    Run via CRON:
        0 1 * * * cd /path/to/project && python -m jobs.deviation_sweep

    Or run directly:
        python -m jobs.deviation_sweep
"""

import asyncio
import logging
import sys
from datetime import datetime, timezone
from typing import Dict, Any

from common.database import MongoDB
from care_os.config import settings
from care_os.database import create_memory_stores, create_mongo_stores
from care_os.dependencies import Services, build_services

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


class DeviationSweepJob:
    """
    Nightly deviation sweep.

    Actions performed:
    1. Runs the batch deviation rules for every employee who opted in to
       AI analysis, persisting new deviations
    2. Sends every pending deviation to the affected user's manager

    The dispatch step runs even when the sweep step fails, so deviations
    detected right after earlier check-ins still get delivered.
    """

    def __init__(self, services: Services):
        """
        Initialize the deviation sweep job.

        Args:
            services: Wired CARE OS services
        """
        self._services = services

    async def run(self) -> Dict[str, Any]:
        """
        Execute the deviation sweep job.

        Returns:
            Dict with job results including counts and any errors
        """
        logger.info("Starting deviation sweep job")
        start_time = datetime.now(timezone.utc)

        results = {
            "startTime": start_time.isoformat(),
            "deviationsCreated": 0,
            "alertsSent": 0,
            "errors": [],
        }

        try:
            results["deviationsCreated"] = (
                await self._services.deviation_detector.run_batch_deviation_sweep()
            )
        except Exception as e:
            error_msg = f"Deviation sweep failed: {str(e)}"
            logger.error(error_msg)
            results["errors"].append(error_msg)

        try:
            results["alertsSent"] = await self._services.alert_dispatcher.dispatch_pending_alerts()
        except Exception as e:
            error_msg = f"Alert dispatch failed: {str(e)}"
            logger.error(error_msg)
            results["errors"].append(error_msg)

        results["endTime"] = datetime.now(timezone.utc).isoformat()
        results["durationSeconds"] = (
            datetime.now(timezone.utc) - start_time
        ).total_seconds()

        logger.info(
            f"Deviation sweep job completed. "
            f"Created: {results['deviationsCreated']} deviations, "
            f"Alerts sent: {results['alertsSent']}, "
            f"Errors: {len(results['errors'])}"
        )

        return results

    async def close(self):
        """Release the messenger's transport."""
        await self._services.messenger.close()


async def main():
    """Main entry point for the deviation sweep job."""
    settings.validate_required()

    database = MongoDB()
    if settings.STORAGE_BACKEND == "memory":
        stores = create_memory_stores()
    else:
        await database.connect(uri=settings.MONGODB_URI, database_name=settings.MONGODB_DATABASE)
        stores = create_mongo_stores(database.db)
        await stores.ensure_indexes()

    job = DeviationSweepJob(build_services(stores, settings))

    try:
        results = await job.run()

        print("\n=== Deviation Sweep Job Results ===")
        print(f"Start Time: {results['startTime']}")
        print(f"End Time: {results['endTime']}")
        print(f"Duration: {results['durationSeconds']:.2f} seconds")
        print(f"Deviations Created: {results['deviationsCreated']}")
        print(f"Alerts Sent: {results['alertsSent']}")

        if results["errors"]:
            print(f"\nErrors ({len(results['errors'])}):")
            for error in results["errors"]:
                print(f"  - {error}")

        exit_code = 1 if results["errors"] else 0
        sys.exit(exit_code)

    finally:
        await job.close()
        await database.disconnect()


if __name__ == "__main__":
    asyncio.run(main())
