"""Background job for batch organization of queued content items.

Items are enqueued by id and type. Each cycle drains the queue, analyzes the
items in batches and auto-organizes the ones that analyzed successfully.
The cycle interval and batch size come from the organization config
(``batch_processing``) unless overridden.

Run standalone: uv run python -m application.jobs.organization_scanner
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Union

from domain.cultural_models import ItemType

logger = logging.getLogger(__name__)


class OrganizationScannerJob:
    """
    Background job that periodically organizes queued items.

    Features:
    - Interval from config or explicit override
    - Per-type batching through the organization service
    - Statistics tracking
    - Graceful shutdown
    """

    def __init__(
        self,
        organization_service,  # OrganizationService
        scan_interval_seconds: Optional[int] = None,
    ):
        """
        Initialize organization scanner job.

        Args:
            organization_service: OrganizationService instance
            scan_interval_seconds: Interval between cycles; None uses
                batch_processing.processing_interval from config
        """
        self.organization_service = organization_service
        self.scan_interval_override = scan_interval_seconds

        self._queue: Dict[Tuple[str, str], None] = {}
        self._running = False
        self._task: Optional[asyncio.Task] = None

        self.stats = {
            "total_scans": 0,
            "skipped_scans": 0,
            "items_analyzed": 0,
            "items_organized": 0,
            "items_failed": 0,
            "last_scan_at": None,
            "last_scan_duration_ms": 0,
            "errors": 0,
        }

    def enqueue(self, item_id: str, item_type: Union[ItemType, str] = ItemType.DOCUMENT) -> None:
        """Queue an item for the next cycle; duplicates collapse."""
        self._queue[(ItemType(item_type).value, item_id)] = None

    @property
    def pending(self) -> int:
        return len(self._queue)

    async def start(self) -> None:
        """Start the background scanner."""
        if self._running:
            logger.warning("Organization scanner is already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._scan_loop())
        logger.info("Organization scanner started")

    async def stop(self) -> None:
        """Stop the background scanner gracefully."""
        if not self._running:
            return

        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        logger.info("Organization scanner stopped")

    async def _scan_loop(self) -> None:
        """Main scan loop."""
        while self._running:
            interval = 60
            try:
                interval = await self._interval_seconds()
                await self._run_scan()
                await asyncio.sleep(interval)
            except asyncio.CancelledError:
                break
            except Exception as e:
                self.stats["errors"] += 1
                logger.error(f"Error in organization scan: {e}")
                await asyncio.sleep(min(interval, 60))

    async def _interval_seconds(self) -> int:
        if self.scan_interval_override is not None:
            return self.scan_interval_override
        config = await self.organization_service.get_organization_config()
        return config.batch_processing.processing_interval * 60

    async def _run_scan(self) -> Dict[str, Any]:
        """Execute a single scan cycle."""
        start_time = datetime.now()
        self.stats["last_scan_at"] = start_time.isoformat()

        results = {
            "scan_id": f"scan_{self.stats['total_scans'] + 1:06d}",
            "started_at": start_time.isoformat(),
            "queued": self.pending,
            "analyzed": 0,
            "organized": 0,
            "failed": 0,
        }

        config = await self.organization_service.get_organization_config()
        if not config.batch_processing.enabled:
            self.stats["skipped_scans"] += 1
            results["skipped"] = True
            logger.debug("Batch processing disabled; organization scan skipped")
            return results

        self.stats["total_scans"] += 1
        queued = list(self._queue)
        self._queue.clear()

        for item_type, item_ids in _group_by_type(queued).items():
            try:
                type_results = await self._process(item_type, item_ids, config.batch_processing.batch_size)
            except Exception as e:
                # Put the items back so the next cycle retries them
                for item_id in item_ids:
                    self.enqueue(item_id, item_type)
                self.stats["errors"] += 1
                results["error"] = str(e)
                logger.error(f"Scan error for {item_type} items: {e}")
                continue

            for key in ("analyzed", "organized", "failed"):
                results[key] += type_results[key]

        self.stats["items_analyzed"] += results["analyzed"]
        self.stats["items_organized"] += results["organized"]
        self.stats["items_failed"] += results["failed"]

        end_time = datetime.now()
        duration_ms = (end_time - start_time).total_seconds() * 1000
        self.stats["last_scan_duration_ms"] = duration_ms
        results["duration_ms"] = duration_ms
        results["completed_at"] = end_time.isoformat()

        if results["queued"] == 0:
            logger.debug(f"Scan {results['scan_id']} completed: no queued items")
        else:
            logger.info(
                f"Scan {results['scan_id']} completed in {duration_ms:.0f}ms: "
                f"{results['organized']} organized, {results['failed']} failed "
                f"of {results['queued']} queued"
            )

        return results

    async def _process(self, item_type: str, item_ids: List[str], batch_size: int) -> Dict[str, int]:
        analyzed = await self.organization_service.batch_analyze(item_ids, item_type, batch_size=batch_size)
        applied = await self.organization_service.batch_apply_organization(analyzed.successes)
        return {
            "analyzed": analyzed.succeeded,
            "organized": applied.succeeded,
            "failed": analyzed.failed + applied.failed,
        }

    async def run_once(self) -> Dict[str, Any]:
        """Run a single scan (for manual triggering)."""
        return await self._run_scan()

    def get_statistics(self) -> Dict[str, Any]:
        """Get scanner statistics."""
        return {
            **self.stats,
            "running": self._running,
            "pending": self.pending,
            "scan_interval_seconds": self.scan_interval_override,
        }


def _group_by_type(queued: List[Tuple[str, str]]) -> Dict[str, List[str]]:
    grouped: Dict[str, List[str]] = {}
    for item_type, item_id in queued:
        grouped.setdefault(item_type, []).append(item_id)
    return grouped


async def main():
    """Entry point for standalone execution."""
    from composition_root import build_engine
    from config import get_engine_settings

    settings = get_engine_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    logger.info("Starting organization scanner...")

    engine = build_engine(settings)
    scanner = OrganizationScannerJob(organization_service=engine.organization)
    for item_id in await engine.backend.list_item_ids():
        item = await engine.backend.get_item(item_id)
        scanner.enqueue(item_id, item["item_type"])

    try:
        await scanner.start()
        while True:
            await asyncio.sleep(60)
            stats = scanner.get_statistics()
            logger.info(
                f"Scanner stats: {stats['total_scans']} scans, {stats['items_organized']} organized"
            )
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    finally:
        await scanner.stop()


if __name__ == "__main__":
    asyncio.run(main())
