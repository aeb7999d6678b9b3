import asyncio
import json
import logging
import sys

from anondrop.config import get_settings
from anondrop.errors import DependencyUnavailable
from anondrop.lifecycle import LifecycleManager
from anondrop.logging_config import setup_logging
from anondrop.wiring import build_manager

logger = logging.getLogger(__name__)


async def run_periodic_sweeps(manager: LifecycleManager, interval_seconds: float) -> None:
    """Sweep every ``interval_seconds`` until cancelled."""
    logger.info("Periodic sweep enabled every %ss", interval_seconds)
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await asyncio.to_thread(manager.sweep)
        except DependencyUnavailable as exc:
            logger.error("Periodic sweep could not list records: %s", exc)
        except Exception:
            logger.exception("Periodic sweep failed")


def main() -> int:
    settings = get_settings()
    setup_logging(settings.log_level)
    manager, closers = build_manager(settings)
    try:
        report = manager.sweep()
    except DependencyUnavailable as exc:
        logger.error("Sweep aborted: %s", exc)
        return 1
    finally:
        for close in closers:
            close()

    print(json.dumps({"purgedCount": report.purged, "scannedCount": report.scanned, "failed": report.failed}))
    return 0


if __name__ == "__main__":
    sys.exit(main())
