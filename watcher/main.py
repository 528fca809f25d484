import asyncio
import logging
import signal
from logging.handlers import RotatingFileHandler

from config import settings
from core.dedup import DedupCache
from core.geo import GeoTable
from core.notifications.manager import NotificationManager
from core.search import SearchClient
from db.store import store
from watcher.control import Controller
from watcher.scheduler import Scheduler

log = logging.getLogger(__name__)


def setup_logging() -> None:
    log_dir = settings.log_dir
    log_dir.mkdir(parents=True, exist_ok=True)

    log_format = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    log_level = getattr(logging, settings.log_level.upper())

    logging.basicConfig(level=log_level, format=log_format)

    file_handler = RotatingFileHandler(
        log_dir / "watcher.log",
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setFormatter(logging.Formatter(log_format))
    file_handler.setLevel(log_level)
    logging.getLogger().addHandler(file_handler)


def build_scheduler(cancel: asyncio.Event) -> Scheduler:
    client = SearchClient(geo=GeoTable.load(), cancel=cancel)
    return Scheduler(client, store, NotificationManager(), DedupCache())


async def main() -> None:
    setup_logging()
    await store.connect()
    log.info("Database connected")

    cancel = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, cancel.set)

    scheduler = build_scheduler(cancel)
    controller = Controller(scheduler, store)
    try:
        await scheduler.start()
        log.info(f"Watcher started, {len(controller.status())} searches active")
        await cancel.wait()
    finally:
        try:
            await scheduler.shutdown()
        finally:
            await store.close()
        log.info("Watcher stopped")


if __name__ == "__main__":
    asyncio.run(main())
