import asyncio
import logging
import time

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from config import settings
from core.dedup import DedupCache
from core.errors import FatalFetchError, ParseError, RejectedQueryError, StoreError
from core.models import JobState, Listing, NotificationEvent, ParsedQuery, QueryJob, Snapshot
from core.notifications.manager import NotificationManager
from core.query import parse_query
from core.search import OnMatch, SearchClient, ignore_matches
from core.transport import sleep_unless_cancelled
from db.store import Store

log = logging.getLogger(__name__)


class Scheduler:
    """Owns the active jobs and the rotation that sweeps them.

    One background task walks the jobs in id order, one sweep at a time, so a
    job is never swept twice concurrently. Control requests add and remove jobs
    from other tasks; structural changes go through ``_lock``.
    """

    def __init__(
        self,
        client: SearchClient,
        store: Store,
        notifications: NotificationManager,
        dedup: DedupCache | None = None,
        cycle_interval: float | None = None,
    ):
        self.client = client
        self.store = store
        self.notifications = notifications
        self.dedup = dedup or DedupCache()
        self.cycle_interval = (
            settings.cycle_interval_seconds if cycle_interval is None else cycle_interval
        )
        self.cancel = client.cancel
        self.housekeeping = AsyncIOScheduler()
        self.last_cycle_seconds = 0.0
        self._jobs: dict[str, QueryJob] = {}
        self._lock = asyncio.Lock()
        self._task: asyncio.Task | None = None

    async def start(self) -> None:
        await self.rehydrate()

        self.housekeeping.add_job(
            self._purge_job,
            IntervalTrigger(minutes=settings.dedup_purge_interval_minutes),
            id="dedup_purge",
            replace_existing=True,
        )
        self.housekeeping.start()

        self._task = asyncio.create_task(self._rotate(), name="rotation")
        log.info(f"Scheduler started with {len(self._jobs)} jobs")

    async def shutdown(self, timeout: float | None = None) -> None:
        self.cancel.set()
        if timeout is None:
            timeout = settings.request_timeout_seconds + 2 * settings.request_delay_seconds

        if self._task:
            try:
                await asyncio.wait_for(self._task, timeout=timeout)
            except asyncio.TimeoutError:
                log.warning("Rotation did not finish in time, cancelled")
            except Exception as e:
                log.exception(f"Rotation crashed: {e}")
            self._task = None

        if self.housekeeping.running:
            self.housekeeping.shutdown(wait=False)
        await self.client.close()
        log.info("Scheduler stopped")

    async def rehydrate(self) -> None:
        try:
            records = await self.store.list_jobs()
        except StoreError as e:
            log.error(f"Couldn't load jobs: {e}")
            return

        async with self._lock:
            for record in records:
                try:
                    parsed = parse_query(record.job_id)
                    self._validate(parsed)
                except (ParseError, RejectedQueryError) as e:
                    log.error(f"Couldn't load job {record.job_id}: {e}")
                    continue
                job = QueryJob.from_parsed(parsed)
                job.id = record.job_id
                job.created_at = record.created_at
                job.state = JobState.RUNNING
                self._jobs[job.id] = job
                log.info(f"Loaded from db: {job.id}")

    # === Control ===

    def _validate(self, parsed: ParsedQuery) -> None:
        if not parsed.spec.keywords:
            raise RejectedQueryError(f"no keywords in {parsed.id}")

    async def add(self, parsed: ParsedQuery) -> QueryJob:
        self._validate(parsed)

        async with self._lock:
            existing = self._jobs.get(parsed.id)
            if existing and existing.is_running:
                return existing

            job = QueryJob.from_parsed(parsed)
            try:
                await self.store.add_job(job.id)
            except StoreError as e:
                log.error(f"Job {job.id} will not survive a restart: {e}")
            job.state = JobState.RUNNING
            self._jobs[job.id] = job

        log.info(f"Registered {job.id}")
        return job

    async def stop(self, job_id: str) -> bool:
        async with self._lock:
            job = self._jobs.pop(job_id, None)
            if job is None:
                return False
            await self._retire(job)
        return True

    async def stop_all(self) -> list[str]:
        log.info("Stopping all jobs")
        async with self._lock:
            jobs = [self._jobs[job_id] for job_id in sorted(self._jobs)]
            self._jobs.clear()
            for job in jobs:
                await self._retire(job)
        return [job.id for job in jobs]

    async def _retire(self, job: QueryJob) -> None:
        log.info(f"Stopping {job.id}")
        job.state = JobState.STOPPED
        try:
            await self.store.delete_snapshot(job.id)
            await self.store.delete_job(job.id)
        except StoreError as e:
            log.error(f"Couldn't delete {job.id}: {e}")

    def status(self) -> list[str]:
        return sorted(self._jobs)

    def get(self, job_id: str) -> QueryJob | None:
        return self._jobs.get(job_id)

    def _is_active(self, job: QueryJob) -> bool:
        return self._jobs.get(job.id) is job and job.is_running

    # === Rotation ===

    async def _rotate(self) -> None:
        try:
            while not self.cancel.is_set():
                await self.run_cycle()
                await sleep_unless_cancelled(self.cancel, self.cycle_interval)
        finally:
            log.info("Rotation finished")

    async def run_cycle(self) -> None:
        started = time.monotonic()
        swept = 0
        for job_id in sorted(self._jobs):
            if self.cancel.is_set():
                break
            job = self._jobs.get(job_id)
            if job is None or not job.is_running:
                continue
            try:
                await self.run_job(job)
            except Exception as e:
                log.exception(f"Job {job.id} failed: {e}")
            swept += 1
        self.last_cycle_seconds = time.monotonic() - started
        log.info(f"Cycle swept {swept} jobs in {self.last_cycle_seconds:.1f}s")

    async def run_job(self, job: QueryJob) -> None:
        log.info(f"Searching: {job.id}")
        try:
            snapshot = await self.store.get_snapshot(job.id)
        except StoreError as e:
            log.error(f"Skipping {job.id} this cycle: {e}")
            return

        if not snapshot:
            if not await self._sweep(job, snapshot, ignore_matches):
                return
            if self.cancel.is_set():
                return
            log.info(f"Primed {job.id} with {len(snapshot)} listings")

        if self._is_active(job):
            await self._sweep(job, snapshot, self._notifier_for(job))

        if snapshot:
            await self._persist(job, snapshot)

    async def _sweep(self, job: QueryJob, snapshot: Snapshot, on_match: OnMatch) -> bool:
        try:
            matched = await self.client.search(job.spec, snapshot, on_match)
        except FatalFetchError as e:
            log.error(f"Search {job.id} failed: {e}")
            return False
        except Exception as e:
            log.exception(f"Search {job.id} failed: {e}")
            return False
        log.debug(f"{job.id}: {matched} matching listings")
        return True

    async def _persist(self, job: QueryJob, snapshot: Snapshot) -> None:
        async with self._lock:
            if not self._is_active(job):
                log.debug(f"Not persisting {job.id}: stopped during sweep")
                return
            try:
                await self.store.put_snapshot(job.id, snapshot)
            except StoreError as e:
                log.error(f"Couldn't persist {job.id}: {e}")

    def _notifier_for(self, job: QueryJob) -> OnMatch:
        async def notify(listing: Listing) -> None:
            event = NotificationEvent.from_listing(job, listing)
            if not self.dedup.should_notify(event.fingerprint):
                log.debug(f"Suppressed duplicate {event.fingerprint}")
                return
            await self.notifications.send_to_all(event)

        return notify

    async def _purge_job(self) -> None:
        purged = self.dedup.purge()
        log.info(f"Dedup purge removed {purged} fingerprints, {len(self.dedup)} remain")
