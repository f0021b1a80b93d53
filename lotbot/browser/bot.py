"""
Lottery application bot

Drives one run end to end: sign in, work out which entries to apply for,
submit them one by one on a single tab, then reconcile, report and notify.
"""
import asyncio
import logging
from pathlib import Path
from typing import List, Optional, Tuple

from .automation import BrowserRuntime
from .portal import Portal, SapporoPortal
from ..common.config import Config
from ..common.errors import NotificationError, StoreError
from ..common.models import DesiredEntry, Job, RunSummary
from ..common.notifications import NotificationManager
from ..common.scheduler import PortalClock
from ..lottery.explorer import LotteryCandidateExplorer
from ..lottery.normalize import diff_entries
from ..lottery.pipeline import SubmissionPipeline
from ..store.client import JobStatus, MetadataStore, create_store

logger = logging.getLogger(__name__)

SKIPPED_NOTE = "一部の候補は既に予約済みのためスキップしました。"
CANCELLED_NOTE = "ログイン不可などの理由で処理できなかった枠をキャンセルとして計上しました。"
NO_FAILURES_NOTE = "失敗はありませんでした。"


class LotteryBot:
    """
    Orchestrates one lottery application run.

    The run summary is rebuilt after every step and kept on ``self.summary``
    so that an aborted run still reports what it got through.
    """

    def __init__(
        self,
        config: Config,
        portal: Portal,
        store: MetadataStore,
        notifications: Optional[NotificationManager] = None,
        explorer: Optional[LotteryCandidateExplorer] = None,
        clock: Optional[PortalClock] = None,
    ):
        self.config = config
        self.portal = portal
        self.store = store
        self.clock = clock or PortalClock(config.browser.timezone)
        self.notifications = notifications or NotificationManager(config.notifications)
        self.explorer = explorer or LotteryCandidateExplorer(portal, config.explorer, self.clock)
        self.pipeline = SubmissionPipeline(portal)
        self.summary = RunSummary(expected_total=config.expected_total)
        self._diagnostic_captured = False
        self._account: Optional[str] = None

    async def run(self) -> RunSummary:
        """
        Run the whole flow once.

        Per-entry failures are recorded in the summary. Anything that stops
        the run (login failure, store outage) is re-raised after the summary
        has been reconciled, written out and sent.
        """
        self.summary = RunSummary(expected_total=self.config.expected_total)
        self._diagnostic_captured = False
        error: Optional[BaseException] = None

        try:
            await self._run()
        except Exception as e:
            error = e
            logger.error(f"Run aborted: {e}")
            raise
        finally:
            self._reconcile()
            await self._capture_diagnostic()
            self.write_report()
            await self._finish(error)
            await self._notify()

        return self.summary

    async def _run(self):
        job = await self.store.fetch_job()
        if job and job.entry_count is not None:
            self.summary = self.summary.with_expected_total(job.entry_count)

        user_id, password = self._credentials(job)
        self._account = user_id or None
        await self.portal.login(user_id, password)
        await self._cleanup_credentials()
        await self._settle_after_login()

        desired = await self._desired_entries()
        total = len(desired)
        if self.summary.expected_total is None:
            self.summary = self.summary.with_expected_total(total)
        await self._progress(f"0/{total}件")

        applied = await self.portal.applied_entries()
        pending, skipped = diff_entries(desired, applied)
        if skipped:
            logger.info(f"Skipping {len(skipped)} entries already applied for")
        self.summary = self.summary.with_skipped(len(skipped))

        processed = len(skipped)
        await self._progress(f"{min(processed, total)}/{total}件")

        for index, entry in enumerate(pending):
            result = await self.pipeline.run(entry)
            self.summary = self.summary.record(result)

            if index < len(pending) - 1:
                await asyncio.sleep(self.config.pipeline.entry_delay_seconds)

            processed += 1
            await self._progress(f"{min(processed, total)}/{total}件")

        logger.info(f"Run finished: {self.summary.summary_line()}")

    async def _settle_after_login(self):
        await asyncio.sleep(self.config.portal.settle_seconds)

    def _credentials(self, job: Optional[Job]) -> Tuple[str, str]:
        """Credentials carried by the job win over the configured ones"""
        if job and job.user_id and job.password:
            return job.user_id, job.password
        return self.config.credentials.user_id, self.config.credentials.password

    async def _desired_entries(self) -> List[DesiredEntry]:
        """Listed entries, topped up by exploration or cut down to the expected total"""
        desired = await self.store.fetch_desired_entries()
        expected = self.summary.expected_total
        if expected is None:
            return desired

        shortage = expected - len(desired)
        if shortage > 0:
            await self._progress("追加分の探索中...")
            extra = await self.explorer.explore(shortage, exclude=desired)
            logger.info(f"Explorer added {len(extra)} of {shortage} missing entries")
            desired = [*desired, *extra]
        else:
            desired = desired[:expected]

        for entry in desired:
            logger.info(f"Target: {entry.describe()}")
        return desired

    # ========================================
    # Bookkeeping
    # ========================================

    def _reconcile(self):
        missing = self.summary.shortfall()
        if missing:
            logger.info(
                f"Adjusted cancelled count by {missing} to match expected entries "
                f"({self.summary.expected_total})"
            )
        self.summary = self.summary.reconcile()

    async def _capture_diagnostic(self):
        if self._diagnostic_captured:
            return
        try:
            await self.portal.capture_diagnostic("debug")
            self._diagnostic_captured = True
        except Exception as e:
            logger.error(f"Failed to capture diagnostic screenshot: {e}")

    async def _progress(self, progress: str):
        try:
            await self.store.update_progress(progress)
        except StoreError as e:
            logger.warning(f"Failed to update job progress: {e}")

    async def _cleanup_credentials(self):
        try:
            await self.store.cleanup_credentials()
        except StoreError as e:
            logger.warning(f"Failed to clean up job credentials: {e}")

    async def _finish(self, error: Optional[BaseException]):
        try:
            if error is None:
                await self.store.update_status(JobStatus.COMPLETED, self.summary.summary_line())
            else:
                await self.store.update_status(JobStatus.FAILED, str(error) or type(error).__name__)
        except StoreError as e:
            logger.warning(f"Failed to update job status: {e}")

    async def _notify(self):
        account = "/".join(part for part in (self.config.store.group_id, self._account) if part)
        try:
            await self.notifications.notify_summary(self.summary, account=account or None)
        except NotificationError as e:
            logger.error(f"Failed to send notification: {e}")

    def write_report(self) -> Optional[Path]:
        """Write the run report the web app shows after a run"""
        path = Path(self.config.run.result_log_file)
        try:
            path.write_text(format_run_report(self.summary), encoding="utf-8")
        except OSError as e:
            logger.error(f"Failed to write log file {path}: {e}")
            return None
        return path


def format_success(entry: DesiredEntry) -> str:
    return (
        f"{entry.date or '日付未指定'} {entry.time or '時間未指定'}に"
        f"{entry.facility or '施設未指定'}の{entry.room or '部屋未指定'}を予約しました。"
    )


def format_run_report(summary: RunSummary) -> str:
    """Summary line, per-entry detail and notes joined with <br>"""
    if summary.failed:
        details = [f"失敗: {result.entry.describe()}" for result in summary.failed]
    elif summary.succeeded:
        details = [format_success(entry) for entry in summary.succeeded]
    else:
        details = [NO_FAILURES_NOTE]

    lines = [summary.summary_line(), "", *details]
    if summary.skipped:
        lines.append(SKIPPED_NOTE)
    if summary.cancelled:
        lines.append(CANCELLED_NOTE)
    return "<br>".join(lines)


async def run_lottery(config: Config) -> RunSummary:
    """Start a browser, run the bot once and shut everything down"""
    async with BrowserRuntime(
        config.browser,
        default_timeout=config.portal.wait_timeout,
        diagnostic_dir=config.run.diagnostic_dir,
    ) as runtime:
        portal = SapporoPortal(runtime.automation, config.portal, PortalClock(config.browser.timezone))
        notifications = NotificationManager(config.notifications)
        try:
            async with create_store(config) as store:
                bot = LotteryBot(config, portal, store, notifications=notifications)
                return await bot.run()
        finally:
            await notifications.aclose()
