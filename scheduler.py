import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from backup import BackupService
from config import Settings
from services import TransactionService

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class SchedulerManager:
    def __init__(
        self,
        settings: Settings,
        transactions: TransactionService,
        backup: BackupService,
    ) -> None:
        self.settings = settings
        self.transactions = transactions
        self.backup = backup
        self.scheduler = BackgroundScheduler(timezone=settings.timezone)

    def _run_recurring(self, source: str = "manual") -> None:
        logger.info(f"recurring_run: source={source}")
        try:
            count = self.transactions.materialize_recurrences()
        except Exception:
            logger.exception(f"recurring_run: source={source} failed")
            return
        logger.info(f"recurring_run: source={source} transactions_spawned={count}")

    def _run_backup(self, source: str = "manual") -> None:
        logger.info(f"backup_run: source={source}")
        try:
            count = self.backup.perform_backup()
        except Exception:
            logger.exception(f"backup_run: source={source} failed")
            return
        logger.info(f"backup_run: source={source} objects_written={count}")

    def start(self) -> None:
        self._run_recurring("startup")
        self._run_backup("startup")

        trigger = IntervalTrigger(hours=self.settings.recurring_interval_hours)
        self.scheduler.add_job(
            self._run_recurring,
            trigger,
            args=["interval"],
            id="recurring_daily",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=3600,
        )

        trigger = IntervalTrigger(minutes=self.settings.backup_interval_minutes)
        self.scheduler.add_job(
            self._run_backup,
            trigger,
            args=["interval"],
            id="backup_interval",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=300,
        )

        self.scheduler.start()
        logger.info(
            "Scheduler started with recurring every "
            f"{self.settings.recurring_interval_hours}h and backup every "
            f"{self.settings.backup_interval_minutes}m"
        )

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
