"""
Porra Background Scheduler Service

Runs the pending-rescore job with APScheduler. Matches flagged
``needs_rescore`` (a result change whose rescoring failed or has not run
yet) are picked up here, so rescoring is retried independently of the sync
that flagged them.
"""

import atexit
import logging
from datetime import datetime, timezone

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app import db
from app.services.scoring_service import rescore_pending

logger = logging.getLogger(__name__)


class SchedulerService:
    """Manages background jobs for the league"""

    def __init__(self, app=None):
        self.scheduler = None
        self.app = app
        self.is_running = False
        self.run_stats = {
            "last_run": None,
            "total_runs": 0,
            "successful_runs": 0,
            "failed_runs": 0,
            "last_error": None,
            "matches_rescored": 0,
        }

        if app:
            self.init_app(app)

    def init_app(self, app):
        """Initialize scheduler with Flask app"""
        self.app = app
        self.scheduler = BackgroundScheduler(daemon=True, timezone="UTC")

        atexit.register(self.shutdown)

        if app.config.get("SCHEDULER_ENABLED", True):
            self.start()

    def start(self):
        """Start the background scheduler"""
        if self.is_running:
            return

        try:
            self.scheduler.remove_all_jobs()
            self._add_core_jobs()
            self.scheduler.start()
            self.is_running = True
            logger.info("Scheduler started successfully")
        except Exception as e:
            logger.error(f"Failed to start scheduler: {e}")
            raise

    def stop(self):
        """Stop the background scheduler"""
        if not self.is_running:
            return

        try:
            self.scheduler.shutdown(wait=False)
            self.is_running = False
            logger.info("Scheduler stopped")
        except Exception as e:
            logger.error(f"Error stopping scheduler: {e}")

    def shutdown(self):
        """Graceful shutdown"""
        self.stop()

    def _add_core_jobs(self):
        interval = self.app.config.get("RESCORE_INTERVAL_MINUTES", 10)

        self.scheduler.add_job(
            func=self._rescore_pending,
            trigger=IntervalTrigger(minutes=interval),
            id="rescore_pending",
            name="Rescore Flagged Matches",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=60,
        )

        logger.info(f"Core scheduled jobs added (rescore every {interval} min)")

    def _rescore_pending(self):
        """Retry rescoring for every flagged match"""
        with self.app.app_context():
            self._run_rescore()

    def _run_rescore(self):
        try:
            stats = rescore_pending()
            self._update_stats(stats["failed"] == 0, stats["matches"])
            if stats["failed"]:
                self.run_stats["last_error"] = (
                    f"{stats['failed']} matches failed to rescore"
                )
        except Exception as e:
            db.session.rollback()
            self._update_stats(False)
            self.run_stats["last_error"] = str(e)
            logger.error(f"Error in pending rescore job: {e}", exc_info=True)

    def _update_stats(self, success, matches_rescored=0):
        self.run_stats["last_run"] = datetime.now(timezone.utc)
        self.run_stats["total_runs"] += 1
        self.run_stats["matches_rescored"] += matches_rescored

        if success:
            self.run_stats["successful_runs"] += 1
            self.run_stats["last_error"] = None
        else:
            self.run_stats["failed_runs"] += 1

    def get_status(self):
        """Get scheduler status information"""
        jobs = []
        if self.scheduler:
            for job in self.scheduler.get_jobs():
                next_run = getattr(job, "next_run_time", None)
                jobs.append(
                    {
                        "id": job.id,
                        "name": job.name,
                        "next_run": next_run.isoformat() if next_run else None,
                        "trigger": str(job.trigger),
                    }
                )

        stats = dict(self.run_stats)
        if stats["last_run"]:
            stats["last_run"] = stats["last_run"].isoformat()

        return {"is_running": self.is_running, "jobs": jobs, "stats": stats}

    def force_run(self):
        """Run the pending rescore job now, inside the caller's app context"""
        self._run_rescore()
        return self.run_stats["last_error"] is None, dict(self.run_stats)


# Global scheduler instance
scheduler_service = SchedulerService()
