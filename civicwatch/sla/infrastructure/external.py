"""
SLA External Service Integrations
==================================

- YAML policy file with hot reload (watchdog observer)
- APScheduler job that drives the SLA watchdog
"""

import random
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

import yaml
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from pydantic import ValidationError
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from civicwatch.core import ConfigurationException
from civicwatch.shared.infrastructure.logging import get_logger
from civicwatch.sla.application.services import SLAWatchdog
from civicwatch.sla.domain import ISLAPolicyProvider, SLAPolicy

logger = get_logger(__name__)


class ConfigFileHandler(FileSystemEventHandler):
    """Watchdog event handler for SLA policy file changes."""

    def __init__(self, config_manager: "SLAConfigManager", config_path: Path):
        self.config_manager = config_manager
        self.config_path = config_path
        super().__init__()

    def _matches(self, event) -> bool:
        return not event.is_directory and Path(event.src_path).resolve() == self.config_path.resolve()

    def on_modified(self, event):
        if self._matches(event):
            logger.info("SLA policy file changed", extra={"path": str(event.src_path)})
            self.config_manager.reload()

    # Editors that save via rename produce a create, not a modify
    def on_created(self, event):
        self.on_modified(event)


class SLAConfigManager(ISLAPolicyProvider):
    """
    Thread-safe SLA policy holder with hot-reload support.

    The observer thread swaps in a new immutable SLAPolicy; readers always
    see either the old or the new policy, never a mix. A reload that fails
    to parse keeps the previous policy.
    """

    def __init__(self, defaults: Optional[SLAPolicy] = None):
        self._defaults = defaults or SLAPolicy()
        self._policy: SLAPolicy = self._defaults
        self._lock = threading.Lock()
        self._path: Optional[Path] = None
        self._observer = None

    def load(self, path: Path) -> SLAPolicy:
        """
        Initial policy load.

        Raises:
            ConfigurationException: If the file exists but is invalid
        """
        self._path = Path(path)
        try:
            policy = self._load_from_file(self._path)
        except (yaml.YAMLError, ValidationError, TypeError) as e:
            raise ConfigurationException(
                f"Invalid SLA policy file: {self._path}",
                {"error": str(e)}
            ) from e
        with self._lock:
            self._policy = policy
        return policy

    def _load_from_file(self, path: Path) -> SLAPolicy:
        """Load and parse the YAML policy; values missing from the file keep their defaults."""
        if not path.exists():
            logger.warning("SLA policy file not found, using defaults", extra={"path": str(path)})
            return self._defaults

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise TypeError("SLA policy file must contain a mapping")

        merged = self._defaults.model_dump()
        merged.update(data)
        return SLAPolicy(**merged)

    def reload(self) -> bool:
        """Reload policy from file."""
        if self._path is None:
            return False

        try:
            new_policy = self._load_from_file(self._path)
        except (OSError, yaml.YAMLError, ValidationError, TypeError) as e:
            logger.error(
                "Failed to reload SLA policy, keeping previous",
                extra={"path": str(self._path), "error": str(e)}
            )
            return False

        with self._lock:
            self._policy = new_policy
        logger.info(
            "SLA policy reloaded",
            extra={
                "sla_duration_seconds": new_policy.sla_duration_seconds,
                "batch_size": new_policy.batch_size
            }
        )
        return True

    def start_watching(self) -> None:
        """
        Start watching the policy file for changes.

        Skips watching if the file doesn't exist or the platform has no
        file notification support (some containers).
        """
        if self._path is None:
            raise RuntimeError("Policy not loaded. Call load() first.")

        if not self._path.exists():
            logger.info("SLA policy file doesn't exist, skipping file watch", extra={"path": str(self._path)})
            return

        try:
            self._observer = Observer()
            handler = ConfigFileHandler(self, self._path)
            self._observer.schedule(handler, str(self._path.resolve().parent), recursive=False)
            self._observer.start()
            logger.info("Started watching SLA policy file", extra={"path": str(self._path)})
        except OSError as e:
            logger.warning("File watching not available, using static policy", extra={"error": str(e)})
            self._observer = None

    def stop_watching(self) -> None:
        """Stop watching the policy file (safe to call even if not watching)."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None

    def get_policy(self) -> SLAPolicy:
        with self._lock:
            return self._policy


class WatchdogScheduler:
    """
    Wrapper for APScheduler that drives SLAWatchdog.tick on an interval.

    The first run is delayed by a random jitter so several instances
    started together do not scan in lockstep.
    """

    def __init__(
        self,
        watchdog: SLAWatchdog,
        interval_seconds: int = 60,
        jitter_min_seconds: float = 0.5,
        jitter_max_seconds: float = 2.0,
        rng: Optional[random.Random] = None
    ):
        if jitter_max_seconds < jitter_min_seconds:
            raise ValueError("jitter_max_seconds must be >= jitter_min_seconds")
        self.interval_seconds = interval_seconds
        self._watchdog = watchdog
        self._jitter = (jitter_min_seconds, jitter_max_seconds)
        self._rng = rng or random.Random()
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    def initial_delay(self) -> float:
        """Seconds before the first scheduled tick."""
        return self._rng.uniform(*self._jitter)

    async def _run_tick(self) -> None:
        try:
            await self._watchdog.tick()
        except Exception as e:
            logger.error(
                "Scheduled watchdog tick failed",
                extra={"error_type": type(e).__name__, "error": str(e)}
            )

    async def start(self) -> None:
        """Start the scheduler; must be called from within the running event loop."""
        if self._running:
            logger.warning("Watchdog scheduler already running")
            return

        delay = self.initial_delay()
        self._scheduler = AsyncIOScheduler(timezone=timezone.utc)
        self._scheduler.add_job(
            self._run_tick,
            "interval",
            seconds=self.interval_seconds,
            next_run_time=datetime.now(timezone.utc) + timedelta(seconds=delay),
            id="sla_watchdog",
            name="SLA Watchdog",
            misfire_grace_time=self.interval_seconds,
            coalesce=True,
            max_instances=1,
            replace_existing=True
        )
        self._scheduler.start()
        self._running = True

        logger.info(
            "Watchdog scheduler started",
            extra={"interval_seconds": self.interval_seconds, "initial_delay_seconds": round(delay, 3)}
        )

    async def stop(self) -> None:
        """Stop the scheduler and cancel pending advisory tasks."""
        if not self._running:
            return

        if self._scheduler:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None

        self._running = False
        await self._watchdog.aclose()
        logger.info("Watchdog scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._running
