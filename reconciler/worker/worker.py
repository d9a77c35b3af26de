import time
from collections.abc import Callable

from reconciler.config.settings import Settings
from reconciler.logging.logger import Log
from reconciler.sweeper.draft_sweeper import DraftSweeper
from reconciler.sweeper.session_sync import SessionSynchronizer


class SweepWorker:
    """Periodic loop: sync sessions -> sweep drafts -> sleep."""

    def __init__(
        self,
        synchronizer: SessionSynchronizer,
        sweeper: DraftSweeper,
        settings: Settings,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._synchronizer = synchronizer
        self._sweeper = sweeper
        self._settings = settings
        self._sleep = sleep

    def run(self, max_runs: int | None = None) -> None:
        """Main loop. Runs forever until interrupted.

        If max_runs is set, stop after that many sweeps (for testing).
        """
        Log.info(f"Sweep worker started, interval {self._settings.sweep_interval_seconds}s")
        runs = 0
        try:
            while True:
                self.run_once()
                runs += 1
                if max_runs is not None and runs >= max_runs:
                    break
                self._sleep(self._settings.sweep_interval_seconds)
        except KeyboardInterrupt:
            Log.info("Sweep worker shutting down gracefully")

    def run_once(self) -> bool:
        """One sweep. Session sync must succeed before anything is deleted.

        Returns False if the run was abandoned because of an error.
        """
        try:
            self._synchronizer.sync()
        except Exception as exc:
            Log.warning(f"Session sync failed, skipping deletion this run: {exc}")
            return False
        try:
            self._sweeper.sweep()
        except Exception as exc:
            Log.warning(f"Draft sweep failed, will retry next run: {exc}")
            return False
        return True
