import threading

from menugen.config import settings
from menugen.jobs.store import JobStore
from menugen.logging import get_logger

logger = get_logger(__name__)


class JobReaper:
    """Daemon thread that drops expired job records every `interval` seconds."""

    def __init__(self, store: JobStore, interval_seconds: float | None = None):
        self.store = store
        self.interval = interval_seconds or settings.job_reap_interval_seconds
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._loop, name="menugen-reaper", daemon=True)
        self._thread.start()
        logger.info("reaper.started interval_s=%s", self.interval)

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=self.interval)
            self._thread = None

    def _loop(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self.store.reap()
            except Exception as exc:
                logger.warning("reaper.failed error=%s", exc)
