# =======================================================================================
# campus_access/workers/expiry_worker.py - Background Visitor Expiry Sweep
# =======================================================================================
import threading
from typing import Optional
from ..config import Config, config
from ..logging_config import get_logger
from ..services.visitor_expirer import VisitorExpirer

logger = get_logger(__name__)


class ExpiryWorker:
    """Runs VisitorExpirer.sweep() on a fixed interval in a daemon thread."""

    def __init__(self, expirer: VisitorExpirer, settings: Config = config):
        self.expirer = expirer
        self.settings = settings
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # ------------------------------------------------------------------
    # Start / Stop
    # ------------------------------------------------------------------
    def start(self) -> bool:
        """Start the sweep loop; returns False when disabled by configuration."""
        if not self._should_start():
            return False

        self._stop.clear()
        self._thread = threading.Thread(target=self._run_loop, name="expiry-sweep", daemon=True)
        self._thread.start()
        logger.info("Expiry worker started (every %ss)", self.settings.EXPIRY_SWEEP_INTERVAL_SECONDS)
        return True

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _should_start(self) -> bool:
        if self.settings.EXPIRY_SWEEP_INTERVAL_SECONDS <= 0:
            logger.debug("EXPIRY_SWEEP_INTERVAL_SECONDS not set; skipping expiry worker")
            return False
        if self.running:
            return False
        return True

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------
    def run_once(self):
        """One sweep. A failing sweep is logged and the loop carries on."""
        try:
            return self.expirer.sweep()
        except Exception:
            logger.exception("Expiry sweep failed; retrying next interval")
            return None

    def _run_loop(self):
        interval = self.settings.EXPIRY_SWEEP_INTERVAL_SECONDS
        while not self._stop.wait(interval):
            self.run_once()
