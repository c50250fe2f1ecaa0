"""
Cancellation for in-flight builds.

A CancellationToken is created per build and handed to the commit protocol.
While a commit holds an ephemeral container, an InterruptWatcher thread waits
on the token and force-removes that container if the build gets cancelled.
The CLI routes SIGINT/SIGTERM to the token through ``cancel_on_signals``.
"""

import logging
import signal
import threading
from contextlib import contextmanager
from typing import Iterator, List, Optional, Sequence

from ..exceptions import BuildInterruptedError, RuntimeCommunicationError
from ..runtime import Runtime

logger = logging.getLogger(__name__)


class CancellationToken:
    """
    One-shot cancellation flag. ``cancel`` may be called from a signal
    handler or any thread.
    """

    def __init__(self):
        # reentrant: a signal handler may run while the main thread holds it
        self._lock = threading.RLock()
        self._cancelled = False
        self._reason: Optional[str] = None
        self._listeners: List[threading.Event] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def cancel(self, reason: str = "interrupted"):
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            self._reason = reason
            listeners = list(self._listeners)
        for event in listeners:
            event.set()

    def subscribe(self) -> threading.Event:
        """Return an event that gets set once the token is cancelled."""
        event = threading.Event()
        with self._lock:
            self._listeners.append(event)
            if self._cancelled:
                event.set()
        return event

    def unsubscribe(self, event: threading.Event):
        with self._lock:
            if event in self._listeners:
                self._listeners.remove(event)

    def raise_if_cancelled(self):
        if self._cancelled:
            raise BuildInterruptedError(f"Build {self._reason}")


class InterruptWatcher:
    """
    Context manager scoped to one commit call. On cancellation it force-removes
    ``container_id`` from a background thread; on exit the thread is stopped
    and joined so it can never fire against a later step's container.
    """

    def __init__(self, runtime: Runtime, container_id: str, token: CancellationToken):
        self.runtime = runtime
        self.container_id = container_id
        self.token = token
        self.fired = False
        self._closing = threading.Event()
        self._wake: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None

    def __enter__(self) -> "InterruptWatcher":
        self._wake = self.token.subscribe()
        self._thread = threading.Thread(
            target=self._watch,
            name=f"boxb-irq-{self.container_id[:12]}",
            daemon=True,
        )
        self._thread.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self._closing.set()
        self._wake.set()
        self._thread.join()
        self.token.unsubscribe(self._wake)
        return False

    def _watch(self):
        self._wake.wait()
        if self._closing.is_set():
            # the commit already finished; its own cleanup takes care of the container
            return
        self.fired = True
        logger.warning(f"[Interrupt] Removing intermediate container '{self.container_id[:12]}'")
        try:
            self.runtime.remove_container(self.container_id, force=True)
        except RuntimeCommunicationError as e:
            logger.error(f"[Interrupt] Could not remove container '{self.container_id[:12]}': {e}")


@contextmanager
def cancel_on_signals(
    token: CancellationToken,
    signums: Sequence[int] = (signal.SIGINT, signal.SIGTERM),
) -> Iterator[CancellationToken]:
    """
    Route termination signals to ``token`` while the block runs, then restore
    the previous handlers. A second signal falls back to KeyboardInterrupt.
    """

    def handler(signum, frame):
        name = signal.Signals(signum).name
        if token.cancelled:
            raise KeyboardInterrupt
        logger.warning(f"Received {name}, cancelling build...")
        token.cancel(f"interrupted by {name}")

    previous = {}
    try:
        for signum in signums:
            previous[signum] = signal.signal(signum, handler)
    except ValueError:
        # signal handlers can only be installed from the main thread
        logger.debug("[Interrupt] Not in main thread, signals are not routed to the build")

    try:
        yield token
    finally:
        for signum, old in previous.items():
            signal.signal(signum, old)
