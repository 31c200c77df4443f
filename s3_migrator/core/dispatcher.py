"""Bounded dispatch of transfer items.

Each admitted item runs on its own thread. Admission blocks on a bounded
semaphore while ``max_in_flight`` transfers are running (0 means no cap).
The in-flight counter is only touched under a lock, and the slot is
released in a ``finally`` so a failing worker never keeps it.
:meth:`BoundedDispatcher.run` returns only after every launched worker has
finished.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Iterable

from s3_migrator.types import TransferItem, TransferOutcome, TransferStatus
from s3_migrator.utils.logging import log_with_context


class DispatchState:
    """In-flight accounting and completion barrier shared by one run's workers."""

    def __init__(self, max_in_flight: int = 0) -> None:
        if max_in_flight < 0:
            raise ValueError("max_in_flight must be >= 0")
        self.max_in_flight = max_in_flight
        self._slots = (
            threading.BoundedSemaphore(max_in_flight) if max_in_flight > 0 else None
        )
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._in_flight = 0
        self._peak = 0
        self._launched = 0
        self._completed = 0

    @property
    def in_flight(self) -> int:
        with self._lock:
            return self._in_flight

    @property
    def peak(self) -> int:
        """Highest number of simultaneously held slots seen so far."""
        with self._lock:
            return self._peak

    @property
    def launched(self) -> int:
        with self._lock:
            return self._launched

    @property
    def completed(self) -> int:
        with self._lock:
            return self._completed

    def acquire(self) -> None:
        """Block until a slot is free, then claim it."""
        if self._slots is not None:
            self._slots.acquire()
        with self._lock:
            self._in_flight += 1
            self._launched += 1
            self._peak = max(self._peak, self._in_flight)

    def release(self) -> None:
        """Give a slot back. Called exactly once per successful acquire."""
        with self._lock:
            self._in_flight -= 1
            self._completed += 1
            if self._in_flight == 0:
                self._idle.notify_all()
        # Counter drops before the slot frees, so it can never exceed the cap
        if self._slots is not None:
            self._slots.release()

    def wait_idle(self) -> None:
        """Block until no slot is held."""
        with self._idle:
            while self._in_flight > 0:
                self._idle.wait()


class BoundedDispatcher:
    """Runs a worker function over transfer items with bounded concurrency."""

    def __init__(
        self,
        worker: Callable[[TransferItem], TransferOutcome],
        max_concurrency: int = 0,
        on_complete: Callable[[TransferOutcome], None] | None = None,
    ) -> None:
        self.worker = worker
        self.max_concurrency = max_concurrency
        self.on_complete = on_complete
        self.state = DispatchState(max_concurrency)
        self._outcomes: list[TransferOutcome] = []
        self._outcomes_lock = threading.Lock()

    def run(self, items: Iterable[TransferItem]) -> list[TransferOutcome]:
        """Dispatch every item and wait for all of them to finish.

        Items are admitted in iteration order; completion order is not
        guaranteed.

        Returns:
            One outcome per dispatched item, in completion order.
        """
        try:
            for item in items:
                self.state.acquire()
                item.dispatch_state = self.state
                thread = threading.Thread(
                    target=self._run_item,
                    args=(item,),
                    name=f"transfer-{self.state.launched}",
                )
                try:
                    thread.start()
                except RuntimeError:
                    item.dispatch_state = None
                    self.state.release()
                    raise
        finally:
            # Hard barrier, also when admission stops early on an error
            self.state.wait_idle()

        with self._outcomes_lock:
            return list(self._outcomes)

    def _run_item(self, item: TransferItem) -> None:
        state = item.dispatch_state
        try:
            try:
                outcome = self.worker(item)
            except Exception as e:
                # Workers report failures as outcomes; anything that escapes
                # still only fails this item.
                log_with_context(
                    logging.ERROR,
                    f"Unexpected error migrating {item.source_uri}: {e}",
                    bucket=item.bucket,
                    key=item.key,
                    exc_info=True,
                )
                outcome = TransferOutcome(
                    bucket=item.bucket,
                    key=item.key,
                    remote_path=item.remote_path,
                    status=TransferStatus.FAILED,
                    error=str(e),
                )
            with self._outcomes_lock:
                self._outcomes.append(outcome)
                if self.on_complete is not None:
                    try:
                        self.on_complete(outcome)
                    except Exception as e:
                        log_with_context(
                            logging.WARNING, f"Completion callback failed: {e}"
                        )
        finally:
            if state is not None:
                state.release()
