"""
In-process ingestion queue.

Inbound notifications (product changed, order placed) are acknowledged
immediately and processed later, one at a time, by a single worker thread.
Running one pipeline at a time keeps product updates and order processing
from interleaving their catalog writes.
"""

import logging
import queue
import threading
from collections.abc import Callable
from dataclasses import dataclass, field

from django.db import close_old_connections

logger = logging.getLogger(__name__)

PRODUCT_CHANGED = "product_changed"
ORDER_PLACED = "order_placed"

_STOP = object()


@dataclass(frozen=True)
class Event:
    """An inbound notification waiting to be processed."""

    kind: str
    product_id: int | None = None
    lines: tuple = field(default_factory=tuple)

    @classmethod
    def product_changed(cls, product_id: int) -> "Event":
        return cls(kind=PRODUCT_CHANGED, product_id=int(product_id))

    @classmethod
    def order_placed(cls, lines) -> "Event":
        return cls(kind=ORDER_PLACED, lines=tuple(lines))


Handler = Callable[[Event], object]


class IngestionQueue:
    """
    FIFO of (event, handler) pairs drained by one daemon worker thread.

    A product_changed event for a product that already has one waiting is
    dropped: the waiting item will read the latest state anyway. Once the
    worker picks an item up, a new change for the same product is queued
    again.

    With eager=True handlers run inline in put().
    """

    def __init__(self, eager: bool = False):
        self.eager = eager
        self._queue: queue.Queue = queue.Queue()
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._unfinished = 0
        self._pending_products: set[int] = set()
        self._worker: threading.Thread | None = None
        self._stopping = False

    def put(self, event: Event, handler: Handler) -> bool:
        """
        Accept an event.

        Returns:
            False if the event was coalesced into one already waiting.
        """
        if self.eager:
            self._run(event, handler)
            return True

        with self._lock:
            if event.kind == PRODUCT_CHANGED:
                if event.product_id in self._pending_products:
                    logger.debug("Product %s already queued, coalescing", event.product_id)
                    return False
                self._pending_products.add(event.product_id)
            self._unfinished += 1
            self._ensure_worker()
        self._queue.put((event, handler))
        return True

    def pending(self) -> int:
        """Items accepted but not finished yet."""
        with self._lock:
            return self._unfinished

    def join(self, timeout: float | None = None) -> bool:
        """
        Wait until every accepted item has been processed.

        Returns:
            False if the timeout expired first.
        """
        with self._idle:
            return self._idle.wait_for(lambda: self._unfinished == 0, timeout)

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Let the worker finish what is queued, then end it.

        Items accepted while the worker is stopping are left for a fresh
        worker started once the old one has exited.
        """
        with self._lock:
            worker = self._worker
            if worker is None or not worker.is_alive():
                return
            first = not self._stopping
            self._stopping = True
        if first:
            self._queue.put(_STOP)
        worker.join(timeout)
        if worker.is_alive():
            logger.warning("Ingestion worker did not stop within %s seconds", timeout)
            return
        with self._lock:
            if self._worker is not worker:
                return
            self._worker = None
            self._stopping = False
            if self._unfinished:
                self._ensure_worker()

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------

    def _ensure_worker(self) -> None:
        # Caller holds self._lock. A stopping worker stays in self._worker
        # until it has exited, so two workers never share the queue.
        if self._worker is not None and self._worker.is_alive():
            return
        self._stopping = False
        self._worker = threading.Thread(
            target=self._work, name="bundleman-ingestion", daemon=True
        )
        self._worker.start()

    def _work(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                return
            event, handler = item
            with self._lock:
                if event.kind == PRODUCT_CHANGED:
                    self._pending_products.discard(event.product_id)
            try:
                self._run(event, handler)
            finally:
                close_old_connections()
                with self._idle:
                    self._unfinished -= 1
                    if self._unfinished == 0:
                        self._idle.notify_all()

    def _run(self, event: Event, handler: Handler) -> None:
        try:
            handler(event)
        except Exception:
            logger.exception("Handler for %s event failed: %s", event.kind, event)
