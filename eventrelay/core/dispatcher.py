# ==============================================================================
# Batch Dispatcher
# ==============================================================================
"""
One delivery cycle: peek → encode → send → remove or retain.

Each batch is read from the queue without removing it. Only after the
transport reports success are exactly the delivered sequences removed, so a
crash or a failed request leaves the batch in place for the next cycle
(at-least-once delivery, oldest records first, no reordering).

Request shape per batch:
    1 record                        → single request
    >1 records, token configured    → one bulk request
    >1 records, no token            → sequential single requests

Debug mode never calls the transport: records are logged on the
"eventrelay.dispatch" logger and then removed as if delivered.

Usage:
    dispatcher = BatchDispatcher(store, transport, encoder, events_per_request=20)
    result = dispatcher.run_cycle()
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum

from eventrelay.base.queue_store import QueueStore
from eventrelay.base.transport import Transport, TransportError
from eventrelay.core.encoding import HitEncoder
from eventrelay.core.models import QueueRecord

logger = logging.getLogger(__name__)

# Side channel for debug mode
debug_logger = logging.getLogger("eventrelay.dispatch")


class DrainPolicy(str, Enum):
    """How many batches one cycle may send."""

    DRAIN = "drain"  # keep sending until the queue is empty
    SINGLE_BATCH = "single"  # one batch per cycle


@dataclass
class DispatchResult:
    """Outcome of one dispatch cycle."""

    delivered: int = 0
    requests: int = 0
    batches: int = 0
    failed: bool = False
    remaining: int = 0


class BatchDispatcher:
    """
    Runs dispatch cycles against a queue store and a transport.

    Not thread-safe on its own: the DispatchScheduler guarantees that at
    most one cycle runs at a time.
    """

    def __init__(
        self,
        store: QueueStore,
        transport: Transport,
        encoder: HitEncoder,
        events_per_request: int = 20,
        debug: bool = False,
        drain_policy: DrainPolicy = DrainPolicy.DRAIN,
        max_batches_per_cycle: int | None = None,
    ):
        """
        Args:
            store: Queue store to read from and remove delivered records
            transport: Delivers encoded requests
            encoder: Builds single and bulk requests
            events_per_request: Batch size read from the queue
            debug: Log records instead of sending them
            drain_policy: Keep draining within a cycle or stop after one batch
            max_batches_per_cycle: Optional cap on batches per cycle
        """
        if events_per_request < 1:
            raise ValueError(f"events_per_request must be positive, got {events_per_request}")

        self._store = store
        self._transport = transport
        self._encoder = encoder
        self.events_per_request = events_per_request
        self.debug = debug
        self.drain_policy = DrainPolicy(drain_policy)
        self.max_batches_per_cycle = max_batches_per_cycle

        # Cumulative stats (lifetime of this dispatcher)
        self._total_cycles = 0
        self._total_delivered = 0
        self._total_requests = 0
        self._total_failures = 0
        self._start_time = time.monotonic()
        self.last_result: DispatchResult | None = None

    # ==========================================================================
    # Cycle
    # ==========================================================================

    def run_cycle(self) -> DispatchResult:
        """
        Run one dispatch cycle.

        Never raises: transport and store failures end the cycle and are
        reported through `DispatchResult.failed`.
        """
        result = DispatchResult()
        t0 = time.monotonic()

        while not self._cycle_cap_reached(result):
            try:
                records = self._store.peek_batch(self.events_per_request)
            except Exception as e:
                logger.exception("Failed to read batch from queue: %s", e)
                result.failed = True
                break

            if not records:
                break

            result.batches += 1
            if not self._deliver(records, result):
                result.failed = True
                break

            if self.drain_policy is DrainPolicy.SINGLE_BATCH:
                break

        try:
            result.remaining = self._store.count()
        except Exception as e:
            logger.warning("Could not count queued events: %s", e)

        elapsed_ms = (time.monotonic() - t0) * 1000
        self._total_cycles += 1
        self._total_delivered += result.delivered
        self._total_requests += result.requests
        if result.failed:
            self._total_failures += 1

        if result.batches:
            logger.info(
                "Dispatch: %d delivered in %d requests (%d batches) | remaining=%d | "
                "failed=%s | total=%.0fms",
                result.delivered,
                result.requests,
                result.batches,
                result.remaining,
                result.failed,
                elapsed_ms,
            )
        else:
            logger.debug("Dispatch: queue empty")

        self.last_result = result
        return result

    def _cycle_cap_reached(self, result: DispatchResult) -> bool:
        return (
            self.max_batches_per_cycle is not None
            and result.batches >= self.max_batches_per_cycle
        )

    # ==========================================================================
    # Batch delivery
    # ==========================================================================

    def _deliver(self, records: list[QueueRecord], result: DispatchResult) -> bool:
        """Deliver one batch. Returns True if every record was delivered."""
        if self.debug:
            for record in records:
                params = self._encoder.encode_hit(record.event)
                params.pop("token_auth", None)
                debug_logger.info("Debug dispatch #%d: %s", record.sequence, params)
            return self._confirm([r.sequence for r in records], result)

        if len(records) == 1:
            return self._send(self._encoder.single(records[0]), result)

        if self._encoder.supports_bulk:
            return self._send(self._encoder.bulk(records), result)

        # No token: bulk mode unavailable, send one by one
        for record in records:
            if not self._send(self._encoder.single(record), result):
                return False
        return True

    def _send(self, request, result: DispatchResult) -> bool:
        result.requests += 1
        try:
            self._transport.send(request)
        except TransportError as e:
            logger.warning(
                "Delivery failed for %d events, keeping them queued: %s",
                len(request.sequences),
                e,
            )
            return False
        return self._confirm(list(request.sequences), result)

    def _confirm(self, sequences: list[int], result: DispatchResult) -> bool:
        try:
            self._store.remove_batch(sequences)
        except Exception as e:
            # Records stay queued and will be sent again (at-least-once)
            logger.exception("Failed to remove %d delivered events: %s", len(sequences), e)
            return False
        result.delivered += len(sequences)
        return True

    # ==========================================================================
    # Summary
    # ==========================================================================

    def log_final_summary(self) -> None:
        """Log lifetime totals. Called when the tracker shuts down."""
        total_elapsed = time.monotonic() - self._start_time
        if self._total_cycles == 0:
            logger.info("Final: no dispatch cycles run (%.1fs elapsed)", total_elapsed)
            return

        logger.info(
            "Final: %s events delivered in %d requests over %d cycles (%d failed) in %.1fs",
            f"{self._total_delivered:,}",
            self._total_requests,
            self._total_cycles,
            self._total_failures,
            total_elapsed,
        )
