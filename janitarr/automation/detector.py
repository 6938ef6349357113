"""
Detector for Janitarr.
Polls every enabled server concurrently for missing and cutoff-unmet items.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, Future, wait, FIRST_COMPLETED
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from ..context import Context
from ..models import DetectionResult, ServerRef


DEFAULT_DETECTION_TIMEOUT = 15.0


@dataclass
class DetectionSummary:
    """Totals across one cycle's detection results."""
    total_missing: int = 0
    total_cutoff: int = 0
    success_count: int = 0
    failure_count: int = 0


def summarize(results: Dict[str, DetectionResult]) -> DetectionSummary:
    summary = DetectionSummary()
    for result in results.values():
        if result.ok:
            summary.success_count += 1
            summary.total_missing += len(result.missing_items)
            summary.total_cutoff += len(result.cutoff_items)
        else:
            summary.failure_count += 1
    return summary


class Detector:
    """
    Concurrent per-server detection with partial-failure isolation.

    Each server gets its own task and its own deadline. A failing or slow
    server only ever affects its own DetectionResult; every enabled server
    passed in gets exactly one result back, in input order.
    """

    def __init__(self, client_factory: Callable, logger=None,
                 timeout: float = DEFAULT_DETECTION_TIMEOUT):
        if client_factory is None:
            raise ValueError("Detector requires a client factory")
        self.client_factory = client_factory
        self.timeout = timeout
        self.log = logger.get_logger('detector') if logger else logging.getLogger('janitarr.detector')

    def detect_all(self, ctx: Context, servers: List[ServerRef]) -> Dict[str, DetectionResult]:
        """Detect on all enabled servers; returns {server_id: DetectionResult}."""
        enabled = [s for s in servers if s.enabled]
        results: Dict[str, Optional[DetectionResult]] = {s.id: None for s in enabled}
        if not enabled:
            return {}

        server_ctxs = {s.id: ctx.with_timeout(self.timeout) for s in enabled}
        executor = ThreadPoolExecutor(max_workers=len(enabled), thread_name_prefix='detect')
        try:
            futures: Dict[Future, ServerRef] = {
                executor.submit(self._detect_server, server_ctxs[s.id], s): s for s in enabled
            }
            pending = set(futures)
            while pending:
                if ctx.cancelled and not ctx.expired:
                    break
                done, pending = wait(pending, timeout=Context.POLL_INTERVAL, return_when=FIRST_COMPLETED)
                for future in done:
                    server = futures[future]
                    results[server.id] = future.result()
                for future in list(pending):
                    server = futures[future]
                    if server_ctxs[server.id].expired:
                        pending.discard(future)
                        results[server.id] = DetectionResult(
                            server=server, error=f"detection timed out after {self.timeout:g}s")

            for future in pending:
                server = futures[future]
                results[server.id] = DetectionResult(server=server, error="detection cancelled")
        finally:
            # Workers stop at their next context check; none outlives this call
            for server_ctx in server_ctxs.values():
                server_ctx.cancel()
            executor.shutdown(wait=True, cancel_futures=True)

        for result in results.values():
            if result.ok:
                self.log.info(f"Detection complete on {result.server.name}: "
                              f"{len(result.missing_items)} missing, {len(result.cutoff_items)} cutoff unmet")
            else:
                self.log.warning(f"Detection failed on {result.server.name}: {result.error}")
        return results

    def _detect_server(self, ctx: Context, server: ServerRef) -> DetectionResult:
        """Fetch missing then cutoff-unmet items from one server."""
        result = DetectionResult(server=server)
        try:
            client = self.client_factory(server)
        except Exception as e:
            result.error = f"client setup failed: {e}"
            return result

        stage = 'missing'
        try:
            result.missing_items = list(client.get_missing(ctx))
            stage = 'cutoff'
            result.cutoff_items = list(client.get_cutoff_unmet(ctx))
        except Exception as e:
            result.missing_items, result.cutoff_items = [], []
            result.error = f"{stage} detection failed: {e}"
        return result
