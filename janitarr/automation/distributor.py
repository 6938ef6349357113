"""
Fair-share distributor for Janitarr.
Splits each category's search budget round-robin across servers, then
executes (or simulates) the searches.
"""

import logging
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from ..context import Context, CancelledError
from ..models import (
    Assignment, Category, ExecutionSummary, MediaItem, SearchOutcome, ServerRef,
)
from ..clients.base import RateLimitError


# Consecutive 429s before a server is skipped for the rest of the run
RATE_LIMIT_STRIKES = 3
DEFAULT_SEARCH_DELAY = 0.1


def distribute(category: Category, limit: int,
               candidates_by_server: Sequence[Tuple[ServerRef, Sequence[MediaItem]]]) -> List[Assignment]:
    """
    Round-robin allocation of `limit` searches across servers.

    Servers are visited in the order given. Each pick takes the next unused
    item from the first server at or after the rotation pointer that still
    has one, then moves the pointer past that server. Servers whose type
    does not serve `category` are ignored.

    With servers A (50 items) and B (30 items) and a limit of 10, the
    result alternates A, B, A, B, ... for five picks each.
    """
    if limit <= 0:
        return []

    servers = [(s, items) for s, items in candidates_by_server
               if s.type == category.server_type and items]
    if not servers:
        return []

    cursors = [0] * len(servers)
    assignments: List[Assignment] = []
    remaining = sum(len(items) for _, items in servers)
    pointer = 0

    while len(assignments) < limit and remaining > 0:
        for step in range(len(servers)):
            index = (pointer + step) % len(servers)
            server, items = servers[index]
            if cursors[index] < len(items):
                assignments.append(Assignment(category=category, server=server,
                                              item=items[cursors[index]]))
                cursors[index] += 1
                remaining -= 1
                pointer = (index + 1) % len(servers)
                break
    return assignments


class FairShareDistributor:
    """Plans and executes searches for one category at a time."""

    def __init__(self, client_factory: Callable, logger=None, metrics=None,
                 search_delay: float = DEFAULT_SEARCH_DELAY):
        if client_factory is None:
            raise ValueError("FairShareDistributor requires a client factory")
        self.client_factory = client_factory
        self.metrics = metrics
        self.search_delay = search_delay
        self.log = logger.get_logger('distributor') if logger else logging.getLogger('janitarr.distributor')

    def distribute(self, category: Category, limit: int,
                   candidates_by_server: Sequence[Tuple[ServerRef, Sequence[MediaItem]]]) -> List[Assignment]:
        assignments = distribute(category, limit, candidates_by_server)
        self.log.debug(f"{category.label}: {len(assignments)} assignments (limit {limit})")
        return assignments

    def execute(self, assignments: List[Assignment], dry_run: bool = False,
                ctx: Optional[Context] = None) -> ExecutionSummary:
        """
        Trigger a search for each assignment in order.

        Individual failures are recorded and never stop the run. A server
        that rate-limits RATE_LIMIT_STRIKES times in a row gets its remaining
        assignments failed without further calls. Once `ctx` is cancelled
        the rest are recorded as skipped.
        """
        ctx = ctx or Context.background()
        summary = ExecutionSummary()
        strikes: Dict[str, int] = {}
        clients: Dict[str, object] = {}
        first_call = True

        for assignment in assignments:
            server = assignment.server

            if ctx.cancelled:
                summary.record(SearchOutcome(assignment, success=False,
                                             error="cancelled", skipped=True))
                continue

            if dry_run:
                summary.record(SearchOutcome(assignment, success=True))
                continue

            if strikes.get(server.id, 0) >= RATE_LIMIT_STRIKES:
                self._record(summary, SearchOutcome(assignment, success=False, error="rate limited"))
                continue

            if not first_call and self.search_delay > 0:
                if ctx.wait(self.search_delay):
                    summary.record(SearchOutcome(assignment, success=False,
                                                 error="cancelled", skipped=True))
                    continue
            first_call = False

            try:
                client = clients.get(server.id)
                if client is None:
                    client = clients[server.id] = self.client_factory(server)
                client.trigger_search(assignment.item, ctx)
            except CancelledError:
                summary.record(SearchOutcome(assignment, success=False,
                                             error="cancelled", skipped=True))
                continue
            except RateLimitError as e:
                strikes[server.id] = strikes.get(server.id, 0) + 1
                self._record(summary, SearchOutcome(assignment, success=False, error=str(e)))
                continue
            except Exception as e:
                strikes[server.id] = 0
                self._record(summary, SearchOutcome(assignment, success=False, error=str(e)))
                continue

            strikes[server.id] = 0
            self._record(summary, SearchOutcome(assignment, success=True))

        return summary

    def _record(self, summary: ExecutionSummary, outcome: SearchOutcome):
        summary.record(outcome)
        assignment = outcome.assignment
        if outcome.success:
            self.log.debug(f"Searched {assignment.item.label} on {assignment.server.name}")
        else:
            self.log.warning(f"Search failed for {assignment.item.label} on "
                             f"{assignment.server.name}: {outcome.error}")
        if self.metrics is not None:
            self.metrics.increment_searches(assignment.server.type.value,
                                            assignment.category.kind,
                                            not outcome.success)
