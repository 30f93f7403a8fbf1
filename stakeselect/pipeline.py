"""
Debounced query pipeline.

Turns a stream of input events into at most one remote lookup per quiet
period. Each input cancels the armed timer before arming a new one, so
only the last input in a burst ever reaches the search service.

Lookups run the blocking client in a worker thread. Every fired lookup
gets a generation number; a completion that is no longer the latest
issued is dropped, so a slow superseded search cannot overwrite the
results of a newer one.
"""

import asyncio
from typing import Callable, List, Optional, Set

from .client import SearchClient
from .config import QUIET_PERIOD
from .logger import StructuredLogger, get_logger
from .models import StakeholderRef
from .search import ENTITY_NAMESPACE, MATCH_MODE, is_blank, normalize_query


class DebouncedLookup:
    """Holds at most one pending timer; scheduling always replaces it."""

    def __init__(
        self,
        quiet_period: float,
        on_fire: Callable[[str], None],
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        self.quiet_period = quiet_period
        self._on_fire = on_fire
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def when(self) -> Optional[float]:
        """Loop time at which the pending timer fires, if one is armed."""
        return self._handle.when() if self._handle is not None else None

    def schedule(self, text: str) -> None:
        self.cancel()
        loop = self._loop or asyncio.get_running_loop()
        self._handle = loop.call_later(self.quiet_period, self._fire, text)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self, text: str) -> None:
        self._handle = None
        self._on_fire(text)


class QueryPipeline:
    """Debounces input and feeds lookup results to ``on_results``.

    ``on_results`` is only ever called with the results of the most
    recently issued lookup, and never after ``close()``.
    """

    def __init__(
        self,
        client: Optional[SearchClient],
        on_results: Callable[[List[StakeholderRef]], None],
        *,
        quiet_period: float = QUIET_PERIOD,
        entity: str = ENTITY_NAMESPACE,
        match_mode: str = MATCH_MODE,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        logger: Optional[StructuredLogger] = None,
    ):
        self.client = client
        self.entity = entity
        self.match_mode = match_mode
        self.logger = logger or get_logger()
        self._on_results = on_results
        self._debouncer = DebouncedLookup(quiet_period, self._fire, loop=loop)
        self._generation = 0
        self._tasks: Set[asyncio.Task] = set()
        self._closed = False

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def idle(self) -> bool:
        return not self._debouncer.pending and not self._tasks

    def submit(self, text: str) -> None:
        """Arm a lookup for ``text``, superseding any armed one."""
        self.logger.record_lookup_scheduled()
        self._debouncer.schedule(text)

    def close(self) -> None:
        """Cancel the armed timer; in-flight lookups finish but are ignored."""
        self._closed = True
        self._debouncer.cancel()

    async def wait_idle(self) -> None:
        """Wait until no timer is armed and no lookup is in flight."""
        loop = asyncio.get_running_loop()
        while not self.idle:
            when = self._debouncer.when()
            if when is not None:
                await asyncio.sleep(max(0.0, when - loop.time()))
                await asyncio.sleep(0)
            if self._tasks:
                await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _fire(self, text: str) -> None:
        if self._closed:
            return
        if is_blank(text):
            self.logger.record_lookup_skipped()
            self.logger.debug("Lookup skipped: blank query")
            return
        if self.client is None:
            self.logger.record_lookup_skipped()
            self.logger.debug("Lookup skipped: search client unavailable")
            return

        self._generation += 1
        task = asyncio.get_running_loop().create_task(
            self._lookup(normalize_query(text), self._generation)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _lookup(self, query: str, generation: int) -> None:
        if self._closed:
            self.logger.record_lookup_skipped()
            self.logger.debug("Lookup skipped: pipeline closed", generation=generation)
            return
        self.logger.record_lookup_executed()
        self.logger.debug("Lookup started", query=query, generation=generation)
        try:
            results = await asyncio.to_thread(
                self.client.search, self.entity, self.match_mode, query
            )
            candidates = list(results)
        except Exception as e:
            self.logger.record_lookup_failure(type(e).__name__)
            self.logger.error(
                "Error fetching stakeholders",
                query=query,
                generation=generation,
                error=str(e),
                error_type=type(e).__name__,
            )
            return

        if self._closed:
            self.logger.debug("Lookup finished after close; ignored", generation=generation)
            return
        if generation != self._generation:
            self.logger.record_lookup_discarded()
            self.logger.debug(
                "Stale lookup discarded",
                generation=generation,
                latest=self._generation,
            )
            return

        self.logger.debug("Lookup finished", query=query, results=len(candidates))
        self._on_results(candidates)
