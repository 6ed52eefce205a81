"""
Search-box session for free-text delivery locations.

One session per input field. Every keystroke starts a new query generation;
only the newest generation may publish results, so a slow response for old
input can never overwrite a newer result set.

    IDLE -> DEBOUNCING -> FETCHING -> SETTLED
    DEBOUNCING | FETCHING -> SUPERSEDED (newer input arrived)
"""

import asyncio
import uuid
from enum import Enum
from typing import Callable, Dict, List, Optional, Set

from config.settings import settings
from config.logging_config import get_logger, log_session_transition
from database.recent_selections import RecentSelectionsRepository
from delivery.classifier import DeliverabilityClassifier, DeliverabilityResult

from .geocoder import CancelToken, PhotonGeocoder
from .models import LocationOutcome, LocationSource, NotServiceable, ResolvedLocation


class SessionState(str, Enum):
    IDLE = "idle"
    DEBOUNCING = "debouncing"
    FETCHING = "fetching"
    SETTLED = "settled"
    SUPERSEDED = "superseded"


VALID_TRANSITIONS: Dict[SessionState, Set[SessionState]] = {
    SessionState.IDLE: {SessionState.DEBOUNCING, SessionState.SETTLED},
    SessionState.DEBOUNCING: {SessionState.FETCHING, SessionState.SUPERSEDED, SessionState.SETTLED},
    SessionState.FETCHING: {SessionState.SETTLED, SessionState.SUPERSEDED},
    SessionState.SETTLED: {SessionState.DEBOUNCING, SessionState.SETTLED},
    SessionState.SUPERSEDED: {SessionState.DEBOUNCING, SessionState.SETTLED},
}


def merge_results(local: List[DeliverabilityResult],
                  remote: List[DeliverabilityResult]) -> List[DeliverabilityResult]:
    """Local zone matches first, then provider results, deduplicated by display name."""
    merged: List[DeliverabilityResult] = []
    seen = set()
    for result in list(local) + list(remote):
        key = result.candidate.display_name.strip().lower()
        if key in seen:
            continue
        seen.add(key)
        merged.append(result)
    return merged


class LocationQuerySession:
    """
    Debounced, cancellable free-text search for one input field.

    Must be driven from a running event loop. ``update_query`` is synchronous:
    it aborts the previous request before scheduling the new one.
    """

    def __init__(
        self,
        geocoder: PhotonGeocoder,
        classifier: DeliverabilityClassifier,
        recent_selections: Optional[RecentSelectionsRepository] = None,
        on_results: Optional[Callable[[List[DeliverabilityResult]], None]] = None,
        intent_debounce: Optional[float] = None,
        network_debounce: Optional[float] = None,
        session_id: Optional[str] = None,
    ):
        self.geocoder = geocoder
        self.classifier = classifier
        self.recent_selections = recent_selections
        self.on_results = on_results
        self.intent_debounce = settings.intent_debounce_seconds if intent_debounce is None else intent_debounce
        self.network_debounce = settings.network_debounce_seconds if network_debounce is None else network_debounce
        self.min_query_length = settings.min_query_length
        self.session_id = session_id or uuid.uuid4().hex[:12]
        self.logger = get_logger("storefront.session", {"session_id": self.session_id})

        self.state = SessionState.IDLE
        self.generation = 0
        self.query = ""
        self.results: List[DeliverabilityResult] = []

        self._task: Optional[asyncio.Task] = None
        self._token: Optional[CancelToken] = None

    def update_query(self, query: str) -> Optional[asyncio.Task]:
        """
        Start a new query generation.

        Args:
            query (str): Current contents of the search box

        Returns:
            asyncio.Task: The debounce/fetch task, or None when the query is
            too short to search and results were cleared immediately
        """
        self.generation += 1
        generation = self.generation
        trimmed = (query or "").strip()
        self.query = trimmed

        self._abort_in_flight(generation)

        if len(trimmed) < self.min_query_length:
            self._task = None
            self._publish(generation, [])
            return None

        self._token = CancelToken()
        self._transition(SessionState.DEBOUNCING, generation)
        self._task = asyncio.get_running_loop().create_task(
            self._run(generation, trimmed, self._token)
        )
        return self._task

    async def submit(self, query: str) -> Optional[List[DeliverabilityResult]]:
        """
        Update the query and wait for its outcome.

        Returns:
            list: Published results, or None if newer input superseded this query
        """
        task = self.update_query(query)
        if task is None:
            return list(self.results)

        await asyncio.wait({task})
        if task.cancelled():
            return None
        return task.result()

    def select(self, result: DeliverabilityResult,
               source: LocationSource = LocationSource.SUGGESTION) -> LocationOutcome:
        """
        Turn a chosen suggestion into a customer-facing outcome.

        Deliverable choices are remembered in the recent-selections list.
        """
        if result.is_deliverable and result.matched_zone is not None:
            if self.recent_selections is not None:
                self.recent_selections.append(result.matched_zone.name)
            return ResolvedLocation(
                zone=result.matched_zone,
                source=source,
                point=result.candidate.point,
                distance_km=None if result.nearest_zone is None else result.distance_to_zone_km,
            )

        return NotServiceable(
            nearest_zone=result.nearest_zone,
            distance_km=result.distance_to_zone_km,
            source=source,
            point=result.candidate.point,
        )

    def close(self) -> None:
        """Abandon any outstanding work."""
        self.generation += 1
        self._abort_in_flight(self.generation)

    def is_current(self, generation: int) -> bool:
        return generation == self.generation

    async def _run(self, generation: int, query: str, token: CancelToken) -> Optional[List[DeliverabilityResult]]:
        # Intent debounce, then a courtesy delay so typing bursts don't reach the provider
        await asyncio.sleep(self.intent_debounce)
        if not self.is_current(generation):
            return None
        await asyncio.sleep(self.network_debounce)
        if not self.is_current(generation):
            return None

        self._transition(SessionState.FETCHING, generation)

        # Known zones show up while the provider is still working
        local = self.classifier.search_local(query)
        if local:
            self._publish_partial(generation, local)

        response = await self.geocoder.lookup(query, token)

        if response.is_stale or not self.is_current(generation):
            self.logger.debug(f"Discarding results for superseded query '{query}' (gen {generation})")
            return None

        merged = merge_results(local, response.results)
        self._publish(generation, merged)
        return merged

    def _abort_in_flight(self, new_generation: int) -> None:
        if self._token is not None:
            self._token.cancel()
            self._token = None

        if self._task is not None and not self._task.done():
            if self.state is SessionState.DEBOUNCING:
                # Nothing sent yet; stop the timers outright
                self._task.cancel()
            self._transition(SessionState.SUPERSEDED, new_generation - 1)
        self._task = None

    def _publish(self, generation: int, results: List[DeliverabilityResult]) -> None:
        if not self.is_current(generation):
            return
        self.results = results
        self._transition(SessionState.SETTLED, generation, {"result_count": len(results)})
        if self.on_results is not None:
            self.on_results(list(results))

    def _publish_partial(self, generation: int, results: List[DeliverabilityResult]) -> None:
        """Publish results for the current generation without settling the session."""
        if not self.is_current(generation):
            return
        self.results = results
        if self.on_results is not None:
            self.on_results(list(results))

    def _transition(self, new_state: SessionState, generation: int, details: Dict = None) -> None:
        if new_state not in VALID_TRANSITIONS[self.state]:
            self.logger.warning(f"Unexpected session transition {self.state.value} -> {new_state.value}")
        log_session_transition(self.session_id, self.state.value, new_state.value, generation, details)
        self.state = new_state
