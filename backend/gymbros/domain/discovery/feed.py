"""Candidate queue, cursor and paging for one discovery session."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Optional

from gymbros.domain.discovery.exceptions import NetworkError, StaleGenerationError
from gymbros.domain.discovery.ports import RecommendationSource
from gymbros.domain.discovery.schemas import (
	CompatibilityBreakdown,
	EmptyReason,
	EmptyState,
	FeedFilters,
	FeedState,
	Profile,
)
from gymbros.domain.discovery.scoring import CompatibilityScorer
from gymbros.obs import metrics as obs_metrics
from gymbros.settings import settings

logger = logging.getLogger(__name__)

EMPTY_STATES: dict[EmptyReason, EmptyState] = {
	EmptyReason.LOADING: EmptyState(
		reason=EmptyReason.LOADING,
		title="Finding gym partners",
		description="This may take a moment",
	),
	EmptyReason.CONSUMED: EmptyState(
		reason=EmptyReason.CONSUMED,
		title="No more profiles",
		description="We couldn't find any more gym partners matching your criteria",
		action="refresh",
		secondary_action="adjust_filters",
	),
	EmptyReason.EXHAUSTED: EmptyState(
		reason=EmptyReason.EXHAUSTED,
		title="No gym partners yet",
		description="Nobody matches your filters right now. Try widening your search.",
		action="adjust_filters",
	),
	EmptyReason.NETWORK_ERROR: EmptyState(
		reason=EmptyReason.NETWORK_ERROR,
		title="Connection issue",
		description="Check your internet connection and try again",
		action="retry",
	),
}

_SHOWING_STATES = (FeedState.READY, FeedState.REFRESHING)


class DiscoveryFeedController:
	"""Owns the ordered candidate queue and the cursor of the active card.

	Every first-page fetch starts a new generation; page responses that come back
	tagged with an older generation are dropped. Only one first-page fetch and one
	next-page fetch can be outstanding at a time.
	"""

	def __init__(
		self,
		source: RecommendationSource,
		*,
		viewer: Optional[Profile] = None,
		scorer: Optional[CompatibilityScorer] = None,
		filters: Optional[FeedFilters] = None,
		page_size: Optional[int] = None,
		prefetch_remaining: Optional[int] = None,
		rank_batches: Optional[bool] = None,
		clock: Callable[[], float] = time.monotonic,
	) -> None:
		self.source = source
		self.viewer = viewer
		self.scorer = scorer or CompatibilityScorer()
		self.filters = filters
		self.page_size = page_size or settings.feed_page_size
		self.prefetch_remaining = prefetch_remaining if prefetch_remaining is not None else settings.feed_prefetch_remaining
		self.rank_batches = rank_batches if rank_batches is not None else settings.feed_rank_batches
		self._clock = clock

		self.queue: list[Profile] = []
		self.cursor = 0
		self.state = FeedState.IDLE
		self.has_more = False
		self.generation = 0
		self.prefetch_failed = False
		self.last_error: Optional[NetworkError] = None

		self._fetched = 0
		self._seen_ids: set[str] = set()
		self._active_since = clock()
		self._reload_task: Optional[asyncio.Task] = None
		self._more_task: Optional[asyncio.Task] = None

	# --- queries -----------------------------------------------------------------

	def active_candidate(self) -> Optional[Profile]:
		if self.state not in _SHOWING_STATES or self.cursor >= len(self.queue):
			return None
		return self.queue[self.cursor]

	def breakdown_for(self, profile: Profile) -> Optional[CompatibilityBreakdown]:
		if self.viewer is None:
			return None
		return self.scorer.score(self.viewer, profile)

	def active_breakdown(self) -> Optional[CompatibilityBreakdown]:
		candidate = self.active_candidate()
		if candidate is None:
			return None
		return self.breakdown_for(candidate)

	def remaining(self) -> int:
		return len(self.queue) - self.cursor

	def active_for_ms(self) -> int:
		return max(0, int((self._clock() - self._active_since) * 1000))

	def is_loading(self) -> bool:
		return self.state in (FeedState.LOADING, FeedState.REFRESHING) or self.is_fetching_more()

	def is_fetching_more(self) -> bool:
		return self._more_task is not None and not self._more_task.done()

	def is_reloading(self) -> bool:
		return self._reload_task is not None and not self._reload_task.done()

	def is_showing(self) -> bool:
		return self.state in _SHOWING_STATES

	def is_exhausted(self) -> bool:
		return self.state is FeedState.EXHAUSTED

	def is_consumed(self) -> bool:
		return self.state is FeedState.READY and self.cursor >= len(self.queue) and not self.is_fetching_more()

	def has_network_error(self) -> bool:
		return self.state is FeedState.NETWORK_ERROR

	def empty_reason(self) -> Optional[EmptyReason]:
		if self.state in (FeedState.IDLE, FeedState.LOADING):
			return EmptyReason.LOADING
		if self.state is FeedState.NETWORK_ERROR:
			return EmptyReason.NETWORK_ERROR
		if self.state is FeedState.EXHAUSTED:
			return EmptyReason.EXHAUSTED
		if self.cursor < len(self.queue):
			return None
		if self.is_fetching_more():
			return EmptyReason.LOADING
		return EmptyReason.CONSUMED

	def empty_state(self) -> Optional[EmptyState]:
		reason = self.empty_reason()
		return EMPTY_STATES[reason] if reason is not None else None

	# --- first page --------------------------------------------------------------

	async def load_initial(self) -> None:
		"""Replace the queue with the first page and reset the cursor."""
		await self._reload("initial")

	async def refresh(self) -> None:
		"""Reload from the first page; overlapping calls share one fetch."""
		await self._reload("refresh")

	async def _reload(self, kind: str) -> None:
		if self._reload_task is None or self._reload_task.done():
			self._reload_task = asyncio.create_task(self._fetch_first_page(kind), name=f"gymbros-feed-{kind}")
		else:
			logger.debug("feed %s collapsed into in-flight reload", kind)
		await asyncio.shield(self._reload_task)

	async def _fetch_first_page(self, kind: str) -> None:
		self.generation += 1
		generation = self.generation
		# Abandon any next-page fetch from the previous generation
		self._more_task = None
		self._fetched = 0
		showing = self.state in _SHOWING_STATES and self.queue
		self.state = FeedState.REFRESHING if kind == "refresh" and showing else FeedState.LOADING
		try:
			batch = await self.source.fetch_candidates(self.filters, skip=0, limit=self.page_size)
		except Exception as exc:
			if generation != self.generation:
				return
			obs_metrics.inc_feed_fetch(kind, "error")
			self.last_error = NetworkError(during=kind)
			self.state = FeedState.NETWORK_ERROR
			logger.warning("candidate fetch failed", extra={"kind": kind, "error": type(exc).__name__})
			return
		try:
			self._check_generation(generation)
		except StaleGenerationError as exc:
			obs_metrics.inc_feed_fetch(kind, "stale")
			logger.debug("discarding %s page: %s", kind, exc.reason)
			return

		obs_metrics.inc_feed_fetch(kind, "ok")
		self._seen_ids = set()
		self._fetched = len(batch)
		self.queue = self._prepare(batch)
		self.cursor = 0
		self.has_more = len(batch) >= self.page_size
		self.prefetch_failed = False
		self.last_error = None
		self.state = FeedState.READY if self.queue else FeedState.EXHAUSTED
		self._touch()
		logger.info(
			"feed loaded",
			extra={"kind": kind, "count": len(self.queue), "has_more": self.has_more, "generation": generation},
		)

	# --- next pages --------------------------------------------------------------

	async def load_more(self) -> int:
		"""Append the next page. Returns how many new candidates were queued."""
		if self.is_fetching_more() or self.is_reloading():
			return 0
		if not self.has_more or self.state not in _SHOWING_STATES:
			return 0
		task = self._start_next_page()
		return await asyncio.shield(task)

	def _start_next_page(self) -> asyncio.Task:
		task = asyncio.create_task(
			self._fetch_next_page(self.generation, self._fetched), name="gymbros-feed-more"
		)
		self._more_task = task
		return task

	async def _fetch_next_page(self, generation: int, skip: int) -> int:
		try:
			batch = await self.source.fetch_candidates(self.filters, skip=skip, limit=self.page_size)
		except Exception as exc:
			if generation != self.generation:
				return 0
			obs_metrics.inc_feed_fetch("prefetch", "error")
			self.prefetch_failed = True
			self.last_error = NetworkError(during="prefetch")
			logger.warning("prefetch failed, will retry on next advance", extra={"error": type(exc).__name__})
			return 0
		try:
			self._check_generation(generation)
		except StaleGenerationError as exc:
			obs_metrics.inc_feed_fetch("prefetch", "stale")
			logger.debug("discarding prefetch page: %s", exc.reason)
			return 0

		obs_metrics.inc_feed_fetch("prefetch", "ok")
		was_consumed = self.cursor >= len(self.queue)
		fresh = self._prepare(batch)
		self._fetched += len(batch)
		self.has_more = len(batch) >= self.page_size
		self.prefetch_failed = False
		self.last_error = None
		self.queue.extend(fresh)
		if was_consumed and fresh:
			self._touch()
		return len(fresh)

	def _maybe_prefetch(self) -> None:
		if self.state is not FeedState.READY or not self.has_more or self.is_fetching_more() or self.is_reloading():
			return
		if self.remaining() <= self.prefetch_remaining:
			self._start_next_page()

	# --- cursor ------------------------------------------------------------------

	def advance(self) -> None:
		"""Move past the active card and prefetch if the queue is running low."""
		if self.cursor >= len(self.queue):
			return
		self.cursor += 1
		self._touch()
		self._maybe_prefetch()

	def reinsert(self, profile: Profile) -> None:
		"""Put a profile back at the cursor so it becomes the active card."""
		self.queue.insert(self.cursor, profile)
		self._touch()

	async def settle(self) -> None:
		"""Wait for any outstanding page fetch."""
		for task in (self._reload_task, self._more_task):
			if task is not None and not task.done():
				await asyncio.shield(task)

	# --- helpers -----------------------------------------------------------------

	def _check_generation(self, generation: int) -> None:
		if generation != self.generation:
			raise StaleGenerationError(generation, self.generation)

	def _prepare(self, batch: list[Profile]) -> list[Profile]:
		fresh: list[Profile] = []
		for profile in batch:
			if profile.id in self._seen_ids:
				continue
			self._seen_ids.add(profile.id)
			fresh.append(profile)
		if self.rank_batches and self.viewer is not None:
			fresh = [item.profile for item in self.scorer.rank(self.viewer, fresh)]
		return fresh

	def _touch(self) -> None:
		self._active_since = self._clock()
