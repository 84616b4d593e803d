"""Per-session discovery engine handed to the UI shell.

A session is constructed for one viewer and one browsing run; nothing here is
module-global, so two sessions never share a queue, cursor or Rekindle slot.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Union

import ulid

from gymbros.domain.discovery.feed import DiscoveryFeedController
from gymbros.domain.discovery.gestures import GestureClassifier
from gymbros.domain.discovery.ledger import InteractionLedger
from gymbros.domain.discovery.outcomes import CommitGate, SwipeOutcomeProcessor
from gymbros.domain.discovery.ports import CurrencyLedger, EntitlementSource, MatchNotifier, RecommendationSource
from gymbros.domain.discovery.rekindle import RekindleSlot, RekindleUndo
from gymbros.domain.discovery.schemas import (
	CommitResult,
	CompatibilityBreakdown,
	EmptyState,
	FeedFilters,
	GestureOutcome,
	MatchEvent,
	Profile,
	SwipeDirection,
	UndoResult,
)
from gymbros.domain.discovery.scoring import CompatibilityScorer
from gymbros.obs import logging as obs_logging

logger = logging.getLogger(__name__)


class _SessionMatches:
	"""Keeps this session's matches and forwards each one to the real notifier."""

	def __init__(self, downstream: Optional[MatchNotifier]) -> None:
		self.downstream = downstream
		self.events: list[MatchEvent] = []

	async def notify_match(self, event: MatchEvent) -> None:
		self.events.append(event)
		if self.downstream is not None:
			await self.downstream.notify_match(event)


class DiscoverySession:
	def __init__(
		self,
		*,
		viewer: Profile,
		source: RecommendationSource,
		currency: CurrencyLedger,
		entitlements: EntitlementSource,
		notifier: Optional[MatchNotifier] = None,
		ledger: Optional[InteractionLedger] = None,
		scorer: Optional[CompatibilityScorer] = None,
		filters: Optional[FeedFilters] = None,
		page_size: Optional[int] = None,
		classifier: Optional[GestureClassifier] = None,
	) -> None:
		self.session_id = ulid.new().str
		self.viewer = viewer
		self.ledger = ledger or InteractionLedger()
		self.classifier = classifier or GestureClassifier()
		self.feed = DiscoveryFeedController(
			source,
			viewer=viewer,
			scorer=scorer,
			filters=filters,
			page_size=page_size,
		)
		self.slot = RekindleSlot()
		self._gate = CommitGate()
		self._matches = _SessionMatches(notifier)
		self.processor = SwipeOutcomeProcessor(
			actor_id=viewer.id,
			feed=self.feed,
			ledger=self.ledger,
			source=source,
			currency=currency,
			entitlements=entitlements,
			slot=self.slot,
			gate=self._gate,
			notifier=self._matches,
		)
		self.rekindle = RekindleUndo(
			feed=self.feed,
			slot=self.slot,
			currency=currency,
			entitlements=entitlements,
			gate=self._gate,
		)

	@property
	def matches(self) -> list[MatchEvent]:
		return list(self._matches.events)

	async def start(self) -> None:
		tokens = obs_logging.bind_context(session_id=self.session_id, user_id=self.viewer.id)
		try:
			await self.feed.load_initial()
		finally:
			obs_logging.reset_context(tokens)

	# --- what the card stack shows -------------------------------------------------

	def active_candidate(self) -> Optional[Profile]:
		return self.feed.active_candidate()

	def active_breakdown(self) -> Optional[CompatibilityBreakdown]:
		return self.feed.active_breakdown()

	def is_exhausted(self) -> bool:
		return self.feed.is_exhausted()

	def is_consumed(self) -> bool:
		return self.feed.is_consumed()

	def is_loading(self) -> bool:
		return self.feed.is_loading()

	def has_network_error(self) -> bool:
		return self.feed.has_network_error()

	def empty_state(self) -> Optional[EmptyState]:
		return self.feed.empty_state()

	def can_rekindle(self) -> bool:
		return self.rekindle.available()

	# --- input -------------------------------------------------------------------

	def on_gesture(self, trajectory: Iterable[tuple[float, float]]) -> GestureOutcome:
		"""Classify a finished drag. The UI commits ``outcome.decision`` when set."""
		return self.classifier.classify(trajectory)

	async def commit_decision(self, decision: Union[SwipeDirection, str, GestureOutcome]) -> CommitResult:
		direction = decision.decision if isinstance(decision, GestureOutcome) else decision
		if direction is None:
			raise ValueError("gesture did not produce a decision")
		tokens = obs_logging.bind_context(session_id=self.session_id, user_id=self.viewer.id)
		try:
			return await self.processor.commit(direction)
		finally:
			obs_logging.reset_context(tokens)

	async def undo(self) -> UndoResult:
		tokens = obs_logging.bind_context(session_id=self.session_id, user_id=self.viewer.id)
		try:
			return await self.rekindle.undo()
		finally:
			obs_logging.reset_context(tokens)

	async def refresh(self) -> None:
		await self.feed.refresh()

	async def load_more(self) -> int:
		return await self.feed.load_more()

	async def close(self) -> None:
		"""Flush background work before the session is dropped."""
		await self.feed.settle()
		await self.ledger.drain()
