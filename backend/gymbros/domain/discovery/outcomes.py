"""Commit swipe decisions: currency gating, ledger write, match check, cursor advance."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Iterator, Optional

from gymbros.domain.discovery.exceptions import (
	ConcurrentCommitError,
	InsufficientFundsError,
	NothingToCommitError,
)
from gymbros.domain.discovery.feed import DiscoveryFeedController
from gymbros.domain.discovery.ledger import InteractionLedger
from gymbros.domain.discovery.ports import CurrencyLedger, EntitlementSource, MatchNotifier, RecommendationSource
from gymbros.domain.discovery.schemas import (
	CommitResult,
	InteractionType,
	MatchEvent,
	Profile,
	RekindleEntry,
	SwipeDecision,
	SwipeDirection,
)
from gymbros.obs import metrics as obs_metrics
from gymbros.settings import settings

if TYPE_CHECKING:  # pragma: no cover - type hints only
	from gymbros.domain.discovery.rekindle import RekindleSlot

logger = logging.getLogger(__name__)

LEDGER_TYPES: dict[SwipeDirection, InteractionType] = {
	SwipeDirection.LEFT: InteractionType.DISLIKE,
	SwipeDirection.RIGHT: InteractionType.LIKE,
	# A superlike is stored as a like with elevated metadata
	SwipeDirection.UP: InteractionType.LIKE,
}


class CommitGate:
	"""Allows one outstanding commit or undo per session."""

	def __init__(self) -> None:
		self._busy = False

	@contextlib.contextmanager
	def hold(self) -> Iterator[None]:
		if self._busy:
			raise ConcurrentCommitError()
		self._busy = True
		try:
			yield
		finally:
			self._busy = False


async def charge_feature(
	currency: CurrencyLedger,
	entitlements: EntitlementSource,
	*,
	feature: str,
	cost: int,
) -> int:
	"""Debit ``cost`` points unless the actor is premium. Returns the amount charged.

	Raises InsufficientFundsError before any debit when the balance is short, and
	also when the ledger declines the debit. Transport errors propagate unchanged.
	"""
	if await entitlements.is_premium():
		return 0
	if cost <= 0:
		return 0
	balance = await currency.get_balance()
	if balance < cost:
		raise InsufficientFundsError.for_feature(feature, required=cost, balance=balance)
	receipt = await currency.debit(cost, reason=feature)
	if not receipt.success:
		raise InsufficientFundsError.for_feature(feature, required=cost, balance=receipt.balance)
	return cost


class SwipeOutcomeProcessor:
	def __init__(
		self,
		*,
		actor_id: str,
		feed: DiscoveryFeedController,
		ledger: InteractionLedger,
		source: RecommendationSource,
		currency: CurrencyLedger,
		entitlements: EntitlementSource,
		slot: "RekindleSlot",
		gate: Optional[CommitGate] = None,
		notifier: Optional[MatchNotifier] = None,
		superlike_cost: Optional[int] = None,
		record_views: Optional[bool] = None,
		round_trip_timeout: Optional[float] = None,
	) -> None:
		self.actor_id = actor_id
		self.feed = feed
		self.ledger = ledger
		self.source = source
		self.currency = currency
		self.entitlements = entitlements
		self.slot = slot
		self.gate = gate or CommitGate()
		self.notifier = notifier
		self.superlike_cost = superlike_cost if superlike_cost is not None else settings.superlike_cost
		self.record_views = record_views if record_views is not None else settings.feed_record_views
		self.round_trip_timeout = (
			round_trip_timeout if round_trip_timeout is not None else settings.interaction_timeout_seconds
		)

	async def commit(self, direction: SwipeDirection | str) -> CommitResult:
		direction = SwipeDirection(direction)
		try:
			with self.gate.hold():
				return await self._commit(direction)
		except ConcurrentCommitError:
			obs_metrics.inc_swipe_rejected("concurrent")
			raise
		except InsufficientFundsError:
			obs_metrics.inc_swipe_rejected("insufficient_funds")
			raise

	async def _commit(self, direction: SwipeDirection) -> CommitResult:
		candidate = self.feed.active_candidate()
		if candidate is None:
			raise NothingToCommitError()
		generation = self.feed.generation
		original_cursor = self.feed.cursor
		decision = SwipeDecision(
			direction=direction,
			candidate_id=candidate.id,
			view_duration_ms=self.feed.active_for_ms(),
		)

		charged = 0
		if direction is SwipeDirection.UP:
			charged = await charge_feature(
				self.currency, self.entitlements, feature="superlike", cost=self.superlike_cost
			)

		interaction_type = LEDGER_TYPES[direction]
		metadata: dict[str, Any] = {"direction": direction.value, "superlike": direction is SwipeDirection.UP}
		if self.record_views:
			self.ledger.record_in_background(
				self.actor_id, candidate.id, InteractionType.VIEW, decision.view_duration_ms
			)
		self.ledger.record_in_background(
			self.actor_id, candidate.id, interaction_type, decision.view_duration_ms, metadata
		)

		matched, warning = await self._check_match(candidate, interaction_type, decision, metadata)
		if matched:
			await self._emit_match(candidate, direction)

		self.slot.store(
			RekindleEntry(profile=candidate, decision=decision, original_cursor=original_cursor, generation=generation)
		)
		if self.feed.generation == generation and self.feed.cursor == original_cursor:
			self.feed.advance()
		else:
			logger.info("feed reloaded during commit; cursor left in place", extra={"target_id": candidate.id})

		obs_metrics.inc_swipe(direction.value)
		obs_metrics.observe_view_duration(decision.view_duration_ms)
		return CommitResult(
			recorded=True,
			matched=matched,
			decision=decision,
			interaction_type=interaction_type,
			charged=charged,
			warning=warning,
		)

	async def _check_match(
		self,
		candidate: Profile,
		interaction_type: InteractionType,
		decision: SwipeDecision,
		metadata: dict[str, Any],
	) -> tuple[bool, Optional[str]]:
		try:
			receipt = await asyncio.wait_for(
				self.source.record_interaction(
					self.actor_id,
					candidate.id,
					interaction_type,
					decision.view_duration_ms,
					metadata,
				),
				timeout=self.round_trip_timeout,
			)
		except Exception as exc:
			# The swipe stands even when the server never hears about it
			obs_metrics.inc_ledger_failure("remote")
			logger.warning(
				"interaction round trip failed",
				extra={"target_id": candidate.id, "error": type(exc).__name__},
			)
			return False, "interaction_not_saved"
		if interaction_type is not InteractionType.LIKE:
			return False, None
		return bool(receipt.matched), None

	async def _emit_match(self, candidate: Profile, direction: SwipeDirection) -> None:
		obs_metrics.inc_match()
		logger.info("match detected", extra={"target_id": candidate.id})
		if self.notifier is None:
			return
		event = MatchEvent(
			actor_id=self.actor_id,
			profile=candidate,
			direction=direction,
			matched_at=datetime.now(timezone.utc),
		)
		try:
			await self.notifier.notify_match(event)
		except Exception:
			# Match notification is best-effort
			logger.warning("match notification failed", exc_info=True, extra={"target_id": candidate.id})
