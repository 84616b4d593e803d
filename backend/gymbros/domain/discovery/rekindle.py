"""Rekindle: single-step undo of the most recent swipe."""

from __future__ import annotations

import logging
from typing import Optional

from gymbros.domain.discovery.exceptions import ConcurrentCommitError, InsufficientFundsError, NothingToUndoError
from gymbros.domain.discovery.feed import DiscoveryFeedController
from gymbros.domain.discovery.outcomes import CommitGate, charge_feature
from gymbros.domain.discovery.ports import CurrencyLedger, EntitlementSource
from gymbros.domain.discovery.schemas import RekindleEntry, UndoResult
from gymbros.obs import metrics as obs_metrics
from gymbros.settings import settings

logger = logging.getLogger(__name__)


class RekindleSlot:
	"""Holds at most one committed decision. Every commit overwrites it."""

	def __init__(self) -> None:
		self._entry: Optional[RekindleEntry] = None

	def store(self, entry: RekindleEntry) -> None:
		self._entry = entry

	def peek(self) -> Optional[RekindleEntry]:
		return self._entry

	def clear(self) -> None:
		self._entry = None

	def __bool__(self) -> bool:
		return self._entry is not None


class RekindleUndo:
	def __init__(
		self,
		*,
		feed: DiscoveryFeedController,
		slot: RekindleSlot,
		currency: CurrencyLedger,
		entitlements: EntitlementSource,
		gate: CommitGate,
		cost: Optional[int] = None,
	) -> None:
		self.feed = feed
		self.slot = slot
		self.currency = currency
		self.entitlements = entitlements
		self.gate = gate
		self.cost = cost if cost is not None else settings.rekindle_cost

	def _current_entry(self) -> Optional[RekindleEntry]:
		entry = self.slot.peek()
		if entry is not None and entry.generation != self.feed.generation:
			# The queue it came from has been replaced
			self.slot.clear()
			return None
		if entry is None or not self.feed.is_showing() or self.feed.is_reloading():
			return None
		return entry

	def available(self) -> bool:
		return self._current_entry() is not None

	async def undo(self) -> UndoResult:
		"""Bring back the last decided profile as the active card.

		The profile is reinserted at the current cursor, not at its original
		position, so cards fetched after it keep their relative order behind it.
		An entry from a replaced queue is dropped, and nothing is charged while
		no card is on screen.
		"""
		try:
			with self.gate.hold():
				entry = self._current_entry()
				if entry is None:
					raise NothingToUndoError()
				charged = await charge_feature(
					self.currency, self.entitlements, feature="rekindle", cost=self.cost
				)
				self.feed.reinsert(entry.profile)
				self.slot.clear()
		except (ConcurrentCommitError, NothingToUndoError, InsufficientFundsError) as exc:
			obs_metrics.inc_rekindle(exc.reason)
			raise
		obs_metrics.inc_rekindle("restored")
		logger.info(
			"rekindled last swipe",
			extra={
				"target_id": entry.profile.id,
				"direction": entry.decision.direction.value,
				"original_cursor": entry.original_cursor,
				"charged": charged,
			},
		)
		return UndoResult(restored=True, profile=entry.profile, charged=charged)
