"""Interfaces of the collaborators the discovery engine consumes but does not own."""

from __future__ import annotations

from typing import Any, Optional, Protocol

from gymbros.domain.discovery.schemas import (
	DebitReceipt,
	FeedFilters,
	InteractionReceipt,
	InteractionType,
	MatchEvent,
	Profile,
)


class RecommendationSource(Protocol):
	async def fetch_candidates(self, filters: Optional[FeedFilters], *, skip: int, limit: int) -> list[Profile]:
		"""Return one ranked or unranked batch of candidates starting at ``skip``."""
		...

	async def record_interaction(
		self,
		actor_id: str,
		target_id: str,
		type: InteractionType,  # noqa: A002
		view_duration_ms: int,
		metadata: Optional[dict[str, Any]] = None,
	) -> InteractionReceipt:
		"""Write the interaction server-side and report whether it completes a mutual like."""
		...


class CurrencyLedger(Protocol):
	async def get_balance(self) -> int:
		...

	async def debit(self, amount: int, *, reason: str) -> DebitReceipt:
		...


class EntitlementSource(Protocol):
	async def is_premium(self) -> bool:
		...


class MatchNotifier(Protocol):
	async def notify_match(self, event: MatchEvent) -> None:
		...
