"""Domain-level exceptions for the discovery feed."""

from __future__ import annotations

from typing import Optional


class DiscoveryError(Exception):
	"""Base class for discovery feed errors."""

	reason: str = "unknown"
	message: str = "Something went wrong"

	def __init__(self, reason: str | None = None, *, message: str | None = None) -> None:
		super().__init__(reason or self.reason)
		if reason:
			self.reason = reason
		if message:
			self.message = message


class ValidationError(DiscoveryError):
	"""Malformed interaction write. Not to be confused with pydantic's."""

	reason = "invalid_interaction"
	message = "This interaction could not be saved"


class InsufficientFundsError(DiscoveryError):
	reason = "insufficient_funds"

	_MESSAGES = {
		"superlike": "You need {required} points to send a Super Like. Get Premium or top up your points.",
		"rekindle": "You need {required} points to Rekindle your last swipe. Get Premium or top up your points.",
	}

	def __init__(self, feature: str, *, required: int, balance: Optional[int] = None) -> None:
		template = self._MESSAGES.get(feature, "You need {required} points for this feature.")
		super().__init__(f"{feature}_{self.reason}", message=template.format(required=required))
		self.feature = feature
		self.required = required
		self.balance = balance

	@classmethod
	def for_feature(cls, feature: str, *, required: int, balance: Optional[int] = None) -> "InsufficientFundsError":
		subclass = {"superlike": SuperlikeFundsError, "rekindle": RekindleFundsError}.get(feature, cls)
		return subclass(feature, required=required, balance=balance)


class SuperlikeFundsError(InsufficientFundsError):
	"""Not enough points (and no premium) to superlike."""


class RekindleFundsError(InsufficientFundsError):
	"""Not enough points (and no premium) to Rekindle."""


class ConcurrentCommitError(DiscoveryError):
	reason = "commit_in_flight"
	message = "Hold on, your last swipe is still being saved"


class NothingToCommitError(DiscoveryError):
	reason = "no_active_candidate"
	message = "There is no profile to swipe on right now"


class NothingToUndoError(DiscoveryError):
	reason = "nothing_to_undo"
	message = "Nothing to Rekindle yet. Swipe on a profile first."


class NetworkError(DiscoveryError):
	"""Candidate fetch or collaborator call failed at the transport level."""

	reason = "network_error"
	message = "Check your internet connection and try again"

	def __init__(self, reason: str | None = None, *, during: str = "initial") -> None:
		super().__init__(reason)
		self.during = during


class StaleGenerationError(DiscoveryError):
	"""A fetch finished after a newer generation replaced the queue. Internal only."""

	reason = "stale_generation"

	def __init__(self, fetched: int, current: int) -> None:
		super().__init__(f"{self.reason}:{fetched}<{current}")
		self.fetched = fetched
		self.current = current
