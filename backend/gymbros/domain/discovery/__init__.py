"""Discovery domain exports."""

from .exceptions import (  # noqa: F401
	ConcurrentCommitError,
	DiscoveryError,
	InsufficientFundsError,
	NetworkError,
	NothingToCommitError,
	NothingToUndoError,
	ValidationError,
)
from .schemas import (  # noqa: F401
	CompatibilityBreakdown,
	FeedFilters,
	Profile,
	SwipeDirection,
)
from .scoring import CompatibilityScorer  # noqa: F401
from .session import DiscoverySession  # noqa: F401
