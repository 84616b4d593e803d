"""Central registry for Prometheus metrics used by the discovery engine."""

from __future__ import annotations

from prometheus_client import Counter, Histogram


SWIPES_COMMITTED = Counter(
	"gymbros_swipes_committed_total",
	"Swipe decisions committed by direction",
	["direction"],
)

SWIPES_REJECTED = Counter(
	"gymbros_swipes_rejected_total",
	"Swipe commits rejected before any state change",
	["reason"],
)

MATCHES_DETECTED = Counter(
	"gymbros_matches_detected_total",
	"Mutual likes reported by the recommendation source",
)

REKINDLES = Counter(
	"gymbros_rekindles_total",
	"Rekindle (undo) attempts by outcome",
	["outcome"],
)

FEED_FETCHES = Counter(
	"gymbros_feed_fetches_total",
	"Candidate page fetches by kind and outcome",
	["kind", "outcome"],
)

LEDGER_WRITE_FAILURES = Counter(
	"gymbros_ledger_write_failures_total",
	"Interaction ledger writes that failed and were dropped",
	["stage"],
)

VIEW_DURATION = Histogram(
	"gymbros_card_view_duration_seconds",
	"Time a candidate stayed active before a decision",
	buckets=(0.5, 1.0, 2.0, 3.0, 5.0, 10.0, 20.0, 60.0),
)


def inc_swipe(direction: str) -> None:
	SWIPES_COMMITTED.labels(direction=direction).inc()


def inc_swipe_rejected(reason: str) -> None:
	SWIPES_REJECTED.labels(reason=reason).inc()


def inc_match() -> None:
	MATCHES_DETECTED.inc()


def inc_rekindle(outcome: str) -> None:
	REKINDLES.labels(outcome=outcome).inc()


def inc_feed_fetch(kind: str, outcome: str) -> None:
	FEED_FETCHES.labels(kind=kind, outcome=outcome).inc()


def inc_ledger_failure(stage: str) -> None:
	LEDGER_WRITE_FAILURES.labels(stage=stage).inc()


def observe_view_duration(duration_ms: int) -> None:
	VIEW_DURATION.observe(max(0, duration_ms) / 1000.0)
