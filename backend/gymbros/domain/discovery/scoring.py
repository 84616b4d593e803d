"""Compatibility scoring between a viewer and a candidate profile.

Every sub-score is a raw fraction in [0, 1]. The composite is remapped onto a
50..100 display scale so the feed never advertises a score below 50. Sub-scores
use the same half-boost remap, except workout overlap which keeps a floor of 25.
Labels are bucketed on ``0.5 + raw / 2`` for every dimension, workout included,
so a workout label can read higher than its displayed number suggests. Existing
clients depend on both behaviours.
"""

from __future__ import annotations

import math
from typing import Iterable, Mapping, Optional, Sequence

from gymbros.domain.discovery.schemas import (
	EXPERIENCE_ORDER,
	CompatibilityBreakdown,
	CompatibilityLabel,
	ExperienceLevel,
	GeoPoint,
	PreferredTime,
	Profile,
	ScoredCandidate,
	SubScore,
)

EARTH_RADIUS_MILES = 3958.8
MAX_LOCATION_DISTANCE_MILES = 50.0
NEUTRAL_SCORE = 0.5

SAME_BUCKET_SCORE = 0.60
OTHER_BUCKET_SCORE = 0.25

DEFAULT_WEIGHTS: Mapping[str, float] = {
	"workout": 0.20,
	"experience": 0.10,
	"schedule": 0.35,
	"location": 0.35,
}

DISPLAY_FLOORS: Mapping[str, int] = {
	"workout": 25,
	"experience": 50,
	"schedule": 50,
	"location": 50,
}
OVERALL_FLOOR = 50

LABEL_THRESHOLDS: tuple[tuple[float, CompatibilityLabel], ...] = (
	(0.85, CompatibilityLabel.PERFECT),
	(0.70, CompatibilityLabel.HIGH),
	(0.50, CompatibilityLabel.MODERATE),
	(0.30, CompatibilityLabel.FAIR),
)

_SCHEDULE_BUCKETS: tuple[frozenset[PreferredTime], ...] = (
	frozenset({PreferredTime.MORNING, PreferredTime.AFTERNOON}),
	frozenset({PreferredTime.EVENING, PreferredTime.LATE_NIGHT}),
	frozenset({PreferredTime.WEEKENDS_ONLY}),
)


def round_half_up(value: float) -> int:
	"""Round like JavaScript's Math.round (halves go up, not to even)."""
	return int(math.floor(value + 0.5))


def _clamp_unit(value: float) -> float:
	if not math.isfinite(value):
		return 0.0
	return max(0.0, min(1.0, value))


def workout_overlap(a: Optional[Iterable[str]], b: Optional[Iterable[str]]) -> float:
	"""Jaccard similarity of two workout sets; 0 when either is empty."""
	set_a = set(a or ())
	set_b = set(b or ())
	if not set_a or not set_b:
		return 0.0
	return len(set_a & set_b) / len(set_a | set_b)


def experience_compatibility(a: Optional[ExperienceLevel], b: Optional[ExperienceLevel]) -> float:
	if a is None or b is None:
		return NEUTRAL_SCORE
	if a == b:
		return 1.0
	distance = abs(EXPERIENCE_ORDER.index(a) - EXPERIENCE_ORDER.index(b))
	return 1.0 - distance / (len(EXPERIENCE_ORDER) - 1)


def schedule_compatibility(a: Optional[PreferredTime], b: Optional[PreferredTime]) -> float:
	if a is None or b is None:
		return NEUTRAL_SCORE
	if a == b or PreferredTime.FLEXIBLE in (a, b):
		return 1.0
	for bucket in _SCHEDULE_BUCKETS:
		if a in bucket and b in bucket:
			return SAME_BUCKET_SCORE
	return OTHER_BUCKET_SCORE


def _valid_coordinates(point: Optional[GeoPoint]) -> bool:
	if point is None or point.lat is None or point.lng is None:
		return False
	if not (math.isfinite(point.lat) and math.isfinite(point.lng)):
		return False
	return -90.0 <= point.lat <= 90.0 and -180.0 <= point.lng <= 180.0


def haversine_miles(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
	"""Return the great-circle distance between two points in miles."""

	phi1, phi2 = math.radians(lat1), math.radians(lat2)
	dphi = math.radians(lat2 - lat1)
	dlambda = math.radians(lng2 - lng1)
	a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
	a = min(1.0, max(0.0, a))
	return EARTH_RADIUS_MILES * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def distance_between(a: Optional[GeoPoint], b: Optional[GeoPoint]) -> Optional[float]:
	if not (_valid_coordinates(a) and _valid_coordinates(b)):
		return None
	return haversine_miles(a.lat, a.lng, b.lat, b.lng)  # type: ignore[union-attr,arg-type]


def location_compatibility(a: Optional[GeoPoint], b: Optional[GeoPoint]) -> float:
	distance = distance_between(a, b)
	if distance is None:
		return 0.0
	return max(0.0, 1.0 - distance / MAX_LOCATION_DISTANCE_MILES)


def label_for(raw: float) -> CompatibilityLabel:
	fraction = 0.5 + _clamp_unit(raw) * 0.5
	for threshold, label in LABEL_THRESHOLDS:
		if fraction >= threshold:
			return label
	return CompatibilityLabel.LOW


def _sub_score(dimension: str, raw: float) -> SubScore:
	raw = _clamp_unit(raw)
	floor = DISPLAY_FLOORS[dimension]
	return SubScore(raw=raw, score=round_half_up(floor + raw * (100 - floor)), label=label_for(raw))


class CompatibilityScorer:
	"""Pure scorer; safe to share between sessions."""

	def __init__(self, weights: Optional[Mapping[str, float]] = None) -> None:
		self.weights = dict(weights or DEFAULT_WEIGHTS)

	def score(self, viewer: Profile, candidate: Profile) -> CompatibilityBreakdown:
		raws = {
			"workout": workout_overlap(viewer.workout_types, candidate.workout_types),
			"experience": experience_compatibility(viewer.experience_level, candidate.experience_level),
			"schedule": schedule_compatibility(viewer.preferred_time, candidate.preferred_time),
			"location": location_compatibility(viewer.location, candidate.location),
		}
		composite = _clamp_unit(sum(raws[key] * self.weights.get(key, 0.0) for key in raws))
		overall = round_half_up(OVERALL_FLOOR + composite * (100 - OVERALL_FLOOR))
		common = len(set(viewer.workout_types) & set(candidate.workout_types))
		return CompatibilityBreakdown(
			overall_score=max(0, min(100, overall)),
			workout=_sub_score("workout", raws["workout"]),
			experience=_sub_score("experience", raws["experience"]),
			schedule=_sub_score("schedule", raws["schedule"]),
			location=_sub_score("location", raws["location"]),
			common_workout_count=common,
		)

	def rank(self, viewer: Profile, profiles: Sequence[Profile]) -> list[ScoredCandidate]:
		"""Score a batch and order it best-first; ties keep source order."""
		scored = [ScoredCandidate(profile=profile, breakdown=self.score(viewer, profile)) for profile in profiles]
		scored.sort(key=lambda item: item.breakdown.overall_score, reverse=True)
		return scored
