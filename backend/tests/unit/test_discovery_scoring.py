import math

import pytest

from discovery_fakes import make_profile
from gymbros.domain.discovery import scoring
from gymbros.domain.discovery.schemas import CompatibilityLabel, ExperienceLevel, GeoPoint, PreferredTime
from gymbros.domain.discovery.scoring import CompatibilityScorer

# 10 miles of latitude on a 3958.8-mile sphere
TEN_MILES_LAT = math.degrees(10 / scoring.EARTH_RADIUS_MILES)


def test_reference_pair_scores_83():
	viewer = make_profile(
		"viewer",
		workout_types=["Yoga", "Running"],
		experience_level="Intermediate",
		preferred_time="Morning",
		location={"lat": 40.0, "lng": -74.0},
	)
	candidate = make_profile(
		"candidate",
		workout_types=["Running", "Cycling"],
		experience_level="Intermediate",
		preferred_time="Afternoon",
		location={"lat": 40.0 + TEN_MILES_LAT, "lng": -74.0},
	)

	breakdown = CompatibilityScorer().score(viewer, candidate)

	assert breakdown.workout.raw == pytest.approx(1 / 3)
	assert breakdown.experience.raw == 1.0
	assert breakdown.schedule.raw == pytest.approx(0.60)
	assert breakdown.location.raw == pytest.approx(0.8, abs=1e-9)
	assert breakdown.overall_score == 83
	assert breakdown.common_workout_count == 1


def test_self_compatibility_is_100(viewer):
	breakdown = CompatibilityScorer().score(viewer, viewer)

	assert breakdown.overall_score == 100
	assert breakdown.workout.score == 100
	assert breakdown.location.label is CompatibilityLabel.PERFECT


def test_empty_profiles_degrade_to_floor_without_raising():
	breakdown = CompatibilityScorer().score(make_profile("a"), make_profile("b"))

	# workout 0, experience 0.5, schedule 0.5, location 0 -> raw 0.225
	assert breakdown.overall_score == 61
	assert breakdown.workout.score == 25
	assert breakdown.experience.score == 75
	assert breakdown.location.score == 50
	assert breakdown.location.label is CompatibilityLabel.MODERATE


def test_overall_score_never_below_50():
	a = make_profile(
		"a",
		workout_types=["Yoga"],
		experience_level="Beginner",
		preferred_time="Morning",
		location={"lat": 0.0, "lng": 0.0},
	)
	b = make_profile(
		"b",
		workout_types=["Boxing"],
		experience_level="Advanced",
		preferred_time="Late Night",
		location={"lat": 60.0, "lng": 100.0},
	)
	breakdown = CompatibilityScorer().score(a, b)

	# schedule 0.25 is the only non-zero dimension
	assert breakdown.overall_score == 54
	assert 0 <= breakdown.overall_score <= 100


@pytest.mark.parametrize(
	"left,right",
	[
		({"Yoga", "Running"}, {"Running", "Cycling"}),
		({"Yoga"}, set()),
		({"A", "B", "C"}, {"C"}),
		(set(), set()),
	],
)
def test_workout_overlap_is_symmetric(left, right):
	assert scoring.workout_overlap(left, right) == scoring.workout_overlap(right, left)


def test_workout_overlap_handles_missing_sets():
	assert scoring.workout_overlap(None, ["Yoga"]) == 0.0
	assert scoring.workout_overlap(["Yoga", "Yoga"], ["Yoga"]) == 1.0


def test_haversine_symmetry_and_identity():
	d1 = scoring.haversine_miles(51.5, -0.12, 48.85, 2.35)
	d2 = scoring.haversine_miles(48.85, 2.35, 51.5, -0.12)

	assert d1 == pytest.approx(d2)
	assert d1 == pytest.approx(213.5, abs=1.0)
	assert scoring.haversine_miles(12.3, 45.6, 12.3, 45.6) == 0.0


@pytest.mark.parametrize(
	"a,b,expected",
	[
		(ExperienceLevel.BEGINNER, ExperienceLevel.ADVANCED, 0.0),
		(ExperienceLevel.BEGINNER, ExperienceLevel.INTERMEDIATE, 0.5),
		(ExperienceLevel.ADVANCED, ExperienceLevel.ADVANCED, 1.0),
		(None, ExperienceLevel.ADVANCED, 0.5),
	],
)
def test_experience_compatibility(a, b, expected):
	assert scoring.experience_compatibility(a, b) == expected


@pytest.mark.parametrize(
	"a,b,expected",
	[
		(PreferredTime.FLEXIBLE, PreferredTime.LATE_NIGHT, 1.0),
		(PreferredTime.EVENING, PreferredTime.EVENING, 1.0),
		(PreferredTime.EVENING, PreferredTime.LATE_NIGHT, 0.60),
		(PreferredTime.WEEKENDS_ONLY, PreferredTime.MORNING, 0.25),
		(PreferredTime.MORNING, PreferredTime.EVENING, 0.25),
		(None, PreferredTime.MORNING, 0.5),
	],
)
def test_schedule_compatibility(a, b, expected):
	assert scoring.schedule_compatibility(a, b) == expected


def test_location_requires_finite_coordinates():
	here = GeoPoint(lat=40.0, lng=-74.0)

	assert scoring.location_compatibility(here, None) == 0.0
	assert scoring.location_compatibility(here, GeoPoint(lat=float("nan"), lng=-74.0)) == 0.0
	assert scoring.location_compatibility(here, GeoPoint(lat=40.0)) == 0.0
	assert scoring.location_compatibility(here, GeoPoint(lat=10.0, lng=-74.0)) == 0.0


def test_workout_label_uses_half_boost_while_display_floor_is_25():
	sub = scoring._sub_score("workout", 0.2)

	# display 25 + 0.2 * 75 = 40, label fed 0.5 + 0.1 = 0.6
	assert sub.score == 40
	assert sub.label is CompatibilityLabel.MODERATE


@pytest.mark.parametrize(
	"raw,label",
	[
		(1.0, CompatibilityLabel.PERFECT),
		(0.8, CompatibilityLabel.PERFECT),
		(0.5, CompatibilityLabel.HIGH),
		(0.0, CompatibilityLabel.MODERATE),
	],
)
def test_label_buckets(raw, label):
	assert scoring.label_for(raw) is label


def test_round_half_up_matches_js_math_round():
	assert scoring.round_half_up(62.5) == 63
	assert scoring.round_half_up(82.4) == 82


def test_unknown_wire_values_become_neutral():
	profile = make_profile("x", experience_level="Elite", preferred_time="Lunch")

	assert profile.experience_level is None
	assert profile.preferred_time is None


def test_rank_orders_best_first_and_keeps_ties_stable(viewer):
	near = make_profile("near", location={"lat": 40.0, "lng": -74.0})
	far = make_profile("far", location={"lat": 45.0, "lng": -74.0})
	tie = make_profile("tie", location={"lat": 45.0, "lng": -74.0})

	ranked = CompatibilityScorer().rank(viewer, [far, near, tie])

	assert [item.profile.id for item in ranked] == ["near", "far", "tie"]
