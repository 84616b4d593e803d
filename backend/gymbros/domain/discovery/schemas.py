"""Schemas for the discovery swipe feed, scoring and interactions."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator


class ExperienceLevel(str, Enum):
	BEGINNER = "Beginner"
	INTERMEDIATE = "Intermediate"
	ADVANCED = "Advanced"


EXPERIENCE_ORDER: tuple[ExperienceLevel, ...] = (
	ExperienceLevel.BEGINNER,
	ExperienceLevel.INTERMEDIATE,
	ExperienceLevel.ADVANCED,
)


class PreferredTime(str, Enum):
	MORNING = "Morning"
	AFTERNOON = "Afternoon"
	EVENING = "Evening"
	LATE_NIGHT = "Late Night"
	WEEKENDS_ONLY = "Weekends Only"
	FLEXIBLE = "Flexible"


def _coerce_enum(enum_cls: type[Enum], value: Any) -> Any:
	"""Map unknown wire values to None instead of failing validation."""
	if value is None or isinstance(value, enum_cls):
		return value
	try:
		return enum_cls(str(value).strip())
	except ValueError:
		return None


class GeoPoint(BaseModel):
	"""Optional coordinates plus the distance the source precomputed for the viewer."""

	model_config = ConfigDict(frozen=True)

	lat: Optional[float] = None
	lng: Optional[float] = None
	distance_miles: Optional[float] = Field(default=None, validation_alias=AliasChoices("distance_miles", "distance"))

	@model_validator(mode="before")
	@classmethod
	def _from_geojson(cls, data: Any) -> Any:
		# Sources send GeoJSON points as {"coordinates": [lng, lat]}
		if isinstance(data, dict) and "coordinates" in data and "lat" not in data:
			coords = data.get("coordinates") or []
			parsed = dict(data)
			if isinstance(coords, (list, tuple)) and len(coords) == 2:
				parsed["lng"], parsed["lat"] = coords[0], coords[1]
			parsed.pop("coordinates", None)
			return parsed
		return data


class Profile(BaseModel):
	"""Candidate or viewer profile. Read-only for the lifetime of a session."""

	model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

	id: str = Field(validation_alias=AliasChoices("id", "_id", "user_id", "userId"))
	name: str = ""
	age: Optional[int] = None
	bio: Optional[str] = None
	images: list[str] = Field(default_factory=list)
	workout_types: list[str] = Field(default_factory=list, validation_alias=AliasChoices("workout_types", "workoutTypes"))
	experience_level: Optional[ExperienceLevel] = Field(
		default=None, validation_alias=AliasChoices("experience_level", "experienceLevel")
	)
	preferred_time: Optional[PreferredTime] = Field(
		default=None, validation_alias=AliasChoices("preferred_time", "preferredTime")
	)
	location: Optional[GeoPoint] = None
	last_active: Optional[datetime] = Field(default=None, validation_alias=AliasChoices("last_active", "lastActive"))

	@field_validator("id", mode="before")
	@classmethod
	def _stringify_id(cls, value: Any) -> str:
		text = str(value).strip() if value is not None else ""
		if not text:
			raise ValueError("profile id is required")
		return text

	@field_validator("workout_types", mode="before")
	@classmethod
	def _clean_workouts(cls, value: Any) -> list[str]:
		if not value:
			return []
		if isinstance(value, str):
			value = [value]
		return [str(item).strip() for item in value if isinstance(item, str) and item.strip()]

	@field_validator("experience_level", mode="before")
	@classmethod
	def _coerce_experience(cls, value: Any) -> Any:
		return _coerce_enum(ExperienceLevel, value)

	@field_validator("preferred_time", mode="before")
	@classmethod
	def _coerce_time(cls, value: Any) -> Any:
		return _coerce_enum(PreferredTime, value)


class CompatibilityLabel(str, Enum):
	PERFECT = "Perfect"
	HIGH = "High"
	MODERATE = "Moderate"
	FAIR = "Fair"
	LOW = "Low"


class SubScore(BaseModel):
	raw: float = Field(ge=0.0, le=1.0)
	score: int = Field(ge=0, le=100)
	label: CompatibilityLabel


class CompatibilityBreakdown(BaseModel):
	overall_score: int = Field(ge=0, le=100)
	workout: SubScore
	experience: SubScore
	schedule: SubScore
	location: SubScore
	common_workout_count: int = Field(default=0, ge=0)


class ScoredCandidate(BaseModel):
	profile: Profile
	breakdown: CompatibilityBreakdown


class SwipeDirection(str, Enum):
	LEFT = "left"
	RIGHT = "right"
	UP = "up"


class PreviewDirection(str, Enum):
	"""Advisory direction shown while a drag is still in progress."""

	NONE = "none"
	LEFT = "left"
	RIGHT = "right"
	UP = "up"


class GestureOutcome(BaseModel):
	decision: Optional[SwipeDirection] = None
	snap_back: bool = False
	dx: float = 0.0
	dy: float = 0.0


class SwipeDecision(BaseModel):
	direction: SwipeDirection
	candidate_id: str
	view_duration_ms: int = Field(default=0, ge=0)


class InteractionType(str, Enum):
	LIKE = "like"
	DISLIKE = "dislike"
	VIEW = "view"
	MESSAGE = "message"
	BLOCK = "block"
	REPORT = "report"


class Interaction(BaseModel):
	id: str
	actor_id: str
	target_id: str
	type: InteractionType
	view_duration_ms: int = Field(default=0, ge=0)
	timestamp: datetime
	expires_at: datetime
	metadata: dict[str, Any] = Field(default_factory=dict)


class InteractionReceipt(BaseModel):
	"""Response of the combined interaction write + mutual-like check."""

	model_config = ConfigDict(extra="ignore")

	matched: bool = Field(default=False, validation_alias=AliasChoices("matched", "match", "isMatch"))


class DebitReceipt(BaseModel):
	model_config = ConfigDict(extra="ignore")

	success: bool = False
	balance: Optional[int] = None


class CommitResult(BaseModel):
	recorded: bool = True
	matched: bool = False
	decision: SwipeDecision
	interaction_type: InteractionType
	charged: int = 0
	warning: Optional[str] = None


class UndoResult(BaseModel):
	restored: bool
	profile: Optional[Profile] = None
	charged: int = 0


class MatchEvent(BaseModel):
	actor_id: str
	profile: Profile
	direction: SwipeDirection
	matched_at: datetime


class RekindleEntry(BaseModel):
	"""Contents of the single Rekindle slot."""

	profile: Profile
	decision: SwipeDecision
	original_cursor: int = Field(ge=0)
	generation: int = Field(default=0, ge=0)


class FeedFilters(BaseModel):
	"""Pass-through filters forwarded to the recommendation source."""

	workout_types: list[str] = Field(default_factory=list)
	experience_levels: list[ExperienceLevel] = Field(default_factory=list)
	preferred_times: list[PreferredTime] = Field(default_factory=list)
	max_distance_miles: Optional[float] = Field(default=None, gt=0)
	min_age: Optional[int] = Field(default=None, ge=18)
	max_age: Optional[int] = Field(default=None, le=120)

	@model_validator(mode="after")
	def _check_age_range(self) -> "FeedFilters":
		if self.min_age is not None and self.max_age is not None and self.min_age > self.max_age:
			raise ValueError("min_age must not exceed max_age")
		return self

	def to_query(self) -> dict[str, Any]:
		query: dict[str, Any] = {}
		if self.workout_types:
			query["workoutTypes"] = ",".join(self.workout_types)
		if self.experience_levels:
			query["experienceLevel"] = ",".join(level.value for level in self.experience_levels)
		if self.preferred_times:
			query["preferredTime"] = ",".join(time.value for time in self.preferred_times)
		if self.max_distance_miles is not None:
			query["maxDistance"] = self.max_distance_miles
		if self.min_age is not None:
			query["minAge"] = self.min_age
		if self.max_age is not None:
			query["maxAge"] = self.max_age
		return query


class FeedState(str, Enum):
	IDLE = "idle"
	LOADING = "loading"
	READY = "ready"
	REFRESHING = "refreshing"
	EXHAUSTED = "exhausted"
	NETWORK_ERROR = "network_error"


class EmptyReason(str, Enum):
	LOADING = "loading"
	CONSUMED = "consumed"
	EXHAUSTED = "exhausted"
	NETWORK_ERROR = "network_error"


class EmptyState(BaseModel):
	reason: EmptyReason
	title: str
	description: str
	action: Optional[str] = None
	secondary_action: Optional[str] = None
