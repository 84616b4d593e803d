"""Turn a pointer-drag trajectory into a swipe decision.

Deltas are measured from the drag start in screen coordinates, so a positive
``dy`` points down and an upward swipe has ``dy < 0``.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Optional

from gymbros.domain.discovery.schemas import GestureOutcome, PreviewDirection, SwipeDirection
from gymbros.settings import settings


class GestureState(str, Enum):
	IDLE = "idle"
	TRACKING = "tracking"
	COMMITTED = "committed"


class _Axis(str, Enum):
	HORIZONTAL = "horizontal"
	VERTICAL = "vertical"


class GestureClassifier:
	"""Tracks one drag at a time and forgets it on release."""

	def __init__(
		self,
		*,
		preview_threshold: Optional[float] = None,
		commit_threshold: Optional[float] = None,
	) -> None:
		self.preview_threshold = (
			preview_threshold if preview_threshold is not None else settings.gesture_preview_threshold_px
		)
		self.commit_threshold = commit_threshold if commit_threshold is not None else settings.gesture_commit_threshold_px
		self.state = GestureState.IDLE
		self._reset()

	def _reset(self) -> None:
		self._origin: tuple[float, float] = (0.0, 0.0)
		self._dx = 0.0
		self._dy = 0.0
		self._preview_axis: Optional[_Axis] = None

	def start(self, x: float = 0.0, y: float = 0.0) -> None:
		self._reset()
		self._origin = (float(x), float(y))
		self.state = GestureState.TRACKING

	def move(self, dx: float, dy: float) -> PreviewDirection:
		"""Feed the displacement from the start point; returns live feedback."""
		if self.state is not GestureState.TRACKING:
			return PreviewDirection.NONE
		self._dx, self._dy = float(dx), float(dy)
		return self.preview()

	def move_to(self, x: float, y: float) -> PreviewDirection:
		return self.move(x - self._origin[0], y - self._origin[1])

	def preview(self) -> PreviewDirection:
		if self.state is not GestureState.TRACKING:
			return PreviewDirection.NONE
		abs_x, abs_y = abs(self._dx), abs(self._dy)
		if self._preview_axis is None:
			if abs_x > self.preview_threshold:
				self._preview_axis = _Axis.HORIZONTAL
			elif abs_y > self.preview_threshold:
				self._preview_axis = _Axis.VERTICAL
		if self._preview_axis is _Axis.HORIZONTAL and abs_x > self.preview_threshold:
			return PreviewDirection.RIGHT if self._dx > 0 else PreviewDirection.LEFT
		if self._preview_axis is _Axis.VERTICAL and self._dy < -self.preview_threshold:
			return PreviewDirection.UP
		return PreviewDirection.NONE

	def release(self) -> GestureOutcome:
		if self.state is not GestureState.TRACKING:
			return GestureOutcome(decision=None, snap_back=False)
		dx, dy = self._dx, self._dy
		decision = self.decide(dx, dy)
		self.state = GestureState.COMMITTED if decision is not None else GestureState.IDLE
		self._reset()
		return GestureOutcome(decision=decision, snap_back=decision is None, dx=dx, dy=dy)

	def cancel(self) -> None:
		self.state = GestureState.IDLE
		self._reset()

	def decide(self, dx: float, dy: float) -> Optional[SwipeDirection]:
		abs_x, abs_y = abs(dx), abs(dy)
		if abs_x > self.commit_threshold and abs_x > abs_y:
			return SwipeDirection.RIGHT if dx > 0 else SwipeDirection.LEFT
		if -dy > self.commit_threshold and abs_y > abs_x:
			return SwipeDirection.UP
		return None

	def classify(self, trajectory: Iterable[tuple[float, float]]) -> GestureOutcome:
		"""Run a full drag: start, every (dx, dy) sample, then release."""
		self.start()
		for dx, dy in trajectory:
			self.move(dx, dy)
		return self.release()
