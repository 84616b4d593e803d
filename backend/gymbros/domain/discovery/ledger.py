"""Interaction ledger: validated like/dislike/view records with a 90-day retention.

Records live in Redis as JSON blobs that expire on their own. Two sorted-set
indexes (actor+type and target+type, scored by timestamp in ms) serve the
newest-first listings. Index entries can outlive their record by up to one
retention window; reads trim them and skip members whose record already expired.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

import ulid

from gymbros.domain.discovery.exceptions import ValidationError
from gymbros.domain.discovery.schemas import Interaction, InteractionType
from gymbros.infra.redis import redis_client
from gymbros.obs import metrics as obs_metrics
from gymbros.settings import settings

logger = logging.getLogger(__name__)

_RECORD_KEY = "gymbros:interaction:{id}"
_ACTOR_INDEX = "gymbros:interactions:actor:{actor_id}:{type}"
_TARGET_INDEX = "gymbros:interactions:target:{target_id}:{type}"

MAX_LIST_LIMIT = 500


def _utcnow() -> datetime:
	return datetime.now(timezone.utc)


def _epoch_ms(moment: datetime) -> int:
	return int(moment.timestamp() * 1000)


def _coerce_type(value: InteractionType | str) -> InteractionType:
	try:
		return InteractionType(value)
	except ValueError as exc:
		raise ValidationError("invalid_type") from exc


def _require_id(value: Optional[str], field: str) -> str:
	text = str(value).strip() if value is not None else ""
	if not text:
		raise ValidationError(f"missing_{field}")
	return text


class InteractionLedger:
	"""Client-side ledger of discovery interactions."""

	def __init__(
		self,
		*,
		ttl_seconds: Optional[int] = None,
		clock: Optional[Callable[[], datetime]] = None,
	) -> None:
		self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.interaction_ttl_seconds
		self._clock = clock or _utcnow
		self._pending: set[asyncio.Task] = set()

	def build(
		self,
		actor_id: Optional[str],
		target_id: Optional[str],
		type: InteractionType | str,  # noqa: A002
		view_duration_ms: Optional[int] = None,
		metadata: Optional[dict[str, Any]] = None,
	) -> Interaction:
		"""Validate inputs and stamp a new record without persisting it."""
		actor = _require_id(actor_id, "actor_id")
		target = _require_id(target_id, "target_id")
		kind = _coerce_type(type)
		duration = int(view_duration_ms or 0)
		if duration < 0:
			raise ValidationError("negative_view_duration")
		now = self._clock()
		return Interaction(
			id=ulid.new().str,
			actor_id=actor,
			target_id=target,
			type=kind,
			view_duration_ms=duration,
			timestamp=now,
			expires_at=now + timedelta(seconds=self.ttl_seconds),
			metadata=dict(metadata or {}),
		)

	async def record(
		self,
		actor_id: Optional[str],
		target_id: Optional[str],
		type: InteractionType | str,  # noqa: A002
		view_duration_ms: Optional[int] = None,
		metadata: Optional[dict[str, Any]] = None,
	) -> Interaction:
		interaction = self.build(actor_id, target_id, type, view_duration_ms, metadata)
		score = _epoch_ms(interaction.timestamp)
		actor_key = _ACTOR_INDEX.format(actor_id=interaction.actor_id, type=interaction.type.value)
		target_key = _TARGET_INDEX.format(target_id=interaction.target_id, type=interaction.type.value)
		async with redis_client.pipeline(transaction=True) as pipe:
			pipe.set(_RECORD_KEY.format(id=interaction.id), interaction.model_dump_json(), ex=self.ttl_seconds)
			pipe.zadd(actor_key, {interaction.id: score})
			pipe.zadd(target_key, {interaction.id: score})
			pipe.expire(actor_key, self.ttl_seconds)
			pipe.expire(target_key, self.ttl_seconds)
			await pipe.execute()
		logger.debug(
			"interaction recorded",
			extra={"interaction_type": interaction.type.value, "target_id": interaction.target_id},
		)
		return interaction

	def record_in_background(
		self,
		actor_id: Optional[str],
		target_id: Optional[str],
		type: InteractionType | str,  # noqa: A002
		view_duration_ms: Optional[int] = None,
		metadata: Optional[dict[str, Any]] = None,
	) -> asyncio.Task:
		"""Schedule a write that never raises into the caller; failures are logged."""

		async def _write() -> Optional[Interaction]:
			try:
				return await self.record(actor_id, target_id, type, view_duration_ms, metadata)
			except ValidationError as exc:
				obs_metrics.inc_ledger_failure("validation")
				logger.warning("interaction rejected: %s", exc.reason, extra={"target_id": target_id})
			except Exception:
				obs_metrics.inc_ledger_failure("store")
				logger.warning("interaction write failed", exc_info=True, extra={"target_id": target_id})
			return None

		task = asyncio.create_task(_write(), name="gymbros-ledger-write")
		self._pending.add(task)
		task.add_done_callback(self._pending.discard)
		return task

	async def drain(self) -> None:
		"""Wait for every background write scheduled so far."""
		if self._pending:
			await asyncio.gather(*list(self._pending), return_exceptions=True)

	async def list_by_actor(self, actor_id: str, type: InteractionType | str, limit: int = 50) -> list[Interaction]:  # noqa: A002
		kind = _coerce_type(type)
		key = _ACTOR_INDEX.format(actor_id=_require_id(actor_id, "actor_id"), type=kind.value)
		return await self._list(key, limit)

	async def list_by_target(self, target_id: str, type: InteractionType | str, limit: int = 50) -> list[Interaction]:  # noqa: A002
		kind = _coerce_type(type)
		key = _TARGET_INDEX.format(target_id=_require_id(target_id, "target_id"), type=kind.value)
		return await self._list(key, limit)

	async def _list(self, index_key: str, limit: int) -> list[Interaction]:
		limit = max(0, min(int(limit), MAX_LIST_LIMIT))
		if limit == 0:
			return []
		now = self._clock()
		horizon = _epoch_ms(now) - self.ttl_seconds * 1000
		await redis_client.zremrangebyscore(index_key, "-inf", f"({horizon}")
		results: list[Interaction] = []
		offset = 0
		# Index members can point at records that already expired; keep paging past them
		while len(results) < limit:
			ids = await redis_client.zrevrangebyscore(index_key, "+inf", horizon, limit=limit, offset=offset)
			if not ids:
				break
			offset += len(ids)
			raws = await redis_client.mget([_RECORD_KEY.format(id=item) for item in ids])
			for raw in raws:
				if not raw:
					continue
				interaction = Interaction.model_validate(json.loads(raw))
				if interaction.expires_at <= now:
					continue
				results.append(interaction)
				if len(results) == limit:
					break
			if len(ids) < limit:
				break
		return results
