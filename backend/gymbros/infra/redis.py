"""Shared Redis handle for the interaction ledger.

Modules import ``redis_client`` once at import time; tests point it at
fakeredis through ``set_redis_client`` and every importer sees the swap.
"""

from __future__ import annotations

import redis.asyncio as redis

from gymbros.settings import settings


class RedisProxy:
	"""Forwards commands to whichever client is currently installed."""

	def __init__(self, client: redis.Redis):
		self._client: redis.Redis = client

	def set_client(self, client: redis.Redis) -> None:
		self._client = client

	async def zrevrangebyscore(
		self, name, max, min, *, limit: int | None = None, offset: int = 0, withscores: bool = False  # noqa: A002
	):
		"""Newest-first range read; ``limit`` members starting ``offset`` into the range."""
		if limit is None:
			return await self._client.zrevrangebyscore(name, max, min, withscores=withscores)
		return await self._client.zrevrangebyscore(name, max, min, start=offset, num=limit, withscores=withscores)

	def __getattr__(self, item):
		return getattr(self._client, item)


# Connects lazily on first command
redis_client: RedisProxy = RedisProxy(redis.from_url(settings.redis_url, decode_responses=True))


def set_redis_client(client: redis.Redis) -> None:
	redis_client.set_client(client)
