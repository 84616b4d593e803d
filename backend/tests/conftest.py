import sys
from pathlib import Path

import pytest
import pytest_asyncio
from fakeredis.aioredis import FakeRedis

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))
TESTS_ROOT = Path(__file__).resolve().parent
if str(TESTS_ROOT) not in sys.path:
	sys.path.insert(0, str(TESTS_ROOT))

from discovery_fakes import FakeClock, make_profile


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	from gymbros.infra.redis import redis_client, set_redis_client
	original = redis_client._client
	client = FakeRedis(decode_responses=True)
	set_redis_client(client)
	try:
		yield client
	finally:
		set_redis_client(original)
		await client.flushall()


@pytest.fixture
def clock():
	return FakeClock()


@pytest.fixture
def viewer():
	return make_profile(
		"viewer",
		workout_types=["Yoga", "Running"],
		experience_level="Intermediate",
		preferred_time="Morning",
		location={"lat": 40.0, "lng": -74.0},
	)


@pytest.fixture
def catalogue():
	return [make_profile(f"p{i}") for i in range(1, 13)]
