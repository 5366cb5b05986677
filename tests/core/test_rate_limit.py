"""
Tests for the sliding-window rate limiter.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from app.core import rate_limit


@pytest.fixture(autouse=True)
def clear_memory_store():
    rate_limit._memory_store.clear()
    yield
    rate_limit._memory_store.clear()


class TestMemoryFallback:
    @pytest.mark.asyncio
    async def test_limit_applies_without_redis(self):
        with patch("app.core.rate_limit.get_redis", new=AsyncMock(return_value=None)):
            results = [
                await rate_limit.check_rate_limit("admissions:submit:10.0.0.1", 3, 3600)
                for _ in range(4)
            ]

        assert results == [True, True, True, False]

    @pytest.mark.asyncio
    async def test_keys_are_independent(self):
        with patch("app.core.rate_limit.get_redis", new=AsyncMock(return_value=None)):
            assert await rate_limit.check_rate_limit("a", 1, 60)
            assert await rate_limit.check_rate_limit("b", 1, 60)
            assert not await rate_limit.check_rate_limit("a", 1, 60)

    @pytest.mark.asyncio
    async def test_redis_error_falls_back_to_memory(self):
        pipeline = MagicMock()
        pipeline.execute = AsyncMock(side_effect=RedisConnectionError("down"))
        client = MagicMock()
        client.pipeline.return_value = pipeline

        with patch("app.core.rate_limit.get_redis", new=AsyncMock(return_value=client)):
            allowed = await rate_limit.check_rate_limit("admissions:submit:10.0.0.2", 1, 60)

        assert allowed is True
        assert "admissions:submit:10.0.0.2" in rate_limit._memory_store


class TestRedisWindow:
    @pytest.mark.asyncio
    async def test_count_below_limit_is_allowed(self):
        pipeline = MagicMock()
        pipeline.execute = AsyncMock(return_value=[0, 2, 1, True])
        client = MagicMock()
        client.pipeline.return_value = pipeline

        with patch("app.core.rate_limit.get_redis", new=AsyncMock(return_value=client)):
            assert await rate_limit.check_rate_limit("k", 3, 60) is True

    @pytest.mark.asyncio
    async def test_count_at_limit_is_rejected(self):
        pipeline = MagicMock()
        pipeline.execute = AsyncMock(return_value=[0, 3, 1, True])
        client = MagicMock()
        client.pipeline.return_value = pipeline

        with patch("app.core.rate_limit.get_redis", new=AsyncMock(return_value=client)):
            assert await rate_limit.check_rate_limit("k", 3, 60) is False
