"""Redis-backed task store for durable scheduler state."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional
from redis.asyncio import Redis, ConnectionPool
from redis.exceptions import LockError, RedisError, ConnectionError as RedisConnectionError

from .base import BaseTaskStore
from ..models.scheduling_models import Task
from ..config.scheduler_config import SchedulerConfig

logger = logging.getLogger(__name__)


class RedisTaskStore(BaseTaskStore):
    """
    Task store persisted in Redis.

    Each task is a JSON string under ``{prefix}:task:{id}``. Insertion order
    is kept in the list ``{prefix}:tasks``.
    """

    def __init__(self, config: SchedulerConfig):
        """
        Initialize Redis task store.

        Args:
            config: Scheduler configuration
        """
        self.config = config
        self.prefix = config.redis_key_prefix
        self._pool: Optional[ConnectionPool] = None
        self._redis: Optional[Redis] = None

    async def _get_redis(self) -> Redis:
        """
        Get Redis client with connection pooling and retry logic.

        Returns:
            Redis async client
        """
        if self._redis is None:
            self._pool = ConnectionPool.from_url(
                self.config.redis_url,
                max_connections=self.config.connection_pool_size,
                decode_responses=True,
            )
            self._redis = Redis(connection_pool=self._pool)

            max_retries = 3
            for attempt in range(max_retries):
                try:
                    await self._redis.ping()
                    logger.info("Redis connection established successfully")
                    break
                except (RedisConnectionError, RedisError) as e:
                    if attempt == max_retries - 1:
                        logger.error(
                            f"Failed to connect to Redis after {max_retries} attempts: {e}"
                        )
                        raise
                    logger.warning(
                        f"Redis connection attempt {attempt + 1} failed, retrying..."
                    )
                    await asyncio.sleep(1)

        return self._redis

    async def get_client(self) -> Redis:
        """Shared Redis client, e.g. for an activity recorder."""
        return await self._get_redis()

    def _task_key(self, task_id: str) -> str:
        return f"{self.prefix}:task:{task_id}"

    @property
    def _index_key(self) -> str:
        return f"{self.prefix}:tasks"

    @property
    def _lock_key(self) -> str:
        return f"{self.prefix}:lock"

    @asynccontextmanager
    async def lock(self) -> AsyncIterator[None]:
        """
        Hold the store-wide Redis lock.

        Serializes read-decide-write sequences across processes sharing the
        prefix. The lock expires after ``lock_timeout_seconds`` so a crashed
        holder cannot block the others forever.

        Raises:
            LockError: If the lock is not acquired within the timeout
        """
        redis = await self._get_redis()
        lock = redis.lock(
            self._lock_key,
            timeout=self.config.lock_timeout_seconds,
            blocking_timeout=self.config.lock_timeout_seconds,
        )

        if not await lock.acquire():
            logger.error(f"Timed out waiting for task store lock {self._lock_key}")
            raise LockError(f"Could not acquire {self._lock_key}")

        try:
            yield
        finally:
            await lock.release()

    async def put(self, task: Task) -> None:
        self._validate(task)
        redis = await self._get_redis()
        key = self._task_key(task.id)

        try:
            is_new = not await redis.exists(key)
            await redis.set(key, task.model_dump_json())
            if is_new:
                await redis.rpush(self._index_key, task.id)
            logger.debug(f"Stored task {task.id} ({task.status.value})")
        except RedisError as e:
            logger.error(f"Failed to store task {task.id}: {e}")
            raise

    async def get(self, task_id: str) -> Optional[Task]:
        redis = await self._get_redis()

        try:
            data = await redis.get(self._task_key(task_id))
        except RedisError as e:
            logger.error(f"Failed to load task {task_id}: {e}")
            raise

        if not data:
            return None
        return Task.model_validate_json(data)

    async def all(self) -> List[Task]:
        redis = await self._get_redis()

        try:
            task_ids = await redis.lrange(self._index_key, 0, -1)
            if not task_ids:
                return []
            payloads = await redis.mget([self._task_key(tid) for tid in task_ids])
        except RedisError as e:
            logger.error(f"Failed to list tasks: {e}")
            raise

        # Index entries whose payload vanished are skipped
        return [Task.model_validate_json(p) for p in payloads if p]

    async def clear(self) -> None:
        """Remove every task under this store's prefix."""
        redis = await self._get_redis()
        task_ids = await redis.lrange(self._index_key, 0, -1)
        keys = [self._task_key(tid) for tid in task_ids] + [self._index_key]
        await redis.delete(*keys)
        logger.info(f"Cleared {len(task_ids)} tasks from Redis")

    async def close(self) -> None:
        """Close Redis connection."""
        if self._redis:
            await self._redis.close()
            self._redis = None
        if self._pool:
            await self._pool.disconnect()
            self._pool = None
