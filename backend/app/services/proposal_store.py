"""
Proposal Store.

Holds optimizer runs in Redis between "optimize" and "apply"/"discard".
Runs expire on their own after ``optimizer_proposal_ttl_seconds``.
"""

import logging
from typing import Optional

from pydantic import ValidationError as PydanticValidationError
from redis.exceptions import RedisError

from backend.app.core.config import settings
from backend.app.core.exceptions import ResourceNotFoundError, UpstreamError
from backend.app.schemas.optimization import OptimizationRun

logger = logging.getLogger("nemt_dispatch.proposals")

# Redis key prefix for optimizer runs
RUN_KEY_PREFIX = "optimizer:run:"


class ProposalStore:

    def __init__(self, redis, ttl_seconds: Optional[int] = None):
        self.redis = redis
        self.ttl_seconds = ttl_seconds or settings.optimizer_proposal_ttl_seconds

    @staticmethod
    def _key(run_id: str) -> str:
        return f"{RUN_KEY_PREFIX}{run_id}"

    async def save(self, run: OptimizationRun) -> None:
        try:
            await self.redis.set(self._key(run.run_id), run.model_dump_json(), ex=self.ttl_seconds)
        except RedisError as e:
            raise UpstreamError("Proposal store", str(e))

    async def load(self, run_id: str) -> OptimizationRun:
        """
        Raises:
            ResourceNotFoundError: unknown, expired, already applied or discarded run
        """
        try:
            raw = await self.redis.get(self._key(run_id))
        except RedisError as e:
            raise UpstreamError("Proposal store", str(e))
        if raw is None:
            raise ResourceNotFoundError("Optimization run", run_id)
        try:
            return OptimizationRun.model_validate_json(raw)
        except PydanticValidationError:
            logger.error("Discarding unreadable optimization run %s", run_id)
            await self.discard(run_id)
            raise ResourceNotFoundError("Optimization run", run_id)

    async def discard(self, run_id: str) -> bool:
        try:
            return bool(await self.redis.delete(self._key(run_id)))
        except RedisError as e:
            raise UpstreamError("Proposal store", str(e))
