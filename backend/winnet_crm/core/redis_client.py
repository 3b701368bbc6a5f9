"""
Cliente Redis
Usado para a sequência diária de numeração dos orçamentos
"""
from typing import Optional

import redis.asyncio as aioredis
from loguru import logger

from winnet_crm.core.config import settings

_redis: Optional[aioredis.Redis] = None


async def init_redis() -> aioredis.Redis:
    global _redis
    _redis = aioredis.from_url(settings.REDIS_URL, encoding="utf-8", decode_responses=True)
    logger.info("Cliente Redis inicializado")
    return _redis


async def get_redis() -> aioredis.Redis:
    if _redis is None:
        return await init_redis()
    return _redis


async def close_redis() -> None:
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None
