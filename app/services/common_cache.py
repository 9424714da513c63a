"""
通用缓存工具
基于Redis的简单缓存，只缓存可随时重新获取的数据（如支付网关访问令牌）
"""

import json
import logging
from typing import Optional, Any
import redis.asyncio as redis

logger = logging.getLogger(__name__)


class SimpleCache:
    """简单缓存管理器"""

    def __init__(self, redis_client: Optional[redis.Redis] = None, key_prefix: str = ""):
        self.redis_client = redis_client
        self.key_prefix = key_prefix

    def _get_key(self, key: str) -> str:
        """获取完整的缓存key"""
        return f"{self.key_prefix}{key}" if self.key_prefix else key

    async def get(self, key: str) -> Optional[Any]:
        """获取缓存值"""
        if not self.redis_client:
            return None
        try:
            full_key = self._get_key(key)
            data = await self.redis_client.get(full_key)

            if data:
                return json.loads(data)

            return None

        except Exception as e:
            logger.error(f"获取缓存失败 {key}: {e}")
            return None

    async def set(self, key: str, value: Any, ttl: int = 3600) -> bool:
        """设置缓存值"""
        if not self.redis_client:
            return False
        try:
            full_key = self._get_key(key)
            data = json.dumps(value, default=str, ensure_ascii=False)

            await self.redis_client.setex(full_key, ttl, data)
            return True

        except Exception as e:
            logger.error(f"设置缓存失败 {key}: {e}")
            return False


# 支付网关访问令牌缓存（多进程共享，失效时重新申请）
provider_token_cache = SimpleCache(key_prefix="yapay:")
