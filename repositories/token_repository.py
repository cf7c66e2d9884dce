# repositories/token_repository.py
import json
from typing import List, Optional

from constants.security import (
    BLACKLIST_PREFIX,
    USER_BLACKLIST_PREFIX,
    USER_TOKENS_PREFIX,
)


class TokenRepository:
    """令牌黑名单在缓存中的读写。只做键布局与序列化，异常原样抛出。"""

    def __init__(self, cache):
        self.cache = cache

    # ---------- 单令牌 ----------
    def put_token(self, jti: str, entry: dict, ttl_seconds: int):
        self.cache.set(BLACKLIST_PREFIX + jti, json.dumps(entry), ex=int(ttl_seconds))

    def has_token(self, jti: str) -> bool:
        return self.cache.exists(BLACKLIST_PREFIX + jti) == 1

    def delete_token(self, jti: str) -> bool:
        return self.cache.delete(BLACKLIST_PREFIX + jti) > 0

    # ---------- 用户级标记 ----------
    def put_user_marker(self, user_id, entry: dict, ttl_seconds: int):
        self.cache.set(USER_BLACKLIST_PREFIX + str(user_id), json.dumps(entry), ex=int(ttl_seconds))

    def get_user_marker(self, user_id) -> Optional[dict]:
        raw = self.cache.get(USER_BLACKLIST_PREFIX + str(user_id))
        return json.loads(raw) if raw else None

    def delete_user_marker(self, user_id) -> bool:
        return self.cache.delete(USER_BLACKLIST_PREFIX + str(user_id)) > 0

    # ---------- 用户 jti 索引 ----------
    def index_user_token(self, user_id, jti: str, ttl_seconds: int):
        key = USER_TOKENS_PREFIX + str(user_id)
        self.cache.sadd(key, jti)
        # 只延长不缩短，保证索引覆盖其中寿命最长的令牌
        if self.cache.ttl(key) < int(ttl_seconds):
            self.cache.expire(key, int(ttl_seconds))

    def user_tokens(self, user_id) -> List[str]:
        return sorted(self.cache.smembers(USER_TOKENS_PREFIX + str(user_id)))

    # ---------- 统计 ----------
    def _count(self, pattern: str) -> int:
        return sum(1 for _ in self.cache.scan_iter(match=pattern, count=500))

    def count_tokens(self) -> int:
        return self._count(BLACKLIST_PREFIX + "*")

    def count_user_markers(self) -> int:
        return self._count(USER_BLACKLIST_PREFIX + "*")
