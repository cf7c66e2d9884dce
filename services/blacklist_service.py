# services/blacklist_service.py
"""
令牌黑名单（吊销存储）。

- 单令牌：按 jti 记录，TTL = 令牌剩余寿命，到期由缓存自动清除。
- 用户级：记录“全部令牌失效”时间点，iat 早于该时间点的令牌一律视为已吊销。

缓存异常时，检查类接口按“已吊销”处理（fail closed）；写入类接口返回 False。
"""
import logging
import time
from typing import List, Optional

from redis.exceptions import RedisError

from repositories.token_repository import TokenRepository
from constants.security import USER_TOKENS_MIN_TTL

logger = logging.getLogger(__name__)

# 缓存不可用时可能抛出的异常（超时、连接断开、序列化损坏）
CACHE_ERRORS = (RedisError, OSError, ValueError)

DEFAULT_USER_BLACKLIST_TTL = 24 * 3600


class TokenBlacklistService:

    def __init__(self, repository: TokenRepository, user_blacklist_ttl: int = DEFAULT_USER_BLACKLIST_TTL,
                 min_user_blacklist_ttl: int = 0):
        self.repository = repository
        # 标记至少要活过系统中最长的令牌
        self.user_blacklist_ttl = max(int(user_blacklist_ttl), int(min_user_blacklist_ttl))

    def add_to_blacklist(self, jti: str, expires_at: int, user_id=None) -> bool:
        now = int(time.time())
        ttl = int(expires_at) - now
        if ttl <= 0:
            # 令牌已过期，本身已不可用
            return True
        entry = {"blacklisted_at": now, "expires_at": int(expires_at), "user_id": user_id}
        try:
            self.repository.put_token(jti, entry, ttl)
        except CACHE_ERRORS:
            logger.exception("token blacklist write failed", extra={"token_id": jti, "user_id": user_id})
            return False
        if user_id is not None:
            try:
                self.repository.index_user_token(user_id, jti, max(ttl, USER_TOKENS_MIN_TTL))
            except CACHE_ERRORS as e:
                # 令牌已拉黑，仅审计索引缺失
                logger.warning("user token index write failed: %s", e, extra={"token_id": jti, "user_id": user_id})
        logger.info("token blacklisted", extra={"token_id": jti, "user_id": user_id})
        return True

    def is_blacklisted(self, jti: str) -> bool:
        try:
            return self.repository.has_token(jti)
        except CACHE_ERRORS as e:
            logger.warning("blacklist check failed, rejecting token: %s", e, extra={"token_id": jti})
            return True

    def remove_from_blacklist(self, jti: str) -> bool:
        try:
            removed = self.repository.delete_token(jti)
        except CACHE_ERRORS:
            logger.exception("token blacklist delete failed", extra={"token_id": jti})
            return False
        logger.info("token removed from blacklist", extra={"token_id": jti})
        return removed

    def blacklist_all_user_tokens(self, user_id, now: Optional[int] = None) -> bool:
        marker = {"blacklisted_at": int(time.time()) if now is None else int(now), "all_tokens": True}
        try:
            self.repository.put_user_marker(user_id, marker, self.user_blacklist_ttl)
        except CACHE_ERRORS:
            logger.exception("user token blacklist write failed", extra={"user_id": user_id})
            return False
        logger.info("all user tokens blacklisted", extra={"user_id": user_id})
        return True

    def is_user_token_blacklisted(self, user_id, token_issued_at: int) -> bool:
        try:
            marker = self.repository.get_user_marker(user_id)
        except CACHE_ERRORS as e:
            logger.warning("user blacklist check failed, rejecting token: %s", e, extra={"user_id": user_id})
            return True
        if not marker or not marker.get("all_tokens"):
            return False
        return int(token_issued_at) < int(marker["blacklisted_at"])

    def clear_user_blacklist(self, user_id) -> bool:
        try:
            return self.repository.delete_user_marker(user_id)
        except CACHE_ERRORS:
            logger.exception("user token blacklist delete failed", extra={"user_id": user_id})
            return False

    def get_user_blacklisted_tokens(self, user_id) -> List[str]:
        return self.repository.user_tokens(user_id)

    def get_statistics(self) -> dict:
        try:
            return {
                "total_blacklisted_tokens": self.repository.count_tokens(),
                "users_with_blacklisted_tokens": self.repository.count_user_markers(),
            }
        except CACHE_ERRORS as e:
            logger.exception("blacklist statistics failed")
            return {
                "total_blacklisted_tokens": 0,
                "users_with_blacklisted_tokens": 0,
                "error": str(e),
            }
