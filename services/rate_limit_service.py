# services/rate_limit_service.py
import hashlib
import logging

from constants.security import RATE_LIMIT_PREFIX
from repositories.rate_limit_repository import RateLimitRepository
from utils.exceptions import RateLimitedError

logger = logging.getLogger(__name__)


def resolve_signature(ip: str, endpoint: str) -> str:
    """IP + 接口路径：登录 / 刷新等接口按接口分别计数。"""
    return RATE_LIMIT_PREFIX + hashlib.sha1(f"{ip}|{endpoint}".encode()).hexdigest()


def resolve_client_signature(ip: str, user_agent: str) -> str:
    """IP + User-Agent：通用防刷。"""
    return RATE_LIMIT_PREFIX + "client:" + hashlib.sha1(f"{ip}|{user_agent or ''}".encode()).hexdigest()


class RateLimiter:
    """
    固定窗口失败计数：
      - check()：计数已达上限则抛出 RateLimitedError(retry_after)
      - hit()：记一次失败（401 类结果），首次命中开始计时
      - clear()：成功后清零
    """

    def __init__(self, repository: RateLimitRepository, max_attempts: int, decay_seconds: int):
        self.repository = repository
        self.max_attempts = int(max_attempts)
        self.decay_seconds = int(decay_seconds)

    def attempts(self, signature: str) -> int:
        return self.repository.get_fail_count(signature)

    def remaining(self, signature: str) -> int:
        return max(self.max_attempts - self.attempts(signature), 0)

    def available_in(self, signature: str) -> int:
        ttl = self.repository.get_ttl(signature)
        # -1: 无过期；-2: 不存在。两种情况都按整个窗口计算
        if ttl is None or ttl <= 0:
            return max(self.decay_seconds, 1)
        return int(ttl)

    def check(self, signature: str) -> bool:
        if self.attempts(signature) >= self.max_attempts:
            retry_after = self.available_in(signature)
            # 滥用期间会高频出现，只记 info
            logger.info("rate limit exceeded", extra={"retry_after": retry_after})
            raise RateLimitedError(retry_after=retry_after)
        return True

    def hit(self, signature: str) -> int:
        return self.repository.incr_fail(signature, self.decay_seconds)

    def clear(self, signature: str):
        self.repository.clear(signature)


def limiter_from_config(config, rule: str, repository: RateLimitRepository) -> RateLimiter:
    """按规则名（LOGIN / JWT / REFRESH / PASSWORD_CHANGE）读取 RATE_LIMIT_<rule>_* 配置。"""
    rule = rule.upper()
    max_attempts = config.get(f"RATE_LIMIT_{rule}_ATTEMPTS", config.get("RATE_LIMIT_JWT_ATTEMPTS", 5))
    decay_minutes = config.get(f"RATE_LIMIT_{rule}_DECAY_MINUTES", config.get("RATE_LIMIT_JWT_DECAY_MINUTES", 1))
    return RateLimiter(repository, max_attempts, int(decay_minutes) * 60)
