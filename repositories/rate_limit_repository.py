# repositories/rate_limit_repository.py


class RateLimitRepository:
    """限流计数器：INCR + 首次命中时 EXPIRE，形成固定窗口。"""

    def __init__(self, cache):
        self.cache = cache

    def get_fail_count(self, key: str) -> int:
        v = self.cache.get(key)
        return int(v) if v else 0

    def incr_fail(self, key: str, block_seconds: int) -> int:
        v = self.cache.incr(key)
        if v == 1:
            self.cache.expire(key, block_seconds)
        elif self.cache.ttl(key) == -1:
            # 上一次 EXPIRE 未成功时补上，防止计数永不过期
            self.cache.expire(key, block_seconds)
        return v

    def get_ttl(self, key: str) -> int:
        return self.cache.ttl(key)

    def clear(self, key: str):
        self.cache.delete(key)
