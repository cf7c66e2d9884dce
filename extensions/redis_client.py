# extensions/redis_client.py
"""黑名单与限流计数共用的键值缓存。

生产环境使用 Redis；``CACHE_BACKEND=memory`` 时使用进程内的
:class:`MemoryCache`（单进程开发 / 单元测试），两者暴露同一组命令。
"""
import fnmatch
import math
import threading
import time
from typing import Any, Dict, Iterator, Optional, Tuple

import redis
from flask import current_app

_EXTENSION_KEY = "cache"


class MemoryCache:
    """进程内缓存，实现本项目用到的 Redis 命令子集。

    每个命令在锁内完成，等价于 Redis 的单键原子性。
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._store: Dict[str, Tuple[Any, Optional[float]]] = {}

    # ---------- 内部 ----------
    def _alive(self, name: str):
        item = self._store.get(name)
        if item is None:
            return None
        value, expires_at = item
        if expires_at is not None and expires_at <= time.time():
            # 过期后移除并表现为不存在
            self._store.pop(name, None)
            return None
        return item

    # ---------- string ----------
    def get(self, name: str):
        with self._lock:
            item = self._alive(name)
            return None if item is None else item[0]

    def set(self, name: str, value: Any, ex: Optional[int] = None):
        with self._lock:
            expires_at = time.time() + int(ex) if ex else None
            self._store[name] = (str(value), expires_at)
            return True

    def setex(self, name: str, time_to_live: int, value: Any):
        return self.set(name, value, ex=time_to_live)

    def incr(self, name: str, amount: int = 1) -> int:
        with self._lock:
            item = self._alive(name)
            if item is None:
                value, expires_at = 0, None
            else:
                value, expires_at = int(item[0]), item[1]
            value += amount
            self._store[name] = (str(value), expires_at)
            return value

    # ---------- keys ----------
    def exists(self, *names: str) -> int:
        with self._lock:
            return sum(1 for n in names if self._alive(n) is not None)

    def delete(self, *names: str) -> int:
        with self._lock:
            removed = 0
            for n in names:
                if self._alive(n) is not None:
                    removed += 1
                self._store.pop(n, None)
            return removed

    def expire(self, name: str, seconds: int) -> bool:
        with self._lock:
            item = self._alive(name)
            if item is None:
                return False
            self._store[name] = (item[0], time.time() + int(seconds))
            return True

    def ttl(self, name: str) -> int:
        with self._lock:
            item = self._alive(name)
            if item is None:
                return -2
            if item[1] is None:
                return -1
            return max(int(math.ceil(item[1] - time.time())), 0)

    def scan_iter(self, match: Optional[str] = None, count: Optional[int] = None) -> Iterator[str]:
        with self._lock:
            names = [n for n in list(self._store) if self._alive(n) is not None]
        for n in names:
            if match is None or fnmatch.fnmatchcase(n, match):
                yield n

    # ---------- set ----------
    def sadd(self, name: str, *values: Any) -> int:
        with self._lock:
            item = self._alive(name)
            members, expires_at = (set(), None) if item is None else (item[0], item[1])
            before = len(members)
            members = set(members) | {str(v) for v in values}
            self._store[name] = (members, expires_at)
            return len(members) - before

    def smembers(self, name: str) -> set:
        with self._lock:
            item = self._alive(name)
            return set() if item is None else set(item[0])

    # ---------- misc ----------
    def ping(self) -> bool:
        return True

    def flushall(self):
        with self._lock:
            self._store.clear()
        return True

    def close(self):
        pass


def build_redis(url: str, socket_timeout: float = 2.0) -> redis.Redis:
    # 显式超时：缓存不可达时快速失败，由调用方决定 fail-open / fail-closed
    return redis.from_url(
        url,
        decode_responses=True,
        socket_timeout=socket_timeout,
        socket_connect_timeout=socket_timeout,
    )


def init_cache(app):
    cfg = app.config
    backend = (cfg.get("CACHE_BACKEND") or "redis").lower()
    if backend == "memory":
        client = MemoryCache()
        app.logger.warning("CACHE_BACKEND=memory: token blacklist is process-local")
    elif backend == "redis":
        client = build_redis(cfg["REDIS_URL"], cfg.get("REDIS_SOCKET_TIMEOUT", 2.0))
    else:
        raise RuntimeError(f"Unsupported CACHE_BACKEND: {backend}")
    app.extensions[_EXTENSION_KEY] = client
    return client


def get_cache():
    return current_app.extensions[_EXTENSION_KEY]
