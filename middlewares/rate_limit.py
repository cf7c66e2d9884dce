# middlewares/rate_limit.py
import functools
import logging

from flask import current_app, make_response, request
from redis.exceptions import RedisError

from extensions.redis_client import get_cache
from repositories.rate_limit_repository import RateLimitRepository
from services.rate_limit_service import limiter_from_config, resolve_signature
from utils.exceptions import AuthenticationFailedError, BizError

logger = logging.getLogger(__name__)

LIMITER_ERRORS = (RedisError, OSError)


def _record(limiter, signature: str, status: int):
    try:
        if status == 401:
            limiter.hit(signature)
        else:
            limiter.clear(signature)
    except LIMITER_ERRORS:
        logger.exception("rate limiter unavailable", extra={"endpoint": request.path})
        raise AuthenticationFailedError()


def jwt_rate_limit(rule: str = "JWT"):
    """
    认证类接口的失败限流（固定窗口）：
      - 达到上限：直接 429，带 Retry-After
      - 响应为 401：计一次失败
      - 其他响应：清零
      - 计数缓存不可用：记录日志后按认证失败（401）处理
    rule 对应配置 RATE_LIMIT_<rule>_ATTEMPTS / RATE_LIMIT_<rule>_DECAY_MINUTES。
    """
    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            limiter = limiter_from_config(current_app.config, rule, RateLimitRepository(get_cache()))
            signature = resolve_signature(request.remote_addr or "-", request.path)
            try:
                limiter.check(signature)
            except LIMITER_ERRORS:
                logger.exception("rate limiter unavailable", extra={"endpoint": request.path})
                raise AuthenticationFailedError()

            try:
                resp = make_response(fn(*args, **kwargs))
            except BizError as e:
                _record(limiter, signature, e.code)
                raise

            _record(limiter, signature, resp.status_code)
            return resp

        return wrapper

    return decorator
