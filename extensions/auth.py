# extensions/auth.py
"""按应用组装认证相关服务，挂在 app.extensions["auth"] 上。"""
from flask import current_app

from extensions.redis_client import get_cache
from repositories.password_history_repository import PasswordHistoryRepository
from repositories.rate_limit_repository import RateLimitRepository
from repositories.token_repository import TokenRepository
from repositories.user_repository import UserRepository
from services.auth_service import AuthService
from services.blacklist_service import TokenBlacklistService
from services.password_policy_service import PasswordPolicyService
from services.rate_limit_service import limiter_from_config
from services.token_service import TokenService

_EXTENSION_KEY = "auth"


def build_auth_service(config, cache) -> AuthService:
    token_service = TokenService(config)
    blacklist = TokenBlacklistService(
        TokenRepository(cache),
        user_blacklist_ttl=config.get("JWT_USER_BLACKLIST_TTL_SECONDS", 24 * 3600),
        min_user_blacklist_ttl=token_service.max_ttl_seconds,
    )
    return AuthService(
        user_repository=UserRepository,
        token_service=token_service,
        blacklist_service=blacklist,
        policy_service=PasswordPolicyService(config, PasswordHistoryRepository),
        config=config,
        password_change_limiter=limiter_from_config(config, "PASSWORD_CHANGE", RateLimitRepository(cache)),
    )


def init_auth(app) -> AuthService:
    # 依赖 init_cache 先执行；密钥缺失在这里直接抛 TokenConfigError
    with app.app_context():
        service = build_auth_service(app.config, get_cache())
    app.extensions[_EXTENSION_KEY] = service
    return service


def get_auth_service() -> AuthService:
    return current_app.extensions[_EXTENSION_KEY]
