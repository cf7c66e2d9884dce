# services/auth_service.py
"""
认证编排：登录、请求鉴权、刷新、注销、强制下线、修改密码、注册。

请求鉴权的状态推进（任一步失败即终止并抛出对应异常）：
    令牌提取 -> 解析验签 -> jti 未拉黑 -> 未命中用户级失效 -> 加载用户 -> 账号启用 -> 通过

所有协作者通过构造函数注入，本类不直接访问全局缓存或配置。
"""
from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Mapping, Optional

from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError

from constants.security import RATE_LIMIT_PREFIX, TokenType
from models.user import User
from services.blacklist_service import TokenBlacklistService
from services.password_policy_service import PasswordPolicyService
from services.rate_limit_service import RateLimiter
from services.token_service import TokenPair, TokenService
from utils.datetime_helpers import timestamp_to_iso, utcnow
from utils.exceptions import (
    AccountInactiveError,
    AuthError,
    AuthenticationFailedError,
    EmailTakenError,
    InvalidCredentialsError,
    InvalidTokenError,
    MissingTokenError,
    PasswordReusedError,
    PolicyViolationError,
    RevokedTokenError,
    WrongCurrentPasswordError,
)
from utils.password import hash_password

logger = logging.getLogger(__name__)

INFRA_ERRORS = (SQLAlchemyError, RedisError, OSError)


@dataclass
class AuthResult:
    user: User
    tokens: TokenPair

    def to_dict(self) -> dict:
        return {"user": self.user.to_dict(), "tokens": self.tokens.to_dict()}


@dataclass
class AuthContext:
    """一次成功鉴权的结果，供响应层输出过期提示。"""

    user: User
    claims: dict
    refresh_recommended: bool = False

    @property
    def expires_at(self) -> int:
        return self.claims["exp"]

    @property
    def expires_at_iso(self) -> str:
        return timestamp_to_iso(self.claims["exp"])


class AuthService:

    def __init__(self, user_repository, token_service: TokenService, blacklist_service: TokenBlacklistService,
                 policy_service: PasswordPolicyService, config: Mapping,
                 password_change_limiter: Optional[RateLimiter] = None):
        self.users = user_repository
        self.tokens = token_service
        self.blacklist = blacklist_service
        self.policy = policy_service
        self.config = config
        self.password_change_limiter = password_change_limiter

    @property
    def hash_method(self) -> str:
        return self.config.get("PASSWORD_HASH_METHOD", "scrypt")

    @property
    def refresh_recommend_seconds(self) -> int:
        return int(self.config.get("JWT_REFRESH_RECOMMEND_MINUTES", 10)) * 60

    @contextmanager
    def _infra_guard(self, action: str, **context):
        """存储 / 缓存故障统一记录后转为通用认证失败，不向外泄露内部细节。"""
        try:
            yield
        except INFRA_ERRORS:
            logger.exception("%s failed: backend unavailable", action, extra=context)
            self._safe_rollback()
            raise AuthenticationFailedError()

    def _safe_rollback(self):
        try:
            self.users.rollback()
        except SQLAlchemyError:
            logger.exception("rollback failed")

    # ========== 登录 ==========
    def authenticate(self, email: str, password: str) -> AuthResult:
        with self._infra_guard("authenticate"):
            user = self.users.find_by_email(email)
            if user is None or not self.users.verify_password(password or "", user.password_hash):
                logger.info("login rejected: invalid credentials")
                raise InvalidCredentialsError()
            if not user.is_active:
                logger.info("login rejected: account inactive", extra={"user_id": user.id})
                raise AccountInactiveError()

            tokens = self.tokens.issue_pair(user.id)
            self.users.update_last_login(user, utcnow())
            self.users.commit()

        logger.info("user logged in", extra={"user_id": user.id})
        return AuthResult(user=user, tokens=tokens)

    def register(self, email: str, password: str, name: Optional[str] = None) -> AuthResult:
        email = self.users.normalize_email(email)
        candidate = User(email=email, name=(name or "").strip() or None)
        result = self.policy.validate_password(password, candidate)
        if not result.valid:
            raise PolicyViolationError(result.errors, suggestions=result.suggestions)

        with self._infra_guard("register"):
            if self.users.exists_email(email):
                raise EmailTakenError()
            candidate.password_hash = hash_password(password, self.hash_method)
            candidate.touch_password_time()
            candidate.last_login_at = utcnow()
            self.users.add(candidate)
            self.users.commit()
            tokens = self.tokens.issue_pair(candidate.id)

        logger.info("user registered", extra={"user_id": candidate.id})
        return AuthResult(user=candidate, tokens=tokens)

    # ========== 请求鉴权 ==========
    def authenticate_request(self, raw_token: Optional[str]) -> AuthContext:
        if not raw_token:
            raise MissingTokenError()

        claims = self.tokens.parse(raw_token)
        if claims["type"] != TokenType.ACCESS.value:
            raise InvalidTokenError("刷新令牌不能用于访问接口")

        self._ensure_not_revoked(claims)

        with self._infra_guard("load user", token_id=claims["jti"]):
            user = self.users.find_by_id(claims["sub"])
        if user is None:
            raise InvalidTokenError("令牌对应的用户不存在")
        if not user.is_active:
            logger.info("request rejected: account inactive", extra={"user_id": user.id})
            raise AccountInactiveError()

        remaining = claims["exp"] - time.time()
        return AuthContext(
            user=user,
            claims=claims,
            refresh_recommended=remaining <= self.refresh_recommend_seconds,
        )

    def _ensure_not_revoked(self, claims: dict):
        if self.blacklist.is_blacklisted(claims["jti"]):
            logger.debug("token rejected: blacklisted", extra={"token_id": claims["jti"]})
            raise RevokedTokenError()
        if self.blacklist.is_user_token_blacklisted(claims["sub"], claims["iat"]):
            logger.debug("token rejected: user tokens revoked", extra={"user_id": claims["sub"]})
            raise RevokedTokenError()

    # ========== 刷新 ==========
    def refresh_session(self, raw_refresh_token: Optional[str]) -> TokenPair:
        if not raw_refresh_token:
            raise MissingTokenError("缺少刷新令牌")
        claims = self.tokens.parse_refresh(raw_refresh_token)
        self._ensure_not_revoked(claims)

        with self._infra_guard("load user", token_id=claims["jti"]):
            user = self.users.find_by_id(claims["sub"])
        if user is None:
            raise InvalidTokenError("令牌对应的用户不存在")
        if not user.is_active:
            logger.info("refresh rejected: account inactive", extra={"user_id": user.id})
            raise AccountInactiveError()

        pair = self.tokens.refresh(raw_refresh_token)
        if self.config.get("JWT_ROTATE_REFRESH_TOKENS", True):
            # 旧刷新令牌只能用一次
            self.blacklist.add_to_blacklist(claims["jti"], claims["exp"], claims["sub"])
        logger.info("session refreshed", extra={"user_id": claims["sub"]})
        return pair

    # ========== 注销 ==========
    def logout(self, raw_token: Optional[str], refresh_token: Optional[str] = None) -> bool:
        """尽力而为：无法解析 / 已过期的令牌本身已不可用，直接视为注销成功。"""
        ok = True
        for token in (raw_token, refresh_token):
            if not token:
                continue
            try:
                claims = self.tokens.parse(token)
            except AuthError:
                continue
            ok = self.blacklist.add_to_blacklist(claims["jti"], claims["exp"], claims["sub"]) and ok
        return ok

    def force_logout_all_sessions(self, user) -> bool:
        ok = self.blacklist.blacklist_all_user_tokens(user.id)
        if ok:
            logger.info("all sessions revoked", extra={"user_id": user.id})
        return ok

    # ========== 修改密码 ==========
    def change_password(self, user, current_password: str, new_password: str) -> TokenPair:
        limiter = self.password_change_limiter
        limiter_key = f"{RATE_LIMIT_PREFIX}password_change:{user.id}"
        if limiter is not None:
            with self._infra_guard("password change limiter", user_id=user.id):
                limiter.check(limiter_key)

        try:
            self._check_new_password(user, current_password, new_password)
        except (WrongCurrentPasswordError, PolicyViolationError, PasswordReusedError):
            if limiter is not None:
                with self._infra_guard("password change limiter", user_id=user.id):
                    limiter.hit(limiter_key)
            raise

        with self._infra_guard("change password", user_id=user.id):
            old_hash = user.password_hash
            self.policy.save_password_history(user, old_hash)
            self.users.update_password(user, hash_password(new_password, self.hash_method))
            self.users.commit()

        if limiter is not None:
            try:
                limiter.clear(limiter_key)
            except INFRA_ERRORS:
                # 密码已修改，计数随窗口自然过期
                logger.warning("password change limiter clear failed", exc_info=True, extra={"user_id": user.id})
        logger.info("password changed", extra={"user_id": user.id})

        if self.config.get("PASSWORD_CHANGE_REVOKE_ALL", True):
            self.force_logout_all_sessions(user)
        # 新令牌的 iat 不早于失效标记，调用方无需重新登录
        return self.tokens.issue_pair(user.id)

    def _check_new_password(self, user, current_password: str, new_password: str):
        if not self.users.verify_password(current_password or "", user.password_hash):
            raise WrongCurrentPasswordError()

        result = self.policy.validate_password(new_password, user)
        if not result.valid:
            raise PolicyViolationError(result.errors, suggestions=result.suggestions)

        with self._infra_guard("password history lookup", user_id=user.id):
            reused = self.policy.is_password_reused(user, new_password)
        if reused:
            raise PasswordReusedError()

    # ========== 令牌说明 ==========
    def describe_token(self, raw_token: Optional[str]) -> dict:
        if not raw_token:
            raise MissingTokenError()
        claims = self.tokens.parse(raw_token)
        self._ensure_not_revoked(claims)
        return {
            "valid": True,
            "type": claims["type"],
            "user_id": claims["sub"],
            "issued_at": timestamp_to_iso(claims["iat"]),
            "expires_at": timestamp_to_iso(claims["exp"]),
        }
