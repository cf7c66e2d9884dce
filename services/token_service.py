# services/token_service.py
from __future__ import annotations

import time
import uuid
from dataclasses import dataclass
from typing import Mapping, Optional

from constants.security import TokenType
from extensions.jwt import ALGORITHMS, decode_token, encode_token
from utils.exceptions import InvalidTokenError, TokenConfigError


@dataclass(frozen=True)
class IssuedToken:
    token: str
    claims: dict

    @property
    def jti(self) -> str:
        return self.claims["jti"]

    @property
    def expires_at(self) -> int:
        return self.claims["exp"]


@dataclass(frozen=True)
class TokenPair:
    access: IssuedToken
    refresh: IssuedToken
    token_type: str = "bearer"

    @property
    def access_token(self) -> str:
        return self.access.token

    @property
    def refresh_token(self) -> str:
        return self.refresh.token

    def to_dict(self, now: Optional[int] = None) -> dict:
        current = int(time.time()) if now is None else now
        return {
            "access_token": self.access.token,
            "refresh_token": self.refresh.token,
            "token_type": self.token_type,
            "expires_in": max(self.access.expires_at - current, 0),
            "refresh_expires_in": max(self.refresh.expires_at - current, 0),
        }


class TokenService:
    """签发 / 解析 / 刷新令牌。不访问黑名单，吊销策略由 AuthService 决定。"""

    def __init__(self, config: Mapping):
        self.secret = config.get("JWT_SECRET_KEY")
        self.algorithm = config.get("JWT_ALGORITHM", "HS256")
        self.access_ttl_minutes = int(config.get("JWT_ACCESS_TTL_MINUTES", 60))
        self.refresh_ttl_minutes = int(config.get("JWT_REFRESH_TTL_MINUTES", 20160))
        self.leeway = int(config.get("JWT_LEEWAY_SECONDS", 0))
        if not self.secret:
            raise TokenConfigError("JWT_SECRET_KEY 未配置")
        if self.algorithm not in ALGORITHMS:
            raise TokenConfigError(f"不支持的签名算法: {self.algorithm}")

    def ttl_minutes_for(self, token_type: TokenType | str) -> int:
        if TokenType(token_type) is TokenType.REFRESH:
            return self.refresh_ttl_minutes
        return self.access_ttl_minutes

    @property
    def max_ttl_seconds(self) -> int:
        return max(self.access_ttl_minutes, self.refresh_ttl_minutes) * 60

    def issue(self, user_id, token_type: TokenType | str = TokenType.ACCESS,
              ttl_minutes: Optional[int] = None, issued_at: Optional[int] = None) -> IssuedToken:
        token_type = TokenType(token_type)
        ttl = self.ttl_minutes_for(token_type) if ttl_minutes is None else int(ttl_minutes)
        now = int(time.time()) if issued_at is None else int(issued_at)
        claims = {
            "sub": user_id,
            "iat": now,
            "exp": now + ttl * 60,
            "jti": uuid.uuid4().hex,
            "type": token_type.value,
        }
        return IssuedToken(token=encode_token(claims, self.secret, self.algorithm), claims=claims)

    def issue_pair(self, user_id, issued_at: Optional[int] = None) -> TokenPair:
        return TokenPair(
            access=self.issue(user_id, TokenType.ACCESS, issued_at=issued_at),
            refresh=self.issue(user_id, TokenType.REFRESH, issued_at=issued_at),
        )

    def parse(self, token: str, now: Optional[float] = None) -> dict:
        claims = decode_token(token, self.secret, self.algorithm, leeway=self.leeway, now=now)
        if claims.get("type") not in (TokenType.ACCESS.value, TokenType.REFRESH.value):
            raise InvalidTokenError("未知的令牌类型")
        return claims

    def parse_refresh(self, token: str) -> dict:
        claims = self.parse(token)
        if claims["type"] != TokenType.REFRESH.value:
            raise InvalidTokenError("需要刷新令牌")
        return claims

    def refresh(self, refresh_token: str) -> TokenPair:
        claims = self.parse_refresh(refresh_token)
        return self.issue_pair(claims["sub"])
