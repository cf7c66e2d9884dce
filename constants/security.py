# constants/security.py
"""认证相关的常量：令牌类型、缓存键前缀、响应头名。"""

from enum import Enum


class TokenType(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


# 单个令牌黑名单：jwt:blacklist:<jti>
BLACKLIST_PREFIX = "jwt:blacklist:"
# 用户级“全部令牌失效”标记：jwt:user_blacklist:<user_id>
USER_BLACKLIST_PREFIX = "jwt:user_blacklist:"
# 用户已拉黑 jti 的索引（仅审计）：jwt:user_tokens:<user_id>
USER_TOKENS_PREFIX = "jwt:user_tokens:"
# 限流计数
RATE_LIMIT_PREFIX = "jwt_rate_limit:"

# 用户 jti 索引的最短保留时间（秒）
USER_TOKENS_MIN_TTL = 3600

HEADER_EXPIRES_AT = "X-JWT-Expires-At"
HEADER_REFRESH_RECOMMENDED = "X-JWT-Refresh-Recommended"
EXPOSED_HEADERS = f"{HEADER_EXPIRES_AT}, {HEADER_REFRESH_RECOMMENDED}"


class StrengthLevel(str, Enum):
    VERY_WEAK = "very_weak"
    WEAK = "weak"
    FAIR = "fair"
    GOOD = "good"
    STRONG = "strong"
