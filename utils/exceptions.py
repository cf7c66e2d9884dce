# utils/exceptions.py
from typing import Any, List, Optional
from werkzeug.exceptions import HTTPException


class BizError(HTTPException):
    code: int  # HTTP 状态码
    message: str  # 业务提示
    data: Optional[Any]  # 附加数据
    error_code: str  # 机器可读错误码

    default_message = "业务异常"
    default_code = 400
    default_error_code = "BIZ_ERROR"

    def __init__(self, message: Optional[str] = None, code: Optional[int] = None, data: Any = None,
                 error_code: Optional[str] = None):
        self.code = code if code is not None else self.default_code
        self.message = message or self.default_message
        self.data = data
        self.error_code = error_code or self.default_error_code
        super().__init__(description=self.message)


# ========== 认证失败（统一 401） ==========
class AuthError(BizError):
    default_message = "认证失败"
    default_code = 401
    default_error_code = "AUTH_FAILED"


class InvalidCredentialsError(AuthError):
    # 用户不存在与密码错误使用同一提示，避免枚举邮箱
    default_message = "邮箱或密码不正确"
    default_error_code = "INVALID_CREDENTIALS"


class AccountInactiveError(AuthError):
    default_message = "账号已被禁用"
    default_error_code = "ACCOUNT_INACTIVE"


class MissingTokenError(AuthError):
    default_message = "缺少访问令牌"
    default_error_code = "TOKEN_MISSING"


class InvalidTokenError(AuthError):
    default_message = "令牌无效"
    default_error_code = "TOKEN_INVALID"


class ExpiredTokenError(AuthError):
    default_message = "令牌已过期"
    default_error_code = "TOKEN_EXPIRED"


class RevokedTokenError(AuthError):
    default_message = "令牌已失效，请重新登录"
    default_error_code = "TOKEN_REVOKED"


class AuthenticationFailedError(AuthError):
    """存储或缓存故障时对外暴露的通用认证失败。"""


# ========== 限流 ==========
class RateLimitedError(BizError):
    default_message = "请求过于频繁，请稍后再试"
    default_code = 429
    default_error_code = "RATE_LIMIT_EXCEEDED"

    def __init__(self, retry_after: int, message: Optional[str] = None):
        self.retry_after = int(retry_after)
        super().__init__(message=message, data={"retry_after": self.retry_after})


# ========== 密码相关 ==========
class PolicyViolationError(BizError):
    default_message = "新密码不符合安全策略"
    default_error_code = "PASSWORD_POLICY_VIOLATION"

    def __init__(self, errors: List[str], message: Optional[str] = None, suggestions: Optional[List[str]] = None):
        self.errors = list(errors)
        super().__init__(
            message=message or "; ".join(self.errors) or None,
            data={"errors": self.errors, "suggestions": list(suggestions or [])},
        )


class PasswordReusedError(BizError):
    default_message = "新密码不得与当前或最近使用过的密码重复"
    default_error_code = "PASSWORD_REUSED"


class WrongCurrentPasswordError(BizError):
    default_message = "当前密码不正确"
    default_error_code = "WRONG_CURRENT_PASSWORD"


class EmailTakenError(BizError):
    default_message = "邮箱已被注册"
    default_code = 409
    default_error_code = "EMAIL_TAKEN"


class TokenConfigError(RuntimeError):
    """签名密钥或算法配置错误，属于启动期致命错误，不做重试。"""
