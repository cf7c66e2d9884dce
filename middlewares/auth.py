# middlewares/auth.py
import functools
import re

from flask import current_app, g, request

from constants.roles import SystemRole, normalize_role
from extensions.auth import get_auth_service
from utils.exceptions import BizError

_BEARER = re.compile(r"^\s*bearer\s+(\S+)\s*$", re.IGNORECASE)


def extract_token() -> str | None:
    """Authorization: Bearer <token>，其次 ?token=（仅在 JWT_ALLOW_QUERY_TOKEN 打开时）。"""
    m = _BEARER.match(request.headers.get("Authorization", ""))
    if m:
        return m.group(1)
    if current_app.config.get("JWT_ALLOW_QUERY_TOKEN", True):
        token = (request.args.get("token") or "").strip()
        return token or None
    return None


def jwt_required():
    """
    鉴权装饰器：
      - 提取并校验访问令牌（签名、过期、黑名单、用户级失效、账号状态）
      - 注入 g.current_user / g.jwt_claims / g.jwt_context
    失败时抛出 AuthError 子类，由全局 BizError 处理器输出 401。
    """
    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            g.current_user = None
            context = get_auth_service().authenticate_request(extract_token())
            g.current_user = context.user
            g.jwt_claims = context.claims
            g.jwt_context = context
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def require_roles(*roles: SystemRole | str):
    """角色校验，需放在 @jwt_required() 之后。"""
    allowed = {r.value if isinstance(r, SystemRole) else normalize_role(r) for r in roles if r}
    if not allowed:
        raise ValueError("require_roles 需要至少指定一个角色")

    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            user = getattr(g, "current_user", None)
            if user is None:
                raise BizError("未登录", code=401, error_code="AUTH_FAILED")
            if (user.role or "").lower() not in allowed:
                raise BizError("权限不足", code=403, error_code="FORBIDDEN")
            return fn(*args, **kwargs)

        return wrapper

    return decorator
