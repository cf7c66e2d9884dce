from __future__ import annotations

from enum import Enum


class SystemRole(str, Enum):
    """
    系统角色（授权用，与认证无关）：
    - 认证失败统一 401，角色不足统一 403
    """

    ADMIN = "admin"
    EDITOR = "editor"
    USER = "user"

    @classmethod
    def values(cls) -> list[str]:
        return [role.value for role in cls]


ALL_ROLES: set[str] = set(SystemRole.values())

DEFAULT_SYSTEM_ROLE = SystemRole.USER


def normalize_role(raw: str | None, default: SystemRole = DEFAULT_SYSTEM_ROLE) -> str:
    """
    清洗外部传入的角色值：
    - None 或空 => 默认
    - 去掉首尾空白并转小写
    - 校验是否在已注册角色中
    """
    if not raw:
        return default.value
    value = raw.strip().lower()
    if value not in ALL_ROLES:
        raise ValueError(f"非法系统角色: {raw}")
    return value
