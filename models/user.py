# -*- coding: utf-8 -*-
"""
user.py
--------------------------------------------------------------------
用户凭据实体。
说明：
- email 唯一，统一以小写存储，作为登录名。
- password_hash 只保存单向哈希，任何日志 / 序列化都不得输出。
- is_active 控制账号启用状态；禁用账号即使密码正确也无法登录或使用已有令牌。
- password_changed_at 用于密码过期策略；为空时以 created_at 计算。
- birth_date 可选，仅用于“密码不得包含出生年份”的校验。
"""

from extensions.database import db
from .mixins import TimestampMixin, COMMON_TABLE_ARGS
from constants.roles import DEFAULT_SYSTEM_ROLE
from utils.datetime_helpers import datetime_to_iso, utcnow


class User(TimestampMixin, db.Model):
    __tablename__ = "user"
    __table_args__ = (COMMON_TABLE_ARGS,)

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    name = db.Column(db.String(100))
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(32), nullable=False, default=DEFAULT_SYSTEM_ROLE.value,
                     server_default=DEFAULT_SYSTEM_ROLE.value)
    is_active = db.Column(db.Boolean, nullable=False, default=True, server_default="1")
    birth_date = db.Column(db.Date)
    last_login_at = db.Column(db.DateTime)
    password_changed_at = db.Column(db.DateTime)

    password_histories = db.relationship(
        "PasswordHistory",
        backref="user",
        lazy="dynamic",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self):
        return f"<User id={self.id} email={self.email} role={self.role}>"

    def touch_password_time(self):
        self.password_changed_at = utcnow()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "is_active": self.is_active,
            "last_login_at": datetime_to_iso(self.last_login_at),
            "password_changed_at": datetime_to_iso(self.password_changed_at),
        }
