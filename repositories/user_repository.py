# repositories/user_repository.py
from __future__ import annotations
from datetime import datetime
from typing import List, Optional

from models.user import User
from extensions.database import db
from utils.password import verify_password


class UserRepository:
    """
    用户凭据的仓储（数据访问）层。
    说明：
    - 不做业务规则判断（如密码策略、账号状态），仅做纯粹的持久化读写。
    - 写操作不自动 commit，由上层显式调用 commit()，以便在一个事务中组合多个操作。
    """

    @staticmethod
    def normalize_email(email: str | None) -> str:
        return (email or "").strip().lower()

    @staticmethod
    def find_by_email(email: str) -> Optional[User]:
        email = UserRepository.normalize_email(email)
        if not email:
            return None
        return User.query.filter_by(email=email).first()

    @staticmethod
    def find_by_id(user_id) -> Optional[User]:
        try:
            pk = int(user_id)
        except (TypeError, ValueError):
            return None
        return db.session.get(User, pk)

    @staticmethod
    def list_active() -> List[User]:
        return User.query.filter_by(is_active=True).order_by(User.id).all()

    @staticmethod
    def find_inactive_since(cutoff: datetime) -> List[User]:
        """cutoff 之后未登录过（含从未登录且创建早于 cutoff）的启用账号。"""
        never_logged_in = db.and_(User.last_login_at.is_(None), User.created_at < cutoff)
        return (
            User.query
            .filter(User.is_active.is_(True))
            .filter(db.or_(User.last_login_at < cutoff, never_logged_in))
            .order_by(User.id)
            .all()
        )

    @staticmethod
    def exists_email(email: str) -> bool:
        email = UserRepository.normalize_email(email)
        return db.session.query(User.id).filter(User.email == email).first() is not None

    @staticmethod
    def add(user: User):
        db.session.add(user)

    @staticmethod
    def update_password(user: User, new_hash: str):
        user.password_hash = new_hash
        user.touch_password_time()

    @staticmethod
    def update_last_login(user: User, ts: datetime):
        user.last_login_at = ts

    @staticmethod
    def verify_password(plain: str, hashed: str | None) -> bool:
        return verify_password(hashed, plain)

    @staticmethod
    def commit():
        db.session.commit()

    @staticmethod
    def rollback():
        db.session.rollback()
