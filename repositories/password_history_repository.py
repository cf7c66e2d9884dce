# repositories/password_history_repository.py
from __future__ import annotations
from datetime import datetime
from typing import Dict, List, Optional

from models.password_history import PasswordHistory
from extensions.database import db
from utils.datetime_helpers import utcnow


class PasswordHistoryRepository:
    """
    密码历史仓储。
    - 排序统一为“最新在前”：created_at 降序，同一时刻以 id 降序兜底。
    - insert / prune 不 commit，由调用方与密码更新放在同一事务中。
    """

    @staticmethod
    def _newest_first(query):
        return query.order_by(PasswordHistory.created_at.desc(), PasswordHistory.id.desc())

    @staticmethod
    def insert(user_id: int, password_hash: str, timestamp: Optional[datetime] = None) -> PasswordHistory:
        row = PasswordHistory(user_id=user_id, password_hash=password_hash, created_at=timestamp or utcnow())
        db.session.add(row)
        db.session.flush()
        return row

    @staticmethod
    def recent_for_user(user_id: int, limit: int) -> List[str]:
        if limit <= 0:
            return []
        q = PasswordHistoryRepository._newest_first(PasswordHistory.query.filter_by(user_id=user_id))
        return [row.password_hash for row in q.limit(limit).all()]

    @staticmethod
    def prune_beyond(user_id: int, keep_count: int) -> int:
        """删除最新 keep_count 条以外的记录，返回删除条数。"""
        q = PasswordHistoryRepository._newest_first(
            db.session.query(PasswordHistory.id).filter(PasswordHistory.user_id == user_id)
        )
        stale_ids = [row.id for row in q.offset(max(keep_count, 0)).all()]
        if not stale_ids:
            return 0
        return (
            PasswordHistory.query
            .filter(PasswordHistory.id.in_(stale_ids))
            .delete(synchronize_session=False)
        )

    @staticmethod
    def prune_all(keep_count: int) -> Dict[str, int]:
        cleaned_users = 0
        deleted_records = 0
        user_ids = [row.user_id for row in db.session.query(PasswordHistory.user_id).distinct().all()]
        for uid in user_ids:
            deleted = PasswordHistoryRepository.prune_beyond(uid, keep_count)
            if deleted:
                cleaned_users += 1
                deleted_records += deleted
        return {"cleaned_users": cleaned_users, "deleted_records": deleted_records}

    @staticmethod
    def count_for_user(user_id: int) -> int:
        return PasswordHistory.query.filter_by(user_id=user_id).count()

    @staticmethod
    def users_exceeding(limit: int) -> Dict[int, int]:
        """历史条数超过 limit 的用户：{user_id: 条数}。"""
        count = db.func.count(PasswordHistory.id)
        rows = (
            db.session.query(PasswordHistory.user_id, count)
            .group_by(PasswordHistory.user_id)
            .having(count > max(limit, 0))
            .all()
        )
        return {user_id: total for user_id, total in rows}
