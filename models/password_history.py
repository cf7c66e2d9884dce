# models/password_history.py
from extensions.database import db
from .mixins import COMMON_TABLE_ARGS
from utils.datetime_helpers import utcnow


class PasswordHistory(db.Model):
    """用户曾经使用过的密码哈希，只插入 / 删除，不更新。"""

    __tablename__ = "password_history"
    __table_args__ = (
        db.Index("idx_password_history_user_date", "user_id", "created_at"),
        COMMON_TABLE_ARGS,
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    def __repr__(self):
        # 不输出哈希
        return f"<PasswordHistory user_id={self.user_id} created_at={self.created_at}>"
