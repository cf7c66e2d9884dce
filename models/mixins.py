# models/mixins.py
"""模型公共部分：MySQL 表参数与创建 / 更新时间。"""
from extensions.database import db
from utils.datetime_helpers import utcnow

# SQLite（开发 / 测试）会忽略 mysql_* 参数
COMMON_TABLE_ARGS = {
    "mysql_engine": "InnoDB",
    "mysql_charset": "utf8mb4",
    "mysql_collate": "utf8mb4_unicode_ci",
}


class TimestampMixin:
    # 与 password_changed_at 一致，统一存 naive UTC；flush 后即可读取，无需回查数据库
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, server_default=db.func.now(), index=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow,
                           server_default=db.func.now())
