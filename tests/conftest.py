import uuid

import pytest

from app import create_app
from extensions.auth import get_auth_service
from extensions.database import db
from models import User
from repositories.user_repository import UserRepository
from utils.password import hash_password

DEFAULT_PASSWORD = "Granite!Falcon42"


@pytest.fixture()
def app():
    """测试用 Flask 应用（内存 SQLite + 进程内缓存），每个用例独立。"""
    app = create_app("testing")
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def auth_service(app):
    return get_auth_service()


@pytest.fixture()
def make_user(app):
    """创建并提交一个用户，返回 User。"""
    def _create(password: str = DEFAULT_PASSWORD, email: str | None = None, name: str = "Tester",
                role: str = "user", is_active: bool = True):
        user = User(
            email=UserRepository.normalize_email(email or f"u{uuid.uuid4().hex[:8]}@example.com"),
            name=name,
            password_hash=hash_password(password, app.config["PASSWORD_HASH_METHOD"]),
            role=role,
            is_active=is_active,
        )
        db.session.add(user)
        db.session.commit()
        return user
    return _create
