# -*- coding: utf-8 -*-
import time
from datetime import timedelta

from extensions.database import db
from repositories.password_history_repository import PasswordHistoryRepository
from utils.datetime_helpers import utcnow


def test_prune_password_history(app, make_user):
    user = make_user()
    for i in range(7):
        PasswordHistoryRepository.insert(user.id, f"hash-{i}")
    db.session.commit()

    result = app.test_cli_runner().invoke(args=["security", "prune-password-history", "--keep", "2"])

    assert result.exit_code == 0, result.output
    assert "5" in result.output
    assert PasswordHistoryRepository.count_for_user(user.id) == 2


def test_blacklist_stats(app, make_user, auth_service):
    user = make_user()
    pair = auth_service.tokens.issue_pair(user.id)
    auth_service.logout(pair.access_token, pair.refresh_token)

    result = app.test_cli_runner().invoke(args=["security", "blacklist-stats"])

    assert result.exit_code == 0
    assert "已拉黑令牌: 2" in result.output


def test_revoke_user_tokens(app, make_user, auth_service):
    user = make_user()
    token = auth_service.tokens.issue(user.id, issued_at=int(time.time()) - 10).claims

    result = app.test_cli_runner().invoke(args=["security", "revoke-user-tokens", str(user.id)])

    assert result.exit_code == 0, result.output
    assert auth_service.blacklist.is_user_token_blacklisted(user.id, token["iat"])


def test_revoke_unknown_user(app):
    result = app.test_cli_runner().invoke(args=["security", "revoke-user-tokens", "424242"])

    assert result.exit_code == 1


def test_audit_reports_password_domain_issues(app, make_user):
    app.config.update(PASSWORD_EXPIRATION_ENABLED=True, PASSWORD_MIN_LENGTH=6, PASSWORD_REQUIRE_SYMBOLS=False)
    stale = make_user(email="stale@example.com")
    long_ago = utcnow() - timedelta(days=200)
    stale.password_changed_at = long_ago
    stale.last_login_at = long_ago
    fresh = make_user(email="fresh@example.com")
    for i in range(7):
        PasswordHistoryRepository.insert(fresh.id, f"hash-{i}")
    db.session.commit()

    result = app.test_cli_runner().invoke(args=["security", "audit"])

    assert result.exit_code == 0, result.output
    assert "密码最小长度过短" in result.output
    assert "特殊字符" in result.output
    assert "密码已过期的账号: 1" in result.output
    assert "需要清理历史的用户: 1（超出 2 条）" in result.output
    assert "超过 90 天未登录的账号: 1" in result.output
    assert "stale@example.com" in result.output
    assert "fresh@example.com" not in result.output


def test_audit_clean_install(app, make_user):
    make_user()

    result = app.test_cli_runner().invoke(args=["security", "audit"])

    assert result.exit_code == 0, result.output
    assert "未发现问题" in result.output
    assert "未启用密码过期" in result.output
    assert "共 0 项需要关注" in result.output
