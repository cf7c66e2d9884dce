# -*- coding: utf-8 -*-
"""单元测试：密码复杂度、强度评分、过期计算（不依赖数据库）。"""

from datetime import date, datetime, timedelta

import pytest

from config.settings import TestingConfig
from constants.security import StrengthLevel
from models import User
from services.password_policy_service import PasswordPolicyService, strength_level_for


def _config(**overrides) -> dict:
    cfg = {k: getattr(TestingConfig, k) for k in dir(TestingConfig) if k.isupper()}
    cfg.update(overrides)
    return cfg


@pytest.fixture()
def policy():
    return PasswordPolicyService(_config())


@pytest.mark.parametrize("password", ["Granite!Falcon42", "Copper#River57", "Tr0ub4dor&Horse!"])
def test_compliant_password_is_valid_and_at_least_fair(policy, password):
    result = policy.validate_password(password)

    assert result.valid, result.errors
    assert result.strength_score >= 40


@pytest.mark.parametrize("password", ["", "Ab1!", "Xy7#kqp"])
def test_short_password_mentions_min_length(policy, password):
    result = policy.validate_password(password)

    assert not result.valid
    assert any("8" in e for e in result.errors)


def test_too_long_password_rejected():
    policy = PasswordPolicyService(_config(PASSWORD_MAX_LENGTH=20))

    result = policy.validate_password("Granite!Falcon42" * 2)

    assert not result.valid
    assert any("20" in e for e in result.errors)


def test_character_class_toggles():
    lenient = PasswordPolicyService(_config(
        PASSWORD_REQUIRE_UPPERCASE=False,
        PASSWORD_REQUIRE_NUMBERS=False,
        PASSWORD_REQUIRE_SYMBOLS=False,
    ))
    strict = PasswordPolicyService(_config())

    assert lenient.validate_password("granitefalcon").valid
    errors = strict.validate_password("granitefalcon").errors
    assert "需包含大写字母" in errors
    assert "需包含数字" in errors


def test_symbol_must_come_from_allowed_set():
    policy = PasswordPolicyService(_config(PASSWORD_ALLOWED_SYMBOLS="!"))

    assert not policy.validate_password("Granite~Falcon42").valid
    assert policy.validate_password("Granite!Falcon42").valid


def test_personal_info_rejected(policy):
    user = User(email="marlowe@example.com", name="Quentin", birth_date=date(1987, 3, 4))

    assert "密码不能包含用户名" in policy.validate_password("Quentin!Falcon42", user).errors
    assert "密码不能包含邮箱地址的一部分" in policy.validate_password("Marlowe!Falcon42", user).errors
    assert "密码不能包含出生年份" in policy.validate_password("Granite!Fal1987", user).errors


def test_short_name_is_not_checked(policy):
    user = User(email="jo@example.com", name="Al")

    assert policy.validate_password("Alfalfa!Granite42", user).valid


@pytest.mark.parametrize("password", ["password", "Password123", "123dragon", "Monkey!", "sunshine2024", "Hello1"])
def test_common_password_and_variants(password):
    assert PasswordPolicyService.is_common_password(password)


def test_common_password_is_invalid(policy):
    assert "密码过于常见，请选择更复杂的密码" in policy.validate_password("Password123!").errors


@pytest.mark.parametrize(
    "password, message",
    [
        ("Graaanite!Fal42", "同一字符不能连续出现 3 次及以上"),
        ("Granite!Fal456", "不能包含连续数字"),
        ("Qwerty!Falcon42", "不能包含键盘排列"),
        ("Granite!Xyz-Fal4", "不能包含简单的字母或数字序列"),
    ],
)
def test_pattern_rules(policy, password, message):
    assert message in policy.validate_password(password).errors


def test_strength_is_bounded(policy):
    for pwd in ["", "a", "Granite!Falcon42", "Zk8#mQ2$vL9!pR4&tW7^"]:
        score = policy.calculate_strength(pwd)
        assert 0 <= score <= 100


def test_strength_levels():
    assert strength_level_for(0) is StrengthLevel.VERY_WEAK
    assert strength_level_for(25) is StrengthLevel.WEAK
    assert strength_level_for(45) is StrengthLevel.FAIR
    assert strength_level_for(65) is StrengthLevel.GOOD
    assert strength_level_for(95) is StrengthLevel.STRONG


def test_validation_result_serializes(policy):
    data = policy.validate_password("short").to_dict()

    assert data["valid"] is False
    assert data["strength_level"] in {lvl.value for lvl in StrengthLevel}
    assert data["suggestions"]


def test_expiration_disabled_by_default(policy):
    user = User(password_changed_at=datetime(2000, 1, 1))

    result = policy.check_password_expiration(user)

    assert result.to_dict() == {"expired": False, "days_until_expiry": None, "warning": False}


def test_expiration_warning_and_expired():
    policy = PasswordPolicyService(_config(PASSWORD_EXPIRATION_ENABLED=True))
    now = datetime(2025, 6, 1, 12, 0, 0)

    fresh = policy.check_password_expiration(User(password_changed_at=now - timedelta(days=10)), now=now)
    near = policy.check_password_expiration(User(password_changed_at=now - timedelta(days=85)), now=now)
    stale = policy.check_password_expiration(User(password_changed_at=now - timedelta(days=91)), now=now)

    assert (fresh.expired, fresh.days_until_expiry, fresh.warning) == (False, 80, False)
    assert (near.expired, near.days_until_expiry, near.warning) == (False, 5, True)
    assert stale.expired and not stale.warning


def test_policy_info_reflects_config():
    info = PasswordPolicyService(_config(PASSWORD_MIN_LENGTH=12)).get_policy_info()

    assert info["min_length"] == 12
    assert info["history_count"] == 5
    assert info["expiration_enabled"] is False
