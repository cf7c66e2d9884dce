# services/password_policy_service.py
"""
密码安全策略：
- 复杂度校验（长度、字符种类、个人信息、常见弱密码、模式）
- 强度评分 0-100 及等级
- 历史密码复用检查与历史滚动
- 密码过期计算
所有开关与阈值读取自配置（见 config/settings.py 的 PASSWORD_*）。
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Mapping, Optional

from constants.security import StrengthLevel
from repositories.password_history_repository import PasswordHistoryRepository
from utils.datetime_helpers import utcnow
from utils.password import DIGIT, LOWER, NON_ALNUM, UPPER, verify_password

logger = logging.getLogger(__name__)

DEFAULT_ALLOWED_SYMBOLS = "!@#$%^&*()_+-=[]{}|;:,.<>?"

COMMON_PASSWORDS = (
    "password", "123456", "123456789", "qwerty", "abc123",
    "password123", "admin", "letmein", "welcome", "monkey",
    "1234567890", "iloveyou", "princess", "rockyou", "12345",
    "123123", "dragon", "passw0rd", "master", "hello",
    "freedom", "sunshine", "football", "starwars", "computer",
)

# 常见弱密码的简单变体
_VARIANT_TEMPLATES = ("{}123", "{}!", "{}1", "123{}", "{}2024")
_COMMON_VARIANTS = frozenset(
    [p for p in COMMON_PASSWORDS]
    + [tpl.format(p) for p in COMMON_PASSWORDS for tpl in _VARIANT_TEMPLATES]
)

REPEATED_CHARS = re.compile(r"(.)\1{2,}")
NUMERIC_RUNS = re.compile(r"012|123|234|345|456|567|678|789|890|987|876|765|654|543|432|321|210")
KEYBOARD_PATTERNS = ("qwerty", "asdfgh", "zxcvbn", "123456", "qwertyuiop")
SIMPLE_SEQUENCES = re.compile(r"abc|123|xyz|789")

# 评分用的“显而易见模式”，比校验规则更宽
_OBVIOUS_WALKS = ("qwerty", "asdf", "zxcv", "1234", "abcd")
_WHOLE_REPEAT = re.compile(r"^(.+)\1+$", re.DOTALL)
_MIXED_CASE = re.compile(r"[a-z].*[A-Z]|[A-Z].*[a-z]", re.DOTALL)
_ALNUM_MIX = re.compile(r"[a-zA-Z].*[0-9]|[0-9].*[a-zA-Z]", re.DOTALL)


@dataclass
class PasswordValidationResult:
    valid: bool
    errors: List[str] = field(default_factory=list)
    strength_score: int = 0
    strength_level: StrengthLevel = StrengthLevel.VERY_WEAK
    suggestions: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "errors": list(self.errors),
            "strength_score": self.strength_score,
            "strength_level": self.strength_level.value,
            "suggestions": list(self.suggestions),
        }


@dataclass
class PasswordExpiration:
    expired: bool
    days_until_expiry: Optional[int]
    warning: bool

    def to_dict(self) -> dict:
        return {
            "expired": self.expired,
            "days_until_expiry": self.days_until_expiry,
            "warning": self.warning,
        }


def strength_level_for(score: int) -> StrengthLevel:
    if score < 20:
        return StrengthLevel.VERY_WEAK
    if score < 40:
        return StrengthLevel.WEAK
    if score < 60:
        return StrengthLevel.FAIR
    if score < 80:
        return StrengthLevel.GOOD
    return StrengthLevel.STRONG


class PasswordPolicyService:

    def __init__(self, config: Mapping, history_repository=PasswordHistoryRepository):
        self.config = config
        self.history = history_repository

    # ========== 配置 ==========
    @property
    def min_length(self) -> int:
        return int(self.config.get("PASSWORD_MIN_LENGTH", 8))

    @property
    def max_length(self) -> int:
        return int(self.config.get("PASSWORD_MAX_LENGTH", 128))

    @property
    def allowed_symbols(self) -> str:
        return self.config.get("PASSWORD_ALLOWED_SYMBOLS") or DEFAULT_ALLOWED_SYMBOLS

    @property
    def history_enabled(self) -> bool:
        return bool(self.config.get("PASSWORD_HISTORY_ENABLED", True))

    @property
    def history_count(self) -> int:
        return int(self.config.get("PASSWORD_HISTORY_COUNT", 5))

    # ========== 复杂度 ==========
    def validate_password(self, password: str, user=None) -> PasswordValidationResult:
        password = password or ""
        cfg = self.config
        errors: List[str] = []

        if len(password) < self.min_length:
            errors.append(f"密码长度至少 {self.min_length} 位")
        if len(password) > self.max_length:
            errors.append(f"密码长度不能超过 {self.max_length} 位")

        if cfg.get("PASSWORD_REQUIRE_UPPERCASE", True) and not UPPER.search(password):
            errors.append("需包含大写字母")
        if cfg.get("PASSWORD_REQUIRE_LOWERCASE", True) and not LOWER.search(password):
            errors.append("需包含小写字母")
        if cfg.get("PASSWORD_REQUIRE_NUMBERS", True) and not DIGIT.search(password):
            errors.append("需包含数字")
        if cfg.get("PASSWORD_REQUIRE_SYMBOLS", True) and not self._has_allowed_symbol(password):
            errors.append(f"需包含特殊字符（{self.allowed_symbols}）")

        if user is not None:
            errors.extend(self._check_personal_info(password, user))

        if self.is_common_password(password):
            errors.append("密码过于常见，请选择更复杂的密码")

        errors.extend(self._check_patterns(password))

        score = self.calculate_strength(password)
        return PasswordValidationResult(
            valid=not errors,
            errors=errors,
            strength_score=score,
            strength_level=strength_level_for(score),
            suggestions=self._suggestions(password, score),
        )

    def _has_allowed_symbol(self, password: str) -> bool:
        symbols = set(self.allowed_symbols)
        return any(c in symbols for c in password)

    @staticmethod
    def _check_personal_info(password: str, user) -> List[str]:
        errors = []
        lowered = password.lower()

        name = (getattr(user, "name", None) or "").strip().lower()
        if len(name) >= 3 and name in lowered:
            errors.append("密码不能包含用户名")

        email = (getattr(user, "email", None) or "").lower()
        local_part = email.split("@", 1)[0]
        if len(local_part) >= 3 and local_part in lowered:
            errors.append("密码不能包含邮箱地址的一部分")

        birth_date = getattr(user, "birth_date", None)
        if birth_date is not None and str(birth_date.year) in password:
            errors.append("密码不能包含出生年份")

        return errors

    @staticmethod
    def is_common_password(password: str) -> bool:
        return (password or "").lower() in _COMMON_VARIANTS

    @staticmethod
    def _check_patterns(password: str) -> List[str]:
        errors = []
        lowered = password.lower()
        if REPEATED_CHARS.search(password):
            errors.append("同一字符不能连续出现 3 次及以上")
        if NUMERIC_RUNS.search(password):
            errors.append("不能包含连续数字")
        if any(p in lowered for p in KEYBOARD_PATTERNS):
            errors.append("不能包含键盘排列")
        if SIMPLE_SEQUENCES.search(lowered):
            errors.append("不能包含简单的字母或数字序列")
        return errors

    @staticmethod
    def has_obvious_patterns(password: str) -> bool:
        if REPEATED_CHARS.search(password) or _WHOLE_REPEAT.match(password):
            return True
        lowered = password.lower()
        return any(p in lowered for p in _OBVIOUS_WALKS)

    # ========== 强度 ==========
    def calculate_strength(self, password: str) -> int:
        score = 0
        length = len(password)

        # 长度
        if length >= 8:
            score += 5
        if length >= 12:
            score += 10
        if length >= 16:
            score += 15

        # 字符种类
        if LOWER.search(password):
            score += 5
        if UPPER.search(password):
            score += 5
        if DIGIT.search(password):
            score += 5
        if NON_ALNUM.search(password):
            score += 10

        # 去重后字符数
        unique = len(set(password))
        if unique >= 5:
            score += 5
        if unique >= 8:
            score += 5
        if unique >= 12:
            score += 10

        # 不可预测性
        if not self.is_common_password(password):
            score += 5
        if not self.has_obvious_patterns(password):
            score += 5

        # 混合奖励
        if _MIXED_CASE.search(password):
            score += 5
        if _ALNUM_MIX.search(password):
            score += 5

        return min(100, score)

    def _suggestions(self, password: str, score: int) -> List[str]:
        suggestions = []
        if len(password) < 12:
            suggestions.append("建议将密码加长到 12 位以上")
        if not UPPER.search(password):
            suggestions.append("可以加入大写字母")
        if not DIGIT.search(password):
            suggestions.append("可以加入数字")
        if not NON_ALNUM.search(password):
            suggestions.append("可以加入特殊字符（如 !@#$%^&*）")
        if self.is_common_password(password):
            suggestions.append("尝试使用更独特、不易猜到的组合")
        if not suggestions and score < 80:
            suggestions.append("组合单词、数字和特殊字符，让密码更复杂")
        return suggestions

    # ========== 历史 ==========
    def is_password_reused(self, user, new_password: str) -> bool:
        if not self.history_enabled:
            return False
        if verify_password(user.password_hash, new_password):
            return True
        for hashed in self.history.recent_for_user(user.id, self.history_count):
            if verify_password(hashed, new_password):
                return True
        return False

    def save_password_history(self, user, old_password_hash: str, now: Optional[datetime] = None):
        if not self.history_enabled or not old_password_hash:
            return
        self.history.insert(user.id, old_password_hash, now or utcnow())
        deleted = self.history.prune_beyond(user.id, self.history_count)
        if deleted:
            logger.debug("password history pruned", extra={"user_id": user.id})

    # ========== 过期 ==========
    def check_password_expiration(self, user, now: Optional[datetime] = None) -> PasswordExpiration:
        cfg = self.config
        if not cfg.get("PASSWORD_EXPIRATION_ENABLED", False):
            return PasswordExpiration(expired=False, days_until_expiry=None, warning=False)

        days = int(cfg.get("PASSWORD_EXPIRATION_DAYS", 90))
        warning_days = int(cfg.get("PASSWORD_EXPIRATION_WARNING_DAYS", 7))

        changed_at = user.password_changed_at or user.created_at or utcnow()
        expires_at = changed_at + timedelta(days=days)
        current = now or utcnow()

        remaining = expires_at - current
        expired = remaining.total_seconds() < 0
        days_left = 0 if expired else remaining.days
        return PasswordExpiration(
            expired=expired,
            days_until_expiry=days_left,
            warning=not expired and 0 <= days_left <= warning_days,
        )

    # ========== 对外说明 ==========
    def get_policy_info(self) -> dict:
        cfg = self.config
        return {
            "min_length": self.min_length,
            "max_length": self.max_length,
            "require_uppercase": bool(cfg.get("PASSWORD_REQUIRE_UPPERCASE", True)),
            "require_lowercase": bool(cfg.get("PASSWORD_REQUIRE_LOWERCASE", True)),
            "require_numbers": bool(cfg.get("PASSWORD_REQUIRE_NUMBERS", True)),
            "require_symbols": bool(cfg.get("PASSWORD_REQUIRE_SYMBOLS", True)),
            "allowed_symbols": self.allowed_symbols,
            "history_enabled": self.history_enabled,
            "history_count": self.history_count,
            "expiration_enabled": bool(cfg.get("PASSWORD_EXPIRATION_ENABLED", False)),
            "expiration_days": int(cfg.get("PASSWORD_EXPIRATION_DAYS", 90)),
        }

    def audit_settings(self) -> List[dict]:
        """检查当前策略配置本身是否过弱，返回问题列表（type / severity / description）。"""
        issues = []
        if self.min_length < 8:
            issues.append({
                "type": "weak_min_length",
                "severity": "high",
                "description": f"密码最小长度过短（当前 {self.min_length}），建议不少于 8",
            })

        labels = {
            "PASSWORD_REQUIRE_UPPERCASE": "大写字母",
            "PASSWORD_REQUIRE_LOWERCASE": "小写字母",
            "PASSWORD_REQUIRE_NUMBERS": "数字",
            "PASSWORD_REQUIRE_SYMBOLS": "特殊字符",
        }
        disabled = [label for key, label in labels.items() if not self.config.get(key, True)]
        if disabled:
            issues.append({
                "type": "disabled_complexity",
                "severity": "medium",
                "description": "已关闭的复杂度要求: " + "、".join(disabled),
            })

        if not self.history_enabled or self.history_count <= 0:
            issues.append({
                "type": "history_disabled",
                "severity": "medium",
                "description": "未启用历史密码复用检查",
            })
        return issues
