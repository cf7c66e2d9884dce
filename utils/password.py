# utils/password.py
import re
from werkzeug.security import generate_password_hash, check_password_hash

UPPER = re.compile(r'[A-Z]')
LOWER = re.compile(r'[a-z]')
DIGIT = re.compile(r'\d')
NON_ALNUM = re.compile(r'[^a-zA-Z0-9]')

DEFAULT_HASH_METHOD = "scrypt"


def hash_password(plain: str, method: str = DEFAULT_HASH_METHOD) -> str:
    return generate_password_hash(plain, method=method)


def verify_password(hashed: str | None, plain: str) -> bool:
    if not hashed or plain is None:
        return False
    try:
        return check_password_hash(hashed, plain)
    except ValueError:
        # 非 werkzeug 格式的哈希值（历史脏数据）视为不匹配
        return False
