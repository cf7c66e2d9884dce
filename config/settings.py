# config/settings.py
import os
from dotenv import load_dotenv

BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
load_dotenv(os.path.join(BASE_DIR, ".env"))  # 自动加载环境变量


def _as_bool(val, default=False):
    if val is None:
        return default
    return str(val).lower() in ("1", "true", "yes", "on")


def _as_int(val, default):
    if val is None or str(val).strip() == "":
        return default
    return int(val)


class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    APP_NAME = os.getenv("APP_NAME", "auth-guard")

    # ========= 缓存（黑名单 / 限流计数） =========
    # redis | memory（memory 仅用于单进程开发与测试）
    CACHE_BACKEND = os.getenv("CACHE_BACKEND", "redis")
    REDIS_URL = os.getenv("REDIS_URL", "redis://127.0.0.1:6379/0")
    # 每次缓存调用的超时（秒），超时后黑名单检查按“已拉黑”处理
    REDIS_SOCKET_TIMEOUT = float(os.getenv("REDIS_SOCKET_TIMEOUT", 2.0))

    # ========= JWT =========
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "jwt-secret-key")
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    # 访问令牌 / 刷新令牌有效期（分钟）
    JWT_ACCESS_TTL_MINUTES = _as_int(os.getenv("JWT_ACCESS_TTL_MINUTES"), 60)
    JWT_REFRESH_TTL_MINUTES = _as_int(os.getenv("JWT_REFRESH_TTL_MINUTES"), 20160)
    # 时钟偏差容忍（秒）
    JWT_LEEWAY_SECONDS = _as_int(os.getenv("JWT_LEEWAY_SECONDS"), 0)
    # 剩余有效期低于该值时在响应头提示刷新（分钟）
    JWT_REFRESH_RECOMMEND_MINUTES = _as_int(os.getenv("JWT_REFRESH_RECOMMEND_MINUTES"), 10)
    # 刷新时拉黑旧的 refresh token
    JWT_ROTATE_REFRESH_TOKENS = _as_bool(os.getenv("JWT_ROTATE_REFRESH_TOKENS", "1"), True)
    # “全部令牌失效”标记保留时长（秒），不得短于最长令牌有效期
    JWT_USER_BLACKLIST_TTL_SECONDS = _as_int(os.getenv("JWT_USER_BLACKLIST_TTL_SECONDS"), 24 * 3600)
    # 是否允许从 ?token= 读取令牌（websocket 等无法带 header 的场景）
    JWT_ALLOW_QUERY_TOKEN = _as_bool(os.getenv("JWT_ALLOW_QUERY_TOKEN", "1"), True)

    # ========= 日志 =========
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_DIR = os.getenv("LOG_DIR", "./logs")
    LOG_JSON = os.getenv("LOG_JSON", "1") == "1"  # 是否 JSON 格式
    LOG_MAX_BYTES = int(os.getenv("LOG_MAX_BYTES", 5 * 1024 * 1024))
    LOG_BACKUP_COUNT = int(os.getenv("LOG_BACKUP_COUNT", 5))
    LOG_TO_FILE = _as_bool(os.getenv("LOG_TO_FILE", "1"), True)

    # ========= 密码策略 =========
    PASSWORD_MIN_LENGTH = _as_int(os.getenv("PASSWORD_MIN_LENGTH"), 8)
    PASSWORD_MAX_LENGTH = _as_int(os.getenv("PASSWORD_MAX_LENGTH"), 128)
    PASSWORD_REQUIRE_UPPERCASE = _as_bool(os.getenv("PASSWORD_REQUIRE_UPPERCASE", "1"), True)
    PASSWORD_REQUIRE_LOWERCASE = _as_bool(os.getenv("PASSWORD_REQUIRE_LOWERCASE", "1"), True)
    PASSWORD_REQUIRE_NUMBERS = _as_bool(os.getenv("PASSWORD_REQUIRE_NUMBERS", "1"), True)
    PASSWORD_REQUIRE_SYMBOLS = _as_bool(os.getenv("PASSWORD_REQUIRE_SYMBOLS", "1"), True)
    PASSWORD_ALLOWED_SYMBOLS = os.getenv("PASSWORD_ALLOWED_SYMBOLS", "!@#$%^&*()_+-=[]{}|;:,.<>?")
    # 历史避免重复数量
    PASSWORD_HISTORY_ENABLED = _as_bool(os.getenv("PASSWORD_HISTORY_ENABLED", "1"), True)
    PASSWORD_HISTORY_COUNT = _as_int(os.getenv("PASSWORD_HISTORY_COUNT"), 5)
    # 密码过期
    PASSWORD_EXPIRATION_ENABLED = _as_bool(os.getenv("PASSWORD_EXPIRATION_ENABLED", "0"), False)
    PASSWORD_EXPIRATION_DAYS = _as_int(os.getenv("PASSWORD_EXPIRATION_DAYS"), 90)
    PASSWORD_EXPIRATION_WARNING_DAYS = _as_int(os.getenv("PASSWORD_EXPIRATION_WARNING_DAYS"), 7)
    # 修改密码后是否令该用户全部令牌失效
    PASSWORD_CHANGE_REVOKE_ALL = _as_bool(os.getenv("PASSWORD_CHANGE_REVOKE_ALL", "1"), True)
    # werkzeug generate_password_hash 的 method 参数
    PASSWORD_HASH_METHOD = os.getenv("PASSWORD_HASH_METHOD", "scrypt")

    # ========= 限流（次数 / 衰减分钟） =========
    RATE_LIMIT_LOGIN_ATTEMPTS = _as_int(os.getenv("RATE_LIMIT_LOGIN_ATTEMPTS"), 5)
    RATE_LIMIT_LOGIN_DECAY_MINUTES = _as_int(os.getenv("RATE_LIMIT_LOGIN_DECAY_MINUTES"), 1)
    RATE_LIMIT_JWT_ATTEMPTS = _as_int(os.getenv("RATE_LIMIT_JWT_ATTEMPTS"), 5)
    RATE_LIMIT_JWT_DECAY_MINUTES = _as_int(os.getenv("RATE_LIMIT_JWT_DECAY_MINUTES"), 1)
    RATE_LIMIT_REFRESH_ATTEMPTS = _as_int(os.getenv("RATE_LIMIT_REFRESH_ATTEMPTS"), 30)
    RATE_LIMIT_REFRESH_DECAY_MINUTES = _as_int(os.getenv("RATE_LIMIT_REFRESH_DECAY_MINUTES"), 1)
    RATE_LIMIT_PASSWORD_CHANGE_ATTEMPTS = _as_int(os.getenv("RATE_LIMIT_PASSWORD_CHANGE_ATTEMPTS"), 5)
    RATE_LIMIT_PASSWORD_CHANGE_DECAY_MINUTES = _as_int(os.getenv("RATE_LIMIT_PASSWORD_CHANGE_DECAY_MINUTES"), 15)

    # =========================================


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.getenv("DEV_DATABASE_URI", "sqlite:///" + os.path.join(BASE_DIR, "dev.db"))


class ProductionConfig(BaseConfig):
    DEBUG = False
    # 生产环境不提供默认签名密钥，未配置时启动即失败
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URI")


class TestingConfig(BaseConfig):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URI", "sqlite:///:memory:")
    CACHE_BACKEND = "memory"
    JWT_SECRET_KEY = "test-jwt-secret-key"
    LOG_TO_FILE = False
    LOG_JSON = False
    # 测试环境使用低成本哈希，避免用例过慢
    PASSWORD_HASH_METHOD = "pbkdf2:sha256:1000"


config_map = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}


def get_config(config_name):
    return config_map.get(config_name, DevelopmentConfig)
