# extensions/jwt.py
"""紧凑格式 JWS（HMAC 签名）的编码与解码。

只负责签名 / 验签 / 过期判断，不关心黑名单与用户状态。
"""
import base64
import binascii
import hashlib
import hmac
import json
import time

from utils.exceptions import ExpiredTokenError, InvalidTokenError, TokenConfigError

ALGORITHMS = {
    "HS256": hashlib.sha256,
    "HS384": hashlib.sha384,
    "HS512": hashlib.sha512,
}

REQUIRED_CLAIMS = ("sub", "iat", "exp", "jti", "type")


def _b64(data: bytes):
    return base64.urlsafe_b64encode(data).rstrip(b"=")


def _b64json(obj):
    return _b64(json.dumps(obj, separators=(",", ":")).encode())


def _decode_segment(seg: str):
    pad = "=" * (-len(seg) % 4)
    return json.loads(base64.urlsafe_b64decode(seg + pad).decode())


def _digestmod(algorithm: str):
    digestmod = ALGORITHMS.get(algorithm)
    if digestmod is None:
        raise TokenConfigError(f"不支持的签名算法: {algorithm}")
    return digestmod


def _secret_bytes(secret) -> bytes:
    if not secret:
        raise TokenConfigError("JWT_SECRET_KEY 未配置")
    return secret.encode() if isinstance(secret, str) else secret


def _sign(signing: bytes, secret: bytes, algorithm: str) -> bytes:
    return _b64(hmac.new(secret, signing, _digestmod(algorithm)).digest())


def encode_token(payload: dict, secret, algorithm: str = "HS256") -> str:
    key = _secret_bytes(secret)
    header = {"alg": algorithm, "typ": "JWT"}
    signing = _b64json(header) + b"." + _b64json(payload)
    return (signing + b"." + _sign(signing, key, algorithm)).decode()


def decode_token(token: str, secret, algorithm: str = "HS256", leeway: int = 0, now: float | None = None) -> dict:
    """验签并返回 payload。

    顺序：结构 -> header/算法 -> 签名 -> 必需声明 -> 过期。
    签名不通过一律 ``InvalidTokenError``，即使令牌同时已过期。
    """
    key = _secret_bytes(secret)
    if not isinstance(token, str) or token.count(".") != 2:
        raise InvalidTokenError("令牌格式不正确")
    h_b, p_b, sig_b = token.split(".")
    try:
        header = _decode_segment(h_b)
    except (ValueError, binascii.Error, UnicodeDecodeError):
        raise InvalidTokenError("令牌格式不正确")
    if not isinstance(header, dict) or header.get("alg") != algorithm:
        # 拒绝 alg=none 与算法混淆
        raise InvalidTokenError("不支持的签名算法")

    expected = _sign(f"{h_b}.{p_b}".encode(), key, algorithm).decode()
    if not hmac.compare_digest(expected, sig_b):
        raise InvalidTokenError("签名不匹配")

    try:
        payload = _decode_segment(p_b)
    except (ValueError, binascii.Error, UnicodeDecodeError):
        raise InvalidTokenError("令牌载荷无效")
    if not isinstance(payload, dict) or any(payload.get(c) is None for c in REQUIRED_CLAIMS):
        raise InvalidTokenError("令牌载荷无效")
    exp = payload["exp"]
    if not isinstance(exp, (int, float)) or not isinstance(payload["iat"], (int, float)):
        raise InvalidTokenError("令牌载荷无效")

    current = time.time() if now is None else now
    if exp + leeway < current:
        raise ExpiredTokenError()
    return payload
