# controllers/auth_controller.py
from flask import Blueprint, g, request

from extensions.auth import get_auth_service
from middlewares.auth import extract_token, jwt_required
from middlewares.rate_limit import jwt_rate_limit
from utils.response import json_response
from utils.validators import validate_email

auth_bp = Blueprint("auth", __name__)


def _body() -> dict:
    return request.get_json(silent=True) or {}


def _validation_error(message: str):
    return json_response(code=400, message=message, error_code="VALIDATION_ERROR")


@auth_bp.post("/register")
@jwt_rate_limit("LOGIN")
def register():
    data = _body()
    email = (data.get("email") or "").strip()
    password = data.get("password") or ""
    if not email or not password:
        return _validation_error("邮箱和密码必填")
    if not validate_email(email):
        return _validation_error("邮箱格式不正确")
    if "password_confirmation" in data and data["password_confirmation"] != password:
        return _validation_error("两次输入的密码不一致")
    result = get_auth_service().register(email, password, data.get("name"))
    return json_response(message="注册成功", data=result.to_dict(), code=201)


@auth_bp.post("/login")
@jwt_rate_limit("LOGIN")
def login():
    data = _body()
    email = (data.get("email") or "").strip()
    password = data.get("password") or ""
    if not email or not password:
        return _validation_error("邮箱和密码必填")
    result = get_auth_service().authenticate(email, password)
    return json_response(message="登录成功", data=result.to_dict())


@auth_bp.post("/refresh")
@jwt_rate_limit("REFRESH")
def refresh():
    token = (_body().get("refresh_token") or "").strip() or extract_token()
    pair = get_auth_service().refresh_session(token)
    return json_response(message="令牌已刷新", data={"tokens": pair.to_dict()})


@auth_bp.post("/validate")
@jwt_rate_limit("REFRESH")
def validate():
    token = (_body().get("token") or "").strip() or extract_token()
    return json_response(data=get_auth_service().describe_token(token))


@auth_bp.post("/logout")
def logout():
    refresh_token = (_body().get("refresh_token") or "").strip() or None
    # 无法解析的令牌视为已注销；有效令牌拉黑失败返回 503
    if not get_auth_service().logout(extract_token(), refresh_token):
        return json_response(code=503, message="暂时无法退出登录，请稍后重试", error_code="CACHE_UNAVAILABLE")
    return json_response(message="已退出登录")


@auth_bp.post("/logout-all")
@jwt_required()
def logout_all():
    if not get_auth_service().force_logout_all_sessions(g.current_user):
        return json_response(code=503, message="暂时无法注销全部会话，请稍后重试", error_code="CACHE_UNAVAILABLE")
    return json_response(message="已注销全部会话")


@auth_bp.get("/user")
@jwt_required()
def current_user():
    service = get_auth_service()
    user = g.current_user
    return json_response(data={
        "user": user.to_dict(),
        "password_expiration": service.policy.check_password_expiration(user).to_dict(),
    })


@auth_bp.post("/change-password")
@jwt_rate_limit("PASSWORD_CHANGE")
@jwt_required()
def change_password():
    data = _body()
    current_password = data.get("current_password") or ""
    new_password = data.get("new_password") or ""
    if not current_password or not new_password:
        return _validation_error("当前密码和新密码必填")
    if "new_password_confirmation" in data and data["new_password_confirmation"] != new_password:
        return _validation_error("两次输入的新密码不一致")
    pair = get_auth_service().change_password(g.current_user, current_password, new_password)
    return json_response(message="密码修改成功", data={"tokens": pair.to_dict()})


@auth_bp.get("/password-policy")
def password_policy():
    return json_response(data=get_auth_service().policy.get_policy_info())


@auth_bp.post("/password-strength")
def password_strength():
    password = _body().get("password") or ""
    result = get_auth_service().policy.validate_password(password)
    return json_response(data=result.to_dict())
