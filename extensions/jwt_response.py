# extensions/jwt_response.py
from flask import g

from constants.security import EXPOSED_HEADERS, HEADER_EXPIRES_AT, HEADER_REFRESH_RECOMMENDED


def init_jwt_response(app):
    """已鉴权请求的响应上附带令牌过期信息，前端据此决定何时刷新。"""

    @app.before_request
    def _reset_jwt_context():
        # 测试客户端等场景下多个请求可能共用同一个应用上下文
        g.pop("jwt_context", None)

    @app.after_request
    def _jwt_headers(resp):
        context = getattr(g, "jwt_context", None)
        if context is None:
            return resp
        resp.headers[HEADER_EXPIRES_AT] = context.expires_at_iso
        if context.refresh_recommended:
            resp.headers[HEADER_REFRESH_RECOMMENDED] = "true"
        resp.headers["Access-Control-Expose-Headers"] = EXPOSED_HEADERS
        return resp
