# app.py
from flask import Flask

from commands.security_commands import security_cli
from config.settings import get_config
from controllers.auth_controller import auth_bp
from extensions.auth import init_auth
from extensions.database import db, migrate
from extensions.jwt_response import init_jwt_response
from extensions.logger import init_logger
from extensions.redis_client import init_cache
from utils.exceptions import BizError, RateLimitedError
from utils.response import json_response


def create_app(config_name="development"):
    app = Flask(__name__)
    app.config.from_object(get_config(config_name))

    # 初始化扩展
    db.init_app(app)
    migrate.init_app(app, db)
    init_logger(app)
    init_cache(app)
    init_auth(app)
    init_jwt_response(app)

    # 认证
    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    # 运维命令：flask security ...
    app.cli.add_command(security_cli)

    # 错误处理
    @app.errorhandler(404)
    def not_found(e):
        return json_response(message="接口不存在", code=404)

    @app.errorhandler(405)
    def method_not_allowed(e):
        return json_response(message="请求方法不被允许", code=405)

    @app.errorhandler(500)
    def server_error(e):
        return json_response(message="服务器内部错误", code=500)

    @app.errorhandler(BizError)
    def _biz_err(e: BizError):
        headers = None
        if isinstance(e, RateLimitedError):
            headers = {"Retry-After": e.retry_after}
        return json_response(code=e.code, message=e.message, data=e.data, error_code=e.error_code, headers=headers)

    return app


if __name__ == "__main__":
    app = create_app()
    app.run(host="0.0.0.0", port=8888, debug=True)
