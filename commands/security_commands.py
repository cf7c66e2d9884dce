# commands/security_commands.py
from datetime import timedelta

import click
from flask import current_app
from flask.cli import AppGroup

from extensions.auth import get_auth_service
from extensions.database import db
from repositories.password_history_repository import PasswordHistoryRepository
from repositories.user_repository import UserRepository
from utils.datetime_helpers import utcnow

security_cli = AppGroup("security", help="认证与密码安全相关的运维命令")


@security_cli.command("prune-password-history")
@click.option("--keep", type=int, default=None, help="每个用户保留的历史条数，默认取 PASSWORD_HISTORY_COUNT")
def prune_password_history(keep):
    """按条数清理所有用户的密码历史。"""
    keep = current_app.config.get("PASSWORD_HISTORY_COUNT", 5) if keep is None else keep
    if keep < 0:
        raise click.BadParameter("--keep 不能为负数")
    result = PasswordHistoryRepository.prune_all(keep)
    db.session.commit()
    click.secho(
        f"已清理 {result['cleaned_users']} 个用户的 {result['deleted_records']} 条密码历史",
        fg="green",
    )


@security_cli.command("blacklist-stats")
def blacklist_stats():
    """输出黑名单统计。"""
    stats = get_auth_service().blacklist.get_statistics()
    if "error" in stats:
        click.secho(f"缓存不可用: {stats['error']}", fg="red")
    click.echo(f"已拉黑令牌: {stats['total_blacklisted_tokens']}")
    click.echo(f"存在全部失效标记的用户: {stats['users_with_blacklisted_tokens']}")


@security_cli.command("revoke-user-tokens")
@click.argument("user_id", type=int)
def revoke_user_tokens(user_id):
    """令指定用户当前持有的全部令牌失效。"""
    user = UserRepository.find_by_id(user_id)
    if user is None:
        click.secho(f"用户不存在: {user_id}", fg="red")
        raise SystemExit(1)
    if not get_auth_service().force_logout_all_sessions(user):
        click.secho("写入黑名单失败，请检查缓存连接", fg="red")
        raise SystemExit(1)
    click.secho(f"用户 {user.email} 的全部令牌已失效", fg="green")


@security_cli.command("audit")
@click.option("--inactive-days", type=int, default=90, show_default=True, help="超过该天数未登录视为闲置账号")
def audit(inactive_days):
    """密码安全审计：策略配置、过期密码、待清理的历史、闲置账号。"""
    policy = get_auth_service().policy
    problems = 0

    click.secho("== 策略配置 ==", bold=True)
    setting_issues = policy.audit_settings()
    for issue in setting_issues:
        click.secho(f"[{issue['severity']}] {issue['description']}", fg="yellow")
    if not setting_issues:
        click.echo("未发现问题")
    problems += len(setting_issues)

    click.secho("== 过期密码 ==", bold=True)
    if not current_app.config.get("PASSWORD_EXPIRATION_ENABLED", False):
        click.echo("未启用密码过期")
    else:
        now = utcnow()
        expired = [u for u in UserRepository.list_active() if policy.check_password_expiration(u, now=now).expired]
        for user in expired:
            click.echo(f"  {user.id}\t{user.email}")
        click.echo(f"密码已过期的账号: {len(expired)}")
        problems += len(expired)

    click.secho("== 密码历史 ==", bold=True)
    limit = policy.history_count
    excess = PasswordHistoryRepository.users_exceeding(limit)
    extra_records = sum(total - limit for total in excess.values())
    click.echo(f"需要清理历史的用户: {len(excess)}（超出 {extra_records} 条）")
    if excess:
        click.echo("可执行 flask security prune-password-history 清理")
    problems += len(excess)

    click.secho("== 闲置账号 ==", bold=True)
    idle = UserRepository.find_inactive_since(utcnow() - timedelta(days=inactive_days))
    for user in idle:
        last = user.last_login_at.isoformat() if user.last_login_at else "从未登录"
        click.echo(f"  {user.id}\t{user.email}\t{last}")
    click.echo(f"超过 {inactive_days} 天未登录的账号: {len(idle)}")
    problems += len(idle)

    color = "green" if problems == 0 else "yellow"
    click.secho(f"审计完成，共 {problems} 项需要关注", fg=color)
