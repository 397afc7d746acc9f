#!/usr/bin/env python3
"""
FluxQuant CLI - quota engine operator commands.

Inspect project matrices and dashboards, submit and revert reports, and
adjust quotas and allocations from the command line.
"""

import sys

import click

from cli.core.context import Context
from cli.core.utils import EXIT_ERROR, EXIT_NOT_FOUND, EXIT_SUCCESS
from cli.matrix.commands import (
    CheckPoolCommand,
    DashboardCommand,
    MatrixCommand,
    MyAllocationsCommand,
)
from cli.quotas.commands import (
    AdjustQuotaCommand,
    AllocateCommand,
    ReportCommand,
    RevertCommand,
    SetTargetCommand,
    ToggleCommand,
)
from fluxquant.accounting.reports import ExclusionReason


pass_context = click.make_pass_decorator(Context, ensure=True)
CONTEXT_SETTINGS = dict(help_option_names=['-h', '--help'])


@click.group(context_settings=CONTEXT_SETTINGS)
@click.option('--verbose', '-v', is_flag=True, help='Show detailed information')
@click.option('--database-url', metavar='URL', help='SQLAlchemy URL (default: FLUXQUANT_DATABASE_URL)')
@click.option('--as-user', metavar='USERNAME', help='Act as this user (default: system)')
@pass_context
def cli(ctx: Context, verbose: bool, database_url: str, as_user: str):
    """Operate the FluxQuant quota engine"""
    from fluxquant.config import get_config
    from fluxquant.exceptions import ConfigError
    from fluxquant.log import setup_logging

    ctx.verbose = verbose
    ctx.as_user = as_user

    try:
        ctx.config = get_config()
    except ConfigError as e:
        ctx.stderr_console.print(f"Configuration error: {e}", style="bold red", markup=False)
        sys.exit(EXIT_ERROR)

    setup_logging(log_file=ctx.config.log_file, verbose=verbose, level=ctx.config.log_level)

    # Initialize database connection
    try:
        from fluxquant.audit import init_audit
        from fluxquant.session import create_quota_engine

        ctx.engine, SessionLocal = create_quota_engine(database_url or ctx.config.database_url)
        ctx.session = SessionLocal()
        click.get_current_context().call_on_close(ctx.session.close)
        init_audit(config=ctx.config)
    except Exception as e:
        ctx.stderr_console.print(f"Error connecting to database: {e}", style="bold red", markup=False)
        sys.exit(EXIT_ERROR)


def _resolve_actor(ctx: Context):
    """Switch the acting principal to --as-user, exiting if that user is unknown."""
    if not ctx.as_user:
        return
    from fluxquant.core.users import User
    from fluxquant.security.roles import Principal

    user = User.get_by_username(ctx.session, ctx.as_user)
    if user is None or not user.active:
        ctx.stderr_console.print(f"❌ Unknown or inactive user: {ctx.as_user}", style="bold red", markup=False)
        sys.exit(EXIT_NOT_FOUND)
    ctx.actor = Principal.from_user(user)
    # end the lookup's read so the command's write transaction opens fresh
    ctx.session.rollback()


# ========================================================================
# Read Commands
# ========================================================================

@cli.command()
@click.argument('project_id', type=int)
@click.option('--inactive', is_flag=True, help='Include disabled stages, pools and allocations')
@pass_context
def matrix(ctx: Context, project_id, inactive):
    """Show the progress matrix of a project."""
    command = MatrixCommand(ctx)
    sys.exit(command.execute(project_id, include_inactive=inactive))


@cli.command('my-allocations')
@click.argument('user_id', type=int)
@pass_context
def my_allocations(ctx: Context, user_id):
    """List a user's active allocations."""
    command = MyAllocationsCommand(ctx)
    sys.exit(command.execute(user_id))


@cli.command()
@click.option('--days', type=click.IntRange(1, 90), default=7, help='Daily trend window (default: 7)')
@pass_context
def dashboard(ctx: Context, days):
    """Show headline statistics and anomaly hotspots."""
    command = DashboardCommand(ctx)
    sys.exit(command.execute(days=days))


@cli.command()
@click.argument('task_pool_id', type=int)
@pass_context
def check(ctx: Context, task_pool_id):
    """Check a task pool's counters against its history."""
    command = CheckPoolCommand(ctx)
    sys.exit(command.execute(task_pool_id))


# ========================================================================
# Write Commands
# ========================================================================

@cli.command()
@click.argument('allocation_id', type=int)
@click.option('--valid', type=int, default=0, help='Valid units')
@click.option('--excluded', type=int, default=0, help='Excluded units')
@click.option('--reason', type=click.Choice([r.value for r in ExclusionReason]),
              help='Exclusion reason (required with --excluded)')
@click.option('--date', 'log_date', metavar='YYYY-MM-DD', help='Work date (default: today)')
@click.option('--comment', help='Free-text comment')
@click.option('--backfill', is_flag=True, help='Mark as a backfilled report')
@pass_context
def report(ctx: Context, allocation_id, valid, excluded, reason, log_date, comment, backfill):
    """Submit a production report."""
    _resolve_actor(ctx)
    command = ReportCommand(ctx)
    sys.exit(command.execute(allocation_id, valid, excluded, reason=reason,
                             log_date=log_date, comment=comment, backfill=backfill))


@cli.command()
@click.argument('report_log_id', type=int)
@pass_context
def revert(ctx: Context, report_log_id):
    """Revert a report log."""
    _resolve_actor(ctx)
    command = RevertCommand(ctx)
    sys.exit(command.execute(report_log_id))


@cli.command('adjust-quota')
@click.argument('task_pool_id', type=int)
@click.argument('new_quota', type=int)
@click.option('--reason', required=True, help='Why the quota changes (recorded in the audit trail)')
@pass_context
def adjust_quota(ctx: Context, task_pool_id, new_quota, reason):
    """Change a task pool's total quota."""
    _resolve_actor(ctx)
    command = AdjustQuotaCommand(ctx)
    sys.exit(command.execute(task_pool_id, new_quota, reason))


@cli.command('set-target')
@click.argument('allocation_id', type=int)
@click.argument('new_target', type=int)
@pass_context
def set_target(ctx: Context, allocation_id, new_target):
    """Change an allocation's target quota."""
    _resolve_actor(ctx)
    command = SetTargetCommand(ctx)
    sys.exit(command.execute(allocation_id, new_target))


@cli.command()
@click.argument('task_pool_id', type=int)
@click.argument('user_id', type=int)
@click.argument('target', type=int)
@pass_context
def allocate(ctx: Context, task_pool_id, user_id, target):
    """Allocate a target within a task pool to a user."""
    _resolve_actor(ctx)
    command = AllocateCommand(ctx)
    sys.exit(command.execute(task_pool_id, user_id, target))


@cli.command()
@click.argument('allocation_id', type=int)
@pass_context
def toggle(ctx: Context, allocation_id):
    """Enable or disable an allocation."""
    _resolve_actor(ctx)
    command = ToggleCommand(ctx)
    sys.exit(command.execute(allocation_id))


@cli.command('init-db')
@pass_context
def init_db_command(ctx: Context):
    """Create any missing tables."""
    from fluxquant.session import init_db

    try:
        init_db(ctx.engine)
    except Exception as e:
        ctx.stderr_console.print(f"❌ Error: {e}", style="bold red", markup=False)
        sys.exit(EXIT_ERROR)
    ctx.console.print("✅ Database initialized", style="green")
    sys.exit(EXIT_SUCCESS)


if __name__ == '__main__':
    cli()
