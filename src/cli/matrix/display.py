"""Display functions for matrix, allocation and dashboard commands."""

from typing import Dict, List

from rich import box
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from cli.core.context import Context
from cli.core.utils import enum_value, fmt_int, fmt_percent, progress_style


def _anomaly_marker(anomaly: Dict) -> str:
    if anomaly['status'] == 'unknown':
        return "[dim]?[/]"
    if anomaly['is_anomalous']:
        reason = enum_value(anomaly.get('top_reason'))
        return f"[bold red]⚠ {anomaly['exclusion_rate']:.0%} {reason}[/]"
    return ""


def display_matrix(ctx: Context, view: Dict):
    """Display a project matrix as a stage/pool tree with an allocation table per pool."""
    project = view['project']
    totals = view['totals']

    tree = Tree(
        f"[bold]{project['code']}[/] {project['name']}  "
        f"[{progress_style(totals['progress'])}]{fmt_percent(totals['progress'])}[/] "
        f"({fmt_int(totals['total_valid'])} valid / {fmt_int(totals['total_excluded'])} excluded "
        f"of {fmt_int(totals['total_quota'])})"
    )

    for stage in view['stages']:
        stage_node = tree.add(f"[cyan]{stage['order']}. {stage['name']}[/]")
        for pool in stage['task_pools']:
            over = " [bold red]OVER-ALLOCATED[/]" if pool['is_over_allocated'] else ""
            pool_node = stage_node.add(
                f"[bold]{pool['name']}[/] quota {fmt_int(pool['total_quota'])}, "
                f"assigned {fmt_int(pool['assigned_total'])}, "
                f"unassigned {fmt_int(pool['unassigned'])}{over}  "
                f"[{progress_style(pool['progress'])}]{fmt_percent(pool['progress'])}[/] "
                f"{_anomaly_marker(pool['anomaly'])}"
            )
            if not pool['allocations']:
                continue

            table = Table(box=box.SIMPLE_HEAD, show_header=True)
            table.add_column("ID", justify="right", style="dim")
            table.add_column("User", style="green")
            table.add_column("Target", justify="right", style="bold blue")
            table.add_column("Valid", justify="right")
            table.add_column("Excluded", justify="right")
            table.add_column("Progress", justify="right")
            table.add_column("Anomaly")
            if ctx.verbose:
                table.add_column("Active", justify="center")

            for alloc in pool['allocations']:
                row = [
                    str(alloc['allocation_id']),
                    alloc['display_name'],
                    fmt_int(alloc['target_quota']),
                    fmt_int(alloc['current_valid']),
                    fmt_int(alloc['current_excluded']),
                    f"[{progress_style(alloc['progress'])}]{fmt_percent(alloc['progress'])}[/]",
                    _anomaly_marker(alloc['anomaly']),
                ]
                if ctx.verbose:
                    row.append("✓" if alloc['active'] else "✗")
                table.add_row(*row)
            pool_node.add(table)

    ctx.console.print(tree)


def display_my_allocations(ctx: Context, username: str, allocations: List[Dict]):
    table = Table(title=f"Allocations for {username}", box=box.SIMPLE_HEAD, show_header=True)
    table.add_column("ID", justify="right", style="dim")
    table.add_column("Project", style="green")
    table.add_column("Stage", style="cyan")
    table.add_column("Pool")
    table.add_column("Target", justify="right", style="bold blue")
    table.add_column("Valid", justify="right")
    table.add_column("Excluded", justify="right")
    table.add_column("Progress", justify="right")
    table.add_column("Last Report", justify="right", style="dim")

    for alloc in allocations:
        last = alloc['last_report']
        table.add_row(
            str(alloc['allocation_id']),
            alloc['project_code'],
            alloc['stage_name'],
            alloc['task_pool_name'],
            fmt_int(alloc['target_quota']),
            fmt_int(alloc['current_valid']),
            fmt_int(alloc['current_excluded']),
            f"[{progress_style(alloc['progress'])}]{fmt_percent(alloc['progress'])}[/]",
            last['log_date'].strftime("%Y-%m-%d") if last else "never",
        )

    ctx.console.print(table)


def display_dashboard(ctx: Context, stats: Dict):
    today = stats['today']
    summary = (
        f"Active projects: [bold]{stats['active_projects']}[/]   "
        f"Task pools: [bold]{stats['task_pools']}[/]   "
        f"Active users: [bold]{stats['active_users']}[/]\n"
        f"Today ({today['date']:%Y-%m-%d}): {today['reports']} reports, "
        f"{fmt_int(today['valid'])} valid, {fmt_int(today['excluded'])} excluded\n"
        f"Overall progress: [{progress_style(stats['progress'])}]{fmt_percent(stats['progress'])}[/]   "
        f"Anomalous pools: [red]{stats['anomalous_pools']}[/]   "
        f"Anomalous allocations: [red]{stats['anomalous_allocations']}[/]"
    )
    ctx.console.print(Panel(summary, title="FluxQuant Dashboard", expand=False))

    trend = Table(title="Daily Trend", box=box.SIMPLE_HEAD)
    trend.add_column("Date")
    trend.add_column("Reports", justify="right")
    trend.add_column("Valid", justify="right", style="green")
    trend.add_column("Excluded", justify="right", style="yellow")
    for day in stats['daily_trend']:
        trend.add_row(day['date'].strftime("%Y-%m-%d"), str(day['reports']),
                      fmt_int(day['valid']), fmt_int(day['excluded']))
    ctx.console.print(trend)

    if stats['hotspots']:
        hot = Table(title="Anomaly Hotspots", box=box.SIMPLE_HEAD)
        hot.add_column("Pool", style="bold")
        hot.add_column("Project", style="green")
        hot.add_column("Exclusion Rate", justify="right", style="red")
        hot.add_column("Overrun", justify="center")
        hot.add_column("Top Reason")
        for h in stats['hotspots']:
            hot.add_row(h['name'], h['project_code'], f"{h['exclusion_rate']:.1%}",
                        "✓" if h['is_overrun'] else "", enum_value(h['top_reason']))
        ctx.console.print(hot)

    if ctx.verbose and stats['recent_activity']:
        recent = Table(title="Recent Activity", box=box.SIMPLE_HEAD)
        recent.add_column("Log", justify="right", style="dim")
        recent.add_column("User", style="green")
        recent.add_column("Pool")
        recent.add_column("Date")
        recent.add_column("Valid", justify="right")
        recent.add_column("Excluded", justify="right")
        recent.add_column("Status")
        for r in stats['recent_activity']:
            recent.add_row(str(r['report_log_id']), r['username'], r['task_pool_name'],
                           r['log_date'].strftime("%Y-%m-%d"), fmt_int(r['valid_qty']),
                           fmt_int(r['excluded_qty']), enum_value(r['status']))
        ctx.console.print(recent)


def display_consistency(ctx: Context, result: Dict):
    status = "[green]consistent[/]" if result['consistent'] else "[bold red]DRIFT DETECTED[/]"
    ctx.console.print(f"Task pool {result['task_pool_id']}: {status}")

    table = Table(box=box.SIMPLE_HEAD)
    table.add_column("Counter")
    table.add_column("Stored", justify="right")
    table.add_column("Expected", justify="right")
    for key in ('total_quota', 'total_valid', 'total_excluded'):
        style = "red" if key in result['drift'] else ""
        table.add_row(key, fmt_int(result['stored'][key]), fmt_int(result['expected'][key]), style=style)
    ctx.console.print(table)

    for drift in result['allocation_drift']:
        ctx.console.print(
            f"  allocation {drift['allocation_id']}: valid {drift['stored_valid']} "
            f"(expected {drift['expected_valid']}), excluded {drift['stored_excluded']} "
            f"(expected {drift['expected_excluded']})",
            style="red",
        )
