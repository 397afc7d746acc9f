"""Read-only command classes: matrix, my-allocations, dashboard, check."""

from cli.core.base import BaseCommand
from cli.core.utils import EXIT_ERROR, EXIT_NOT_FOUND, EXIT_SUCCESS
from cli.matrix.display import (
    display_consistency,
    display_dashboard,
    display_matrix,
    display_my_allocations,
)
from fluxquant.core.users import User
from fluxquant.queries import (
    check_pool_consistency,
    get_dashboard_stats,
    get_matrix_view,
    get_my_allocations,
)


class MatrixCommand(BaseCommand):
    """Show the progress matrix of one project."""

    def execute(self, project_id: int, include_inactive: bool = False) -> int:
        try:
            view = get_matrix_view(
                self.session, project_id,
                calculator=self.config.build_calculator(),
                detector=self.config.build_detector(),
                include_inactive=include_inactive,
            )
            if not view['stages']:
                self.console.print(f"Project {view['project']['code']} has no stages.", style="yellow")
                return EXIT_NOT_FOUND

            display_matrix(self.ctx, view)
            return EXIT_SUCCESS

        except Exception as e:
            return self.handle_exception(e)


class MyAllocationsCommand(BaseCommand):
    """List a user's active allocations."""

    def execute(self, user_id: int) -> int:
        try:
            allocations = get_my_allocations(self.session, user_id,
                                             calculator=self.config.build_calculator())
            if not allocations:
                self.console.print(f"No active allocations for user {user_id}.", style="yellow")
                return EXIT_NOT_FOUND

            user = self.session.get(User, user_id)
            display_my_allocations(self.ctx, user.name, allocations)
            return EXIT_SUCCESS

        except Exception as e:
            return self.handle_exception(e)


class DashboardCommand(BaseCommand):
    """Headline statistics across all active projects."""

    def execute(self, days: int = 7) -> int:
        try:
            stats = get_dashboard_stats(
                self.session,
                calculator=self.config.build_calculator(),
                detector=self.config.build_detector(),
                days=days,
            )
            display_dashboard(self.ctx, stats)
            return EXIT_SUCCESS

        except Exception as e:
            return self.handle_exception(e)


class CheckPoolCommand(BaseCommand):
    """Recompute a pool's counters from its history and report drift."""

    def execute(self, task_pool_id: int) -> int:
        try:
            result = check_pool_consistency(self.session, task_pool_id)
            display_consistency(self.ctx, result)
            return EXIT_SUCCESS if result['consistent'] else EXIT_ERROR

        except Exception as e:
            return self.handle_exception(e)
