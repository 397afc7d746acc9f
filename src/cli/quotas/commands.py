"""Write command classes: reports, quota adjustments and allocations."""

from datetime import date
from typing import Optional

from cli.core.base import BaseWriteCommand
from cli.core.utils import EXIT_SUCCESS, fmt_int, fmt_percent
from fluxquant.audit import acting_as
from fluxquant.manage import (
    adjust_pool_quota,
    create_allocation,
    quota_transaction,
    revert_report,
    submit_report,
    toggle_allocation,
    update_allocation_target,
)


class ReportCommand(BaseWriteCommand):
    """Submit a production report against an allocation."""

    def execute(self, allocation_id: int, valid: int, excluded: int = 0,
                reason: Optional[str] = None, log_date: Optional[str] = None,
                comment: Optional[str] = None, backfill: bool = False) -> int:
        try:
            with acting_as(self.actor), quota_transaction(self.session):
                result = submit_report(
                    self.session, allocation_id,
                    log_date or date.today(),
                    valid_qty=valid,
                    excluded_qty=excluded,
                    exclusion_reason=reason,
                    comment=comment,
                    is_backfill=backfill,
                    actor=self.actor,
                    config=self.config,
                )
                log_id = result.report_log.report_log_id
                valid_now, excluded_now = result.current_valid, result.current_excluded
                progress = result.progress.as_dict()

            self.console.print(
                f"✅ Report {log_id} recorded: allocation {allocation_id} now "
                f"{fmt_int(valid_now)} valid / {fmt_int(excluded_now)} excluded "
                f"({fmt_percent(progress)})",
                style="green",
            )
            self.print_warnings(result.warnings)
            return EXIT_SUCCESS

        except Exception as e:
            return self.handle_exception(e)


class RevertCommand(BaseWriteCommand):
    """Revert a report log."""

    def execute(self, report_log_id: int) -> int:
        try:
            with acting_as(self.actor), quota_transaction(self.session):
                result = revert_report(self.session, report_log_id, actor=self.actor,
                                       config=self.config)
                allocation_id = result.allocation.allocation_id
                valid_now, excluded_now = result.current_valid, result.current_excluded

            self.console.print(
                f"✅ Report {report_log_id} reverted: allocation {allocation_id} now "
                f"{fmt_int(valid_now)} valid / {fmt_int(excluded_now)} excluded",
                style="green",
            )
            return EXIT_SUCCESS

        except Exception as e:
            return self.handle_exception(e)


class AdjustQuotaCommand(BaseWriteCommand):
    """Change a task pool's total quota."""

    def execute(self, task_pool_id: int, new_quota: int, reason: str) -> int:
        try:
            with acting_as(self.actor), quota_transaction(self.session):
                result = adjust_pool_quota(self.session, task_pool_id, new_quota, reason,
                                           self.actor, config=self.config)
                previous_quota = result.adjustment.previous_quota
                delta = result.delta
                previous, preview = result.previous.as_dict(), result.preview.as_dict()

            self.console.print(
                f"✅ Task pool {task_pool_id} quota {fmt_int(previous_quota)} → {fmt_int(new_quota)} "
                f"({delta:+,}); progress {fmt_percent(previous)} → {fmt_percent(preview)}",
                style="green",
            )
            self.print_warnings(result.warnings)
            return EXIT_SUCCESS

        except Exception as e:
            return self.handle_exception(e)


class SetTargetCommand(BaseWriteCommand):
    """Change one allocation's target quota."""

    def execute(self, allocation_id: int, new_target: int) -> int:
        try:
            with acting_as(self.actor), quota_transaction(self.session):
                result = update_allocation_target(self.session, allocation_id, new_target,
                                                  actor=self.actor)
                previous_target = result.previous_target
                progress = result.progress.as_dict()

            self.console.print(
                f"✅ Allocation {allocation_id} target {fmt_int(previous_target)} → "
                f"{fmt_int(new_target)} ({fmt_percent(progress)})",
                style="green",
            )
            self.print_warnings(result.warnings)
            return EXIT_SUCCESS

        except Exception as e:
            return self.handle_exception(e)


class AllocateCommand(BaseWriteCommand):
    """Create an allocation for a user in a task pool."""

    def execute(self, task_pool_id: int, user_id: int, target: int) -> int:
        try:
            with acting_as(self.actor), quota_transaction(self.session):
                result = create_allocation(self.session, task_pool_id, user_id, target,
                                           actor=self.actor)
                allocation_id = result.allocation.allocation_id

            self.console.print(
                f"✅ Allocation {allocation_id} created: user {user_id}, pool {task_pool_id}, "
                f"target {fmt_int(target)}",
                style="green",
            )
            self.print_warnings(result.warnings)
            return EXIT_SUCCESS

        except Exception as e:
            return self.handle_exception(e)


class ToggleCommand(BaseWriteCommand):
    """Enable or disable an allocation."""

    def execute(self, allocation_id: int) -> int:
        try:
            with acting_as(self.actor), quota_transaction(self.session):
                result = toggle_allocation(self.session, allocation_id, actor=self.actor)
                active = result.allocation.active

            state = "enabled" if active else "disabled"
            self.console.print(f"✅ Allocation {allocation_id} {state}", style="green")
            self.print_warnings(result.warnings)
            return EXIT_SUCCESS

        except Exception as e:
            return self.handle_exception(e)
