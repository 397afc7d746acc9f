"""Base command classes for FluxQuant CLI."""

from abc import ABC, abstractmethod

from rich.markup import escape

from cli.core.context import Context
from cli.core.utils import EXIT_ERROR, EXIT_NOT_FOUND
from fluxquant.exceptions import NotFoundError, QuotaEngineError


class BaseCommand(ABC):
    """Base class for all commands."""

    def __init__(self, ctx: Context):
        self.ctx = ctx
        self.session = ctx.session
        self.console = ctx.console
        self.config = ctx.config
        self.actor = ctx.actor

    @abstractmethod
    def execute(self, **kwargs) -> int:
        """Execute command. Returns exit code."""
        pass

    def handle_exception(self, e: Exception) -> int:
        """Common error handling."""
        if isinstance(e, NotFoundError):
            self.ctx.stderr_console.print(f"❌ Not found: {escape(str(e))}", style="bold red")
            return EXIT_NOT_FOUND

        if isinstance(e, QuotaEngineError):
            hint = " (retry later)" if e.retryable else ""
            self.ctx.stderr_console.print(f"❌ Error ({e.code}): {escape(str(e))}{hint}", style="bold red")
        else:
            self.ctx.stderr_console.print(f"❌ Error: {escape(str(e))}", style="bold red")

        if self.ctx.verbose:
            import traceback
            self.ctx.stderr_console.print(traceback.format_exc(), style="dim")
        return EXIT_ERROR


class BaseWriteCommand(BaseCommand):
    """Base for commands that change quotas, allocations or reports."""

    def print_warnings(self, warnings):
        for warning in warnings:
            self.console.print(f"⚠️  {warning.message}", style="yellow")
