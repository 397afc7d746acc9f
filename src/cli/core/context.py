"""Context class for FluxQuant CLI."""

import sys
from typing import Optional

from rich.console import Console
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from fluxquant.config import EngineConfig
from fluxquant.security.roles import Principal, SYSTEM_PRINCIPAL


class Context:
    """Shared context for CLI commands."""

    def __init__(self):
        self.engine: Optional[Engine] = None
        self.session: Optional[Session] = None
        self.config: Optional[EngineConfig] = None
        self.actor: Principal = SYSTEM_PRINCIPAL
        self.as_user: Optional[str] = None
        self.verbose: bool = False
        self.console = Console()
        self.stderr_console = Console(file=sys.stderr)
