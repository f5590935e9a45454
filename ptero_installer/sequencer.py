"""
The provisioning sequencer: nine phases run front to back, stopping at the
first failure. Nothing is rolled back.
"""

import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from rich import box
from rich.panel import Panel
from rich.prompt import Prompt
from rich.markup import escape
from rich.table import Table

from ptero_installer.commands import CommandRunner
from ptero_installer.config import (
    InstallConfig,
    build_config,
    collect_domain,
    detect_local_ip,
)
from ptero_installer.database import setup_database
from ptero_installer.errors import InstallerError, PreconditionError
from ptero_installer.osinfo import OS_RELEASE, OSInfo, detect_os
from ptero_installer.packages import install_dependencies
from ptero_installer.panel import install_panel
from ptero_installer.scheduler import setup_cron, setup_worker_service
from ptero_installer.settings import Settings
from ptero_installer.summary import print_summary
from ptero_installer.ui import NordColors, console, get_logger, print_section
from ptero_installer.webserver import configure_nginx

AskFn = Callable[[str, str], str]


def prompt_ask(question: str, default: str) -> str:
    return Prompt.ask(f"[bold]* {question}[/]", default=default, console=console)


@dataclass
class InstallContext:
    """State handed from phase to phase until the InstallConfig exists."""

    settings: Settings
    runner: CommandRunner
    ask: AskFn = prompt_ask
    os_release: Union[str, Path] = OS_RELEASE
    geteuid: Optional[Callable[[], int]] = None
    local_ip: Optional[str] = None
    os_info: Optional[OSInfo] = None
    domain: Optional[str] = None
    config: Optional[InstallConfig] = None

    def require_config(self) -> InstallConfig:
        if self.config is None:
            raise InstallerError("Installation config has not been built yet")
        return self.config


@dataclass(frozen=True)
class Phase:
    key: str
    title: str
    action: Callable[[InstallContext], None]


@dataclass
class PhaseStatus:
    status: str = "pending"
    message: str = ""


# ----------------------------------------------------------------
# Phase Actions
# ----------------------------------------------------------------
def check_preconditions(ctx: InstallContext) -> None:
    geteuid = ctx.geteuid or os.geteuid
    if geteuid() != 0:
        raise PreconditionError("This script must be run as root")
    ctx.os_info = detect_os(ctx.os_release)
    get_logger().info(
        f"Detected {ctx.os_info.pretty_name or ctx.os_info.os_id} "
        f"({ctx.os_info.family.value} family)"
    )


def collect_input(ctx: InstallContext) -> None:
    ctx.domain = collect_domain(ctx.ask, ctx.settings.default_domain)
    if ctx.local_ip is None:
        ctx.local_ip = detect_local_ip()


def generate_secrets(ctx: InstallContext) -> None:
    if ctx.os_info is None or ctx.domain is None:
        raise InstallerError("Host checks and input must complete before secrets")
    ctx.config = build_config(ctx.domain, ctx.os_info, ctx.settings, ctx.local_ip)
    ctx.runner.add_secret(ctx.config.database.password)
    ctx.runner.add_secret(ctx.config.admin.password)


def with_config(
    func: Callable[[CommandRunner, InstallConfig], None],
) -> Callable[[InstallContext], None]:
    def action(ctx: InstallContext) -> None:
        func(ctx.runner, ctx.require_config())

    action.__name__ = func.__name__
    return action


def register_schedules(runner: CommandRunner, config: InstallConfig) -> None:
    setup_cron(runner, config)
    setup_worker_service(runner, config)


def report_summary(ctx: InstallContext) -> None:
    print_summary(ctx.require_config())


PHASES: List[Phase] = [
    Phase("preflight", "Checking Host", check_preconditions),
    Phase("input", "Collecting Input", collect_input),
    Phase("secrets", "Generating Secrets", generate_secrets),
    Phase("dependencies", "Installing Dependencies", with_config(install_dependencies)),
    Phase("database", "Configuring MySQL", with_config(setup_database)),
    Phase("panel", "Installing Pterodactyl Panel", with_config(install_panel)),
    Phase("nginx", "Configuring Nginx", with_config(configure_nginx)),
    Phase("scheduler", "Registering Schedules", with_config(register_schedules)),
    Phase("summary", "Installation Summary", report_summary),
]


# ----------------------------------------------------------------
# Sequencer
# ----------------------------------------------------------------
@dataclass
class Sequencer:
    ctx: InstallContext
    phases: List[Phase] = field(default_factory=lambda: list(PHASES))
    status: Dict[str, PhaseStatus] = field(default_factory=dict)
    completed: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.status = {phase.key: PhaseStatus() for phase in self.phases}

    def run(self) -> InstallConfig:
        """
        Execute every phase in order.

        The first exception marks its phase failed, leaves the remaining
        phases pending and propagates to the caller.
        """
        logger = get_logger()
        for phase in self.phases:
            print_section(phase.title)
            self.status[phase.key] = PhaseStatus("in_progress")
            logger.debug(f"Starting phase '{phase.key}'")
            start = time.monotonic()
            try:
                phase.action(self.ctx)
            except Exception as e:
                elapsed = time.monotonic() - start
                self.status[phase.key] = PhaseStatus(
                    "failed", f"Failed after {elapsed:.2f}s: {self.ctx.runner.mask(str(e))}"
                )
                logger.debug(f"Phase '{phase.key}' failed", exc_info=True)
                raise
            elapsed = time.monotonic() - start
            self.status[phase.key] = PhaseStatus("success", f"Completed in {elapsed:.2f}s")
            self.completed.append(phase.key)
        return self.ctx.require_config()

    def status_table(self) -> Table:
        table = Table(title="Setup Status Report", style="banner", box=box.ROUNDED)
        table.add_column("Phase", style="header")
        table.add_column("Status", style="info")
        table.add_column("Message", style="info")

        for phase in self.phases:
            data = self.status[phase.key]
            status_color = {
                "pending": "debug",
                "in_progress": "warning",
                "success": "success",
                "failed": "error",
            }.get(data.status, "info")
            message = escape(data.message)
            table.add_row(
                phase.title,
                f"[{status_color}]{data.status.upper()}[/{status_color}]",
                message,
            )
        return table

    def print_status_report(self) -> None:
        console.print(
            Panel(
                self.status_table(),
                title="[banner]Pterodactyl Installation Status[/banner]",
                border_style=NordColors.FROST_3,
                box=box.ROUNDED,
            )
        )
