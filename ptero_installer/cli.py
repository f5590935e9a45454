#!/usr/bin/env python3
"""
Pterodactyl Panel Automated Installer
-------------------------------------

Installs the Pterodactyl panel on a fresh Debian/Ubuntu or Rocky/AlmaLinux
host: packages, MariaDB, the panel itself, nginx with a self-signed
certificate, the schedule runner and the queue worker. Only the FQDN is
prompted for; everything else uses defaults.

Usage:
  sudo ptero-installer [--debug] [--log-file PATH]
"""

import signal
import sys
from pathlib import Path
from typing import Any, Optional

from ptero_installer import APP_NAME, VERSION
from ptero_installer.ui import (
    console,
    create_header,
    enable_rich_tracebacks,
    print_error,
    print_warning,
    setup_logger,
)

try:
    import click
    import requests  # noqa: F401  # used by the download phases
except ImportError:
    print_error(
        "Required libraries not found. Please install them using:\n"
        "pip install rich pyfiglet click requests"
    )
    sys.exit(1)

from rich.markup import escape

from ptero_installer.commands import CommandRunner
from ptero_installer.errors import InstallerError
from ptero_installer.sequencer import InstallContext, Sequencer
from ptero_installer.settings import Settings


def signal_handler(signum: int, frame: Any) -> None:
    sig = signal.Signals(signum).name
    print_warning(f"Installer interrupted by {sig}. The host may be partially provisioned.")
    sys.exit(128 + signum)


def install_signal_handlers() -> None:
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)


def run_installer(settings: Settings, debug: bool = False) -> int:
    """Run the full sequencer and map the outcome to a process exit code."""
    logger = setup_logger(settings.log_file, debug=debug)
    logger.info(f"{APP_NAME} v{VERSION} started")

    runner = CommandRunner()
    sequencer = Sequencer(InstallContext(settings=settings, runner=runner))
    try:
        sequencer.run()
    except InstallerError as e:
        print_error(escape(runner.mask(str(e))))
        logger.debug("Installation aborted", exc_info=True)
        sequencer.print_status_report()
        return e.exit_code
    except Exception as e:
        print_error(escape(f"An unexpected error occurred: {runner.mask(str(e))}"))
        logger.debug("Unexpected error", exc_info=True)
        sequencer.print_status_report()
        return 1
    sequencer.print_status_report()
    logger.info("Installation finished successfully")
    return 0


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--debug", is_flag=True, help="Show debug output on the console.")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the detailed log here instead of the default location.",
)
@click.version_option(VERSION, prog_name=APP_NAME)
def main(debug: bool, log_file: Optional[Path]) -> None:
    """Install the Pterodactyl panel on this host."""
    enable_rich_tracebacks()
    install_signal_handlers()
    console.clear()
    console.print(create_header())
    try:
        settings = Settings.from_env(log_file=log_file)
    except InstallerError as e:
        print_error(escape(str(e)))
        sys.exit(e.exit_code)
    sys.exit(run_installer(settings, debug=debug))


if __name__ == "__main__":
    main()
