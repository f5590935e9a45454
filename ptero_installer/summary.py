from typing import List, Tuple

from rich import box
from rich.panel import Panel
from rich.table import Table

from ptero_installer.config import InstallConfig
from ptero_installer.ui import NordColors, console, print_success, print_warning

SELF_SIGNED_WARNINGS: Tuple[str, ...] = (
    "Note: The panel is using self-signed SSL certificates.",
    "You should replace these with proper certificates in production.",
)


def summary_rows(config: InstallConfig) -> List[Tuple[str, str]]:
    return [
        ("Panel URL", config.request.url),
        ("Admin Email", config.admin.email),
        ("Admin Password", config.admin.password),
        ("Database Name", config.database.name),
        ("Database User", config.database.user),
        ("Database Password", config.database.password),
    ]


def print_summary(config: InstallConfig) -> None:
    console.print()
    print_success("Pterodactyl Panel has been successfully installed!")

    table = Table(show_header=False, box=box.SIMPLE, padding=(0, 1))
    table.add_column("Key", style=f"bold {NordColors.FROST_2}")
    table.add_column("Value", style=NordColors.SNOW_STORM_1)
    for key, value in summary_rows(config):
        table.add_row(key, value)

    console.print(
        Panel(
            table,
            title=f"[bold {NordColors.FROST_2}]Installation Summary[/]",
            border_style=NordColors.FROST_3,
            box=box.ROUNDED,
        )
    )
    for warning in SELF_SIGNED_WARNINGS:
        print_warning(warning)
