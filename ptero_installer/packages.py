from typing import List

from ptero_installer.commands import CommandRunner
from ptero_installer.config import InstallConfig
from ptero_installer.osinfo import OSInfo, PlatformProfile
from ptero_installer.ui import print_step, print_success


def plan_package_commands(os_info: OSInfo, profile: PlatformProfile) -> List[List[str]]:
    """Package-manager invocations followed by the service enables."""
    commands = profile.package_commands(os_info)
    commands.extend(
        ["systemctl", "enable", "--now", service] for service in profile.services
    )
    return commands


def install_dependencies(runner: CommandRunner, config: InstallConfig) -> None:
    profile = config.profile
    print_step(
        f"Installing dependencies for {config.os_info.pretty_name or config.os_info.os_id}..."
    )
    for cmd in plan_package_commands(config.os_info, profile):
        print_step(" ".join(cmd))
        runner.run(cmd, env=profile.env or None)
    print_success("Dependencies installed!")
