from pathlib import Path
from typing import List

from ptero_installer.commands import CommandRunner
from ptero_installer.config import InstallConfig
from ptero_installer.ui import get_logger, print_step, print_success

WORKER_SERVICE: str = "pteroq.service"
PHP_BINARY: str = "/usr/bin/php"


def cron_line(artisan: Path) -> str:
    return f"* * * * * php {artisan} schedule:run >> /dev/null 2>&1"


def has_entry(existing: str, line: str) -> bool:
    return any(entry.strip() == line for entry in existing.splitlines())


def merge_crontab(existing: str, line: str) -> str:
    """Append 'line' to a crontab body unless an identical entry exists."""
    lines: List[str] = existing.splitlines()
    if not has_entry(existing, line):
        lines.append(line)
    return "\n".join(lines) + "\n"


def read_crontab(runner: CommandRunner) -> str:
    result = runner.run(["crontab", "-l"], check=False)
    # crontab -l exits 1 with "no crontab for <user>" when the table is empty.
    if not result.ok:
        return ""
    return result.stdout


def setup_cron(runner: CommandRunner, config: InstallConfig) -> None:
    line = cron_line(config.settings.artisan)
    existing = read_crontab(runner)
    if has_entry(existing, line):
        get_logger().info("Schedule entry already present in crontab; leaving it as is.")
    else:
        print_step("Adding panel schedule runner to crontab...")
        runner.run(["crontab", "-"], input=merge_crontab(existing, line))
    print_success("Cron job set up!")


def render_worker_unit(config: InstallConfig) -> str:
    profile = config.profile
    return f"""[Unit]
Description=Pterodactyl Queue Worker
After={profile.redis_service}.service

[Service]
User={profile.web_user}
Group={profile.web_group}
Restart=always
ExecStart={PHP_BINARY} {config.settings.artisan} queue:work --queue=high,standard,low --sleep=3 --tries=3
StartLimitInterval=180
StartLimitBurst=30
RestartSec=5s

[Install]
WantedBy=multi-user.target
"""


def setup_worker_service(runner: CommandRunner, config: InstallConfig) -> None:
    unit_path = config.settings.systemd_dir / WORKER_SERVICE
    print_step(f"Writing queue worker unit to {unit_path}...")
    unit_path.parent.mkdir(parents=True, exist_ok=True)
    unit_path.write_text(render_worker_unit(config))
    runner.run(["systemctl", "daemon-reload"])
    runner.run(["systemctl", "enable", "--now", WORKER_SERVICE])
    print_success("Services configured!")
