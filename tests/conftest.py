"""Shared fixtures: a recording command runner and temporary host paths."""

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

import pytest

from ptero_installer.commands import CommandResult, CommandRunner
from ptero_installer.config import InstallConfig, build_config
from ptero_installer.database import VERSION_QUERY
from ptero_installer.errors import CommandError
from ptero_installer.osinfo import OSFamily, OSInfo
from ptero_installer.settings import Settings

DEBIAN_OS_RELEASE = """PRETTY_NAME="Ubuntu 24.04.1 LTS"
NAME="Ubuntu"
VERSION_ID="24.04"
ID=ubuntu
ID_LIKE=debian
"""

ROCKY_OS_RELEASE = """NAME="Rocky Linux"
VERSION="9.3 (Blue Onyx)"
ID="rocky"
ID_LIKE="rhel centos fedora"
VERSION_ID="9.3"
PRETTY_NAME="Rocky Linux 9.3 (Blue Onyx)"
"""


@dataclass
class Call:
    args: List[str]
    input: Optional[str] = None
    cwd: Optional[str] = None
    env: Optional[Dict[str, str]] = None


class FakeRunner(CommandRunner):
    """
    Records every command instead of running it.

    'fail_on' decides which command exits non-zero; 'outputs' maps a command
    prefix to the (returncode, stdout) it should produce.
    """

    def __init__(self, fail_on: Optional[Callable[[List[str]], bool]] = None) -> None:
        super().__init__()
        self.fail_on = fail_on
        self.calls: List[Call] = []
        self.outputs: Dict[tuple, tuple] = {
            ("crontab", "-l"): (1, ""),
            tuple(VERSION_QUERY): (0, "10.11.6-MariaDB-0ubuntu0.24.04.1\n"),
        }

    @property
    def commands(self) -> List[List[str]]:
        return [call.args for call in self.calls]

    def run(self, cmd: Sequence, input=None, cwd=None, env=None, check=True) -> CommandResult:
        args = [str(part) for part in cmd]
        self.calls.append(
            Call(args, input, str(cwd) if cwd is not None else None, env)
        )
        returncode, stdout = 0, ""
        for prefix, output in self.outputs.items():
            if tuple(args[: len(prefix)]) == prefix:
                returncode, stdout = output
        if self.fail_on is not None and self.fail_on(args):
            returncode = 1
        result = CommandResult(
            args=args,
            returncode=returncode,
            stdout=stdout,
            stderr="simulated failure" if returncode else "",
            display=self.describe(args),
        )
        if check and not result.ok:
            raise CommandError(result)
        return result


def command_startswith(*prefix: str) -> Callable[[List[str]], bool]:
    def matcher(args: List[str]) -> bool:
        return tuple(args[: len(prefix)]) == prefix

    return matcher


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        install_dir=tmp_path / "var/www/pterodactyl",
        composer_dir=tmp_path / "usr/local/bin",
        cert_dir=tmp_path / "etc/certs",
        nginx_dir=tmp_path / "etc/nginx",
        nginx_log_dir=tmp_path / "var/log/nginx",
        systemd_dir=tmp_path / "etc/systemd/system",
        log_file=tmp_path / "var/log/ptero_installer.log",
    )


@pytest.fixture
def debian_os() -> OSInfo:
    return OSInfo(
        os_id="ubuntu", version="24.04", family=OSFamily.DEBIAN, pretty_name="Ubuntu 24.04.1 LTS"
    )


@pytest.fixture
def rhel_os() -> OSInfo:
    return OSInfo(
        os_id="rocky", version="9.3", family=OSFamily.RHEL, pretty_name="Rocky Linux 9.3"
    )


@pytest.fixture
def debian_config(settings: Settings, debian_os: OSInfo) -> InstallConfig:
    return build_config("panel.example.com", debian_os, settings, local_ip="10.0.0.5")


@pytest.fixture
def rhel_config(settings: Settings, rhel_os: OSInfo) -> InstallConfig:
    return build_config("panel.example.com", rhel_os, settings, local_ip="10.0.0.5")


@pytest.fixture
def fake_release(monkeypatch):
    """Replace network downloads with a minimal unpacked panel tree."""

    def fetch_release(url, install_dir, timeout=300):
        install_dir.mkdir(parents=True, exist_ok=True)
        (install_dir / "storage" / "logs").mkdir(parents=True, exist_ok=True)
        (install_dir / "storage" / "framework").mkdir(parents=True, exist_ok=True)
        (install_dir / "bootstrap" / "cache").mkdir(parents=True, exist_ok=True)
        (install_dir / ".env.example").write_text("APP_ENV=production\n")

    def download_file(url, destination, timeout=300):
        Path(destination).write_text("<?php // composer installer\n")

    monkeypatch.setattr("ptero_installer.panel.fetch_release", fetch_release)
    monkeypatch.setattr("ptero_installer.panel.download_file", download_file)
