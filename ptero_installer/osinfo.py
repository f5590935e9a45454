"""
Distribution detection and the per-family platform profiles.

The OS family is resolved once from /etc/os-release; every phase that does
something distribution specific reads it from the PlatformProfile instead of
comparing distribution names again.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from ptero_installer.errors import UnsupportedOSError

OS_RELEASE: Path = Path("/etc/os-release")
PHP_VERSION: str = "8.3"


class OSFamily(Enum):
    DEBIAN = "debian"
    RHEL = "rhel"

    @classmethod
    def from_os_id(cls, os_id: str) -> "OSFamily":
        family = SUPPORTED_IDS.get(os_id.lower())
        if family is None:
            raise UnsupportedOSError(f"Unsupported OS: {os_id or 'unknown'}")
        return family


SUPPORTED_IDS: Dict[str, OSFamily] = {
    "ubuntu": OSFamily.DEBIAN,
    "debian": OSFamily.DEBIAN,
    "rocky": OSFamily.RHEL,
    "almalinux": OSFamily.RHEL,
}


@dataclass(frozen=True)
class OSInfo:
    os_id: str
    version: str
    family: OSFamily
    pretty_name: str = ""

    @property
    def major_version(self) -> str:
        return self.version.split(".", 1)[0]


def parse_os_release(content: str) -> Dict[str, str]:
    data: Dict[str, str] = {}
    for line in content.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        data[key.strip()] = value.strip().strip('"').strip("'")
    return data


def detect_os(os_release: Union[str, Path] = OS_RELEASE) -> OSInfo:
    """Read the distribution ID and version and map them to an OS family."""
    path = Path(os_release)
    try:
        data = parse_os_release(path.read_text())
    except OSError as e:
        raise UnsupportedOSError(f"Cannot read {path}: {e}") from e

    os_id = data.get("ID", "")
    family = OSFamily.from_os_id(os_id)
    return OSInfo(
        os_id=os_id.lower(),
        version=data.get("VERSION_ID", ""),
        family=family,
        pretty_name=data.get("PRETTY_NAME", ""),
    )


@dataclass(frozen=True)
class PlatformProfile:
    """Everything that differs between the supported OS families."""

    family: OSFamily
    env: Dict[str, str]
    web_user: str
    web_group: str
    php_fpm_socket: str
    redis_service: str
    site_dir: str
    # None when the distribution has no sites-enabled symlink directory.
    enabled_dir: Optional[str]
    services: Tuple[str, ...] = field(default=())

    def package_commands(self, os_info: OSInfo) -> List[List[str]]:
        return PACKAGE_COMMANDS[self.family](os_info)


def _debian_commands(os_info: OSInfo) -> List[List[str]]:
    php_packages = [
        f"php{PHP_VERSION}-{ext}"
        for ext in ("cli", "gd", "mysql", "mbstring", "bcmath", "xml", "fpm", "curl", "zip")
    ]
    return [
        ["apt-get", "update"],
        ["apt-get", "install", "-y", "software-properties-common"],
        ["add-apt-repository", "-y", "ppa:ondrej/php"],
        ["apt-get", "update"],
        ["apt-get", "install", "-y", f"php{PHP_VERSION}", *php_packages],
        [
            "apt-get",
            "install",
            "-y",
            "mariadb-server",
            "nginx",
            "tar",
            "unzip",
            "git",
            "redis-server",
        ],
    ]


def _rhel_commands(os_info: OSInfo) -> List[List[str]]:
    php_packages = [
        f"php-{ext}"
        for ext in ("common", "fpm", "cli", "gd", "mysqlnd", "mbstring", "bcmath", "xml", "curl", "zip")
    ]
    return [
        ["dnf", "install", "-y", "epel-release"],
        [
            "dnf",
            "install",
            "-y",
            f"https://rpms.remirepo.net/enterprise/remi-release-{os_info.major_version}.rpm",
        ],
        ["dnf", "module", "enable", "-y", f"php:remi-{PHP_VERSION}"],
        ["dnf", "install", "-y", "php", *php_packages],
        ["dnf", "install", "-y", "mariadb-server", "nginx", "tar", "unzip", "git", "redis"],
    ]


PACKAGE_COMMANDS = {
    OSFamily.DEBIAN: _debian_commands,
    OSFamily.RHEL: _rhel_commands,
}

PROFILES: Dict[OSFamily, PlatformProfile] = {
    OSFamily.DEBIAN: PlatformProfile(
        family=OSFamily.DEBIAN,
        env={"DEBIAN_FRONTEND": "noninteractive"},
        web_user="www-data",
        web_group="www-data",
        php_fpm_socket=f"/run/php/php{PHP_VERSION}-fpm.sock",
        redis_service="redis-server",
        site_dir="sites-available",
        enabled_dir="sites-enabled",
        services=("mariadb", "redis-server", "nginx", f"php{PHP_VERSION}-fpm"),
    ),
    OSFamily.RHEL: PlatformProfile(
        family=OSFamily.RHEL,
        env={},
        web_user="nginx",
        web_group="nginx",
        php_fpm_socket="/run/php-fpm/www.sock",
        redis_service="redis",
        site_dir="conf.d",
        enabled_dir=None,
        services=("mariadb", "redis", "nginx", "php-fpm"),
    ),
}


def get_profile(family: OSFamily) -> PlatformProfile:
    try:
        return PROFILES[family]
    except KeyError:
        raise UnsupportedOSError(f"No platform profile for {family.value}") from None
