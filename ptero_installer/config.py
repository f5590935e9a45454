"""
Installation configuration: operator input, derived values and generated
secrets, collected once and then passed read-only to every phase.
"""

import secrets
import socket
import string
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from ptero_installer.errors import PreconditionError
from ptero_installer.osinfo import OSInfo, PlatformProfile, get_profile
from ptero_installer.settings import Settings

PASSWORD_ALPHABET: str = string.ascii_letters + string.digits
DB_PASSWORD_LENGTH: int = 64
ADMIN_PASSWORD_LENGTH: int = 16


class TLSMode(Enum):
    SELF_SIGNED = "self-signed"
    NONE = "none"


@dataclass(frozen=True)
class InstallRequest:
    domain: str
    timezone: str = "UTC"
    tls_mode: TLSMode = TLSMode.SELF_SIGNED
    configure_letsencrypt: bool = False
    configure_firewall: bool = False

    @property
    def url(self) -> str:
        return f"https://{self.domain}"


@dataclass(frozen=True)
class AdminAccount:
    email: str
    password: str
    username: str = "admin"
    first_name: str = "Admin"
    last_name: str = "User"


@dataclass(frozen=True)
class DatabaseCredentials:
    name: str
    user: str
    password: str
    host: str = "127.0.0.1"
    port: int = 3306


@dataclass(frozen=True)
class InstallConfig:
    request: InstallRequest
    admin: AdminAccount
    database: DatabaseCredentials
    os_info: OSInfo
    local_ip: str
    settings: Settings

    @property
    def profile(self) -> PlatformProfile:
        return get_profile(self.os_info.family)


def generate_password(length: int) -> str:
    """Return a random alphanumeric string from the OS entropy source."""
    if length <= 0:
        raise ValueError("Password length must be positive")
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))


def derive_admin_email(domain: str) -> str:
    if domain.startswith("www."):
        domain = domain[len("www."):]
    return f"admin@{domain}"


def detect_local_ip() -> str:
    """Primary IPv4 address of this host, or loopback when offline."""
    try:
        s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            # No packet is sent; connect only selects the outbound interface.
            s.connect(("8.8.8.8", 80))
            return s.getsockname()[0]
        finally:
            s.close()
    except OSError:
        return "127.0.0.1"


def resolve_domain(raw: Optional[str], default: str) -> str:
    domain = (raw or "").strip() or default
    if not domain:
        raise PreconditionError("FQDN cannot be empty")
    return domain


def collect_domain(ask: Callable[[str, str], str], default: str) -> str:
    """Prompt for the panel FQDN or IP, falling back to the default."""
    answer = ask(f"Enter your FQDN or IP (e.g., {default})", default)
    return resolve_domain(answer, default)


def build_config(
    domain: str,
    os_info: OSInfo,
    settings: Settings,
    local_ip: Optional[str] = None,
) -> InstallConfig:
    domain = resolve_domain(domain, settings.default_domain)
    return InstallConfig(
        request=InstallRequest(domain=domain, timezone=settings.timezone),
        admin=AdminAccount(
            email=derive_admin_email(domain),
            password=generate_password(ADMIN_PASSWORD_LENGTH),
        ),
        database=DatabaseCredentials(
            name=settings.db_name,
            user=settings.db_user,
            password=generate_password(DB_PASSWORD_LENGTH),
            host=settings.db_host,
            port=settings.db_port,
        ),
        os_info=os_info,
        local_ip=local_ip if local_ip is not None else detect_local_ip(),
        settings=settings,
    )
