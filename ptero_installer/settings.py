import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from ptero_installer.errors import PreconditionError

ENV_PREFIX: str = "PTERO_"


@dataclass(frozen=True)
class Settings:
    """Paths, URLs and fixed names used by the installer."""

    install_dir: Path = Path("/var/www/pterodactyl")
    panel_url: str = (
        "https://github.com/pterodactyl/panel/releases/latest/download/panel.tar.gz"
    )
    composer_installer_url: str = "https://getcomposer.org/installer"
    composer_dir: Path = Path("/usr/local/bin")
    cert_dir: Path = Path("/etc/certs")
    nginx_dir: Path = Path("/etc/nginx")
    nginx_log_dir: Path = Path("/var/log/nginx")
    systemd_dir: Path = Path("/etc/systemd/system")
    log_file: Path = Path("/var/log/ptero_installer.log")
    default_domain: str = "panel.example.com"
    timezone: str = "UTC"
    db_name: str = "panel"
    db_user: str = "pterodactyl"
    db_host: str = "127.0.0.1"
    db_port: int = 3306
    redis_host: str = "localhost"
    redis_port: int = 6379
    download_timeout: int = 300

    @property
    def cert_file(self) -> Path:
        return self.cert_dir / "fullchain.pem"

    @property
    def key_file(self) -> Path:
        return self.cert_dir / "privkey.pem"

    @property
    def artisan(self) -> Path:
        return self.install_dir / "artisan"

    @classmethod
    def from_env(
        cls, environ: Optional[Mapping[str, str]] = None, **overrides: Any
    ) -> "Settings":
        """
        Build settings from defaults, PTERO_* environment variables and
        explicit keyword overrides, in that order of precedence.
        """
        environ = os.environ if environ is None else environ
        values: Dict[str, Any] = {}
        for f in fields(cls):
            name = f"{ENV_PREFIX}{f.name.upper()}"
            raw = environ.get(name)
            if raw is None or raw == "":
                continue
            if f.type in (Path, "Path"):
                values[f.name] = Path(raw)
            elif f.type in (int, "int"):
                try:
                    values[f.name] = int(raw)
                except ValueError:
                    raise PreconditionError(
                        f"{name} must be an integer, got {raw!r}"
                    ) from None
            else:
                values[f.name] = raw
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
