import os
from dataclasses import dataclass
from pathlib import Path

from ptero_installer.commands import CommandRunner
from ptero_installer.config import InstallConfig
from ptero_installer.settings import Settings
from ptero_installer.ui import print_step, print_success, print_warning

SITE_NAME: str = "pterodactyl.conf"
CERT_SUBJECT: str = "/C=NA/ST=NA/L=NA/O=NA/CN=Generic SSL Certificate"
CERT_DAYS: int = 3650
CERT_KEY: str = "rsa:4096"
SSL_CIPHERS: str = (
    "ECDHE-ECDSA-AES128-GCM-SHA256:ECDHE-RSA-AES128-GCM-SHA256:"
    "ECDHE-ECDSA-AES256-GCM-SHA384:ECDHE-RSA-AES256-GCM-SHA384:"
    "ECDHE-ECDSA-CHACHA20-POLY1305:ECDHE-RSA-CHACHA20-POLY1305:"
    "DHE-RSA-AES128-GCM-SHA256:DHE-RSA-AES256-GCM-SHA384"
)


@dataclass(frozen=True)
class CertificatePair:
    cert_file: Path
    key_file: Path


def certificate_pair(settings: Settings) -> CertificatePair:
    return CertificatePair(cert_file=settings.cert_file, key_file=settings.key_file)


def render_vhost(config: InstallConfig, certs: CertificatePair) -> str:
    """Render the nginx virtual host: HTTP redirect plus the TLS panel server."""
    settings = config.settings
    server_names = " ".join(dict.fromkeys([config.request.domain, config.local_ip]))
    public_dir = settings.install_dir / "public"
    log_dir = settings.nginx_log_dir
    socket_path = config.profile.php_fpm_socket

    return f"""server {{
    listen 80;
    server_name {server_names};
    return 301 https://$host$request_uri;
}}

server {{
    listen 443 ssl http2;
    server_name {server_names};

    root {public_dir};
    index index.php;

    access_log {log_dir}/pterodactyl.app-access.log;
    error_log  {log_dir}/pterodactyl.app-error.log error;

    # allow larger file uploads and longer script runtimes
    client_max_body_size 100m;
    client_body_timeout 120s;

    sendfile off;

    ssl_certificate {certs.cert_file};
    ssl_certificate_key {certs.key_file};
    ssl_session_cache shared:SSL:10m;
    ssl_protocols TLSv1.2 TLSv1.3;
    ssl_ciphers "{SSL_CIPHERS}";
    ssl_prefer_server_ciphers on;

    # See https://hstspreload.org/ before uncommenting the line below.
    # add_header Strict-Transport-Security "max-age=15768000; preload;";
    add_header X-Content-Type-Options nosniff;
    add_header X-XSS-Protection "1; mode=block";
    add_header X-Robots-Tag none;
    add_header Content-Security-Policy "frame-ancestors 'self'";
    add_header X-Frame-Options DENY;
    add_header Referrer-Policy same-origin;

    location / {{
        try_files $uri $uri/ /index.php?$query_string;
    }}

    location ~ \\.php$ {{
        fastcgi_split_path_info ^(.+\\.php)(/.+)$;
        fastcgi_pass unix:{socket_path};
        fastcgi_index index.php;
        include fastcgi_params;
        fastcgi_param PHP_VALUE "upload_max_filesize = 100M \\n post_max_size=100M";
        fastcgi_param SCRIPT_FILENAME $document_root$fastcgi_script_name;
        fastcgi_param HTTP_PROXY "";
        fastcgi_intercept_errors off;
        fastcgi_buffer_size 16k;
        fastcgi_buffers 4 16k;
        fastcgi_connect_timeout 300;
        fastcgi_send_timeout 300;
        fastcgi_read_timeout 300;
        include {settings.nginx_dir}/fastcgi_params;
    }}

    location ~ /\\.ht {{
        deny all;
    }}
}}
"""


def generate_certificate(runner: CommandRunner, certs: CertificatePair) -> None:
    """Create a self-signed certificate and key for the TLS server block."""
    certs.cert_file.parent.mkdir(parents=True, exist_ok=True)
    certs.key_file.parent.mkdir(parents=True, exist_ok=True)
    runner.run(
        [
            "openssl",
            "req",
            "-new",
            "-newkey",
            CERT_KEY,
            "-days",
            str(CERT_DAYS),
            "-nodes",
            "-x509",
            "-subj",
            CERT_SUBJECT,
            "-keyout",
            certs.key_file,
            "-out",
            certs.cert_file,
        ]
    )
    runner.run(["chmod", "600", certs.key_file])


def site_path(config: InstallConfig) -> Path:
    return config.settings.nginx_dir / config.profile.site_dir / SITE_NAME


def enable_site(config: InstallConfig, site_file: Path) -> bool:
    """
    Link the site into sites-enabled and drop the distribution default.

    Returns False where conf.d is included directly and there is no default
    site to remove.
    """
    enabled_dir = config.profile.enabled_dir
    if enabled_dir is None:
        print_warning(
            f"No sites-enabled on this host; the default server in "
            f"{config.settings.nginx_dir / 'nginx.conf'} is left in place"
        )
        return False
    enabled = config.settings.nginx_dir / enabled_dir
    enabled.mkdir(parents=True, exist_ok=True)
    link = enabled / SITE_NAME
    if link.is_symlink() or link.exists():
        link.unlink()
    os.symlink(site_file, link)
    default = enabled / "default"
    if default.is_symlink() or default.exists():
        default.unlink()
    return True


def configure_nginx(runner: CommandRunner, config: InstallConfig) -> None:
    certs = certificate_pair(config.settings)
    site_file = site_path(config)

    print_step(f"Writing virtual host to {site_file}...")
    site_file.parent.mkdir(parents=True, exist_ok=True)
    site_file.write_text(render_vhost(config, certs))

    print_step("Generating self-signed SSL certificate...")
    generate_certificate(runner, certs)

    enable_site(config, site_file)
    runner.run(["systemctl", "restart", "nginx"])
    print_success("Nginx configured!")
