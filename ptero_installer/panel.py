import os
import shutil
import tarfile
import tempfile
from pathlib import Path
from typing import List, Union

import requests
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TextColumn,
    TimeRemainingColumn,
)

from ptero_installer.commands import CommandRunner
from ptero_installer.config import InstallConfig
from ptero_installer.errors import DownloadError, InstallerError
from ptero_installer.ui import console, get_logger, print_step, print_success

COMPOSER_ENV = {"COMPOSER_ALLOW_SUPERUSER": "1"}
NO_INTERACTION: str = "--no-interaction"


def download_file(url: str, destination: Union[str, Path], timeout: int = 300) -> None:
    """
    Stream a remote file to 'destination' with a Rich progress bar.
    """
    logger = get_logger()
    logger.info(f"Downloading {url}")
    try:
        with requests.get(url, stream=True, timeout=timeout) as response:
            response.raise_for_status()
            total_length = int(response.headers.get("content-length", 0))
            with (
                open(destination, "wb") as out_file,
                Progress(
                    TextColumn("[progress.description]{task.description}"),
                    BarColumn(),
                    TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
                    " • ",
                    DownloadColumn(),
                    TimeRemainingColumn(),
                    console=console,
                    transient=True,
                ) as progress,
            ):
                task = progress.add_task("Downloading", total=total_length or None)
                for chunk in response.iter_content(chunk_size=8192):
                    if chunk:
                        out_file.write(chunk)
                        progress.update(task, advance=len(chunk))
    except (requests.RequestException, OSError) as e:
        raise DownloadError(f"Download of {url} failed: {e}") from e


def _check_members(tar: tarfile.TarFile, destination: Path) -> None:
    root = destination.resolve()
    for member in tar.getmembers():
        target = (root / member.name).resolve()
        if target != root and root not in target.parents:
            raise DownloadError(f"Refusing to extract {member.name!r} outside {destination}")
        if member.issym() or member.islnk():
            link_base = target.parent if member.issym() else root
            link_target = (link_base / member.linkname).resolve()
            if link_target != root and root not in link_target.parents:
                raise DownloadError(f"Refusing link {member.name!r} pointing outside {destination}")


def extract_archive(archive: Union[str, Path], destination: Union[str, Path]) -> None:
    """
    Unpack a gzipped tarball into 'destination'.

    Members that would land outside the destination are rejected. The
    tarfile "data" filter does this where the interpreter provides it.
    """
    destination = Path(destination)
    try:
        with tarfile.open(archive, "r:gz") as tar:
            if hasattr(tarfile, "data_filter"):
                tar.extractall(destination, filter="data")
            else:
                _check_members(tar, destination)
                tar.extractall(destination)
    except (tarfile.TarError, OSError) as e:
        raise DownloadError(f"Could not extract {archive}: {e}") from e


def fetch_release(url: str, install_dir: Path, timeout: int = 300) -> None:
    install_dir.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix="ptero_installer_", suffix=".tar.gz")
    os.close(fd)
    try:
        download_file(url, tmp_name, timeout=timeout)
        extract_archive(tmp_name, install_dir)
    finally:
        Path(tmp_name).unlink(missing_ok=True)


def install_composer(runner: CommandRunner, config: InstallConfig) -> Path:
    settings = config.settings
    fd, tmp_name = tempfile.mkstemp(prefix="ptero_installer_", suffix=".php")
    os.close(fd)
    try:
        download_file(
            settings.composer_installer_url, tmp_name, timeout=settings.download_timeout
        )
        runner.run(
            [
                "php",
                tmp_name,
                f"--install-dir={settings.composer_dir}",
                "--filename=composer",
            ]
        )
    finally:
        Path(tmp_name).unlink(missing_ok=True)
    return settings.composer_dir / "composer"


def writable_paths(install_dir: Path) -> List[Path]:
    """storage/* plus bootstrap/cache, the paths the panel writes at runtime."""
    storage = install_dir / "storage"
    paths = sorted(storage.glob("*")) or [storage]
    return paths + [install_dir / "bootstrap" / "cache"]


def artisan_commands(config: InstallConfig) -> List[List[str]]:
    request, admin, db = config.request, config.admin, config.database
    settings = config.settings
    return [
        ["php", "artisan", "key:generate", "--force", NO_INTERACTION],
        [
            "php",
            "artisan",
            "p:environment:setup",
            f"--author={admin.email}",
            f"--url={request.url}",
            f"--timezone={request.timezone}",
            "--cache=redis",
            "--session=redis",
            "--queue=redis",
            f"--redis-host={settings.redis_host}",
            "--redis-pass=",
            f"--redis-port={settings.redis_port}",
            "--telemetry=false",
            "--settings-ui=true",
            NO_INTERACTION,
        ],
        [
            "php",
            "artisan",
            "p:environment:database",
            f"--host={db.host}",
            f"--port={db.port}",
            f"--database={db.name}",
            f"--username={db.user}",
            f"--password={db.password}",
            NO_INTERACTION,
        ],
        ["php", "artisan", "migrate", "--seed", "--force", NO_INTERACTION],
        [
            "php",
            "artisan",
            "p:user:make",
            f"--email={admin.email}",
            f"--username={admin.username}",
            f"--name-first={admin.first_name}",
            f"--name-last={admin.last_name}",
            f"--password={admin.password}",
            "--admin=1",
            NO_INTERACTION,
        ],
    ]


def install_panel(runner: CommandRunner, config: InstallConfig) -> None:
    settings = config.settings
    install_dir = settings.install_dir
    profile = config.profile
    runner.add_secret(config.database.password)
    runner.add_secret(config.admin.password)

    print_step(f"Downloading panel release into {install_dir}...")
    fetch_release(settings.panel_url, install_dir, timeout=settings.download_timeout)
    runner.run(["chmod", "-R", "755", *writable_paths(install_dir)])

    print_step("Installing composer...")
    composer = install_composer(runner, config)
    print_step("Installing panel dependencies...")
    runner.run(
        [str(composer), "install", "--no-dev", "--optimize-autoloader", "--no-interaction"],
        cwd=install_dir,
        env=COMPOSER_ENV,
    )

    env_example = install_dir / ".env.example"
    try:
        shutil.copyfile(env_example, install_dir / ".env")
    except OSError as e:
        raise InstallerError(f"Could not create {install_dir / '.env'}: {e}") from e

    print_step("Configuring panel environment...")
    for cmd in artisan_commands(config):
        runner.run(cmd, cwd=install_dir)

    runner.run(["chown", "-R", f"{profile.web_user}:{profile.web_group}", install_dir])
    print_success("Panel installed!")
