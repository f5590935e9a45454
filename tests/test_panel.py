"""Tests for the panel download, composer and artisan configuration steps."""

import io
import tarfile
from unittest.mock import MagicMock, patch

import pytest
import requests

from ptero_installer.errors import CommandError, DownloadError
from ptero_installer.panel import (
    artisan_commands,
    download_file,
    extract_archive,
    install_panel,
    writable_paths,
)
from tests.conftest import FakeRunner, command_startswith


def make_tarball(path, files):
    with tarfile.open(path, "w:gz") as tar:
        for name, content in files.items():
            data = content.encode()
            info = tarfile.TarInfo(name)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))


class TestDownloads:
    def test_download_writes_streamed_chunks(self, tmp_path):
        response = MagicMock()
        response.headers = {"content-length": "6"}
        response.iter_content.return_value = [b"abc", b"", b"def"]
        response.__enter__.return_value = response

        with patch("ptero_installer.panel.requests.get", return_value=response) as mock_get:
            download_file("https://example.invalid/panel.tar.gz", tmp_path / "out")

        mock_get.assert_called_once_with(
            "https://example.invalid/panel.tar.gz", stream=True, timeout=300
        )
        assert (tmp_path / "out").read_bytes() == b"abcdef"

    def test_http_error_becomes_download_error(self, tmp_path):
        with patch(
            "ptero_installer.panel.requests.get",
            side_effect=requests.ConnectionError("unreachable"),
        ):
            with pytest.raises(DownloadError, match="unreachable"):
                download_file("https://example.invalid/x", tmp_path / "out")

    def test_extract_archive(self, tmp_path):
        archive = tmp_path / "panel.tar.gz"
        make_tarball(archive, {"artisan": "#!/usr/bin/env php", ".env.example": "APP_ENV=x"})

        extract_archive(archive, tmp_path / "dest")

        assert (tmp_path / "dest" / "artisan").exists()
        assert (tmp_path / "dest" / ".env.example").read_text() == "APP_ENV=x"

    def test_member_outside_destination_is_rejected(self, tmp_path):
        archive = tmp_path / "panel.tar.gz"
        make_tarball(archive, {"artisan": "ok", "../escaped.txt": "outside"})
        install_dir = tmp_path / "install"
        install_dir.mkdir()

        with pytest.raises(DownloadError):
            extract_archive(archive, install_dir)

        assert not (tmp_path / "escaped.txt").exists()

    def test_corrupt_archive(self, tmp_path):
        archive = tmp_path / "panel.tar.gz"
        archive.write_bytes(b"not a tarball")

        with pytest.raises(DownloadError):
            extract_archive(archive, tmp_path / "dest")


class TestArtisanCommands:
    def test_environment_setup_flags(self, debian_config):
        setup = artisan_commands(debian_config)[1]

        assert setup[:3] == ["php", "artisan", "p:environment:setup"]
        assert "--author=admin@panel.example.com" in setup
        assert "--url=https://panel.example.com" in setup
        assert "--timezone=UTC" in setup
        for backend in ("--cache=redis", "--session=redis", "--queue=redis"):
            assert backend in setup
        assert "--redis-host=localhost" in setup
        assert "--redis-port=6379" in setup

    def test_every_command_is_non_interactive(self, debian_config):
        """Prompts would hang unseen behind captured output."""
        setup = artisan_commands(debian_config)[1]

        assert "--redis-pass=" in setup
        assert "--telemetry=false" in setup
        assert "--settings-ui=true" in setup
        for cmd in artisan_commands(debian_config):
            assert cmd[-1] == "--no-interaction"

    def test_database_and_user_flags(self, debian_config):
        commands = artisan_commands(debian_config)
        database, migrate, user = commands[2], commands[3], commands[4]

        assert database[2] == "p:environment:database"
        assert f"--password={debian_config.database.password}" in database
        assert "--database=panel" in database
        assert "--username=pterodactyl" in database
        assert migrate == ["php", "artisan", "migrate", "--seed", "--force", "--no-interaction"]
        assert user[2] == "p:user:make"
        assert f"--password={debian_config.admin.password}" in user
        assert "--admin=1" in user

    def test_key_generate_first(self, debian_config):
        assert artisan_commands(debian_config)[0] == [
            "php",
            "artisan",
            "key:generate",
            "--force",
            "--no-interaction",
        ]


class TestInstallPanel:
    def test_full_order(self, debian_config, fake_runner, fake_release):
        install_panel(fake_runner, debian_config)
        install_dir = debian_config.settings.install_dir
        composer = str(debian_config.settings.composer_dir / "composer")
        commands = fake_runner.commands

        assert commands[0][:3] == ["chmod", "-R", "755"]
        assert str(install_dir / "bootstrap" / "cache") in commands[0]
        assert commands[1][0] == "php" and "--filename=composer" in commands[1]
        assert commands[2][:2] == [composer, "install"]
        assert fake_runner.calls[2].env == {"COMPOSER_ALLOW_SUPERUSER": "1"}
        assert commands[3:8] == artisan_commands(debian_config)
        assert commands[8] == ["chown", "-R", "www-data:www-data", str(install_dir)]
        assert (install_dir / ".env").read_text() == "APP_ENV=production\n"
        assert all(call.cwd == str(install_dir) for call in fake_runner.calls[2:8])

    def test_rhel_owner_is_nginx(self, rhel_config, fake_runner, fake_release):
        install_panel(fake_runner, rhel_config)

        assert fake_runner.commands[-1][3] == "nginx:nginx"

    def test_writable_paths_expand_storage(self, debian_config, fake_release):
        install_dir = debian_config.settings.install_dir
        from ptero_installer import panel

        panel.fetch_release("unused", install_dir)

        assert writable_paths(install_dir) == [
            install_dir / "storage" / "framework",
            install_dir / "storage" / "logs",
            install_dir / "bootstrap" / "cache",
        ]

    def test_migration_failure_stops_before_user_creation(self, debian_config, fake_release):
        runner = FakeRunner(fail_on=command_startswith("php", "artisan", "migrate"))

        with pytest.raises(CommandError):
            install_panel(runner, debian_config)

        assert runner.commands[-1][2] == "migrate"
        assert not any("p:user:make" in cmd for cmd in runner.commands)
        assert not any(cmd[0] == "chown" for cmd in runner.commands)

    def test_secrets_masked_in_errors(self, debian_config, fake_release):
        runner = FakeRunner(fail_on=command_startswith("php", "artisan", "p:user:make"))

        with pytest.raises(CommandError) as excinfo:
            install_panel(runner, debian_config)

        assert debian_config.admin.password not in str(excinfo.value)
        assert "********" in str(excinfo.value)
