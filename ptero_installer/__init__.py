"""Automated installer for the Pterodactyl game server panel."""

APP_NAME: str = "Pterodactyl Installer"
VERSION: str = "1.0.0"
