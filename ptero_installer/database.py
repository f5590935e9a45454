"""
MariaDB hardening and panel database provisioning.

Hardening runs the same statements mariadb-secure-installation issues, fed
to the mysql client over stdin so no secret ever appears in argv. Servers
before 10.4 keep accounts in mysql.user and have no multi-plugin auth, so
they get the statements their own secure-installation script uses.
"""

import re
from typing import Dict, List, Optional, Tuple

from ptero_installer.commands import CommandRunner
from ptero_installer.config import DatabaseCredentials, InstallConfig
from ptero_installer.errors import InstallerError
from ptero_installer.ui import get_logger, print_step, print_success

MYSQL_CLIENT: List[str] = ["mysql", "--batch"]
VERSION_QUERY: List[str] = MYSQL_CLIENT + ["--skip-column-names"]
GLOBAL_PRIV_VERSION: Tuple[int, int] = (10, 4)
REMOTE_ROOT_FILTER: str = "User='root' AND Host NOT IN ('localhost', '127.0.0.1', '::1')"


def quote_literal(value: str) -> str:
    return "'" + value.replace("\\", "\\\\").replace("'", "\\'") + "'"


def quote_identifier(value: str) -> str:
    return "`" + value.replace("`", "``") + "`"


def parse_server_version(output: str) -> Tuple[int, int]:
    """'10.3.39-MariaDB-0+deb10u2' -> (10, 3)"""
    match = re.match(r"\s*(\d+)\.(\d+)", output)
    if not match:
        raise InstallerError(f"Could not determine MariaDB version from {output.strip()!r}")
    return int(match.group(1)), int(match.group(2))


def server_version(runner: CommandRunner) -> Tuple[int, int]:
    result = runner.run(VERSION_QUERY, input="SELECT VERSION();\n")
    return parse_server_version(result.stdout)


def hardening_statements(
    root_password: str, version: Tuple[int, int] = GLOBAL_PRIV_VERSION
) -> List[str]:
    password = quote_literal(root_password)
    if version < GLOBAL_PRIV_VERSION:
        # Grant table edits only apply at the closing FLUSH.
        accounts = [
            f"UPDATE mysql.user SET Password=PASSWORD({password}) WHERE User='root';",
            "DELETE FROM mysql.user WHERE User='';",
            f"DELETE FROM mysql.user WHERE {REMOTE_ROOT_FILTER};",
        ]
    else:
        accounts = [
            # Keep socket auth for root so the remaining steps need no password.
            "ALTER USER 'root'@'localhost' IDENTIFIED VIA unix_socket "
            f"OR mysql_native_password USING PASSWORD({password});",
            "DELETE FROM mysql.global_priv WHERE User='';",
            f"DELETE FROM mysql.global_priv WHERE {REMOTE_ROOT_FILTER};",
        ]
    return accounts + [
        "DROP DATABASE IF EXISTS test;",
        "DELETE FROM mysql.db WHERE Db='test' OR Db='test\\\\_%';",
        "FLUSH PRIVILEGES;",
    ]


def provisioning_statements(db: DatabaseCredentials) -> List[str]:
    name = quote_identifier(db.name)
    account = f"{quote_literal(db.user)}@{quote_literal(db.host)}"
    return [
        f"CREATE DATABASE {name};",
        f"CREATE USER {account} IDENTIFIED BY {quote_literal(db.password)};",
        f"GRANT ALL PRIVILEGES ON {name}.* TO {account} WITH GRANT OPTION;",
        "FLUSH PRIVILEGES;",
    ]


def run_statement(
    runner: CommandRunner, statement: str, env: Optional[Dict[str, str]] = None
) -> None:
    runner.run(MYSQL_CLIENT, input=statement + "\n", env=env)


def setup_database(runner: CommandRunner, config: InstallConfig) -> None:
    db = config.database
    runner.add_secret(db.password)

    version = server_version(runner)
    get_logger().info(f"MariaDB server version {version[0]}.{version[1]}")

    print_step("Securing MariaDB installation...")
    for statement in hardening_statements(db.password, version):
        run_statement(runner, statement)

    # Root without socket auth now needs the password; socket auth ignores it.
    root_env = {"MYSQL_PWD": db.password}
    print_step(f"Creating database '{db.name}' and user '{db.user}'@'{db.host}'...")
    for statement in provisioning_statements(db):
        run_statement(runner, statement, env=root_env)

    print_success("MySQL configured!")
