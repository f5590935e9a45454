import os
import shlex
import subprocess
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Set, Union

from ptero_installer.errors import CommandError
from ptero_installer.ui import get_logger

MASK: str = "********"

PathLike = Union[str, Path]


@dataclass(frozen=True)
class CommandResult:
    """Exit status and captured output of one external command."""

    args: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    display: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner:
    """
    Runs external commands and captures their output.

    Every registered secret is replaced with a mask in log lines and in the
    errors raised for failed commands.
    """

    def __init__(self, secrets: Optional[Sequence[str]] = None) -> None:
        self._secrets: Set[str] = set()
        for secret in secrets or ():
            self.add_secret(secret)
        self.logger = get_logger()

    def add_secret(self, secret: str) -> None:
        if secret:
            self._secrets.add(secret)

    def mask(self, text: str) -> str:
        # Longest first so a secret containing another is masked whole.
        for secret in sorted(self._secrets, key=len, reverse=True):
            text = text.replace(secret, MASK)
        return text

    def describe(self, cmd: Sequence[str]) -> str:
        return self.mask(" ".join(shlex.quote(str(part)) for part in cmd))

    def run(
        self,
        cmd: Sequence[str],
        input: Optional[str] = None,
        cwd: Optional[PathLike] = None,
        env: Optional[Dict[str, str]] = None,
        check: bool = True,
    ) -> CommandResult:
        """
        Run a command to completion.

        Raises CommandError when check is set and the command exits non-zero
        or cannot be started at all.
        """
        args = [str(part) for part in cmd]
        display = self.describe(args)
        self.logger.debug(f"Running command: {display}")

        full_env = None
        if env:
            full_env = os.environ.copy()
            full_env.update(env)

        # Output is captured, so stdin must never be the terminal.
        stdin_kwargs: Dict[str, Any] = (
            {"input": input} if input is not None else {"stdin": subprocess.DEVNULL}
        )
        try:
            proc = subprocess.run(
                args,
                **stdin_kwargs,
                cwd=str(cwd) if cwd is not None else None,
                env=full_env,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
            )
            result = CommandResult(
                args=args,
                returncode=proc.returncode,
                stdout=proc.stdout or "",
                stderr=proc.stderr or "",
                display=display,
            )
        except FileNotFoundError as e:
            result = CommandResult(
                args=args, returncode=127, stderr=str(e), display=display
            )

        if result.stdout.strip():
            self.logger.debug(self.mask(result.stdout.strip()))
        if not result.ok:
            self.logger.debug(
                f"Command exited with {result.returncode}: {self.mask(result.stderr.strip())}"
            )
            if check:
                raise CommandError(
                    replace(
                        result,
                        stdout=self.mask(result.stdout),
                        stderr=self.mask(result.stderr),
                    )
                )
        return result
