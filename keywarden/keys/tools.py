"""
Keywarden Tool Runners

Thin wrappers around the external commands the reconciler drives:

- apt-key: list, add, del and keyserver retrieval against the APT trust store
- gpg: fingerprint extraction from a key file

Tools are injected into the installer, remover and verifier so tests can
substitute fakes. In no-op mode, commands that would modify the trust store
are logged and skipped; read-only queries still run.
"""
from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from typing import List, Optional, Sequence

from keywarden.keys.errors import ToolInvocationError
from keywarden.keys.listing import listed_fingerprints

logger = logging.getLogger(__name__)

DEFAULT_APT_KEY_COMMAND = "apt-key"
DEFAULT_GPG_COMMAND = "/usr/bin/gpg"

LIST_KEYS_ARGS = ["adv", "--list-keys", "--with-colons", "--fingerprint", "--fixed-list-mode"]


@dataclass
class CommandResult:
    """Outcome of an external command."""
    args: List[str]
    returncode: int
    stdout: bytes = b""
    stderr: bytes = b""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def error_text(self) -> str:
        return self.stderr.decode("utf-8", errors="ignore")


class CommandRunner:
    """Runs external commands synchronously and captures their output."""

    def run(self, args: Sequence[str], check: bool = True) -> CommandResult:
        """
        Run a command.

        Args:
            args: Command and arguments
            check: Raise ToolInvocationError on a non-zero exit status

        Returns:
            CommandResult with raw stdout/stderr bytes
        """
        args = list(args)
        logger.debug("Executing: %s", " ".join(args))
        try:
            proc = subprocess.run(args, capture_output=True)
        except FileNotFoundError as e:
            raise ToolInvocationError(args, 127, str(e)) from e

        result = CommandResult(
            args=args,
            returncode=proc.returncode,
            stdout=proc.stdout or b"",
            stderr=proc.stderr or b"",
        )
        if check and not result.ok:
            raise ToolInvocationError(args, result.returncode, result.error_text)
        return result


class AptKeyTool:
    """The APT trust store, driven through the apt-key command."""

    def __init__(
        self,
        command: str = DEFAULT_APT_KEY_COMMAND,
        runner: Optional[CommandRunner] = None,
        noop: bool = False,
    ):
        self.command = command
        self.runner = runner or CommandRunner()
        self.noop = noop

    def _run(self, *args: str, check: bool = True) -> CommandResult:
        return self.runner.run([self.command, *args], check=check)

    def _mutate(self, *args: str) -> CommandResult:
        if self.noop:
            logger.info("Would run (noop): %s %s", self.command, " ".join(args))
            return CommandResult(args=[self.command, *args], returncode=0)
        return self._run(*args)

    def list_keys(self) -> bytes:
        """Return the raw colon-delimited, fingerprint-inclusive key listing."""
        return self._run(*LIST_KEYS_ARGS).stdout

    def add(self, key_file: str) -> CommandResult:
        """Import the keys in a local file."""
        return self._mutate("add", key_file)

    def delete(self, short_id: str) -> CommandResult:
        """Delete a key by its short id."""
        return self._mutate("del", short_id)

    def receive(
        self,
        key_id: str,
        server: str,
        options: Optional[str] = None,
    ) -> CommandResult:
        """Fetch a key from a keyserver by id."""
        args = ["adv", "--keyserver", server]
        if options:
            args += ["--keyserver-options", options]
        # apt-key fails unless --recv-keys is the last argument
        args += ["--recv-keys", key_id]
        return self._mutate(*args)

    def key_exists(self, short_id: str) -> bool:
        """Check whether any listed key or sub-key still matches a short id.

        A failing listing command counts as nothing found.
        """
        result = self._run(*LIST_KEYS_ARGS, check=False)
        if not result.ok:
            logger.debug(
                "apt-key listing exited %d while checking for %s", result.returncode, short_id
            )
            return False
        short_id = short_id.upper()
        return any(
            fingerprint.endswith(short_id)
            for fingerprint in listed_fingerprints(result.stdout)
        )


class GpgTool:
    """gpg, used only to read fingerprints out of key files."""

    def __init__(
        self,
        command: str = DEFAULT_GPG_COMMAND,
        runner: Optional[CommandRunner] = None,
    ):
        self.command = command
        self.runner = runner or CommandRunner()

    def available(self) -> bool:
        """Check whether the configured gpg binary is executable."""
        return os.path.isfile(self.command) and os.access(self.command, os.X_OK)

    def show_fingerprints(self, key_file: str) -> bytes:
        """Return the colon listing for the keys contained in a file."""
        result = self.runner.run(
            [self.command, "--with-fingerprint", "--with-colons", key_file],
            check=False,
        )
        if not result.ok:
            logger.debug("gpg exited %d reading %s", result.returncode, key_file)
        return result.stdout
