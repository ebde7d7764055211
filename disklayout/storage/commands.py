"""External command execution.

Every privileged tool (sgdisk, cryptsetup, zpool, lvcreate, mount...) is run
through run_command() so that logging, passphrase handling and failure
reporting are identical across all storage layers.
"""

from __future__ import annotations

import subprocess
from typing import Optional, Sequence

from disklayout.logging import LoggerFactory
from disklayout.storage.exceptions import CommandFailedError, CommandNotFoundError


log = LoggerFactory.for_command()
output_log = log.bind(tags=["command", "command-output"])


def run_command(
    command: Sequence[str],
    *,
    check: bool = True,
    input_text: Optional[str] = None,
    secret_input: bool = False,
    log_output: bool = True,
) -> subprocess.CompletedProcess:
    """Run an external tool and return its completed process.

    Args:
        command: Argument list (never a shell string)
        check: Raise CommandFailedError on a non-zero exit status
        input_text: Text written to the tool's stdin (passphrases)
        secret_input: Do not log the stdin content
        log_output: Log stdout/stderr at TRACE level

    Raises:
        CommandNotFoundError: If the tool cannot be spawned
        CommandFailedError: If check is True and the tool fails
    """
    command = [str(part) for part in command]
    log.debug(f"Running command: {' '.join(command)}")
    if input_text is not None:
        log.debug("...with input: <hidden>" if secret_input else f"...with input: {input_text!r}")
    try:
        result = subprocess.run(
            command,
            input=input_text,
            text=True,
            capture_output=True,
        )
    except OSError as error:
        log.error(f"Cannot run {command[0]}: {error}")
        raise CommandNotFoundError(command, str(error)) from error

    if result.stdout and (log_output or result.returncode != 0):
        output_log.trace(f"stdout: {result.stdout.strip()}")
    if result.stderr and (log_output or result.returncode != 0):
        output_log.trace(f"stderr: {result.stderr.strip()}")

    if check and result.returncode != 0:
        log.debug(f"Command failed with return code {result.returncode}: {' '.join(command)}")
        raise CommandFailedError(
            command, result.returncode, stderr=result.stderr or "", stdout=result.stdout or ""
        )
    return result


def command_output(command: Sequence[str], **kwargs) -> str:
    """Run a command and return its stdout."""
    return run_command(command, **kwargs).stdout or ""


def command_succeeds(command: Sequence[str]) -> bool:
    """Run a query command and report whether it exited with status 0."""
    return run_command(command, check=False, log_output=False).returncode == 0
