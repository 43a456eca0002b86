"""Runs external transcription tools as asyncio subprocesses with a deadline."""

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .exceptions import (
    NetworkCertificateError,
    ProcessFailureError,
    ProcessLaunchError,
    TranscriptionError,
    TranscriptionTimeoutError,
)

logger = logging.getLogger(__name__)

CERTIFICATE_MARKERS = (
    "certificate verify failed",
    "CERTIFICATE_VERIFY_FAILED",
    "SSL:",
    "SSLError",
    "SSLCertVerificationError",
)
MISSING_MODULE_MARKER = "No module named"
TERMINATE_GRACE_SECONDS = 3.0
READ_CHUNK_BYTES = 64 * 1024


@dataclass
class CommandResult:
    """Result of a subprocess execution."""
    returncode: int
    stdout: str
    stderr: str


async def _drain(stream: Optional[asyncio.StreamReader], label: str, chunks: List[bytes]) -> None:
    """Reads a pipe until EOF, forwarding stderr lines to the debug log as progress."""
    if stream is None:
        return
    # Fixed-size reads: a JSON document on stdout can be one very long line.
    while True:
        chunk = await stream.read(READ_CHUNK_BYTES)
        if not chunk:
            break
        chunks.append(chunk)
        if label == "stderr":
            for line in chunk.decode("utf-8", errors="replace").splitlines():
                if line.strip():
                    logger.debug(line.rstrip())


async def terminate_process(process: asyncio.subprocess.Process, grace_seconds: float = TERMINATE_GRACE_SECONDS) -> None:
    """Terminates a subprocess and escalates to kill if it does not exit in time."""
    if process.returncode is not None:
        return
    try:
        process.terminate()
    except ProcessLookupError:
        return
    try:
        await asyncio.wait_for(process.wait(), timeout=grace_seconds)
        return
    except asyncio.TimeoutError:
        logger.warning(f"Process {process.pid} ignored SIGTERM, killing it")
    try:
        process.kill()
    except ProcessLookupError:
        return
    await process.wait()


async def run_command(
    cmd: Sequence[str],
    timeout_seconds: Optional[float] = None,
    install_hint: str = "",
) -> CommandResult:
    """
    Runs a command to completion, capturing stdout and stderr.

    Both pipes are drained concurrently so a chatty stderr cannot block the
    child. The process is always reaped: on deadline expiry or cancellation
    it is terminated before the exception propagates.

    Args:
        cmd: Program and arguments.
        timeout_seconds: Optional deadline for the whole run.
        install_hint: Appended to the launch-failure message.

    Returns:
        A CommandResult with decoded output. A non-zero exit code is returned,
        not raised; see classify_process_failure.

    Raises:
        ProcessLaunchError: If the program could not be started.
        TranscriptionTimeoutError: If the deadline expired.
    """
    logger.info(f"Running command: {' '.join(cmd)}")
    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except (FileNotFoundError, PermissionError) as e:
        logger.error(f"Failed to start '{cmd[0]}': {e}")
        message = f"Failed to start '{cmd[0]}': {e}"
        if install_hint:
            message = f"{message}. {install_hint}"
        raise ProcessLaunchError(message) from e

    stdout_chunks: List[bytes] = []
    stderr_chunks: List[bytes] = []

    async def _communicate() -> int:
        await asyncio.gather(
            _drain(process.stdout, "stdout", stdout_chunks),
            _drain(process.stderr, "stderr", stderr_chunks),
        )
        return await process.wait()

    try:
        if timeout_seconds is None:
            returncode = await _communicate()
        else:
            returncode = await asyncio.wait_for(_communicate(), timeout=timeout_seconds)
    except asyncio.TimeoutError as e:
        await terminate_process(process)
        logger.error(f"Command timed out after {timeout_seconds:.1f}s: {cmd[0]}")
        raise TranscriptionTimeoutError(
            f"Transcription timed out after {timeout_seconds:.1f}s: {' '.join(cmd)}"
        ) from e
    except asyncio.CancelledError:
        await terminate_process(process)
        raise

    return CommandResult(
        returncode=returncode,
        stdout=b"".join(stdout_chunks).decode("utf-8", errors="replace"),
        stderr=b"".join(stderr_chunks).decode("utf-8", errors="replace"),
    )


def classify_process_failure(
    tool: str,
    result: CommandResult,
    certificate_hint: str = "",
    install_hint: str = "",
) -> TranscriptionError:
    """
    Maps a non-zero exit into the error taxonomy by inspecting stderr.

    Returns (does not raise) the error so the caller controls the raise site.
    A missing Python module is reported as a launch failure because the fix
    is to install the tool.
    """
    stderr = result.stderr.strip()
    if any(marker in stderr for marker in CERTIFICATE_MARKERS):
        message = f"{tool} failed due to SSL/network issues (model download?)"
        if certificate_hint:
            message = f"{message}. {certificate_hint}"
        return NetworkCertificateError(f"{message}\n{stderr}", returncode=result.returncode, stderr=stderr)
    if MISSING_MODULE_MARKER in stderr:
        message = f"{tool} is not installed: {stderr.splitlines()[-1]}"
        if install_hint:
            message = f"{message}. {install_hint}"
        return ProcessLaunchError(message)
    return ProcessFailureError(
        f"{tool} failed with exit code {result.returncode}: {stderr}",
        returncode=result.returncode,
        stderr=stderr,
    )
