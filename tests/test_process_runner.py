from __future__ import annotations

import asyncio
import sys
import time

import pytest

from captiongen.exceptions import (
    ErrorKind,
    NetworkCertificateError,
    ProcessFailureError,
    ProcessLaunchError,
    TranscriptionTimeoutError,
)
from captiongen.process_runner import CommandResult, classify_process_failure, run_command


def _python(code: str) -> list[str]:
    return [sys.executable, "-c", code]


def test_run_command_captures_both_streams() -> None:
    code = "import sys; sys.stderr.write('progress 50%\\n'); print('{\"segments\": []}')"

    result = asyncio.run(run_command(_python(code)))

    assert result.returncode == 0
    assert result.stdout.strip() == '{"segments": []}'
    assert "progress 50%" in result.stderr


def test_run_command_drains_large_single_line_output() -> None:
    code = "import sys; sys.stdout.write('x' * 300000); sys.stderr.write('e' * 200000)"

    result = asyncio.run(run_command(_python(code)))

    assert len(result.stdout) == 300000
    assert len(result.stderr) == 200000


def test_non_zero_exit_is_returned_not_raised() -> None:
    code = "import sys; sys.stderr.write('model not found'); sys.exit(1)"

    result = asyncio.run(run_command(_python(code)))

    assert result.returncode == 1
    assert result.stderr == "model not found"


def test_missing_binary_is_launch_failure() -> None:
    with pytest.raises(ProcessLaunchError) as excinfo:
        asyncio.run(run_command(["definitely-not-a-whisper-binary-xyz", "audio.wav"], install_hint="pip install it"))

    assert excinfo.value.kind is ErrorKind.PROCESS_LAUNCH_FAILURE
    assert "pip install it" in str(excinfo.value)


def test_deadline_terminates_process() -> None:
    started = time.monotonic()

    with pytest.raises(TranscriptionTimeoutError) as excinfo:
        asyncio.run(run_command(_python("import time; time.sleep(30)"), timeout_seconds=0.5))

    assert time.monotonic() - started < 10
    assert excinfo.value.kind is ErrorKind.TIMEOUT


def test_classify_generic_failure_keeps_stderr() -> None:
    error = classify_process_failure("Whisper", CommandResult(returncode=1, stdout="", stderr="model not found"))

    assert type(error) is ProcessFailureError
    assert error.kind is ErrorKind.PROCESS_FAILURE
    assert "model not found" in str(error)
    assert error.returncode == 1


def test_classify_certificate_failure() -> None:
    stderr = "urllib.error.URLError: <urlopen error [SSL: CERTIFICATE_VERIFY_FAILED] certificate verify failed>"

    error = classify_process_failure(
        "Whisper",
        CommandResult(returncode=1, stdout="", stderr=stderr),
        certificate_hint="Please pre-download the model",
    )

    assert isinstance(error, NetworkCertificateError)
    assert isinstance(error, ProcessFailureError)
    assert error.kind is ErrorKind.NETWORK_CERTIFICATE
    assert "pre-download" in str(error)


def test_classify_missing_module_as_launch_failure() -> None:
    stderr = "/usr/bin/python: No module named whisper"

    error = classify_process_failure("Whisper", CommandResult(returncode=1, stdout="", stderr=stderr))

    assert isinstance(error, ProcessLaunchError)
    assert "No module named whisper" in str(error)
