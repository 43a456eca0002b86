"""Custom Exceptions for the captiongen application."""

from concurrent.futures import Future
from enum import Enum
from typing import Dict, Optional


class CaptionGenError(Exception):
    """Base class for exceptions in this package."""
    pass

class ConfigurationError(CaptionGenError):
    """Exception raised for errors in configuration loading."""
    pass

class AudioExtractionError(CaptionGenError):
    """Exception raised for errors during audio extraction."""
    pass

class FormattingError(CaptionGenError):
    """Exception raised for errors while reading or writing subtitle files."""
    pass

class FileSystemError(CaptionGenError):
    """Exception raised for file system related errors (permissions, not found etc)."""
    pass


class ErrorKind(str, Enum):
    """Failure categories surfaced to callers of the transcription pipeline."""
    INPUT_MISSING = "input_missing"
    PROCESS_FAILURE = "process_failure"
    PROCESS_LAUNCH_FAILURE = "process_launch_failure"
    OUTPUT_FORMAT = "output_format"
    NETWORK_CERTIFICATE = "network_certificate"
    TIMEOUT = "timeout"
    UNEXPECTED = "unexpected"


class TranscriptionError(CaptionGenError):
    """Exception raised for errors during transcription."""

    kind = ErrorKind.UNEXPECTED

    def __init__(self, message: str, kind: Optional[ErrorKind] = None):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind

    def to_dict(self) -> Dict[str, str]:
        return {"kind": self.kind.value, "message": self.message}

class InputMissingError(TranscriptionError):
    """The audio artifact was absent when the backend was invoked."""
    kind = ErrorKind.INPUT_MISSING

class ProcessLaunchError(TranscriptionError):
    """The external transcription process could not be started (tool or model not installed)."""
    kind = ErrorKind.PROCESS_LAUNCH_FAILURE

class ProcessFailureError(TranscriptionError):
    """The external transcription process exited with a non-zero status."""

    kind = ErrorKind.PROCESS_FAILURE

    def __init__(self, message: str, returncode: Optional[int] = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr

class NetworkCertificateError(ProcessFailureError):
    """A process failure caused by SSL/certificate verification, usually a first-run model download."""
    kind = ErrorKind.NETWORK_CERTIFICATE

class OutputFormatError(TranscriptionError):
    """The process succeeded but its output could not be read into segments."""
    kind = ErrorKind.OUTPUT_FORMAT

class TranscriptionTimeoutError(TranscriptionError):
    """
    The backend did not finish before the caller's deadline.

    `worker` is set when the work could not be stopped (in-process inference);
    it completes once the abandoned thread finishes.
    """

    kind = ErrorKind.TIMEOUT

    def __init__(self, message: str, worker: Optional[Future] = None):
        super().__init__(message)
        self.worker = worker
