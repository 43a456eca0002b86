"""Handles Speech-to-Text transcription using Whisper tools and models."""

import asyncio
import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from concurrent.futures import Future
from typing import Any

from .exceptions import (
    InputMissingError,
    OutputFormatError,
    ProcessLaunchError,
    TranscriptionError,
    TranscriptionTimeoutError,
)
from .models import BackendRequest, BackendVariant, Transcript, normalize_segments
from .process_runner import CommandResult, classify_process_failure, run_command
from .specialized_model import DEFAULT_SPECIALIZED_CHUNK_LENGTH, DEFAULT_SPECIALIZED_MODEL, transcribe_with_pipeline
from .srt_codec import decode_srt
from .utils import remove_files

logger = logging.getLogger(__name__)

WHISPER_INSTALL_HINT = "Make sure Whisper is installed: pip install openai-whisper"
SPECIALIZED_INSTALL_HINT = "Make sure torch and transformers are installed for the specialized model interpreter"


def _segments_from_payload(payload: Any, source: str) -> Transcript:
    """Extracts the 'segments' array from a decoded JSON result."""
    if not isinstance(payload, dict) or not isinstance(payload.get("segments"), list):
        raise OutputFormatError(f"Invalid {source} output format: expected an object with a 'segments' array")
    return normalize_segments(payload["segments"])


class Transcriber(ABC):
    """Abstract base class for transcription backends."""

    variant: BackendVariant

    @abstractmethod
    async def run(self, request: BackendRequest) -> Transcript:
        """
        Transcribes the audio file named by the request.

        Args:
            request: Audio path, model and tuning parameters.

        Returns:
            Normalized segments ordered by start time.

        Raises:
            TranscriptionError: If transcription fails (a subclass names the kind).
        """
        pass

    def _check_input(self, request: BackendRequest) -> None:
        if not os.path.isfile(request.audio_path):
            logger.error(f"Audio file not found: {request.audio_path}")
            raise InputMissingError(f"Audio file not found: {request.audio_path}")


class WhisperJSONTranscriber(Transcriber):
    """
    Runs the Whisper CLI through the Python interpreter and parses JSON from stdout.

    No language is passed so Whisper auto-detects it, which handles
    mixed-language speech better than forcing one. The .json file Whisper
    also writes is directed next to the audio and removed afterwards.
    """

    variant = BackendVariant.JSON_CLI

    def __init__(self, python_bin: str = "python"):
        self.python_bin = python_bin

    @staticmethod
    def output_path(audio_path: str) -> str:
        """Returns the .json file Whisper writes for this input."""
        output_dir = os.path.dirname(os.path.abspath(audio_path))
        base_name = os.path.splitext(os.path.basename(audio_path))[0]
        return os.path.join(output_dir, f"{base_name}.json")

    def build_command(self, request: BackendRequest) -> list:
        return [
            self.python_bin, "-m", "whisper",
            request.audio_path,
            "--model", request.model,
            "--output_dir", os.path.dirname(os.path.abspath(request.audio_path)),
            "--output_format", "json",
            "--word_timestamps", "True",
        ]

    async def run(self, request: BackendRequest) -> Transcript:
        self._check_input(request)
        logger.info(f"Starting Whisper JSON transcription with model: {request.model}")

        try:
            result = await run_command(
                self.build_command(request),
                timeout_seconds=request.timeout_seconds,
                install_hint=WHISPER_INSTALL_HINT,
            )
        finally:
            remove_files(self.output_path(request.audio_path))
        # Whisper reports progress on stderr; only the exit status decides failure.
        if result.returncode != 0:
            raise classify_process_failure("Whisper", result, install_hint=WHISPER_INSTALL_HINT)

        try:
            payload = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            logger.error(f"Error parsing Whisper output: {e}")
            raise OutputFormatError(f"Failed to parse Whisper transcription result: {e}") from e

        segments = _segments_from_payload(payload, "Whisper")
        logger.info(f"Transcription completed: {len(segments)} segments")
        return segments


class WhisperSRTTranscriber(Transcriber):
    """
    Runs the `whisper` executable with SRT output written next to the input.

    Task is pinned to 'transcribe' (never translate) and temperature to the
    request's value (0.0 by default) for repeatable results.
    """

    variant = BackendVariant.SRT_CLI

    def __init__(self, whisper_bin: str = "whisper"):
        self.whisper_bin = whisper_bin

    @staticmethod
    def output_paths(audio_path: str):
        """Returns the (.srt, .txt) files Whisper writes for this input."""
        output_dir = os.path.dirname(os.path.abspath(audio_path))
        base_name = os.path.splitext(os.path.basename(audio_path))[0]
        return (
            os.path.join(output_dir, f"{base_name}.srt"),
            os.path.join(output_dir, f"{base_name}.txt"),
        )

    def build_command(self, request: BackendRequest) -> list:
        return [
            self.whisper_bin,
            request.audio_path,
            "--model", request.model,
            "--output_dir", os.path.dirname(os.path.abspath(request.audio_path)),
            "--output_format", "srt",
            "--verbose", str(bool(request.verbose)),
            "--task", "transcribe",
            "--temperature", str(request.temperature),
        ]

    def _certificate_hint(self, model: str) -> str:
        return (
            "Please pre-download the model: python3 -c \"import whisper; "
            f"whisper.load_model('{model}')\""
        )

    async def run(self, request: BackendRequest) -> Transcript:
        self._check_input(request)
        logger.info(f"Starting Whisper SRT transcription with model: {request.model}")
        srt_path, txt_path = self.output_paths(request.audio_path)

        try:
            result = await run_command(
                self.build_command(request),
                timeout_seconds=request.timeout_seconds,
                install_hint=WHISPER_INSTALL_HINT,
            )
            if result.returncode != 0:
                raise classify_process_failure(
                    "Whisper",
                    result,
                    certificate_hint=self._certificate_hint(request.model),
                    install_hint=WHISPER_INSTALL_HINT,
                )

            if not os.path.exists(srt_path):
                logger.error(f"Whisper exited successfully but {srt_path} is missing")
                raise OutputFormatError("Whisper did not generate expected output file")

            try:
                with open(srt_path, 'r', encoding='utf-8') as f:
                    segments = decode_srt(f.read())
            except (IOError, UnicodeDecodeError) as e:
                raise OutputFormatError(f"Could not read Whisper SRT output {srt_path}: {e}") from e
        finally:
            remove_files(srt_path, txt_path)

        logger.info(f"Transcription completed: {len(segments)} segments")
        return segments


class SpecializedModelTranscriber(Transcriber):
    """
    Transcribes with a dialect-specialized model.

    In 'process' mode a separate interpreter runs captiongen.specialized_model
    and writes a JSON result file; in 'inprocess' mode the model runs on a
    daemon worker thread of this process.
    """

    variant = BackendVariant.SPECIALIZED
    MODES = ("process", "inprocess")

    def __init__(self, mode: str = "process", python_bin: str = "python3", device: str = "cuda"):
        if mode not in self.MODES:
            raise ValueError(f"Invalid specialized model mode: {mode}. Choose one of {self.MODES}.")
        self.mode = mode
        self.python_bin = python_bin
        self.device = device

    @staticmethod
    def output_path(audio_path: str) -> str:
        output_dir = os.path.dirname(os.path.abspath(audio_path))
        base_name = os.path.splitext(os.path.basename(audio_path))[0]
        return os.path.join(output_dir, f"{base_name}_specialized.json")

    def build_command(self, request: BackendRequest, output_file: str) -> list:
        return [
            self.python_bin, "-m", "captiongen.specialized_model",
            request.audio_path,
            "--model", request.model or DEFAULT_SPECIALIZED_MODEL,
            "--output", output_file,
            "--chunk-length", str(request.chunk_length or DEFAULT_SPECIALIZED_CHUNK_LENGTH),
            "--device", self.device,
        ]

    async def run(self, request: BackendRequest) -> Transcript:
        self._check_input(request)
        logger.info(f"Starting specialized transcription ({self.mode}) with model: {request.model}")
        if self.mode == "inprocess":
            segments = await self._run_inprocess(request)
        else:
            segments = await self._run_process(request)
        logger.info(f"Specialized transcription completed with {len(segments)} segments")
        return segments

    async def _run_process(self, request: BackendRequest) -> Transcript:
        output_file = self.output_path(request.audio_path)
        try:
            result = await run_command(
                self.build_command(request, output_file),
                timeout_seconds=request.timeout_seconds,
                install_hint=SPECIALIZED_INSTALL_HINT,
            )
            if result.returncode != 0:
                raise classify_process_failure(
                    "Specialized model",
                    result,
                    certificate_hint="Please check your internet connection",
                    install_hint=SPECIALIZED_INSTALL_HINT,
                )

            if not os.path.exists(output_file):
                raise OutputFormatError("Specialized transcription output file not found")
            try:
                with open(output_file, 'r', encoding='utf-8') as f:
                    payload = json.load(f)
            except (IOError, ValueError) as e:
                logger.error(f"Error parsing specialized transcription results: {e}")
                raise OutputFormatError(f"Failed to parse specialized transcription results: {e}") from e
            return _segments_from_payload(payload, "specialized model")
        finally:
            remove_files(output_file)

    def _start_worker(self, request: BackendRequest) -> Future:
        """
        Runs the pipeline on a daemon thread and returns its future.

        A daemon thread (not the loop's default executor) lets the event loop
        and the interpreter exit at a deadline while inference keeps running.
        """
        worker: Future = Future()
        model_name = request.model or DEFAULT_SPECIALIZED_MODEL
        chunk_length = request.chunk_length or DEFAULT_SPECIALIZED_CHUNK_LENGTH

        def work():
            if not worker.set_running_or_notify_cancel():
                return
            try:
                worker.set_result(transcribe_with_pipeline(request.audio_path, model_name, chunk_length, self.device))
            except Exception as e:
                worker.set_exception(e)

        threading.Thread(target=work, name="specialized-inference", daemon=True).start()
        return worker

    async def _run_inprocess(self, request: BackendRequest) -> Transcript:
        worker = self._start_worker(request)
        try:
            raw_segments = await asyncio.wait_for(asyncio.wrap_future(worker), timeout=request.timeout_seconds)
        except asyncio.TimeoutError as e:
            # The thread cannot be interrupted; the caller gets the worker to track it.
            logger.warning(f"Abandoning specialized inference after {request.timeout_seconds:.1f}s; thread keeps running")
            raise TranscriptionTimeoutError(
                f"Specialized transcription timed out after {request.timeout_seconds:.1f}s",
                worker=worker,
            ) from e
        except ImportError as e:
            logger.error(f"Specialized model dependencies are missing: {e}")
            raise ProcessLaunchError(f"Failed to start specialized transcription: {e}. {SPECIALIZED_INSTALL_HINT}") from e
        except TranscriptionError:
            raise
        except Exception as e:
            logger.error(f"Specialized model inference failed: {e}", exc_info=True)
            raise classify_process_failure(
                "Specialized model",
                CommandResult(returncode=1, stdout="", stderr=f"{type(e).__name__}: {e}"),
                certificate_hint="Please check your internet connection",
            ) from e
        return normalize_segments(raw_segments)
