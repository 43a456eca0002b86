"""Selects a transcription backend and turns audio into captions."""

import asyncio
import logging
import time
from concurrent.futures import Future
from typing import Mapping, Optional

from .exceptions import ConfigurationError, TranscriptionError, TranscriptionTimeoutError
from .models import BackendRequest, BackendVariant, CaptionResult
from .specialized_model import DEFAULT_SPECIALIZED_CHUNK_LENGTH, DEFAULT_SPECIALIZED_MODEL
from .srt_codec import encode_srt
from .transcriber import (
    SpecializedModelTranscriber,
    Transcriber,
    WhisperJSONTranscriber,
    WhisperSRTTranscriber,
)

logger = logging.getLogger(__name__)

GENERAL_BACKENDS = (BackendVariant.JSON_CLI.value, BackendVariant.SRT_CLI.value)


class TranscriptionCoordinator:
    """
    Runs one caption-generation request end to end.

    The only branching is specialized-vs-general; the general backend is
    fixed by deployment configuration. Failures are not retried on another
    backend.
    """

    def __init__(
        self,
        general_backend: Transcriber,
        specialized_backend: Transcriber,
        general_model: str = "base",
        specialized_model: str = DEFAULT_SPECIALIZED_MODEL,
        specialized_chunk_length: int = DEFAULT_SPECIALIZED_CHUNK_LENGTH,
        default_timeout_seconds: Optional[float] = None,
        max_concurrent: int = 2,
    ):
        """
        Initializes the TranscriptionCoordinator.

        Args:
            general_backend: Backend for the general multilingual model.
            specialized_backend: Backend for the dialect-specialized model.
            general_model: Whisper model name passed to the general backend.
            specialized_model: Model identifier passed to the specialized backend.
            specialized_chunk_length: Chunk length (seconds) for specialized requests. The
                Whisper CLIs have a fixed 30 s window, so general requests carry none.
            default_timeout_seconds: Deadline used when a call passes none (None = no deadline).
            max_concurrent: Upper bound on transcriptions running at once.
        """
        if max_concurrent < 1:
            raise ConfigurationError(f"max_concurrent_transcriptions must be >= 1, got {max_concurrent}")
        self.general_backend = general_backend
        self.specialized_backend = specialized_backend
        self.general_model = general_model
        self.specialized_model = specialized_model
        self.specialized_chunk_length = specialized_chunk_length
        self.default_timeout_seconds = default_timeout_seconds
        self._slots = asyncio.Semaphore(max_concurrent)

    def build_request(
        self,
        audio_path: str,
        use_specialized_model: bool,
        timeout_seconds: Optional[float] = None,
    ) -> BackendRequest:
        if timeout_seconds is None:
            timeout_seconds = self.default_timeout_seconds
        if use_specialized_model:
            return BackendRequest(
                audio_path=audio_path,
                variant=BackendVariant.SPECIALIZED,
                model=self.specialized_model,
                chunk_length=self.specialized_chunk_length,
                timeout_seconds=timeout_seconds,
            )
        return BackendRequest(
            audio_path=audio_path,
            variant=self.general_backend.variant,
            model=self.general_model,
            timeout_seconds=timeout_seconds,
        )

    async def generate_captions(
        self,
        audio_path: str,
        use_specialized_model: bool = False,
        timeout_seconds: Optional[float] = None,
    ) -> CaptionResult:
        """
        Transcribes an audio file and returns both segments and their SRT text.

        Args:
            audio_path: Path to the extracted audio.
            use_specialized_model: Use the dialect-specialized model instead of
                the general multilingual one.
            timeout_seconds: Deadline for the backend run; overrides the default.

        Returns:
            A CaptionResult with the full transcript. There is no partial result.

        Raises:
            TranscriptionError: For every failure, with `kind` naming its category.
        """
        backend = self.specialized_backend if use_specialized_model else self.general_backend
        request = self.build_request(audio_path, use_specialized_model, timeout_seconds)

        loop = asyncio.get_running_loop()
        await self._slots.acquire()
        slot_handed_off = False
        start_time = time.time()
        logger.info(f"--- Generating captions for {audio_path} with backend '{backend.variant.value}' ---")
        try:
            segments = await backend.run(request)
        except TranscriptionTimeoutError as e:
            if e.worker is not None and not e.worker.done():
                # Abandoned in-process work still occupies its slot until it ends.
                slot_handed_off = True
                self._release_when_done(e.worker, loop)
            logger.error(f"Transcription failed ({e.kind.value}): {e}", exc_info=False)
            raise
        except TranscriptionError as e:
            logger.error(f"Transcription failed ({e.kind.value}): {e}", exc_info=False)
            raise
        except Exception as e:
            logger.critical(f"An unexpected error occurred during transcription: {e}", exc_info=True)
            raise TranscriptionError(f"An unexpected error occurred: {e}") from e
        finally:
            if not slot_handed_off:
                self._slots.release()

        logger.info(
            f"--- Captions ready: {len(segments)} segments in {time.time() - start_time:.2f} seconds ---"
        )
        return CaptionResult(segments=segments, srt=encode_srt(segments), backend=backend.variant.value)

    def _release_when_done(self, worker: Future, loop: asyncio.AbstractEventLoop) -> None:
        """Frees a concurrency slot from the worker thread once it finishes."""
        def release(_):
            logger.debug("Abandoned transcription worker finished; releasing its slot")
            if loop.is_running():
                try:
                    loop.call_soon_threadsafe(self._slots.release)
                    return
                except RuntimeError:
                    pass
            # The loop that took the slot has stopped; nothing can be waiting on it.
            self._slots.release()

        worker.add_done_callback(release)

    def generate_captions_sync(
        self,
        audio_path: str,
        use_specialized_model: bool = False,
        timeout_seconds: Optional[float] = None,
    ) -> CaptionResult:
        """Blocking wrapper around generate_captions for callers without an event loop."""
        return asyncio.run(self.generate_captions(audio_path, use_specialized_model, timeout_seconds))


def build_coordinator(config: Mapping) -> TranscriptionCoordinator:
    """
    Creates a coordinator and its backends from a configuration mapping.

    Raises:
        ConfigurationError: If a backend or mode name is not recognized.
    """
    general_name = config.get('general_backend', BackendVariant.SRT_CLI.value)
    if general_name == BackendVariant.JSON_CLI.value:
        general_backend: Transcriber = WhisperJSONTranscriber(python_bin=config.get('whisper_python', 'python'))
    elif general_name == BackendVariant.SRT_CLI.value:
        general_backend = WhisperSRTTranscriber(whisper_bin=config.get('whisper_bin', 'whisper'))
    else:
        raise ConfigurationError(
            f"Unsupported general_backend '{general_name}'. Choose one of {GENERAL_BACKENDS}."
        )

    try:
        specialized_backend = SpecializedModelTranscriber(
            mode=config.get('specialized_mode', 'process'),
            python_bin=config.get('specialized_python', 'python3'),
            device=config.get('device', 'cuda'),
        )
    except ValueError as e:
        raise ConfigurationError(str(e)) from e

    return TranscriptionCoordinator(
        general_backend=general_backend,
        specialized_backend=specialized_backend,
        general_model=config.get('whisper_model', 'base'),
        specialized_model=config.get('specialized_model', DEFAULT_SPECIALIZED_MODEL),
        specialized_chunk_length=config.get('specialized_chunk_length', DEFAULT_SPECIALIZED_CHUNK_LENGTH),
        default_timeout_seconds=config.get('transcription_timeout_seconds'),
        max_concurrent=config.get('max_concurrent_transcriptions', 2),
    )
