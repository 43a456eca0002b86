"""Extracts the audio track of an uploaded video for transcription, using ffmpeg."""

import ffmpeg
import os
import logging
import uuid
from .exceptions import AudioExtractionError, FileSystemError
from typing import Optional
from .utils import ensure_dir_exists, remove_files

logger = logging.getLogger(__name__)

class AudioExtractor:
    """Produces a mono 16 kHz WAV file from a video container."""

    def __init__(self, ffmpeg_path: Optional[str] = None):
        """
        Initializes the AudioExtractor.

        Args:
            ffmpeg_path: Optional path to the ffmpeg executable.
                         If None, assumes ffmpeg is in the system PATH.
        """
        self.ffmpeg_cmd = ffmpeg_path or 'ffmpeg'
        logger.debug(f"Using ffmpeg command: {self.ffmpeg_cmd}")

    def extract_audio(self, video_filepath: str, output_audio_dir: str) -> str:
        """
        Extracts the audio stream from a video file to a uniquely named WAV file.

        A unique name keeps concurrent requests for the same video from
        sharing (and deleting) each other's audio or Whisper output files.

        Args:
            video_filepath: Path to the input video file.
            output_audio_dir: Directory to save the extracted audio file.

        Returns:
            The full path to the extracted audio file. The caller owns it and
            removes it when transcription is done.

        Raises:
            FileNotFoundError: If the input video file does not exist.
            AudioExtractionError: If ffmpeg fails to extract the audio.
            FileSystemError: If the output directory cannot be created/accessed.
        """
        logger.info(f"Starting audio extraction for: {video_filepath}")
        if not os.path.exists(video_filepath):
            raise FileNotFoundError(f"Input video file not found: {video_filepath}")

        ensure_dir_exists(output_audio_dir)

        base_name = os.path.splitext(os.path.basename(video_filepath))[0]
        output_audio_path = os.path.join(output_audio_dir, f"{base_name}_{uuid.uuid4().hex[:8]}.wav")
        logger.debug(f"Output audio path set to: {output_audio_path}")

        try:
            (
                ffmpeg
                .input(video_filepath)
                .output(output_audio_path, acodec='pcm_s16le', ar=16000, ac=1)
                .overwrite_output()
                .run(cmd=self.ffmpeg_cmd, capture_stdout=True, capture_stderr=True)
            )
        except ffmpeg.Error as e:
            stderr_output = e.stderr.decode('utf-8', errors='replace') if e.stderr else "No stderr output"
            logger.error(f"ffmpeg error during audio extraction for {video_filepath}: {stderr_output}")
            remove_files(output_audio_path)
            raise AudioExtractionError(f"ffmpeg failed: {stderr_output}") from e
        except OSError as e:
            logger.error(f"Could not run ffmpeg ('{self.ffmpeg_cmd}'): {e}")
            raise AudioExtractionError(f"Could not run ffmpeg: {e}") from e

        if not os.path.exists(output_audio_path):
            raise FileSystemError(f"ffmpeg reported success but {output_audio_path} was not written")
        logger.info(f"Successfully extracted audio to: {output_audio_path}")
        return output_audio_path
