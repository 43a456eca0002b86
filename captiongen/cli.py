"""Command-Line Interface handler for captiongen."""

import argparse
import json
import logging
import os
import sys
from typing import List, Optional

from .config_loader import ConfigLoader
from .log_setup import setup_logging, setup_logging_from_config
from .audio_extractor import AudioExtractor
from .coordinator import build_coordinator
from .exceptions import CaptionGenError, ConfigurationError, TranscriptionError
from .srt_codec import write_srt
from .utils import ensure_dir_exists, remove_files

logger = logging.getLogger(__name__)

class CLIHandler:
    """Parses arguments and runs one caption-generation request."""

    def __init__(self):
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """Creates the argument parser for the CLI."""
        parser = argparse.ArgumentParser(
            description="captiongen: Generate a time-stamped caption track (SRT + JSON) for a video.",
            formatter_class=argparse.ArgumentDefaultsHelpFormatter
        )
        parser.add_argument(
            "-v", "--video",
            required=True,
            help="Path to the input video file."
        )
        parser.add_argument(
            "-o", "--output-dir",
            required=True,
            help="Directory to save the generated caption files (.srt and .json)."
        )
        parser.add_argument(
            "-c", "--config",
            default="config.yaml",
            help="Path to the configuration YAML file."
        )
        parser.add_argument(
            "--specialized",
            action="store_true",
            help="Use the dialect-specialized model instead of the general multilingual model."
        )
        parser.add_argument(
            "--timeout",
            type=float,
            default=None,
            help="Deadline in seconds for the transcription backend (overrides config)."
        )
        parser.add_argument(
            "--temp-dir",
            default=None, # Default taken from config file
            help="Override the temporary directory specified in the config file."
        )
        parser.add_argument(
            "--log-level",
            default="INFO",
            choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            help="Set the logging level for console and file output."
        )
        parser.add_argument(
            "--device",
            default=None, # Default taken from config
            choices=["cuda", "cpu"],
            help="Override the processing device for the specialized model."
        )
        return parser

    def run(self, argv: Optional[List[str]] = None) -> int:
        """
        Parses arguments, sets up logging, loads config and generates captions.

        Returns:
            Process exit code: 0 on success, 1 for known errors, 2 for unexpected ones.
        """
        args = self.parser.parse_args(argv)
        log_level = getattr(logging, args.log_level.upper(), logging.INFO)

        try:
            config = ConfigLoader().load_config(args.config)
        except (ConfigurationError, FileNotFoundError) as e:
            setup_logging(log_level=log_level)
            logger.critical(f"Failed to load configuration from {args.config}: {e}")
            return 1

        setup_logging_from_config(config, log_level=log_level)

        if args.temp_dir:
            logger.info(f"Overriding temp_dir from config with CLI argument: {args.temp_dir}")
            config['temp_dir'] = args.temp_dir
        if args.device:
            logger.info(f"Overriding device from config with CLI argument: {args.device}")
            config['device'] = args.device

        if not os.path.isfile(args.video):
            logger.critical(f"Input video file not found or is not a file: {args.video}")
            return 1

        audio_path = None
        try:
            coordinator = build_coordinator(config)
            extractor = AudioExtractor(ffmpeg_path=config.get('ffmpeg_path'))
            audio_path = extractor.extract_audio(args.video, config['temp_dir'])

            result = coordinator.generate_captions_sync(
                audio_path,
                use_specialized_model=args.specialized,
                timeout_seconds=args.timeout,
            )
            self._write_outputs(args.video, args.output_dir, result)
            logger.info("captiongen finished successfully.")
            return 0
        except TranscriptionError as e:
            logger.error(f"Caption generation failed [{e.kind.value}]: {e}")
            return 1
        except CaptionGenError as e:
            logger.error(f"A captiongen error occurred: {e}")
            return 1
        except KeyboardInterrupt:
            logger.warning("Process interrupted by user (Ctrl+C). Exiting.")
            return 1
        except Exception as e:
            logger.critical(f"An unexpected critical error occurred at the top level: {e}", exc_info=True)
            return 2
        finally:
            remove_files(audio_path)

    @staticmethod
    def _write_outputs(video_path: str, output_dir: str, result) -> None:
        ensure_dir_exists(output_dir)
        base_name = os.path.splitext(os.path.basename(video_path))[0]
        srt_path = os.path.join(output_dir, f"{base_name}.srt")
        json_path = os.path.join(output_dir, f"{base_name}.json")

        write_srt(result.segments, srt_path)
        with open(json_path, 'w', encoding='utf-8') as f:
            json.dump({"segments": result.to_dict()["segments"]}, f, ensure_ascii=False, indent=2)
        logger.info(f"Captions saved to: {srt_path} and {json_path}")


def main() -> None:
    sys.exit(CLIHandler().run())
