"""
Speech recognition with a specialized (mixed-language) Whisper checkpoint.

Used two ways: imported for in-process inference, or run as an auxiliary
process that writes its result to a JSON file:

    python -m captiongen.specialized_model audio.wav --output result.json
"""

import argparse
import json
import logging
import sys
from functools import lru_cache
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_SPECIALIZED_MODEL = "Oriserve/Whisper-Hindi2Hinglish-Swift"
DEFAULT_SPECIALIZED_CHUNK_LENGTH = 15


def resolve_device(device: str = "cuda") -> str:
    """
    Picks the inference device, falling back to CPU when CUDA is unavailable.

    Raises:
        ValueError: If the device name is not 'cuda' or 'cpu'.
    """
    import torch

    if device not in ["cuda", "cpu"]:
        raise ValueError(f"Invalid device specified: {device}. Choose 'cuda' or 'cpu'.")
    if device == "cuda" and not torch.cuda.is_available():
        logger.warning("CUDA device requested but not available. Falling back to CPU.")
        return "cpu"
    return device


@lru_cache(maxsize=2)
def load_pipeline(model_name: str, device: str, chunk_length: int):
    """Loads (once per model/device/chunk length) a transformers ASR pipeline."""
    from transformers import pipeline

    logger.info(f"Loading specialized model '{model_name}' on device '{device}' (chunk={chunk_length}s)")
    return pipeline(
        "automatic-speech-recognition",
        model=model_name,
        device=device,
        chunk_length_s=chunk_length,
    )


def chunks_to_segments(chunks: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Maps pipeline timestamp chunks to {start, end, text} dictionaries."""
    segments = []
    for chunk in chunks:
        timestamp = chunk.get("timestamp") or (None, None)
        start, end = timestamp[0], timestamp[1]
        if start is None:
            continue
        # The last chunk of a file may come back without an end time.
        if end is None:
            end = start
        segments.append({"start": float(start), "end": float(end), "text": (chunk.get("text") or "").strip()})
    return segments


def transcribe_with_pipeline(
    audio_path: str,
    model_name: str = DEFAULT_SPECIALIZED_MODEL,
    chunk_length: int = DEFAULT_SPECIALIZED_CHUNK_LENGTH,
    device: str = "cuda",
) -> List[Dict[str, Any]]:
    """
    Transcribes an audio file with the specialized model.

    Blocking; callers on an event loop should run it in an executor.

    Returns:
        Raw segment dictionaries (not yet normalized).
    """
    asr = load_pipeline(model_name, resolve_device(device), chunk_length)
    result = asr(
        audio_path,
        return_timestamps=True,
        generate_kwargs={"task": "transcribe"},
    )
    chunks = result.get("chunks") or []
    if not chunks and result.get("text"):
        logger.warning("Specialized model returned no timestamps, using one segment for the whole text")
        return [{"start": 0.0, "end": 0.0, "text": result["text"].strip()}]
    return chunks_to_segments(chunks)


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point of the auxiliary process. Writes {"model", "segments"} to --output."""
    parser = argparse.ArgumentParser(description="Transcribe audio with a specialized Whisper model.")
    parser.add_argument("audio", help="Path to the input audio file.")
    parser.add_argument("--model", default=DEFAULT_SPECIALIZED_MODEL, help="Hugging Face model identifier.")
    parser.add_argument("--output", required=True, help="Path of the JSON result file.")
    parser.add_argument("--chunk-length", type=int, default=DEFAULT_SPECIALIZED_CHUNK_LENGTH)
    parser.add_argument("--device", default="cuda", choices=["cuda", "cpu"])
    args = parser.parse_args(argv)

    logging.basicConfig(stream=sys.stderr, level=logging.INFO, format="%(levelname)s - %(message)s")

    segments = transcribe_with_pipeline(args.audio, args.model, args.chunk_length, args.device)
    with open(args.output, 'w', encoding='utf-8') as f:
        json.dump({"model": args.model, "segments": segments}, f, ensure_ascii=False)
    logger.info(f"Wrote {len(segments)} segments to {args.output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
