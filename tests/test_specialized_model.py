from __future__ import annotations

import json

import captiongen.specialized_model as specialized_model
from captiongen.specialized_model import chunks_to_segments


def test_chunks_to_segments_handles_open_ended_last_chunk() -> None:
    chunks = [
        {"timestamp": (0.0, 2.5), "text": " namaste dosto "},
        {"timestamp": (2.5, None), "text": "kaise ho"},
        {"timestamp": (None, None), "text": "dropped"},
    ]

    assert chunks_to_segments(chunks) == [
        {"start": 0.0, "end": 2.5, "text": "namaste dosto"},
        {"start": 2.5, "end": 2.5, "text": "kaise ho"},
    ]


def test_main_writes_segments_file(monkeypatch, tmp_path) -> None:
    output = tmp_path / "out_specialized.json"
    captured = {}

    def fake_transcribe(audio, model, chunk_length, device):
        captured.update(audio=audio, model=model, chunk_length=chunk_length, device=device)
        return [{"start": 0.0, "end": 1.0, "text": "hello"}]

    monkeypatch.setattr(specialized_model, "transcribe_with_pipeline", fake_transcribe)

    exit_code = specialized_model.main(
        ["audio.wav", "--model", "org/model", "--output", str(output), "--chunk-length", "10", "--device", "cpu"]
    )

    assert exit_code == 0
    assert json.loads(output.read_text(encoding="utf-8")) == {
        "model": "org/model",
        "segments": [{"start": 0.0, "end": 1.0, "text": "hello"}],
    }
    assert captured == {"audio": "audio.wav", "model": "org/model", "chunk_length": 10, "device": "cpu"}
