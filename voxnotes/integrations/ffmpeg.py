"""Audio preparation with the ffmpeg/ffprobe binaries."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Sequence

from voxnotes.config import FFMPEG_BINARY_PATH, FFPROBE_BINARY_PATH, logger
from voxnotes.errors import CollaboratorError

SERVICE = "ffmpeg"

# Формат, который ожидает распознавание речи
WAV_ARGS = ("-acodec", "pcm_s16le", "-ar", "16000", "-ac", "1")
LOUDNORM_FILTER = "loudnorm=I=-16:TP=-1.5:LRA=11"
DENOISE_FILTER = "afftdn=nf=-25"


def _with_suffix(path: Path, suffix: str) -> Path:
    return path.with_name(f"{path.stem}{suffix}{path.suffix}")


def _run(args: Sequence[str], output: Path, step: str) -> Path:
    logger.info("Running ffmpeg step", extra={"step": step, "output": str(output)})
    try:
        result = subprocess.run(list(args), capture_output=True, text=True, check=False)
    except OSError as exc:
        raise CollaboratorError(SERVICE, f"{step} failed to start: {exc}") from exc
    if result.returncode != 0:
        logger.error(
            "ffmpeg step failed",
            extra={"step": step, "returncode": result.returncode, "stderr": result.stderr[-2000:]},
        )
        raise CollaboratorError(SERVICE, f"{step} failed with exit code {result.returncode}")
    if not output.exists():
        raise CollaboratorError(SERVICE, f"{step} did not create {output}")
    return output


def convert_to_wav(input_path: str, binary: str = FFMPEG_BINARY_PATH) -> str:
    source = Path(input_path)
    output = source.with_suffix(".wav")
    if output == source:
        output = _with_suffix(source, "_pcm")
    return str(_run([binary, "-i", str(source), *WAV_ARGS, "-y", str(output)], output, "convert"))


def normalize_loudness(input_path: str, binary: str = FFMPEG_BINARY_PATH) -> str:
    source = Path(input_path)
    output = _with_suffix(source, "_normalized")
    return str(_run([binary, "-i", str(source), "-filter:a", LOUDNORM_FILTER, "-y", str(output)], output, "normalize"))


def remove_noise(input_path: str, binary: str = FFMPEG_BINARY_PATH) -> str:
    source = Path(input_path)
    output = _with_suffix(source, "_denoised")
    return str(_run([binary, "-i", str(source), "-af", DENOISE_FILTER, "-y", str(output)], output, "denoise"))


def transcode(input_path: str) -> str:
    """Prepare an upload for speech recognition and return the new file path."""
    if not Path(input_path).exists():
        raise CollaboratorError(SERVICE, f"Audio file not found: {input_path}")
    wav_path = convert_to_wav(input_path)
    normalized_path = normalize_loudness(wav_path)
    return remove_noise(normalized_path)


def probe_duration(input_path: str, binary: str = FFPROBE_BINARY_PATH) -> float:
    args = [
        binary,
        "-v", "quiet",
        "-show_entries", "format=duration",
        "-of", "csv=p=0",
        input_path,
    ]
    try:
        result = subprocess.run(args, capture_output=True, text=True, check=False)
    except OSError as exc:
        raise CollaboratorError(SERVICE, f"ffprobe failed to start: {exc}") from exc
    if result.returncode != 0:
        raise CollaboratorError(SERVICE, f"ffprobe failed with exit code {result.returncode}")
    try:
        return float(result.stdout.strip())
    except ValueError as exc:
        raise CollaboratorError(SERVICE, f"Cannot parse duration {result.stdout!r}") from exc


__all__ = [
    "convert_to_wav",
    "normalize_loudness",
    "probe_duration",
    "remove_noise",
    "transcode",
]
