"""
Command-line feature extraction.

Decodes an audio file to mono, runs the full analysis with a progress bar
and writes the features as JSON (and optionally a NumPy archive).
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Union

import librosa
import numpy as np

from spectrascope.config import TRANSFORMS, WINDOW_FUNCTIONS, AnalysisConfig
from spectrascope.core.analyzer import AudioFeatures, FeatureAnalyzer
from spectrascope.errors import AudioDecodeError, SpectrascopeError
from spectrascope.io.exporter import FeatureExporter


def load_audio(
    audio_path: Union[str, Path],
    sr: Optional[int] = None,
) -> tuple[np.ndarray, int]:
    """
    Load audio from file as mono float32.

    Args:
        audio_path: Path to audio file (wav, mp3, flac).
        sr: Target sample rate. None preserves original.

    Returns:
        Tuple of (audio_signal, sample_rate).
    """
    y, sr_out = librosa.load(audio_path, sr=sr, mono=True)
    return y.astype(np.float32), int(sr_out)


def report_progress(pct: float, msg: str) -> None:
    """
    Render a simple text progress bar.

    Uses an in-place bar on a terminal and plain lines otherwise.
    """
    bar_width = 30
    pct_clamped = max(0, min(100, int(pct)))
    filled = int(bar_width * (pct_clamped / 100.0))
    bar = "[" + "#" * filled + "-" * (bar_width - filled) + "]"

    if sys.stderr.isatty():
        sys.stderr.write(f"\r{bar} {pct_clamped:3d}%  {msg:60.60}")
        sys.stderr.flush()
        if pct_clamped >= 100:
            sys.stderr.write("\n")
    else:
        print(f"{pct_clamped:3d}% {msg}", file=sys.stderr, flush=True)


def analyze_file(
    audio_path: Path,
    config: AnalysisConfig,
    sr: Optional[int] = None,
    show_progress: bool = True,
) -> AudioFeatures:
    """
    Load ``audio_path`` and run the full analysis.

    Raises:
        AudioDecodeError: If the file cannot be decoded.
    """
    try:
        y, sr_out = load_audio(audio_path, sr=sr)
    except Exception as exc:
        raise AudioDecodeError(f"Could not decode {audio_path}: {exc}") from exc
    analyzer = FeatureAnalyzer(config)
    return analyzer.analyze(y, sr_out, progress=report_progress if show_progress else None)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="spectrascope",
        description="Extract spectral and rhythmic features from an audio file",
    )

    parser.add_argument(
        "audio",
        type=Path,
        help="Input audio file (wav, mp3, flac)",
    )

    parser.add_argument(
        "-o", "--output",
        type=Path,
        default=None,
        help="Output JSON file (default: <audio>_features.json)",
    )

    parser.add_argument(
        "--sr",
        type=int,
        default=None,
        help="Resample to this rate before analysis (default: native rate)",
    )

    parser.add_argument(
        "--fft-size",
        type=int,
        default=2048,
        help="Transform size, power of two (default: 2048)",
    )

    parser.add_argument(
        "--hop-size",
        type=int,
        default=512,
        help="Samples between frame starts (default: 512)",
    )

    parser.add_argument(
        "--window",
        choices=WINDOW_FUNCTIONS,
        default="hann",
        help="Window function (default: hann)",
    )

    parser.add_argument(
        "--transform",
        choices=TRANSFORMS,
        default="fft",
        help="Magnitude transform (default: fft)",
    )

    parser.add_argument(
        "--spectra",
        action="store_true",
        help="Embed per-frame spectra in the JSON output",
    )

    parser.add_argument(
        "--npz",
        type=Path,
        default=None,
        help="Also write a NumPy .npz archive to this path",
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress the progress bar",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    )

    if not args.audio.exists():
        print(f"Error: Audio file not found: {args.audio}", file=sys.stderr)
        return 1

    output = args.output
    if output is None:
        output = args.audio.with_name(f"{args.audio.stem}_features.json")

    try:
        config = AnalysisConfig(
            fft_size=args.fft_size,
            hop_size=args.hop_size,
            window=args.window,
            transform=args.transform,
        )
        features = analyze_file(args.audio, config, sr=args.sr, show_progress=not args.quiet)
    except SpectrascopeError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return 1

    exporter = FeatureExporter(include_spectra=args.spectra)
    exporter.export_json(features, output)
    if args.npz is not None:
        exporter.export_numpy(features, args.npz)

    print(
        f"Tempo: {features.tempo:.1f} BPM, {len(features.beat_times)} beats, "
        f"{features.n_frames} frames -> {output}"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
