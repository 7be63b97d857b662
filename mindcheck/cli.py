"""
MindCheck v1 CLI - Argument parsing and dispatch.

Responsibilities:
- Argument parsing
- Reading transcript, audio, frames and baseline from disk
- Logging setup
- Printing results/errors
- Exit codes

Forbidden:
- No feature, fusion or schema logic
- Raw media is read into memory only, never written anywhere
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path


FRAME_SUFFIXES = {".jpg", ".jpeg", ".png"}


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser with frozen help text."""
    parser = argparse.ArgumentParser(
        prog="mindcheck",
        description="MindCheck v1 command-line interface.",
    )

    subparsers = parser.add_subparsers(dest="command")

    # enrich subcommand
    enrich_parser = subparsers.add_parser(
        "enrich",
        help="Enrich one check-in into a dashboard record.",
        description=(
            "Enrich one check-in into a dashboard record.\n\n"
            "Analyses the transcript, extracts audio and visual features when\n"
            "media is supplied (each under its own deadline), fuses the available\n"
            "modalities and prints the result as JSON."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    enrich_parser.add_argument(
        "--transcript",
        metavar="PATH",
        required=True,
        help="Path to the conversation transcript (UTF-8 text).",
    )
    enrich_parser.add_argument(
        "--audio",
        metavar="PATH",
        help="Path to the recorded audio (WAV/FLAC/OGG).",
    )
    enrich_parser.add_argument(
        "--frames-dir",
        metavar="PATH",
        help="Directory of captured frames (JPEG/PNG), read in sorted name order.",
    )
    enrich_parser.add_argument(
        "--baseline",
        metavar="PATH",
        help="Path to a personal baseline JSON file.",
    )
    enrich_parser.add_argument(
        "--user-id",
        metavar="ID",
        default="anonymous",
        help="Owner of the check-in (default: anonymous).",
    )
    enrich_parser.add_argument(
        "--session-id",
        metavar="ID",
        help="Conversation/session identifier.",
    )
    enrich_parser.add_argument(
        "--duration",
        metavar="SECONDS",
        type=float,
        default=0.0,
        help="Conversation duration in seconds (default: 0).",
    )
    enrich_parser.add_argument(
        "--output",
        metavar="PATH",
        help="Write the result JSON here instead of stdout.",
    )
    enrich_parser.add_argument(
        "--remote",
        action="store_true",
        help="Use the text-understanding service (MINDCHECK_TEXT_SERVICE_URL).",
    )
    enrich_parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log progress at INFO level to stderr.",
    )

    return parser


def read_frames(frames_dir: Path) -> tuple[bytes, ...]:
    """Encoded frame images in sorted file-name order."""
    paths = sorted(p for p in frames_dir.iterdir() if p.is_file() and p.suffix.lower() in FRAME_SUFFIXES)
    return tuple(p.read_bytes() for p in paths)


def cmd_enrich(args: argparse.Namespace) -> int:
    """
    Handle the 'enrich' subcommand.

    Returns exit code.
    """
    from mindcheck.config import PipelineConfig
    from mindcheck.errors import EnrichmentError
    from mindcheck.models import CheckinRequest, UserBaseline
    from mindcheck.pipeline import EnrichmentService
    from mindcheck.utils import serialize_json

    transcript_path = Path(args.transcript)
    if not transcript_path.is_file():
        print(f"Error: Transcript file not found: {transcript_path}", file=sys.stderr)
        return 1
    try:
        transcript = transcript_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        print(f"Error: Cannot read transcript {transcript_path}: {e}", file=sys.stderr)
        return 1

    audio = None
    if args.audio:
        audio_path = Path(args.audio)
        if not audio_path.is_file():
            print(f"Error: Audio file not found: {audio_path}", file=sys.stderr)
            return 1
        audio = audio_path.read_bytes()

    frames: tuple[bytes, ...] = ()
    if args.frames_dir:
        frames_dir = Path(args.frames_dir)
        if not frames_dir.is_dir():
            print(f"Error: Frames directory not found: {frames_dir}", file=sys.stderr)
            return 1
        frames = read_frames(frames_dir)

    baseline = None
    if args.baseline:
        baseline_path = Path(args.baseline)
        try:
            baseline = UserBaseline.from_dict(json.loads(baseline_path.read_text()))
        except (OSError, ValueError, KeyError, TypeError) as e:
            print(f"Error: Invalid baseline file {baseline_path}: {e}", file=sys.stderr)
            return 1

    try:
        config = PipelineConfig.from_env()
        service = EnrichmentService.from_config(config, remote=args.remote)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    request = CheckinRequest(
        user_id=args.user_id,
        transcript=transcript,
        audio=audio,
        video_frames=frames,
        duration=args.duration,
        session_id=args.session_id,
        baseline=baseline,
    )

    try:
        result = asyncio.run(service.enrich(request))
    except EnrichmentError as e:
        print(f"Error: [{e.code.value}] {e.message}", file=sys.stderr)
        return 1

    output = serialize_json(result.to_dict())
    if args.output:
        Path(args.output).write_text(output)
        print(f"Result written: {args.output}")
    else:
        sys.stdout.write(output)
    return 0


def main() -> None:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    logging.basicConfig(
        level=logging.INFO if getattr(args, "verbose", False) else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if args.command == "enrich":
        exit_code = cmd_enrich(args)
        sys.exit(exit_code)
