"""
Command-line front end.

Usage:
    python -m soundtrack generate "cinematic orchestral crescendo" [--vocals] [--title T] [--style S]
    python -m soundtrack status <job_id>
    python -m soundtrack soundtrack --script script.txt [--video clip.mp4]

Configuration comes from the environment / .env (see soundtrack.config).
Results are printed as JSON; failures print a short message and exit 1.
"""

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, List, Optional

from soundtrack.analysis.models import AnalysisError, VideoInput
from soundtrack.config import Settings, load_settings
from soundtrack.music.client import MusicApiClient
from soundtrack.music.errors import MusicGenerationError
from soundtrack.music.models import GenerateOptions
from soundtrack.music.progress import LoggingProgress
from soundtrack.pipeline import SoundtrackPipeline, generate_music
from soundtrack.utils.logging_config import resolve_level, setup_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="soundtrack", description="AI soundtrack generator")
    parser.add_argument('--provider', choices=['suno', 'udio'], help='Override MUSIC_PROVIDER')
    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    gen_parser = subparsers.add_parser('generate', help='Generate music from a prompt')
    gen_parser.add_argument('prompt', help='Music prompt')
    gen_parser.add_argument('--vocals', action='store_true', help='Allow vocals (default: instrumental)')
    gen_parser.add_argument('--title', help='Track title')
    gen_parser.add_argument('--style', help='Style / genre tags')

    status_parser = subparsers.add_parser('status', help='Query a job once')
    status_parser.add_argument('job_id', help='Job id returned by generate')

    st_parser = subparsers.add_parser('soundtrack', help='Analyze a script/video and generate music')
    st_parser.add_argument('--script', type=Path, help='Script or description (.txt)')
    st_parser.add_argument('--video', type=Path, help='Video file sent to the analysis model')
    st_parser.add_argument('--vocals', action='store_true', help='Allow vocals (default: instrumental)')
    st_parser.add_argument('--timeout', type=float, help='Overall deadline in seconds')
    return parser


def _music_client(settings: Settings) -> MusicApiClient:
    return MusicApiClient(
        profile=settings.provider,
        base_url=settings.music_api_url or None,
        callback_url=settings.callback_url,
        request_timeout=settings.request_timeout_seconds,
    )


async def _generate(settings: Settings, args: argparse.Namespace) -> Any:
    options = GenerateOptions(instrumental=not args.vocals, title=args.title, style=args.style)
    job, tracks = await generate_music(
        _music_client(settings),
        args.prompt,
        settings.music_api_key,
        options=options,
        poll_config=settings.poll_config(),
        progress=LoggingProgress(),
    )
    return {'job_id': job.job_id, 'tracks': [t.to_dict() for t in tracks]}


async def _status(settings: Settings, args: argparse.Namespace) -> Any:
    status = await _music_client(settings).get_task_info(args.job_id, settings.music_api_key)
    return {
        'job_id': args.job_id,
        'status': status.status.value,
        'raw_status': status.raw_status,
        'error_message': status.error_message,
        'tracks': [t.to_dict() for t in status.tracks],
    }


async def _soundtrack(settings: Settings, args: argparse.Namespace) -> Any:
    script_text = args.script.read_text(encoding='utf-8') if args.script else None
    video = VideoInput.from_path(args.video) if args.video else None
    pipeline = SoundtrackPipeline.from_settings(settings, overall_timeout=args.timeout)
    result = await pipeline.run(
        script_text,
        video,
        options=GenerateOptions(instrumental=not args.vocals),
        progress=LoggingProgress(),
    )
    return result.to_dict()


COMMANDS = {
    'generate': _generate,
    'status': _status,
    'soundtrack': _soundtrack,
}


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    settings = load_settings()
    if args.provider:
        settings = replace(settings, music_provider=args.provider)
    setup_logging(resolve_level(settings.log_level))

    try:
        output = asyncio.run(COMMANDS[args.command](settings, args))
    except (MusicGenerationError, AnalysisError) as exc:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {exc.user_message}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print("Interrupted", file=sys.stderr)
        sys.exit(130)

    print(json.dumps(output, ensure_ascii=False, indent=2))


if __name__ == "__main__":
    main()
