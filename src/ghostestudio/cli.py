from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from dotenv import load_dotenv

from .chunker.planner import ChunkPlanner, InvalidDurationError
from .config import StudioConfig
from .editor.autogen import DEFAULT_BPM, build_edit_document
from .studio.model import ValidationError, VideoRequest
from .studio.service import FeatureDisabledError, SegmentedVideoService


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Plan and submit multi-segment Sora videos for Ghoste Studio."
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Optional path to studio configuration JSON/YAML",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    plan = subparsers.add_parser("plan", help="Print the segment plan for a duration")
    plan.add_argument("seconds", type=float, help="Requested video length in seconds")
    plan.add_argument(
        "--strict",
        action="store_true",
        help="Reject zero and negative durations instead of planning a single clip",
    )

    create = subparsers.add_parser("create", help="Submit one Sora job per planned segment")
    create.add_argument("--prompt", required=True, help="Scene description for the video")
    create.add_argument("--seconds", type=float, help="Requested video length in seconds")
    create.add_argument("--aspect-ratio", default="9:16", help="9:16, 16:9, 1:1 or an alias")
    create.add_argument("--pro", action="store_true", help="Render with the pro Sora model")
    create.add_argument("--title", help="Optional title stored with the video")
    create.add_argument(
        "--dry-run",
        action="store_true",
        help="Plan segments without contacting Sora",
    )
    create.add_argument(
        "--output-dir",
        type=Path,
        help="Wait for the render and download each segment into this directory",
    )

    autogen = subparsers.add_parser("autogen", help="Generate an edit document with captions and cuts")
    autogen.add_argument("--seconds", type=float, required=True, help="Video length in seconds")
    autogen.add_argument("--lyrics-file", type=Path, help="Text file with one lyric line per row")
    autogen.add_argument("--bpm", type=float, default=DEFAULT_BPM, help="Beats per minute for cut markers")
    autogen.add_argument("--caption-style", default="minimal")
    autogen.add_argument("--no-beat-sync", action="store_true", help="Skip cut marker generation")
    return parser


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = StudioConfig.from_file(args.config) if args.config else StudioConfig.default()

    if args.command == "plan":
        planner = ChunkPlanner(strict=args.strict or config.strict_durations)
        try:
            plan = planner.plan(args.seconds)
        except InvalidDurationError as exc:
            parser.error(str(exc))
        payload = plan.to_payload()
        payload["multiSegment"] = planner.is_multi_segment(args.seconds)
        payload["segments"] = [slot.to_payload() for slot in planner.timeline(plan)]
        print(json.dumps(payload, indent=2))
        return 0

    if args.command == "create":
        seconds = args.seconds if args.seconds is not None else config.default_duration_sec
        try:
            request = VideoRequest.from_payload(
                {
                    "prompt": args.prompt,
                    "targetSeconds": seconds,
                    "aspectRatio": args.aspect_ratio,
                    "isPro": args.pro,
                    "title": args.title,
                }
            )
            service = SegmentedVideoService(config=config)
            job = service.create(request, dry_run=True if args.dry_run else None)
        except (ValidationError, InvalidDurationError) as exc:
            parser.error(str(exc))
        except FeatureDisabledError as exc:
            print(str(exc))
            return 1
        if args.output_dir and not job.dry_run:
            for path in service.download(job, args.output_dir):
                print(f"Saved segment to {path}")
        print(json.dumps(job.to_payload(), indent=2))
        return 0

    lyrics = args.lyrics_file.read_text(encoding="utf-8") if args.lyrics_file else None
    document = build_edit_document(
        target_seconds=args.seconds,
        lyrics=lyrics,
        caption_style=args.caption_style,
        beat_sync=not args.no_beat_sync,
        bpm=args.bpm,
    )
    print(json.dumps(document.model_dump(mode="json"), indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
