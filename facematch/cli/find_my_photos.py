#!/usr/bin/env python
"""
Find My Photos

Searches a photo collection for the photos that show an enrolled face.

Usage:
    python -m facematch.cli.find_my_photos --profile-image me1.jpg --profile-image me2.jpg \
        --photos manifest.json [--concurrency 3] [--deadline 300] [--output matches.json]

    python -m facematch.cli.find_my_photos --profile-image s3://bucket/me.jpg --photo-dir ./trip

The manifest is a JSON list of objects with ``id``, ``image_locator`` and an
optional ``display_name``. Press Ctrl-C once to stop; photos already being
compared are allowed to finish.
"""
import argparse
import asyncio
import json
import signal
import sys
from pathlib import Path
from typing import List, Optional

from pydantic import TypeAdapter, ValidationError
from tqdm import tqdm

from facematch.core.config import settings
from facematch.core.container import container
from facematch.core.logging import get_logger, setup_logging
from facematch.domain.entities.photo import PhotoRef
from facematch.domain.value_objects.events import EventKind, ProgressEvent
from facematch.domain.value_objects.matching import JobOutcome, JobState, MatchThresholds
from facematch.services.cancellation import CancellationToken

logger = get_logger(__name__)

IMAGE_SUFFIXES = ('.jpg', '.jpeg', '.png')
CLI_USER_ID = "cli-user"
EXIT_CODES = {JobState.COMPLETED: 0, JobState.FAILED: 1, JobState.CANCELLED: 130}


def load_manifest(path: Path) -> List[PhotoRef]:
    """Read photo references from a JSON manifest."""
    with open(path, "r", encoding="utf-8") as f:
        return TypeAdapter(List[PhotoRef]).validate_python(json.load(f))


def photos_from_directory(directory: Path) -> List[PhotoRef]:
    """Build photo references for every image in a directory, sorted by name."""
    return [
        PhotoRef(id=path.name, image_locator=str(path), display_name=path.name)
        for path in sorted(directory.iterdir())
        if path.is_file() and path.suffix.lower() in IMAGE_SUFFIXES
    ]


class ProgressRenderer:
    """Renders job events on a tqdm progress bar."""

    def __init__(self, total: int) -> None:
        self.bar = tqdm(total=total, desc="Comparing", unit="photo")

    def emit(self, event: ProgressEvent) -> None:
        payload = event.payload
        if event.kind is EventKind.ITEM_SETTLED:
            self.bar.update(1)
            if payload.error:
                self.bar.write(f"  ! {payload.display_name}: {payload.error}")
        elif event.kind is EventKind.MATCH_FOUND:
            self.bar.write(
                f"  + {payload.display_name}: {payload.match.tier.value} match "
                f"({payload.match.similarity:.1%})"
            )
        elif event.is_terminal:
            self.bar.close()


def print_summary(outcome: JobOutcome) -> None:
    if outcome.state is JobState.COMPLETED:
        print(f"\nMatches: {len(outcome.matches)} "
              f"(strong: {outcome.strong_count}, weak: {outcome.weak_count})")
        for match in outcome.matches:
            print(f"  {match.photo_id}: {match.tier.value} ({match.similarity:.1%})")
        if outcome.errors:
            print(f"Could not check {len(outcome.errors)} photo(s):")
            for error in outcome.errors:
                print(f"  {error.photo_id}: {error.error}")
        print(f"Finished in {outcome.elapsed_seconds:.1f}s")
    elif outcome.state is JobState.CANCELLED:
        print(f"\nStopped after {outcome.settled_count}/{outcome.total} photos, "
              f"{len(outcome.partial_matches)} match(es) so far")
        for match in outcome.partial_matches:
            print(f"  {match.photo_id}: {match.tier.value} ({match.similarity:.1%})")
    else:
        print(f"\nCould not run: {outcome.reason}")


async def run(args: argparse.Namespace) -> int:
    if args.photos:
        photos = load_manifest(args.photos)
    else:
        photos = photos_from_directory(args.photo_dir)

    await container.initialize()
    try:
        container.profile_store.enroll(CLI_USER_ID, args.profile_image)
        matcher = container.require_face_matching()

        token = CancellationToken()
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, token.request_cancel, "interrupted")
        except NotImplementedError:
            logger.debug("Signal handlers not supported on this platform")

        job = await matcher.find_photos(
            CLI_USER_ID,
            photos,
            thresholds=args.thresholds,
            concurrency_limit=args.concurrency,
            sink=ProgressRenderer(len(photos)),
            token=token
        )
        if args.deadline is not None:
            token.cancel_after(args.deadline)

        outcome = await job
    finally:
        await container.cleanup()

    print_summary(outcome)
    if args.output:
        args.output.write_text(outcome.model_dump_json(indent=2), encoding="utf-8")
        print(f"Outcome written to {args.output}")
    return EXIT_CODES[outcome.state]


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Find the photos of a collection that show you")
    parser.add_argument("--profile-image", action="append", required=True,
                        help="Enrollment image locator (repeat for several)")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--photos", type=Path, help="JSON manifest of photos")
    source.add_argument("--photo-dir", type=Path, help="Directory of photos")
    parser.add_argument("--concurrency", type=int, default=settings.CONCURRENCY_LIMIT,
                        help="Comparisons in flight")
    parser.add_argument("--weak", type=float, default=settings.WEAK_MATCH_THRESHOLD,
                        help="Weak match threshold (0-1)")
    parser.add_argument("--strong", type=float, default=settings.STRONG_MATCH_THRESHOLD,
                        help="Strong match threshold (0-1)")
    parser.add_argument("--deadline", type=float, default=None,
                        help="Stop the job after this many seconds")
    parser.add_argument("--output", type=Path, default=None, help="Write the outcome as JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log every comparison")
    args = parser.parse_args(argv)

    if args.concurrency < 1:
        parser.error("--concurrency must be at least 1")
    if args.deadline is not None and args.deadline < 0:
        parser.error("--deadline must not be negative")
    try:
        args.thresholds = MatchThresholds(weak=args.weak, strong=args.strong)
    except ValidationError as e:
        messages = "; ".join(error["msg"] for error in e.errors())
        parser.error(f"invalid thresholds --weak {args.weak} --strong {args.strong}: {messages}")
    return args


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(level="DEBUG" if args.verbose else None)
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
