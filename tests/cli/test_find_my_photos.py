"""Tests for the find-my-photos command line tool."""
import json

import pytest

from facematch.cli import find_my_photos
from facematch.core.container import ServiceContainer
from facematch.domain.value_objects.matching import CompletedOutcome, FailedOutcome, MatchResult, MatchTier

from conftest import FakeCapability


@pytest.fixture
def trip(tmp_path):
    """A profile image and a directory of photos on disk."""
    (tmp_path / "me.jpg").write_bytes(b"me")
    photo_dir = tmp_path / "trip"
    photo_dir.mkdir()
    (photo_dir / "beach.jpg").write_bytes(b"beach")
    (photo_dir / "dinner.PNG").write_bytes(b"dinner")
    (photo_dir / "sunset.jpeg").write_bytes(b"sunset")
    (photo_dir / "notes.txt").write_text("not a photo")
    return tmp_path


@pytest.fixture
def cli_container(monkeypatch):
    capability = FakeCapability({(b"me", b"beach"): 0.93, (b"me", b"sunset"): 0.64})
    container = ServiceContainer()
    monkeypatch.setattr(find_my_photos, "container", container)
    return container, capability


def test_photos_from_directory(trip):
    photos = find_my_photos.photos_from_directory(trip / "trip")
    assert [p.id for p in photos] == ["beach.jpg", "dinner.PNG", "sunset.jpeg"]
    assert photos[0].image_locator == str(trip / "trip" / "beach.jpg")


def test_load_manifest(tmp_path):
    manifest = tmp_path / "photos.json"
    manifest.write_text(json.dumps([
        {"id": "1", "image_locator": "s3://trip/1.jpg", "display_name": "Beach"},
        {"id": "2", "image_locator": "https://example.com/2.jpg"},
    ]))

    photos = find_my_photos.load_manifest(manifest)

    assert [p.id for p in photos] == ["1", "2"]
    assert photos[0].label == "Beach"
    assert photos[1].label == "2"


def test_parse_args_requires_one_source():
    with pytest.raises(SystemExit):
        find_my_photos.parse_args(["--profile-image", "me.jpg"])
    with pytest.raises(SystemExit):
        find_my_photos.parse_args(["--profile-image", "me.jpg", "--photos", "a.json", "--photo-dir", "d"])


def test_parse_args_defaults():
    args = find_my_photos.parse_args([
        "--profile-image", "front.jpg", "--profile-image", "side.jpg", "--photo-dir", "trip"
    ])
    assert args.profile_image == ["front.jpg", "side.jpg"]
    assert args.concurrency == 3
    assert args.weak == 0.6 and args.strong == 0.8
    assert args.deadline is None
    assert args.thresholds.weak == 0.6 and args.thresholds.strong == 0.8


@pytest.mark.parametrize("extra", [
    ["--concurrency", "0"],
    ["--weak", "0.9", "--strong", "0.5"],
    ["--weak", "1.5"],
    ["--deadline", "-1"],
])
def test_parse_args_rejects_bad_values(extra, capsys):
    with pytest.raises(SystemExit) as exc:
        find_my_photos.parse_args(["--profile-image", "me.jpg", "--photo-dir", "trip", *extra])
    assert exc.value.code == 2
    assert "Traceback" not in capsys.readouterr().err


async def test_run_end_to_end(trip, cli_container, capsys):
    container, capability = cli_container
    await container.initialize(comparison_capability=capability)
    output = trip / "outcome.json"
    args = find_my_photos.parse_args([
        "--profile-image", str(trip / "me.jpg"),
        "--photo-dir", str(trip / "trip"),
        "--concurrency", "2",
        "--output", str(output),
    ])

    exit_code = await find_my_photos.run(args)

    assert exit_code == 0
    written = json.loads(output.read_text())
    assert written["state"] == "completed"
    assert [m["photo_id"] for m in written["matches"]] == ["beach.jpg", "sunset.jpeg"]
    assert written["unmatched_photo_ids"] == ["dinner.PNG"]
    assert "Matches: 2 (strong: 1, weak: 1)" in capsys.readouterr().out


async def test_run_with_empty_directory_fails(tmp_path, cli_container):
    container, capability = cli_container
    await container.initialize(comparison_capability=capability)
    (tmp_path / "empty").mkdir()
    args = find_my_photos.parse_args([
        "--profile-image", "me.jpg", "--photo-dir", str(tmp_path / "empty")
    ])

    assert await find_my_photos.run(args) == 1
    assert capability.calls == []


def test_print_summary(capsys):
    outcome = CompletedOutcome(
        matches=[MatchResult(photo_id="beach.jpg", similarity=0.91, tier=MatchTier.STRONG)],
        strong_count=1,
        elapsed_seconds=1.25
    )
    find_my_photos.print_summary(outcome)
    find_my_photos.print_summary(FailedOutcome(reason="No photos supplied"))

    out = capsys.readouterr().out
    assert "beach.jpg: strong (91.0%)" in out
    assert "Could not run: No photos supplied" in out
