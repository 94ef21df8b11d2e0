from datetime import datetime, timezone

from remix_engines.video_variants.models import Clip
from remix_engines.video_variants.profiles import metadata_profile, resolve_geometry


def test_fixed_aspect_ratio_ignores_clip_size():
    clips = [Clip(id="a", duration_seconds=3, width=640, height=360)]
    geometry = resolve_geometry("vertical-9x16", "hd", clips)
    assert (geometry.width, geometry.height) == (1080, 1920)


def test_original_rounds_clip_size_down_to_even():
    clips = [Clip(id="a", duration_seconds=3), Clip(id="b", duration_seconds=3, width=1281, height=721)]
    geometry = resolve_geometry("original", "sd", clips)
    assert (geometry.width, geometry.height) == (1280, 720)


def test_original_never_produces_zero_pixel_geometry():
    clips = [Clip(id="a", duration_seconds=3, width=1, height=1)]
    geometry = resolve_geometry("original", "hd", clips)
    assert (geometry.width, geometry.height) == (2, 2)


def test_original_without_dimensions_uses_resolution_tier():
    geometry = resolve_geometry("original", "fullhd", [Clip(id="a", duration_seconds=3)])
    assert (geometry.width, geometry.height) == (1920, 1080)


def test_metadata_overrides_win_over_preset():
    now = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    profile = metadata_profile("vn", {"encoder": "custom"}, now=now)

    assert profile["encoder"] == "custom"
    assert profile["comment"] == "Made with VN"
    assert profile["creation_time"] == "2024-01-02T03:04:05.000000Z"
    assert metadata_profile("normal") == {}
