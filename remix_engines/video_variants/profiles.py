from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Optional, Sequence

from remix_engines.video_variants.models import Clip, Geometry

ASPECT_RATIO_MAP: Dict[str, Optional[Dict[str, int]]] = {
    "original": None,
    "vertical-9x16": {"width": 1080, "height": 1920},
    "horizontal-16x9": {"width": 1920, "height": 1080},
    "square-1x1": {"width": 1080, "height": 1080},
}

RESOLUTION_MAP: Dict[str, Dict[str, int]] = {
    "sd": {"width": 854, "height": 480},
    "hd": {"width": 1280, "height": 720},
    "fullhd": {"width": 1920, "height": 1080},
}

QUALITY_MAP: Dict[str, Dict[str, str]] = {
    "low": {
        "bitrate": "1M",
        "preset": "faster",
        "crf": "28",
        "vcodec": "libx264",
        "description": "Small files for previews and drafts",
    },
    "medium": {
        "bitrate": "4M",
        "preset": "medium",
        "crf": "23",
        "vcodec": "libx264",
        "description": "Balanced quality for social uploads",
    },
    "high": {
        "bitrate": "8M",
        "preset": "slow",
        "crf": "18",
        "vcodec": "libx264",
        "description": "High bitrate masters",
    },
}

AUDIO_OUTPUT = {
    "acodec": "aac",
    "audio_bitrate": "128k",
    "sample_rate": 48000,
    "channel_layout": "stereo",
    "channels": 2,
}

COLOR_INTENSITY_RANGES: Dict[str, Dict[str, float]] = {
    "low": {"brightness": 0.05, "contrast": 0.08, "saturation": 0.1, "hue": 3.0},
    "medium": {"brightness": 0.1, "contrast": 0.15, "saturation": 0.2, "hue": 5.0},
    "high": {"brightness": 0.15, "contrast": 0.2, "saturation": 0.3, "hue": 8.0},
}

METADATA_PRESETS: Dict[str, Dict[str, str]] = {
    "normal": {},
    "capcut": {
        "encoder": "CapCut",
        "software": "CapCut for Windows",
        "handler_name": "CapCut",
    },
    "vn": {
        "encoder": "VN Video Editor",
        "software": "VN - Video Editor & Maker",
        "comment": "Made with VN",
        "handler_name": "VN Editor",
    },
    "inshot": {
        "encoder": "InShot",
        "software": "InShot Video Editor",
        "handler_name": "InShot Inc.",
        "comment": "Created with InShot",
    },
}


def _even(size: int) -> int:
    # libx264 with yuv420p needs even dimensions of at least 2
    return max(2, size - size % 2)


def resolve_geometry(
    aspect_ratio: str,
    resolution: str,
    clips_in_order: Sequence[Clip] = (),
) -> Geometry:
    """Target frame size for a variant.

    ``original`` keeps the geometry of the first clip in the variant when the
    caller supplied its dimensions, otherwise the resolution tier is used.
    """
    fixed = ASPECT_RATIO_MAP.get(aspect_ratio)
    if fixed:
        return Geometry(width=fixed["width"], height=fixed["height"])
    for clip in clips_in_order:
        if clip.width and clip.height:
            return Geometry(width=_even(clip.width), height=_even(clip.height))
    res = RESOLUTION_MAP.get(resolution, RESOLUTION_MAP["hd"])
    return Geometry(width=res["width"], height=res["height"])


def metadata_profile(
    source: str,
    overrides: Optional[Dict[str, str]] = None,
    *,
    now: Optional[datetime] = None,
) -> Dict[str, str]:
    profile = dict(METADATA_PRESETS.get(source, {}))
    if profile:
        stamp = now or datetime.now(timezone.utc)
        profile["creation_time"] = stamp.strftime("%Y-%m-%dT%H:%M:%S.000000Z")
    if overrides:
        profile.update(overrides)
    return profile
