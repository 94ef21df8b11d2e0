"""Deterministic RenderPlan -> ffmpeg filter_complex compiler.

Input ``k`` of the transcoder invocation is the clip at position ``k`` of the
plan's ``clip_order``; a clip used twice is fed twice. Each position yields one
video chain ``[vk]`` (and one audio chain ``[ak]`` when audio is kept), and a
single concat node joins all of them.
"""
from __future__ import annotations

import logging
import math
from typing import Dict, List, Mapping, Optional, Sequence, Union

from remix_engines.video_variants.errors import CompilationError
from remix_engines.video_variants.models import Clip, CompiledGraph, MixingConfiguration, RenderPlan
from remix_engines.video_variants.profiles import AUDIO_OUTPUT, QUALITY_MAP

logger = logging.getLogger(__name__)

ATEMPO_MIN = 0.5
ATEMPO_MAX = 2.0
_TRIM_EPSILON = 1e-6

AUDIO_FORMAT = (
    f"aresample={AUDIO_OUTPUT['sample_rate']},"
    f"aformat=sample_fmts=fltp:sample_rates={AUDIO_OUTPUT['sample_rate']}"
    f":channel_layouts={AUDIO_OUTPUT['channel_layout']}"
)


def _num(value: float) -> str:
    text = f"{value:.6f}".rstrip("0").rstrip(".")
    return text if text not in ("", "-0") else "0"


def atempo_chain(speed: float) -> List[str]:
    """Split a tempo factor into atempo steps that each stay within [0.5, 2.0]."""
    if not math.isfinite(speed) or speed <= 0:
        raise CompilationError(f"speed must be positive and finite, got {speed}")
    steps: List[str] = []
    remaining = speed
    while remaining < ATEMPO_MIN or remaining > ATEMPO_MAX:
        if remaining < ATEMPO_MIN:
            steps.append(f"atempo={_num(ATEMPO_MIN)}")
            remaining /= ATEMPO_MIN
        else:
            steps.append(f"atempo={_num(ATEMPO_MAX)}")
            remaining /= ATEMPO_MAX
    if abs(remaining - 1.0) > 1e-9:
        steps.append(f"atempo={_num(remaining)}")
    return steps


def _clip_lookup(clips: Union[Mapping[str, Clip], Sequence[Clip]]) -> Dict[str, Clip]:
    if isinstance(clips, Mapping):
        return dict(clips)
    return {clip.id: clip for clip in clips}


def _video_chain(k: int, plan: RenderPlan, fps: int) -> str:
    trim = plan.trims[k]
    speed = plan.speeds[k]
    width = plan.geometry_target.width
    height = plan.geometry_target.height
    parts = [
        f"trim=start={_num(trim.start)}:end={_num(trim.end)}",
        "setpts=PTS-STARTPTS",
    ]
    if speed != 1.0:
        parts.append(f"setpts=PTS/{_num(speed)}")
    parts.append(f"scale={width}:{height}:force_original_aspect_ratio=decrease")
    parts.append(f"pad={width}:{height}:(ow-iw)/2:(oh-ih)/2:black")
    parts.append("setsar=1")
    parts.append(f"fps={fps}")
    if plan.color is not None:
        c = plan.color
        parts.append(
            f"eq=brightness={_num(c.brightness)}:contrast={_num(c.contrast)}:saturation={_num(c.saturation)}"
        )
        parts.append(f"hue=h={_num(c.hue)}")
    return f"[{k}:v]" + ",".join(parts) + f"[v{k}]"


def _audio_chain(k: int, plan: RenderPlan, clip: Clip) -> str:
    trim = plan.trims[k]
    speed = plan.speeds[k]
    if not clip.has_audio:
        silence = _num(trim.length / speed)
        return (
            f"anullsrc=channel_layout={AUDIO_OUTPUT['channel_layout']}:sample_rate={AUDIO_OUTPUT['sample_rate']},"
            f"atrim=duration={silence},{AUDIO_FORMAT}[a{k}]"
        )
    parts = [
        f"atrim=start={_num(trim.start)}:end={_num(trim.end)}",
        "asetpts=PTS-STARTPTS",
    ]
    parts.extend(atempo_chain(speed))
    parts.append(AUDIO_FORMAT)
    return f"[{k}:a]" + ",".join(parts) + f"[a{k}]"


def output_args(
    config: MixingConfiguration,
    audio_present: bool,
    metadata: Optional[Mapping[str, str]] = None,
) -> List[str]:
    quality = QUALITY_MAP[config.quality_tier]
    args = ["-map", "[vout]"]
    if audio_present:
        args.extend(["-map", "[outa]"])
    args.extend(
        [
            "-c:v",
            quality["vcodec"],
            "-b:v",
            quality["bitrate"],
            "-preset",
            quality["preset"],
            "-crf",
            quality["crf"],
            "-r",
            str(config.frame_rate),
            "-pix_fmt",
            "yuv420p",
        ]
    )
    if audio_present:
        args.extend(
            [
                "-c:a",
                AUDIO_OUTPUT["acodec"],
                "-b:a",
                AUDIO_OUTPUT["audio_bitrate"],
                "-ar",
                str(AUDIO_OUTPUT["sample_rate"]),
                "-ac",
                str(AUDIO_OUTPUT["channels"]),
            ]
        )
    else:
        args.append("-an")
    args.extend(["-movflags", "+faststart"])
    for key in sorted(metadata or {}):
        args.extend(["-metadata", f"{key}={metadata[key]}"])
    return args


def compile_plan(
    plan: RenderPlan,
    clips: Union[Mapping[str, Clip], Sequence[Clip]],
    config: MixingConfiguration,
    metadata: Optional[Mapping[str, str]] = None,
) -> CompiledGraph:
    lookup = _clip_lookup(clips)
    n = len(plan.clip_order)
    if n == 0:
        raise CompilationError(f"{plan.variant_id}: plan has no clips")
    if len(plan.speeds) != n or len(plan.trims) != n:
        raise CompilationError(
            f"{plan.variant_id}: {n} clips but {len(plan.speeds)} speeds and {len(plan.trims)} trims"
        )

    audio_present = plan.audio_mode == "keep"
    chains: List[str] = []
    video_labels: List[str] = []
    audio_labels: List[str] = []
    inputs: List[str] = []
    for k, clip_id in enumerate(plan.clip_order):
        clip = lookup.get(clip_id)
        if clip is None:
            raise CompilationError(f"{plan.variant_id}: no metadata for clip {clip_id} at position {k}")
        trim = plan.trims[k]
        if not 0 <= trim.start < trim.end <= clip.duration_seconds + _TRIM_EPSILON:
            raise CompilationError(
                f"{plan.variant_id}: trim [{trim.start}, {trim.end}] outside clip {clip_id} "
                f"({clip.duration_seconds}s)"
            )
        if not (math.isfinite(plan.speeds[k]) and plan.speeds[k] > 0):
            raise CompilationError(f"{plan.variant_id}: invalid speed {plan.speeds[k]} at position {k}")
        inputs.append(clip.source or clip.id)
        chains.append(_video_chain(k, plan, config.frame_rate))
        video_labels.append(f"[v{k}]")
        if audio_present:
            chains.append(_audio_chain(k, plan, clip))
            audio_labels.append(f"[a{k}]")

    if len(video_labels) != n or (audio_present and len(audio_labels) != n):
        raise CompilationError(
            f"{plan.variant_id}: built {len(video_labels)} video / {len(audio_labels)} audio stages for {n} clips"
        )

    if audio_present:
        concat_inputs = "".join(v + a for v, a in zip(video_labels, audio_labels))
        concat = f"{concat_inputs}concat=n={n}:v=1:a=1[outv][outa]"
    else:
        concat_inputs = "".join(video_labels)
        concat = f"{concat_inputs}concat=n={n}:v=1:a=0[outv]"
    if concat.count("[v") != n:
        raise CompilationError(f"{plan.variant_id}: concat references {concat.count('[v')} of {n} video stages")
    chains.append(concat)
    chains.append("[outv]format=yuv420p[vout]")

    logger.debug("Compiled %s with %d streams (audio=%s)", plan.variant_id, n, audio_present)
    return CompiledGraph(
        variant_id=plan.variant_id,
        graph_text=";".join(chains),
        stream_count=n,
        audio_present=audio_present,
        inputs=inputs,
        video_label="[vout]",
        audio_label="[outa]" if audio_present else None,
        output_args=output_args(config, audio_present, metadata),
    )
