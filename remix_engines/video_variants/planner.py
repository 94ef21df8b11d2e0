from __future__ import annotations

import itertools
import logging
import math
import random
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from remix_engines.config import runtime_config
from remix_engines.video_variants.durations import distribute
from remix_engines.video_variants.errors import ConfigurationError, DistributionError, InsufficientInputError
from remix_engines.video_variants.groups import index_groups, select_groups
from remix_engines.video_variants.models import (
    BatchState,
    Clip,
    ClipGroup,
    ColorAdjustment,
    MixingConfiguration,
    PlanFailure,
    RenderPlan,
)
from remix_engines.video_variants.profiles import COLOR_INTENSITY_RANGES, resolve_geometry

logger = logging.getLogger(__name__)

JITTER_MIN = 0.95
JITTER_MAX = 1.05


@dataclass
class PlanningResult:
    plans: List[RenderPlan] = field(default_factory=list)
    failures: List[PlanFailure] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    state: BatchState = field(default_factory=BatchState)


def variant_id_for(index: int) -> str:
    return f"variant-{index}"


def validate_configuration(clips: Sequence[Clip], config: MixingConfiguration) -> None:
    """Batch-level checks; nothing is planned when one of these fails."""
    if not clips:
        raise InsufficientInputError("at least one clip is required")
    ids = [clip.id for clip in clips]
    if len(set(ids)) != len(ids):
        raise ConfigurationError("clip ids must be unique within a batch")
    for clip in clips:
        if not math.isfinite(clip.duration_seconds):
            raise ConfigurationError(f"clip {clip.id} duration must be finite")
    for name in ("target_duration_seconds", "weighted_exponent", "duration_tolerance_seconds"):
        value = getattr(config, name)
        if value is not None and not math.isfinite(value):
            raise ConfigurationError(f"{name} must be finite")
    if any(not math.isfinite(speed) for speed in config.allowed_speeds):
        raise ConfigurationError("allowed speeds must be finite")
    if config.audio_mode == "voiceover":
        if config.duration_type != "original":
            raise ConfigurationError("voiceover audio requires duration_type=original")
        if config.speed_mixing:
            raise ConfigurationError("voiceover audio cannot be combined with speed mixing")
    if config.duration_type == "fixed":
        if config.target_duration_seconds is None or config.target_duration_seconds <= 0:
            raise ConfigurationError("duration_type=fixed requires a positive target_duration_seconds")
    if config.speed_mixing:
        if not config.allowed_speeds:
            raise ConfigurationError("speed mixing requires at least one allowed speed")
        if any(speed <= 0 for speed in config.allowed_speeds):
            raise ConfigurationError("allowed speeds must be positive")
    if config.weighted_exponent is not None and config.weighted_exponent <= 1.0:
        raise ConfigurationError("weighted_exponent must be greater than 1")
    max_outputs = runtime_config.get_max_output_count()
    if config.output_count > max_outputs:
        raise ConfigurationError(f"output_count {config.output_count} exceeds the limit of {max_outputs}")


def rotate(clip_ids: Sequence[str], bucket: int) -> List[str]:
    if not clip_ids:
        return []
    pivot = bucket % len(clip_ids)
    return list(clip_ids[pivot:]) + list(clip_ids[:pivot])


def _distinct_permutations(items: Sequence[str], wanted: int, rng: random.Random) -> List[List[str]]:
    """Up to ``wanted`` pairwise-distinct orderings of ``items`` in random order."""
    space = math.factorial(len(items))
    wanted = min(wanted, space)
    if space <= runtime_config.get_permutation_enumeration_limit():
        perms = [list(p) for p in itertools.permutations(items)]
        rng.shuffle(perms)
        return perms[:wanted]
    seen: set[Tuple[str, ...]] = set()
    perms: List[List[str]] = []
    while len(perms) < wanted:
        candidate = list(items)
        rng.shuffle(candidate)
        key = tuple(candidate)
        if key in seen:
            continue
        seen.add(key)
        perms.append(candidate)
    return perms


def generate_orderings(
    clip_ids: Sequence[str],
    config: MixingConfiguration,
    *,
    rng: random.Random,
    start_bucket: int = 0,
) -> Tuple[List[List[str]], List[str]]:
    count = config.output_count
    n = len(clip_ids)
    warnings: List[str] = []

    if not config.order_mixing:
        if config.different_starting_clip:
            return [rotate(clip_ids, start_bucket + i) for i in range(count)], warnings
        return [list(clip_ids) for _ in range(count)], warnings

    if not config.different_starting_clip:
        space = math.factorial(n)
        perms = _distinct_permutations(clip_ids, count, rng)
        orderings: List[List[str]] = []
        for i in range(count):
            if i >= space:
                warnings.append(f"variant_{i}_repeats_ordering_{i % space}")
            orderings.append(list(perms[i % len(perms)]))
        if count > space:
            logger.warning("Requested %d orderings but only %d permutations exist; wrapping", count, space)
        return orderings, warnings

    # First clip comes from the rotation bucket; only the tail is permuted.
    tail_space = math.factorial(n - 1)
    per_bucket = math.ceil(count / n)
    tails: Dict[int, List[List[str]]] = {}
    used: Dict[int, int] = {}
    orderings = []
    for i in range(count):
        bucket = (start_bucket + i) % n
        if bucket not in tails:
            rest = [cid for pos, cid in enumerate(clip_ids) if pos != bucket]
            tails[bucket] = _distinct_permutations(rest, per_bucket, rng)
        k = used.get(bucket, 0)
        used[bucket] = k + 1
        if k >= tail_space:
            warnings.append(f"variant_{i}_repeats_ordering_for_start_{clip_ids[bucket]}")
        bucket_tails = tails[bucket]
        orderings.append([clip_ids[bucket]] + list(bucket_tails[k % len(bucket_tails)]))
    return orderings, warnings


def jitter_speed(variant_index: int, output_count: int) -> float:
    """Evenly spaced factor in [0.95, 1.05], unique per variant index."""
    if output_count <= 1:
        return 1.0
    step = (JITTER_MAX - JITTER_MIN) / (output_count - 1)
    return round(JITTER_MIN + step * variant_index, 6)


def jitter_active(config: MixingConfiguration) -> bool:
    return not (
        config.speed_mixing
        or config.order_mixing
        or config.different_starting_clip
        or config.group_mixing
    )


def assign_speeds(
    slot_count: int,
    config: MixingConfiguration,
    variant_index: int,
    *,
    rng: random.Random,
    previous: Optional[Sequence[float]] = None,
) -> List[float]:
    if config.speed_mixing:
        allowed = list(config.allowed_speeds)
        if config.speed_strategy == "round_robin":
            return [allowed[(variant_index + k) % len(allowed)] for k in range(slot_count)]
        speeds: List[float] = []
        for k in range(slot_count):
            choices = allowed
            if previous is not None and k < len(previous) and len(allowed) > 1:
                choices = [s for s in allowed if s != previous[k]]
            speeds.append(rng.choice(choices))
        return speeds
    if jitter_active(config) and config.audio_mode != "voiceover":
        return [jitter_speed(variant_index, config.output_count)] * slot_count
    return [1.0] * slot_count


def draw_color(config: MixingConfiguration, rng: random.Random) -> Optional[ColorAdjustment]:
    if not config.color_variations:
        return None
    rng_range = COLOR_INTENSITY_RANGES[config.color_intensity]
    return ColorAdjustment(
        brightness=round(rng.uniform(-1.0, 1.0) * rng_range["brightness"], 4),
        contrast=round(1.0 + rng.uniform(-1.0, 1.0) * rng_range["contrast"], 4),
        saturation=round(1.0 + rng.uniform(-1.0, 1.0) * rng_range["saturation"], 4),
        hue=round(rng.uniform(-1.0, 1.0) * rng_range["hue"], 4),
    )


def estimate_variant_space(
    clip_count: int,
    config: MixingConfiguration,
    group_sizes: Optional[Sequence[int]] = None,
) -> int:
    """How many distinct combinations the configuration can reach."""
    if clip_count <= 0:
        return 0
    if config.group_mixing and group_sizes:
        total = math.prod(group_sizes)
        if config.group_mixing_mode == "random":
            total *= math.factorial(len(group_sizes))
        slots = max(len(group_sizes), 2)
    else:
        if config.order_mixing:
            total = math.factorial(clip_count)
        elif config.different_starting_clip:
            total = clip_count
        else:
            total = 1
        slots = max(clip_count, 2)
    if config.speed_mixing and config.allowed_speeds:
        total *= len(config.allowed_speeds) ** slots
    return total


def plan(
    clips: Sequence[Clip],
    config: MixingConfiguration,
    groups: Optional[Sequence[ClipGroup]] = None,
    *,
    state: Optional[BatchState] = None,
    rng: Optional[random.Random] = None,
) -> PlanningResult:
    validate_configuration(clips, config)
    state = state or BatchState()
    rng = rng or random.Random(config.seed)
    clip_map = {clip.id: clip for clip in clips}
    durations = {clip.id: clip.duration_seconds for clip in clips}
    clip_ids = [clip.id for clip in clips]
    result = PlanningResult()

    orderings: List[List[str]] = []
    group_members = None
    group_order: List[ClipGroup] = []
    if config.group_mixing:
        group_order, group_members, group_warnings = index_groups(clips, list(groups or []))
        result.warnings.extend(group_warnings)
    else:
        orderings, order_warnings = generate_orderings(
            clip_ids, config, rng=rng, start_bucket=state.start_bucket
        )
        result.warnings.extend(order_warnings)

    if config.audio_mode == "voiceover" and jitter_active(config) and config.output_count > 1:
        result.warnings.append("voiceover_keeps_native_speed_outputs_may_repeat")

    logger.info(
        "Planning %d variants from %d clips (order=%s start=%s speed=%s group=%s)",
        config.output_count,
        len(clips),
        config.order_mixing,
        config.different_starting_clip,
        config.speed_mixing,
        config.group_mixing,
    )

    previous_speeds: Optional[List[float]] = None
    for i in range(config.output_count):
        variant_id = variant_id_for(i)
        plan_warnings: List[str] = []
        if group_members is not None:
            selection = select_groups(
                group_members,
                group_order,
                config.group_mixing_mode,
                i,
                rng=rng,
                state=state,
                max_attempts=config.group_retry_budget,
                duplicate_policy=config.duplicate_policy,
            )
            state = selection.state
            clip_order = selection.clip_order
            plan_warnings.extend(selection.warnings)
            result.warnings.extend(selection.warnings)
        else:
            clip_order = orderings[i]

        if len(clip_order) == 1:
            clip_order = [clip_order[0], clip_order[0]]

        speeds = assign_speeds(len(clip_order), config, i, rng=rng, previous=previous_speeds)
        previous_speeds = speeds
        color = draw_color(config, rng)

        try:
            trims = distribute(clip_order, speeds, durations, config)
        except DistributionError as exc:
            logger.warning("Variant %s failed duration distribution: %s", variant_id, exc)
            result.failures.append(
                PlanFailure(index=i, variant_id=variant_id, reason=str(exc), error_type=type(exc).__name__)
            )
            continue

        geometry = resolve_geometry(
            config.aspect_ratio, config.resolution, [clip_map[cid] for cid in clip_order]
        )
        result.plans.append(
            RenderPlan(
                variant_id=variant_id,
                index=i,
                clip_order=clip_order,
                speeds=speeds,
                trims=trims,
                audio_mode=config.audio_mode,
                geometry_target=geometry,
                color=color,
                warnings=plan_warnings,
            )
        )
        logger.debug("Planned %s: order=%s speeds=%s", variant_id, clip_order, speeds)

    result.state = BatchState(
        start_bucket=(state.start_bucket + config.output_count) % len(clips),
        seen_orders=[list(order) for order in state.seen_orders],
    )
    logger.info(
        "Planned %d/%d variants (%d failures, %d warnings)",
        len(result.plans),
        config.output_count,
        len(result.failures),
        len(result.warnings),
    )
    return result
