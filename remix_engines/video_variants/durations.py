"""Trim-window solver for fixed-duration variants.

Every slot in ``clip_order`` gets a contribution share of the target duration
(post-speed timeline seconds). The share is converted back into source seconds
with ``share * speed``. A slot whose source clip cannot provide its share is
clamped to the full clip and the residual budget is spread over the remaining
slots with the same weighting, until no further slot needs clamping.
"""
from __future__ import annotations

import logging
import math
from typing import Dict, List, Mapping, Optional, Sequence

from remix_engines.config import runtime_config
from remix_engines.video_variants.errors import DistributionError
from remix_engines.video_variants.models import MixingConfiguration, TrimWindow

logger = logging.getLogger(__name__)

_EPSILON = 1e-9


def _slot_weights(durations: Sequence[float], mode: str, exponent: float) -> List[float]:
    """Relative weights, scaled so the longest clip weighs 1."""
    if mode == "equal":
        return [1.0 for _ in durations]
    longest = max(durations)
    if mode == "proportional":
        return [d / longest for d in durations]
    if mode == "weighted":
        # (d / longest) ** w keeps the d ** w ratios without overflowing
        return [(d / longest) ** exponent for d in durations]
    raise DistributionError(f"unsupported duration distribution mode: {mode}")


def timeline_duration(trims: Sequence[TrimWindow], speeds: Sequence[float]) -> float:
    """Output seconds produced by ``trims`` once each slot is played at its speed."""
    return sum(t.length / s for t, s in zip(trims, speeds))


def distribute(
    clip_order: Sequence[str],
    speeds: Sequence[float],
    native_durations: Mapping[str, float],
    config: MixingConfiguration,
) -> List[TrimWindow]:
    if len(speeds) != len(clip_order):
        raise DistributionError(
            f"speed count {len(speeds)} does not match clip count {len(clip_order)}"
        )
    durations: List[float] = []
    for clip_id in clip_order:
        if clip_id not in native_durations:
            raise DistributionError(f"no native duration for clip {clip_id}")
        durations.append(float(native_durations[clip_id]))
    for clip_id, speed in zip(clip_order, speeds):
        if not (math.isfinite(speed) and speed > 0):
            raise DistributionError(f"speed for clip {clip_id} must be positive and finite, got {speed}")

    if config.duration_type == "original":
        return [TrimWindow(start=0.0, end=d) for d in durations]

    target = config.target_duration_seconds
    if target is None or not math.isfinite(target) or target <= 0:
        raise DistributionError("fixed duration requires a positive target_duration_seconds")
    exponent = config.weighted_exponent or runtime_config.get_weighted_exponent()
    tolerance = (
        config.duration_tolerance_seconds
        if config.duration_tolerance_seconds is not None
        else runtime_config.get_duration_tolerance()
    )
    mode = config.duration_distribution_mode

    trims: List[Optional[TrimWindow]] = [None] * len(clip_order)
    open_slots = list(range(len(clip_order)))
    budget = float(target)
    while open_slots:
        # reweigh against the longest open slot so the total never underflows to zero
        open_weights = _slot_weights([durations[i] for i in open_slots], mode, exponent)
        weights = dict(zip(open_slots, open_weights))
        total_weight = sum(open_weights)
        proposals: Dict[int, float] = {}
        clamped: List[int] = []
        for i in open_slots:
            share = budget * weights[i] / total_weight
            end = share * speeds[i]
            if end <= _EPSILON or end > durations[i] + _EPSILON:
                clamped.append(i)
            else:
                proposals[i] = min(end, durations[i])
        if not clamped:
            for i, end in proposals.items():
                trims[i] = TrimWindow(start=0.0, end=end)
            break
        for i in clamped:
            trims[i] = TrimWindow(start=0.0, end=durations[i])
            budget -= durations[i] / speeds[i]
            logger.warning(
                "Clip %s at slot %d cannot fill its share, using full clip (%.3fs at %.3fx)",
                clip_order[i],
                i,
                durations[i],
                speeds[i],
            )
        open_slots = [i for i in open_slots if i not in clamped]

    solved = [t for t in trims if t is not None]
    if len(solved) != len(clip_order):
        raise DistributionError("duration solver left unassigned slots")
    achieved = timeline_duration(solved, speeds)
    if not abs(achieved - target) <= tolerance:
        raise DistributionError(
            f"target {target:.3f}s unreachable: clips provide {achieved:.3f}s after clamping "
            f"(tolerance {tolerance:.3f}s)"
        )
    logger.debug("Distributed %.3fs over %d slots (%s)", target, len(solved), mode)
    return solved
