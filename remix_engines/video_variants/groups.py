from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from remix_engines.config import runtime_config
from remix_engines.video_variants.errors import InsufficientInputError, VariantSpaceExhaustedError
from remix_engines.video_variants.models import BatchState, Clip, ClipGroup

logger = logging.getLogger(__name__)


@dataclass
class GroupSelection:
    clip_order: List[str]
    state: BatchState
    warnings: List[str] = field(default_factory=list)


def index_groups(
    clips: Sequence[Clip],
    groups: Sequence[ClipGroup],
) -> Tuple[List[ClipGroup], Dict[str, List[Clip]], List[str]]:
    """Sort groups by ``order`` and bucket clips under them.

    Raises InsufficientInputError for a group without clips; clips pointing at
    no known group are left out and reported in the returned warnings.
    """
    if not groups:
        raise InsufficientInputError("group mixing requires at least one group")
    ordered = sorted(groups, key=lambda g: (g.order, g.id))
    members: Dict[str, List[Clip]] = {g.id: [] for g in ordered}
    warnings: List[str] = []
    for clip in clips:
        if clip.group_id is None or clip.group_id not in members:
            warnings.append(f"clip_{clip.id}_not_in_any_group")
            continue
        members[clip.group_id].append(clip)
    for group in ordered:
        if not members[group.id]:
            raise InsufficientInputError(
                f"group {group.id} ({group.name or 'unnamed'}) has no clips assigned",
                group_id=group.id,
            )
    if warnings:
        logger.warning("Group mixing ignores %d ungrouped clips", len(warnings))
    return ordered, members, warnings


def _with_seen(state: BatchState, clip_order: List[str]) -> BatchState:
    return BatchState(
        start_bucket=state.start_bucket,
        seen_orders=[list(order) for order in state.seen_orders] + [list(clip_order)],
    )


def select_groups(
    members: Mapping[str, Sequence[Clip]],
    group_order: Sequence[ClipGroup],
    mode: str,
    variant_index: int,
    *,
    rng: Optional[random.Random] = None,
    state: Optional[BatchState] = None,
    max_attempts: Optional[int] = None,
    duplicate_policy: str = "accept",
) -> GroupSelection:
    state = state or BatchState()
    for group in group_order:
        if not members.get(group.id):
            raise InsufficientInputError(f"group {group.id} has no clips assigned", group_id=group.id)

    if mode == "strict":
        clip_order = [
            members[group.id][variant_index % len(members[group.id])].id
            for group in sorted(group_order, key=lambda g: (g.order, g.id))
        ]
        return GroupSelection(clip_order=clip_order, state=_with_seen(state, clip_order))

    if mode != "random":
        raise ValueError(f"unsupported group mixing mode: {mode}")

    rng = rng or random.Random()
    attempts = max_attempts or runtime_config.get_group_retry_budget()
    seen = {tuple(order) for order in state.seen_orders}
    clip_order: List[str] = []
    for _ in range(attempts):
        sequence = list(group_order)
        rng.shuffle(sequence)
        clip_order = [rng.choice(list(members[group.id])).id for group in sequence]
        if tuple(clip_order) not in seen:
            return GroupSelection(clip_order=clip_order, state=_with_seen(state, clip_order))

    if duplicate_policy == "fail":
        raise VariantSpaceExhaustedError(
            f"variant {variant_index}: no unused group ordering after {attempts} attempts"
        )
    warning = f"variant_{variant_index}_duplicate_group_order_after_{attempts}_attempts"
    logger.warning("Accepting duplicate group ordering for variant %d after %d attempts", variant_index, attempts)
    return GroupSelection(clip_order=clip_order, state=_with_seen(state, clip_order), warnings=[warning])
