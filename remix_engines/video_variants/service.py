from __future__ import annotations

import concurrent.futures
import logging
import random
import secrets
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from remix_engines.config import runtime_config
from remix_engines.video_variants.compiler import compile_plan
from remix_engines.video_variants.errors import CompilationError
from remix_engines.video_variants.models import (
    AppliedSpeed,
    AppliedTrim,
    Clip,
    CompiledGraph,
    MixingConfiguration,
    PlanFailure,
    RenderPlan,
    VariantBatchRequest,
    VariantBatchResult,
    VariantEstimate,
    VariantOutput,
)
from remix_engines.video_variants.planner import estimate_variant_space, plan
from remix_engines.video_variants.profiles import metadata_profile

logger = logging.getLogger(__name__)


def _group_sizes(req: VariantBatchRequest) -> Optional[List[int]]:
    if not req.config.group_mixing or not req.groups:
        return None
    return [sum(1 for clip in req.clips if clip.group_id == group.id) for group in req.groups]


def _to_output(plan_: RenderPlan, graph: CompiledGraph) -> VariantOutput:
    return VariantOutput(
        variant_id=plan_.variant_id,
        index=plan_.index,
        clip_order=list(plan_.clip_order),
        compiled_graph_text=graph.graph_text,
        inputs=list(graph.inputs),
        output_geometry=plan_.geometry_target,
        audio_present=graph.audio_present,
        applied_speeds=[
            AppliedSpeed(position=k, clip_id=cid, speed=speed)
            for k, (cid, speed) in enumerate(zip(plan_.clip_order, plan_.speeds))
        ],
        applied_trims=[
            AppliedTrim(position=k, clip_id=cid, start=trim.start, end=trim.end)
            for k, (cid, trim) in enumerate(zip(plan_.clip_order, plan_.trims))
        ],
        output_args=list(graph.output_args),
        warnings=list(plan_.warnings),
    )


class VariantMixerService:
    def __init__(self, max_workers: Optional[int] = None, clock=None) -> None:
        self._max_workers = max_workers or runtime_config.get_compile_workers()
        self._clock = clock

    def estimate(self, req: VariantBatchRequest) -> VariantEstimate:
        space = estimate_variant_space(len(req.clips), req.config, _group_sizes(req))
        return VariantEstimate(
            clip_count=len(req.clips),
            output_count=req.config.output_count,
            variant_space=space,
            exhaustive=req.config.output_count >= space,
        )

    def _metadata(self, config: MixingConfiguration) -> Dict[str, str]:
        now: Optional[datetime] = self._clock() if self._clock else None
        return metadata_profile(config.metadata_source, config.metadata, now=now)

    def _compile_all(
        self,
        plans: List[RenderPlan],
        clips: Dict[str, Clip],
        config: MixingConfiguration,
        metadata: Dict[str, str],
    ) -> Tuple[List[VariantOutput], List[PlanFailure]]:
        outputs: List[VariantOutput] = []
        failures: List[PlanFailure] = []
        if not plans:
            return outputs, failures
        workers = max(1, min(self._max_workers, len(plans)))
        with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {
                executor.submit(compile_plan, plan_, clips, config, metadata): plan_ for plan_ in plans
            }
            for future in concurrent.futures.as_completed(futures):
                plan_ = futures[future]
                try:
                    graph = future.result()
                except CompilationError as exc:
                    logger.warning("Variant %s failed to compile: %s", plan_.variant_id, exc)
                    failures.append(
                        PlanFailure(
                            index=plan_.index,
                            variant_id=plan_.variant_id,
                            reason=str(exc),
                            error_type=type(exc).__name__,
                        )
                    )
                    continue
                outputs.append(_to_output(plan_, graph))
        outputs.sort(key=lambda o: o.index)
        return outputs, failures

    def generate(self, req: VariantBatchRequest) -> VariantBatchResult:
        config = req.config
        seed = config.seed if config.seed is not None else secrets.randbits(32)
        rng = random.Random(seed)
        planning = plan(req.clips, config, req.groups, state=req.state, rng=rng)

        clip_map = {clip.id: clip for clip in req.clips}
        outputs, compile_failures = self._compile_all(planning.plans, clip_map, config, self._metadata(config))
        failures = sorted(planning.failures + compile_failures, key=lambda f: f.index)

        result = VariantBatchResult(
            outputs=outputs,
            failures=failures,
            warnings=list(planning.warnings),
            state=planning.state,
            meta={
                "seed": seed,
                "requested": config.output_count,
                "produced": len(outputs),
                "variant_space": estimate_variant_space(len(req.clips), config, _group_sizes(req)),
                "clip_count": len(req.clips),
            },
        )
        logger.info(
            "Variant batch %s: %d/%d outputs, %d failures",
            result.batch_id,
            len(outputs),
            config.output_count,
            len(failures),
        )
        return result


_default_service: Optional[VariantMixerService] = None


def get_variant_service() -> VariantMixerService:
    global _default_service
    if _default_service is None:
        _default_service = VariantMixerService()
    return _default_service


def set_variant_service(service: VariantMixerService) -> None:
    global _default_service
    _default_service = service
