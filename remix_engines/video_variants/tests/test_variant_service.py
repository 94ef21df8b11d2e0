from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from remix_engines.video_variants.compiler import compile_plan
from remix_engines.video_variants.errors import CompilationError, ConfigurationError
from remix_engines.video_variants.models import Clip, VariantBatchRequest
from remix_engines.video_variants.service import VariantMixerService, get_variant_service, set_variant_service
from remix_engines.video_variants.tests.helpers import config, make_clips, make_grouped_clips, make_groups

FIXED_NOW = datetime(2024, 5, 1, 12, 30, 0, tzinfo=timezone.utc)


def _service():
    return VariantMixerService(max_workers=2, clock=lambda: FIXED_NOW)


def _request(clips=None, **overrides):
    return VariantBatchRequest(clips=clips or make_clips([6, 7, 8, 9]), config=config(**overrides))


def test_generate_returns_outputs_in_index_order():
    result = _service().generate(_request(order_mixing=True, output_count=6))

    assert [o.index for o in result.outputs] == list(range(6))
    assert [o.variant_id for o in result.outputs] == [f"variant-{i}" for i in range(6)]
    assert len({tuple(o.clip_order) for o in result.outputs}) == 6
    assert result.failures == []
    assert result.meta["requested"] == 6
    assert result.meta["produced"] == 6
    assert result.meta["variant_space"] == 24
    assert result.meta["clip_count"] == 4


def test_output_reports_applied_speeds_and_trims_by_position():
    clips = [Clip(id="solo", duration_seconds=6.0)]
    result = _service().generate(
        _request(clips, duration_type="fixed", target_duration_seconds=8, duration_distribution_mode="equal")
    )

    (output,) = result.outputs
    assert [(s.position, s.clip_id) for s in output.applied_speeds] == [(0, "solo"), (1, "solo")]
    assert [t.end - t.start for t in output.applied_trims] == pytest.approx([4.0, 4.0], abs=0.05)
    assert output.output_geometry.width == 1280
    assert output.audio_present is True
    assert output.compiled_graph_text.count("concat=") == 1


def test_seed_is_reported_and_replays_the_batch():
    service = _service()
    mixing = {"order_mixing": True, "speed_mixing": True, "speed_strategy": "random", "output_count": 5}
    first = service.generate(_request(seed=None, **mixing))
    seed = first.meta["seed"]
    assert isinstance(seed, int)

    replay = service.generate(_request(seed=seed, **mixing))
    assert [o.model_dump() for o in replay.outputs] == [o.model_dump() for o in first.outputs]


def test_state_is_threaded_between_batches():
    service = _service()
    clips = make_clips([5, 5, 5])
    first = service.generate(_request(clips, different_starting_clip=True, output_count=2))
    second = service.generate(
        VariantBatchRequest(
            clips=clips,
            config=config(different_starting_clip=True, output_count=2),
            state=first.state,
        )
    )

    assert [o.clip_order[0] for o in first.outputs] == ["c0", "c1"]
    assert [o.clip_order[0] for o in second.outputs] == ["c2", "c0"]


def test_compile_failure_only_drops_the_affected_variant():
    def flaky(plan_, clips, cfg, metadata=None):
        if plan_.index == 1:
            raise CompilationError(f"{plan_.variant_id}: label mismatch")
        return compile_plan(plan_, clips, cfg, metadata)

    with patch("remix_engines.video_variants.service.compile_plan", side_effect=flaky):
        result = _service().generate(_request(order_mixing=True, output_count=3))

    assert [o.index for o in result.outputs] == [0, 2]
    assert [(f.index, f.error_type) for f in result.failures] == [(1, "CompilationError")]
    assert result.meta["produced"] == 2


def test_batch_level_errors_propagate():
    with pytest.raises(ConfigurationError):
        _service().generate(_request(audio_mode="voiceover", speed_mixing=True))


def test_metadata_preset_reaches_output_args():
    result = _service().generate(_request(metadata_source="capcut", metadata={"title": "Spring drop"}))

    args = result.outputs[0].output_args
    assert "encoder=CapCut" in args
    assert "creation_time=2024-05-01T12:30:00.000000Z" in args
    assert "title=Spring drop" in args


def test_normal_metadata_source_adds_nothing():
    result = _service().generate(_request())
    assert "-metadata" not in result.outputs[0].output_args


def test_estimate_for_group_mixing():
    req = VariantBatchRequest(
        clips=make_grouped_clips({"hook": 2, "cta": 3}),
        groups=make_groups({"hook": 1, "cta": 2}),
        config=config(group_mixing=True, group_mixing_mode="strict", output_count=10),
    )
    estimate = _service().estimate(req)

    assert estimate.variant_space == 6
    assert estimate.exhaustive is True
    assert estimate.clip_count == 5


def test_service_singleton_can_be_replaced():
    custom = _service()
    set_variant_service(custom)
    try:
        assert get_variant_service() is custom
    finally:
        set_variant_service(VariantMixerService())
