from __future__ import annotations

import uuid
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _uuid() -> str:
    return uuid.uuid4().hex


GroupMixingMode = Literal["strict", "random"]
DurationType = Literal["original", "fixed"]
DistributionMode = Literal["equal", "proportional", "weighted"]
AspectRatio = Literal["original", "vertical-9x16", "horizontal-16x9", "square-1x1"]
QualityTier = Literal["low", "medium", "high"]
AudioMode = Literal["keep", "mute", "voiceover"]
SpeedStrategy = Literal["round_robin", "random"]
DuplicatePolicy = Literal["accept", "fail"]
Resolution = Literal["sd", "hd", "fullhd"]
ColorIntensity = Literal["low", "medium", "high"]
MetadataSource = Literal["normal", "capcut", "vn", "inshot"]


class Clip(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    duration_seconds: float = Field(gt=0)
    has_audio: bool = True
    group_id: Optional[str] = None
    source: Optional[str] = None  # opaque file reference handed to the transcoder untouched
    width: Optional[int] = Field(default=None, gt=0)
    height: Optional[int] = Field(default=None, gt=0)


class ClipGroup(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    order: int = 0


class MixingConfiguration(BaseModel):
    order_mixing: bool = False
    speed_mixing: bool = False
    different_starting_clip: bool = False
    group_mixing: bool = False
    group_mixing_mode: GroupMixingMode = "strict"
    allowed_speeds: List[float] = Field(default_factory=lambda: [0.75, 1.0, 1.25, 1.5])
    duration_type: DurationType = "original"
    duration_distribution_mode: DistributionMode = "proportional"
    target_duration_seconds: Optional[float] = None
    aspect_ratio: AspectRatio = "original"
    quality_tier: QualityTier = "medium"
    audio_mode: AudioMode = "keep"
    output_count: int = Field(default=1, gt=0)

    weighted_exponent: Optional[float] = None
    duration_tolerance_seconds: Optional[float] = Field(default=None, ge=0)
    speed_strategy: SpeedStrategy = "round_robin"
    group_retry_budget: Optional[int] = Field(default=None, gt=0)
    duplicate_policy: DuplicatePolicy = "accept"
    resolution: Resolution = "hd"
    frame_rate: Literal[24, 30, 60] = 30
    color_variations: bool = False
    color_intensity: ColorIntensity = "medium"
    metadata_source: MetadataSource = "normal"
    metadata: Dict[str, str] = Field(default_factory=dict)
    seed: Optional[int] = None

    @field_validator("allowed_speeds", mode="before")
    @classmethod
    def _dedupe_speeds(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple, set, frozenset)):
            seen: List[float] = []
            for item in sorted(float(v) for v in value):
                if item not in seen:
                    seen.append(item)
            return seen
        return value


class TrimWindow(BaseModel):
    start: float
    end: float

    @property
    def length(self) -> float:
        return self.end - self.start


class Geometry(BaseModel):
    width: int
    height: int


class ColorAdjustment(BaseModel):
    brightness: float = 0.0
    contrast: float = 1.0
    saturation: float = 1.0
    hue: float = 0.0


class RenderPlan(BaseModel):
    variant_id: str
    index: int
    clip_order: List[str]
    speeds: List[float]
    trims: List[TrimWindow]
    audio_mode: AudioMode
    geometry_target: Geometry
    color: Optional[ColorAdjustment] = None
    warnings: List[str] = Field(default_factory=list)


class CompiledGraph(BaseModel):
    variant_id: str
    graph_text: str
    stream_count: int
    audio_present: bool
    inputs: List[str] = Field(default_factory=list)
    video_label: str = "[vout]"
    audio_label: Optional[str] = None
    output_args: List[str] = Field(default_factory=list)


class PlanFailure(BaseModel):
    index: int
    variant_id: str
    reason: str
    error_type: str


class BatchState(BaseModel):
    """Cross-variant bookkeeping, passed into and returned from a batch call."""

    start_bucket: int = 0
    seen_orders: List[List[str]] = Field(default_factory=list)


class AppliedSpeed(BaseModel):
    position: int
    clip_id: str
    speed: float


class AppliedTrim(BaseModel):
    position: int
    clip_id: str
    start: float
    end: float


class VariantOutput(BaseModel):
    variant_id: str
    index: int
    clip_order: List[str]
    compiled_graph_text: str
    inputs: List[str] = Field(default_factory=list)
    output_geometry: Geometry
    audio_present: bool
    applied_speeds: List[AppliedSpeed] = Field(default_factory=list)
    applied_trims: List[AppliedTrim] = Field(default_factory=list)
    output_args: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class VariantBatchRequest(BaseModel):
    clips: List[Clip]
    groups: List[ClipGroup] = Field(default_factory=list)
    config: MixingConfiguration
    state: Optional[BatchState] = None


class VariantBatchResult(BaseModel):
    batch_id: str = Field(default_factory=_uuid)
    outputs: List[VariantOutput] = Field(default_factory=list)
    failures: List[PlanFailure] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    state: BatchState = Field(default_factory=BatchState)
    meta: Dict[str, Any] = Field(default_factory=dict)


class VariantEstimate(BaseModel):
    clip_count: int
    output_count: int
    variant_space: int
    exhaustive: bool
