from __future__ import annotations

from typing import Optional


class VariantMixerError(ValueError):
    """Base class for every error raised by the variant mixer."""

    code = "video_variants.error"


class ConfigurationError(VariantMixerError):
    code = "video_variants.configuration_invalid"


class InsufficientInputError(VariantMixerError):
    code = "video_variants.insufficient_input"

    def __init__(self, message: str, group_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.group_id = group_id


class VariantSpaceExhaustedError(VariantMixerError):
    """Random group mode could not find an unused ordering and the batch asked to fail."""

    code = "video_variants.variant_space_exhausted"


class DistributionError(VariantMixerError):
    """Target duration cannot be met even after clamping every clip."""

    code = "video_variants.distribution_failed"


class CompilationError(VariantMixerError):
    """Stage/label bookkeeping went out of sync while compiling a plan."""

    code = "video_variants.compilation_failed"
