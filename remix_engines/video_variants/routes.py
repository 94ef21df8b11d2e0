from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from remix_engines.common.error_envelope import error_response
from remix_engines.common.identity import RequestContext, get_request_context
from remix_engines.video_variants.errors import (
    InsufficientInputError,
    VariantMixerError,
    VariantSpaceExhaustedError,
)
from remix_engines.video_variants.models import VariantBatchRequest, VariantBatchResult, VariantEstimate
from remix_engines.video_variants.service import get_variant_service

logger = logging.getLogger(__name__)

RESOURCE_KIND = "video_variants"

router = APIRouter(prefix="/video/variants", tags=["video_variants"])


def _raise_for(exc: VariantMixerError, request_context: RequestContext) -> None:
    details = {"request_id": request_context.request_id}
    if isinstance(exc, InsufficientInputError):
        if exc.group_id:
            details["group_id"] = exc.group_id
        status = 422
    elif isinstance(exc, VariantSpaceExhaustedError):
        status = 409
    else:
        status = 400
    logger.info("Variant request rejected (%s): %s", exc.code, exc, extra=request_context.log_fields())
    error_response(
        code=exc.code,
        message=str(exc),
        status_code=status,
        resource_kind=RESOURCE_KIND,
        details=details,
    )


@router.post("/plan", response_model=VariantBatchResult)
def plan_variants(
    req: VariantBatchRequest,
    request_context: RequestContext = Depends(get_request_context),
):
    try:
        return get_variant_service().generate(req)
    except VariantMixerError as exc:
        _raise_for(exc, request_context)


@router.post("/estimate", response_model=VariantEstimate)
def estimate_variants(
    req: VariantBatchRequest,
    request_context: RequestContext = Depends(get_request_context),
):
    try:
        return get_variant_service().estimate(req)
    except VariantMixerError as exc:
        _raise_for(exc, request_context)
