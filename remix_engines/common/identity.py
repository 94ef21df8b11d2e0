"""Caller identity for the remix engine routes, taken from request headers."""
from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

from fastapi import HTTPException, Request

TENANT_PATTERN = re.compile(r"^t_[a-z0-9_-]+$")
MODES = ("saas", "enterprise", "lab")
# old deployments sent an environment name where a mode is expected
ENV_NAMES = frozenset({"dev", "development", "staging", "stage", "prod", "production"})


def _check_tenant(tenant_id: Optional[str]) -> str:
    if not tenant_id:
        raise ValueError("tenant_id is required")
    if not TENANT_PATTERN.match(tenant_id):
        raise ValueError(f"tenant_id must match pattern {TENANT_PATTERN.pattern}, got: {tenant_id}")
    return tenant_id


def _check_mode(mode: Optional[str]) -> str:
    if not mode:
        raise ValueError("mode is required")
    value = mode.lower()
    if value in ENV_NAMES:
        raise ValueError("X-Mode must be one of saas|enterprise|lab; legacy env values are rejected")
    if value not in MODES:
        raise ValueError(f"mode must be one of {list(MODES)}, got: {value}")
    return value


@dataclass
class RequestContext:
    tenant_id: str
    mode: str
    project_id: str = "p_internal"
    user_id: Optional[str] = None
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def __post_init__(self) -> None:
        self.tenant_id = _check_tenant(self.tenant_id)
        self.mode = _check_mode(self.mode)
        if not self.project_id:
            raise ValueError("project_id is required")

    def log_fields(self) -> Dict[str, str]:
        """Fields attached to log records as ``extra``."""
        return {
            "tenant_id": self.tenant_id,
            "mode": self.mode,
            "project_id": self.project_id,
            "request_id": self.request_id,
        }


class RequestContextBuilder:
    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> RequestContext:
        lowered = {key.lower(): value for key, value in headers.items()}
        if "x-env" in lowered:
            raise ValueError("X-Env header is not allowed; use X-Mode (saas|enterprise|lab)")
        if not lowered.get("x-mode"):
            raise ValueError("X-Mode header is required; must be one of: saas, enterprise, lab")
        if not lowered.get("x-tenant-id"):
            raise ValueError("X-Tenant-Id header is required")
        return RequestContext(
            tenant_id=lowered["x-tenant-id"],
            mode=lowered["x-mode"],
            project_id=lowered.get("x-project-id") or "p_internal",
            user_id=lowered.get("x-user-id"),
            request_id=lowered.get("x-request-id") or uuid.uuid4().hex,
        )

    @classmethod
    def from_request(cls, request: Request) -> RequestContext:
        return cls.from_headers(dict(request.headers))


def get_request_context(request: Request) -> RequestContext:
    try:
        return RequestContextBuilder.from_request(request)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
