"""Health probe for K8s/GCP."""
from fastapi import APIRouter
from pydantic import BaseModel, Field

from remix_engines.config import runtime_config

router = APIRouter(tags=["system"])


class HealthStatus(BaseModel):
    status: str
    version: str = "0.1.0"
    details: dict = Field(default_factory=dict)


@router.get("/health", response_model=HealthStatus)
def health_check():
    return HealthStatus(status="ok")


@router.get("/ready", response_model=HealthStatus)
def readiness_check():
    return HealthStatus(
        status="ok",
        details={
            "env": runtime_config.get_env() or "dev",
            "compile_workers": runtime_config.get_compile_workers(),
            "max_output_count": runtime_config.get_max_output_count(),
        },
    )
