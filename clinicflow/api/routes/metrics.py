from typing import Any

from fastapi import APIRouter

from clinicflow.dependencies.tickets import MetricsRegistryDep

router = APIRouter(prefix="/metrics", tags=["health"])


@router.get("", summary="Snapshot of in-process metrics")
async def get_metrics(registry: MetricsRegistryDep) -> dict[str, Any]:
    return registry.snapshot()
