from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from clinicflow.metrics import MetricsRegistry, metrics_registry
from clinicflow.tickets.service import LifecycleEngine


async def get_lifecycle_engine(request: Request) -> LifecycleEngine:
    engine = getattr(request.app.state, "lifecycle_engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Ticket service is not configured")
    return engine


def get_metrics_registry(request: Request) -> MetricsRegistry:
    return getattr(request.app.state, "metrics", None) or metrics_registry


LifecycleEngineDep = Annotated[LifecycleEngine, Depends(get_lifecycle_engine)]
MetricsRegistryDep = Annotated[MetricsRegistry, Depends(get_metrics_registry)]
