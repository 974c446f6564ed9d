"""Request-scoped access to the process-wide screening services."""

from __future__ import annotations

from fastapi import HTTPException, Request

from hideout.pipeline.pipeline import MessagePipeline
from hideout.services import SecurityServices, build_services


def get_services(request: Request) -> SecurityServices:
    services = getattr(request.app.state, "services", None)
    if services is None:
        services = build_services()
        request.app.state.services = services
    return services


def get_pipeline(request: Request) -> MessagePipeline:
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        raise HTTPException(status_code=503, detail="Message pipeline is not running")
    return pipeline
