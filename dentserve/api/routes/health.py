from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter

from dentserve.core.config import settings
from dentserve.schemas.requests import HelloRequest

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness check used by load balancers and uptime monitors."""

    return {
        "status": "OK",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "message": "Backend server is running",
        "port": settings.app.port,
    }


@router.post("/api/hello")
def hello(body: HelloRequest) -> dict:
    return {"message": f"Hello {body.name}"}
