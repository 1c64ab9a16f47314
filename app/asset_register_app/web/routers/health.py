from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/api/health")
def health(request: Request):
    service = request.app.state.bulk_import_service
    return {"ok": True, "env": service.config.env, **service.health()}
