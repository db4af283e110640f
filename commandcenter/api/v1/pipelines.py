"""Data pipeline status endpoints."""
from fastapi import APIRouter, Depends, HTTPException

from commandcenter.core.pipeline_status import PIPELINE_LABELS
from commandcenter.core.registry import SourceRegistry, get_registry

router = APIRouter(prefix="/pipelines", tags=["pipelines"])


def _describe(registry: SourceRegistry, name: str) -> dict:
    info = registry.status.get(name)
    return {
        "name": name,
        "label": PIPELINE_LABELS.get(name, {}).get("name", name),
        "state": info.state.value,
        "message": info.message,
        "last_ok": info.last_ok or None,
        "using_premium_key": info.using_premium_key,
        "status_text": registry.status.status_text(name),
    }


@router.get("")
async def list_pipelines(registry: SourceRegistry = Depends(get_registry)):
    """Every known pipeline, idle ones included."""
    names = list(PIPELINE_LABELS) + [n for n in registry.status.all() if n not in PIPELINE_LABELS]
    return {"pipelines": [_describe(registry, name) for name in names]}


@router.get("/{name}")
async def get_pipeline(name: str, registry: SourceRegistry = Depends(get_registry)):
    """Status of one pipeline."""
    if name not in PIPELINE_LABELS and name not in registry.status.all():
        raise HTTPException(status_code=404, detail=f"Unknown pipeline: {name}")
    return _describe(registry, name)
