from __future__ import annotations

from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from ...core.errors import TemplateError
from ...model.session import InMemoryModelSession
from ...templates.configuration import DateConfiguration
from ..deps import TemplateServices, get_services

router = APIRouter(prefix="/api/v1", tags=["templates"])


class PreviewRequest(BaseModel):
    configuration: DateConfiguration = Field(default_factory=DateConfiguration)
    # None => TEMPLATES_PREVIEW_ROWS
    preview_rows: Optional[int] = Field(default=None, ge=0, le=1000)


class ApplyRequest(BaseModel):
    configuration: DateConfiguration = Field(default_factory=DateConfiguration)


def _check_template_uri(configuration: DateConfiguration) -> None:
    # HTTP callers may only reference packages inside the template cache
    uri = configuration.template_uri
    if not uri or Path(uri).name != uri or uri in (".", ".."):
        raise HTTPException(status_code=400, detail="template_uri must be a template file name")


def _open_session(services: TemplateServices, name: str) -> InMemoryModelSession:
    try:
        return services.catalog.open_session(name)
    except KeyError:
        raise HTTPException(status_code=404, detail="Model not found")


@router.get("/templates")
def list_templates(services: TemplateServices = Depends(get_services)):
    cache_dir = services.cache.ensure_initialized()
    packages = services.store.load_all(cache_dir)
    return {
        "templates": [
            {
                "name": p.name,
                "description": p.description,
                "template_uri": Path(p.source).name if p.source else None,
            }
            for p in packages
        ]
    }


@router.get("/models")
def list_models(services: TemplateServices = Depends(get_services)):
    return {"models": services.catalog.names()}


@router.get("/models/{name}/templates/configuration")
def get_configuration(name: str, services: TemplateServices = Depends(get_services)):
    session = _open_session(services, name)
    try:
        cfg = DateConfiguration.read_from(session.read_committed())
    except TemplateError as exc:
        services.diagnostics.report(exc)
        raise
    if cfg is None:
        raise HTTPException(status_code=404, detail="Model has no template configuration")
    return cfg.model_dump()


@router.post("/models/{name}/templates/preview")
def preview_templates(name: str, req: PreviewRequest, services: TemplateServices = Depends(get_services)):
    _check_template_uri(req.configuration)
    session = _open_session(services, name)
    rows = services.settings.preview_rows if req.preview_rows is None else req.preview_rows

    changes = services.change_engine().preview_configuration(req.configuration, session, rows)
    return {"model": name, "preview_rows": rows, "changes": changes.to_dict()}


@router.post("/models/{name}/templates/apply")
def apply_templates(name: str, req: ApplyRequest, services: TemplateServices = Depends(get_services)):
    _check_template_uri(req.configuration)
    session = _open_session(services, name)

    result = services.change_engine().apply_configuration(req.configuration, session)
    return {"model": name, "status": "committed", "saved_objects": result.saved_objects}
