from __future__ import annotations

import json
from typing import Optional

from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from inspector.core.cache import ResultCache
from inspector.core.config import Config, get_config
from inspector.core.db import Database
from inspector.core.errors import CapacityError, InspectorError, NotFoundError, ValidationError
from inspector.core.jobs import JobStore
from inspector.core.logging import console
from inspector.core.models import InspectionResult
from inspector.core.tree import filter_tree
from inspector.services.engine import DockerEngine
from inspector.services.images import ImageAcquirer
from inspector.services.job_manager import JobManager
from inspector.services.sandbox import Sandbox, SandboxLeases


router = APIRouter()


class Ctx:
    def __init__(self, cfg: Optional[Config] = None, engine: Optional[DockerEngine] = None):
        self.cfg: Config = cfg or get_config()
        self.db = Database(self.cfg.db_path)
        self.db.init_schema()
        self.engine = engine or DockerEngine(self.cfg.docker_bin, self.cfg.engine_timeout_sec)
        self.cache = ResultCache(self.db)
        self.jobs_store = JobStore(self.db)
        self.sandbox = Sandbox(self.engine)
        self.leases = SandboxLeases(self.sandbox)
        self.jobs = JobManager(
            self.cfg,
            self.jobs_store,
            self.cache,
            ImageAcquirer(self.engine),
            self.sandbox,
            self.leases,
        )


ctx = Ctx()


class InspectRequest(BaseModel):
    image: Optional[str] = None
    path: Optional[str] = None


@router.get("/healthz")
def healthz():
    return {"status": "ok"}


@router.get("/version")
def version():
    return {"service": "image-inspector", "config": ctx.cfg.as_dict()}


@router.post("/inspect")
def create_inspection(req: InspectRequest):
    image = (req.image or "").strip()
    if not image:
        raise HTTPException(status_code=400, detail="image is required")
    path = (req.path or "").strip() or None
    if path is not None and not path.startswith("/"):
        raise HTTPException(status_code=400, detail="path must be absolute")
    try:
        js = ctx.jobs.submit(image, path)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except CapacityError as e:
        raise HTTPException(status_code=503, detail=str(e))
    console(f"job={js.job_id} stage=submitted image={image}")
    return JSONResponse({"jobId": js.job_id, "status": js.status}, status_code=202)


@router.get("/jobs/{job_id}")
def get_status(job_id: str):
    try:
        return ctx.jobs.get_status(job_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="job not found")


@router.get("/jobs/{job_id}/result")
def get_result(job_id: str, q: Optional[str] = None):
    try:
        payload = ctx.jobs.cached_result(job_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="result not found")
    if not q:
        return JSONResponse(json.loads(payload))
    result = InspectionResult.model_validate_json(payload)
    filtered = result.model_copy(update={"files": filter_tree(result.files, q)})
    return filtered.model_dump(mode="json")


@router.get("/jobs/{job_id}/files")
def get_job_file(job_id: str, path: Optional[str] = None):
    if not path:
        raise HTTPException(status_code=400, detail="path is required")
    try:
        record = ctx.jobs.read_file(job_id, path)
    except InspectorError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return record.as_json()


@router.get("/files")
def get_file(image: Optional[str] = None, path: Optional[str] = None):
    if not image or not path:
        raise HTTPException(status_code=400, detail="image and path are required")
    try:
        record = ctx.sandbox.fetch_file(image, path)
    except InspectorError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return record.as_json()
