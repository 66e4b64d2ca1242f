from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

PENDING = "pending"
PROCESSING = "processing"
COMPLETED = "completed"
FAILED = "failed"

TERMINAL_STATES = (COMPLETED, FAILED)

FILE = "file"
DIRECTORY = "directory"


class FileRecord(BaseModel):
    name: str
    path: str
    size: int = 0
    kind: str = FILE
    modified: Optional[str] = None
    content: Optional[bytes] = None

    def as_json(self) -> Dict[str, Any]:
        """JSON-safe form; content is decoded as UTF-8 with replacement."""
        data = self.model_dump(exclude={"content"})
        data["content"] = self.content.decode("utf-8", errors="replace") if self.content is not None else None
        return data


class FileNode(BaseModel):
    name: str
    path: str
    size: str
    kind: str = FILE
    modified: Optional[str] = None
    children: Optional[List["FileNode"]] = None


class LayerInfo(BaseModel):
    digest: str
    size: str


class ImageConfig(BaseModel):
    created: Optional[str] = None
    architecture: Optional[str] = None
    os: Optional[str] = None
    env: List[str] = Field(default_factory=list)


class ImageMetadata(BaseModel):
    image: str
    id: Optional[str] = None
    size: int = 0
    layers: List[LayerInfo] = Field(default_factory=list)
    config: ImageConfig
    manifest: Dict[str, Any] = Field(default_factory=dict)


class InspectionResult(BaseModel):
    image: str
    path: str
    layers: List[LayerInfo] = Field(default_factory=list)
    config: ImageConfig
    files: List[FileNode] = Field(default_factory=list)
    manifest: Dict[str, Any] = Field(default_factory=dict)


class JobState(BaseModel):
    job_id: str
    image: str
    path: str
    status: str
    result: Optional[InspectionResult] = None
    error: Optional[str] = None
    created: float
    updated: Optional[float] = None

    @property
    def terminal(self) -> bool:
        return self.status in TERMINAL_STATES


FileNode.model_rebuild()
