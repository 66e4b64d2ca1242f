from __future__ import annotations

from pathlib import Path
from typing import Optional

from inspector.core.errors import AcquisitionError, EngineError, ValidationError
from inspector.core.logging import console, log_line
from inspector.core.models import ImageConfig, ImageMetadata, LayerInfo
from inspector.core.sizes import format_size
from inspector.services.engine import DockerEngine


def parse_metadata(ref: str, doc: dict) -> ImageMetadata:
    """Build ImageMetadata from an engine inspect document.

    Image inspect carries no per-layer sizes, so each layer is reported with
    an even share of the total image size.
    """
    try:
        layers = list(doc["RootFS"]["Layers"] or [])
        total = int(doc.get("Size") or 0)
        cfg = doc.get("Config") or {}
        env = list(cfg.get("Env") or [])
        share = format_size(total / len(layers)) if layers else format_size(0)
        return ImageMetadata(
            image=ref,
            id=doc.get("Id"),
            size=total,
            layers=[LayerInfo(digest=str(d), size=share) for d in layers],
            config=ImageConfig(
                created=doc.get("Created"),
                architecture=doc.get("Architecture"),
                os=doc.get("Os"),
                env=[str(e) for e in env],
            ),
            manifest=doc,
        )
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise AcquisitionError(f"malformed manifest for {ref}: {e}") from e


class ImageAcquirer:
    def __init__(self, engine: DockerEngine):
        self.engine = engine

    def acquire(self, ref: str, log_path: Optional[Path] = None) -> ImageMetadata:
        """Make sure ``ref`` is present locally (pulling it if needed) and inspect it."""
        ref = (ref or "").strip()
        if not ref:
            raise ValidationError("image reference is required")
        try:
            doc = self.engine.inspect_image(ref)
            if doc is None:
                log_line(log_path, f"pull {ref}")
                console(f"image={ref} stage=pull")
                self.engine.pull(ref)
                doc = self.engine.inspect_image(ref)
        except EngineError as e:
            raise AcquisitionError(str(e)) from e
        if doc is None:
            raise AcquisitionError(f"image not available after pull: {ref}")
        meta = parse_metadata(ref, doc)
        log_line(log_path, f"inspected {ref} layers={len(meta.layers)} size={meta.size}")
        return meta
