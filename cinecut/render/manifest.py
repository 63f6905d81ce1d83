from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Sequence

MANIFEST_SUFFIX = ".manifest.json"


def manifest_path_for(output_path: str | Path) -> Path:
    output = Path(output_path)
    return output.with_name(f"{output.name}{MANIFEST_SUFFIX}")


def build_manifest(
    *,
    output_path: str | Path,
    duration_seconds: float,
    stages: Sequence[str],
    template: str | None = None,
    source_path: str | Path | None = None,
    artifacts: Mapping[str, str | Path] | None = None,
) -> dict[str, Any]:
    """Diagnostic record of one run: which stages ran and what was written besides the video."""

    return {
        "output_path": str(output_path),
        "source_path": str(source_path) if source_path is not None else None,
        "template": template,
        "duration_seconds": round(duration_seconds, 3),
        "stages": list(stages),
        "artifacts": {name: str(path) for name, path in (artifacts or {}).items()},
        "created_at": datetime.now(timezone.utc).isoformat(timespec="seconds"),
    }


def write_manifest(manifest: Mapping[str, Any], path: str | Path | None = None) -> Path:
    target = Path(path) if path is not None else manifest_path_for(manifest["output_path"])
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(manifest, indent=2, ensure_ascii=False), encoding="utf-8")
    return target


def load_manifest(path: str | Path) -> dict[str, Any]:
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise ValueError("Manifest must be a JSON object.")
    if not isinstance(payload.get("stages"), list):
        raise ValueError("Manifest is missing its 'stages' list.")
    return payload
