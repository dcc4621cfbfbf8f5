"""
Utility script to generate and write the OpenAPI schema for the FastAPI app.

This script imports the FastAPI application instance and serializes its OpenAPI
schema to interfaces/openapi.json so that API clients and documentation tools
can consume a stable schema without running the server.

Usage:
    python -m task_tracker.generate_openapi [output-path]
"""
from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .main import app, openapi_tags

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT = Path("interfaces") / "openapi.json"


def _ensure_tags(schema: Dict[str, Any]) -> None:
    """
    Ensure the OpenAPI schema contains the declared tags metadata. Existing
    tag definitions are kept; missing ones are appended.
    """
    existing_tags: List[Dict[str, Any]] = schema.get("tags", []) or []
    existing_names = {t.get("name") for t in existing_tags if isinstance(t, dict)}
    for tag in openapi_tags:
        if tag.get("name") not in existing_names:
            existing_tags.append(tag)
    if existing_tags:
        schema["tags"] = existing_tags


# PUBLIC_INTERFACE
def generate_openapi(out_path: Optional[Union[str, Path]] = None) -> Path:
    """Write the OpenAPI schema file and return the written file path."""
    path = Path(out_path) if out_path is not None else DEFAULT_OUTPUT
    schema = app.openapi()
    _ensure_tags(schema)

    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(schema, f, indent=2, ensure_ascii=False)
    logger.info("Wrote OpenAPI schema to %s", path)
    return path


def main(argv: Optional[List[str]] = None) -> None:
    args = sys.argv[1:] if argv is None else argv
    generate_openapi(args[0] if args else None)


if __name__ == "__main__":
    main()
