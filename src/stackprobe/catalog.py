"""Loading catalog snapshots and saved detection lists from JSON files."""

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from stackprobe.errors import CatalogError, ErrorCode, invalid_catalog
from stackprobe.schemas import CatalogTool, RawDetection

logger = logging.getLogger(__name__)


def _read_json_list(path: Path, what: str) -> list:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise CatalogError(
            message=f"Failed to read {what}: {e}",
            code=ErrorCode.CATALOG_FILE_NOT_FOUND,
            catalog_path=str(path),
        ) from e

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise invalid_catalog(str(path), f"{what} is not valid JSON: {e}") from e

    # Allow the {"tools": [...]} / {"detections": [...]} wrapper form
    if isinstance(data, dict):
        data = data.get("tools", data.get("detections"))
    if not isinstance(data, list):
        raise invalid_catalog(str(path), f"{what} must be a JSON list")
    return data


def load_catalog(path: Path) -> list[CatalogTool]:
    """
    Load a catalog snapshot.

    Args:
        path: JSON file holding a list of tools (or {"tools": [...]})

    Returns:
        Tools in file order

    Raises:
        CatalogError: If the file is missing, malformed, or holds invalid tools
    """
    path = Path(path)
    data = _read_json_list(path, "catalog")
    try:
        tools = [CatalogTool.model_validate(item) for item in data]
    except ValidationError as e:
        raise invalid_catalog(str(path), str(e)) from e

    logger.info(f"Loaded {len(tools)} catalog tools from {path}")
    return tools


def load_detections(path: Path) -> list[RawDetection]:
    """
    Load a saved detection list, as written by ``stackprobe analyze --out``.

    Raises:
        CatalogError: If the file is missing or malformed
    """
    path = Path(path)
    data = _read_json_list(path, "detection list")
    try:
        return [RawDetection.model_validate(item) for item in data]
    except ValidationError as e:
        raise invalid_catalog(str(path), str(e)) from e
