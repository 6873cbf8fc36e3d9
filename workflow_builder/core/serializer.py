"""Conversion between workflows and the portable JSON document."""

import json
import re
import unicodedata
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union
from urllib.parse import quote

from pydantic import ValidationError

from ..models.core import ExecutionResponse, Workflow
from .exceptions import FormatError
from .logging import get_logger

logger = get_logger(__name__)

EXPORTED_AT_KEY = "exportedAt"
RESULTS_FILENAME = "workflow-results.json"
DEFAULT_FILENAME_STEM = "workflow"

# Path separators, quotes and control characters never reach a file name
_UNSAFE_FILENAME_CHARS = re.compile(r'[\\/"\x00-\x1f\x7f]')


def _isoformat(moment: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a Z suffix."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_execution_request(workflow: Workflow) -> Dict[str, Any]:
    """Project a workflow onto the document shape sent to the execution engine."""
    return {
        "name": workflow.name,
        "description": workflow.description,
        "nodes": [node.model_dump(mode="json", by_alias=True) for node in workflow.nodes],
        "connections": [connection.model_dump(mode="json", by_alias=True) for connection in workflow.connections],
    }


def export_workflow(workflow: Workflow, exported_at: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Export a workflow as a portable document.

    Args:
        workflow: Workflow to export
        exported_at: Snapshot time, defaults to now

    Returns:
        Dict[str, Any]: Document with name, description, nodes, connections and exportedAt
    """
    document = build_execution_request(workflow)
    document[EXPORTED_AT_KEY] = _isoformat(exported_at or datetime.now(timezone.utc))
    return document


def dumps_workflow(workflow: Workflow, exported_at: Optional[datetime] = None) -> str:
    """Export a workflow as pretty-printed JSON text."""
    return json.dumps(export_workflow(workflow, exported_at), indent=2, ensure_ascii=False)


def import_workflow(document: Union[str, bytes, Dict[str, Any]]) -> Workflow:
    """
    Rebuild a workflow from a portable document.

    Missing nodes/connections default to empty lists and missing
    name/description to empty strings; ``exportedAt`` is ignored.

    Args:
        document: JSON text or an already-parsed document object

    Returns:
        Workflow: A new workflow instance

    Raises:
        FormatError: If the document is not valid JSON or not a workflow document
    """
    if isinstance(document, (str, bytes)):
        try:
            data = json.loads(document)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Rejected workflow document: not JSON ({e})")
            raise FormatError(reason=f"Not valid JSON: {e}")
    else:
        data = document

    if not isinstance(data, dict):
        logger.warning("Rejected workflow document: top level is not an object")
        raise FormatError(reason="Document must be a JSON object")

    payload = {
        "name": data.get("name") or "",
        "description": data.get("description") or "",
        "nodes": data.get("nodes") or [],
        "connections": data.get("connections") or [],
    }

    try:
        workflow = Workflow.model_validate(payload)
    except ValidationError as e:
        logger.warning(f"Rejected workflow document: {e.error_count()} validation error(s)")
        raise FormatError(reason=str(e)).add_details(
            validation_errors=[f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
        )

    logger.info(
        f"Imported workflow '{workflow.name}' with {len(workflow.nodes)} nodes "
        f"and {len(workflow.connections)} connections"
    )
    return workflow


def export_filename(workflow: Workflow) -> str:
    """
    File name offered for a downloaded export: "<name>.json", or "workflow.json".

    The name is reduced to a single path component, so separators, quotes and
    control characters become underscores and leading dots are dropped.
    """
    stem = _UNSAFE_FILENAME_CHARS.sub("_", workflow.name).strip().lstrip(".").strip()
    return f"{stem or DEFAULT_FILENAME_STEM}.json"


def content_disposition(filename: str) -> str:
    """
    Build an attachment header value that survives non-ASCII names.

    Carries an ASCII ``filename`` for old clients and the exact name as a
    percent-encoded UTF-8 ``filename*`` parameter.
    """
    fallback = unicodedata.normalize("NFKD", filename).encode("ascii", "ignore").decode("ascii")
    fallback = _UNSAFE_FILENAME_CHARS.sub("_", fallback).strip() or f"{DEFAULT_FILENAME_STEM}.json"
    if fallback == filename:
        return f'attachment; filename="{filename}"'
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


def save_workflow(workflow: Workflow, directory: Union[str, Path], exported_at: Optional[datetime] = None) -> Path:
    """Write the exported document into a directory and return the file path."""
    target = Path(directory)
    target.mkdir(parents=True, exist_ok=True)
    path = target / export_filename(workflow)
    if path.resolve().parent != target.resolve():
        raise ValueError(f"Export path {path} escapes directory {target}")
    path.write_text(dumps_workflow(workflow, exported_at), encoding="utf-8")
    logger.info(f"Exported workflow '{workflow.name}' to {path}")
    return path


def load_workflow(path: Union[str, Path]) -> Workflow:
    """
    Read a workflow document from a local file.

    Raises:
        FormatError: If the file cannot be decoded or is not a workflow document
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise FormatError(reason=f"File is not UTF-8 text: {e}")
    return import_workflow(text)


def export_results(response: ExecutionResponse) -> Dict[str, Any]:
    """Document offered as ``workflow-results.json`` after a successful run."""
    return response.model_dump(mode="json")
