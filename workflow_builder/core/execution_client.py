"""Submission of workflows to the external execution engine."""

from typing import Any, Dict, Optional

import requests
from pydantic import ValidationError

from ..models.core import ExecutionResponse, Workflow
from .exceptions import ExecutionError, TransportError, WorkflowValidationError
from .logging import get_logger
from .serializer import build_execution_request
from .validator import validate_workflow

logger = get_logger(__name__)


def parse_execution_response(response: requests.Response, endpoint: Optional[str] = None) -> ExecutionResponse:
    """
    Turn an HTTP response from the engine into an execution trace.

    The trace may be returned as-is or wrapped in an ``{"output": ...}``
    envelope. A ``success: false`` payload, an error status, a non-JSON body
    or a body that does not fit the trace model all raise ExecutionError.
    """
    try:
        body = response.json()
    except ValueError:
        body = None

    if not response.ok:
        message = None
        if isinstance(body, dict):
            message = body.get("error") or body.get("message")
        raise ExecutionError(
            message or f"Execution engine returned HTTP {response.status_code}",
            status_code=response.status_code,
            endpoint=endpoint
        )

    if not isinstance(body, dict):
        raise ExecutionError("Execution engine returned a malformed response", status_code=response.status_code,
                             endpoint=endpoint)

    if isinstance(body.get("output"), dict) and "execution_stats" not in body:
        envelope_error = body.get("error")
        if body.get("success") is False:
            raise ExecutionError(envelope_error or "Workflow execution failed", endpoint=endpoint)
        body = body["output"]

    if body.get("success") is False:
        raise ExecutionError(body.get("error") or "Workflow execution failed", endpoint=endpoint)

    try:
        return ExecutionResponse.model_validate(body)
    except ValidationError as e:
        raise ExecutionError(
            "Execution engine returned a malformed response", endpoint=endpoint
        ).add_details(validation_errors=[err["msg"] for err in e.errors()])


class ExecutionClient:
    """Sends workflows to the execution engine; one request per call, no retries."""

    def __init__(self, engine_url: str, timeout: float = 120.0,
                 session: Optional[requests.Session] = None,
                 headers: Optional[Dict[str, str]] = None):
        """Initialize the client.

        Args:
            engine_url: Endpoint that accepts execution requests
            timeout: Seconds to wait for the engine's response
            session: Optional requests session, e.g. with auth configured
            headers: Extra headers sent with every request
        """
        self.engine_url = engine_url
        self.timeout = timeout
        self._session = session or requests.Session()
        self._headers = {"Content-Type": "application/json", **(headers or {})}

    def submit(self, workflow: Workflow) -> ExecutionResponse:
        """
        Validate a workflow and submit it for execution.

        Args:
            workflow: Workflow to execute

        Returns:
            ExecutionResponse: Trace returned by the engine

        Raises:
            WorkflowValidationError: If the workflow is not valid; nothing is sent
            ExecutionError: If the engine reports a failure
            TransportError: If the engine cannot be reached
        """
        validation = validate_workflow(workflow)
        if not validation.is_valid:
            logger.info(f"Refusing to submit workflow '{workflow.name}': {'; '.join(validation.errors)}")
            raise WorkflowValidationError(
                "Workflow is not valid for submission",
                validation_errors=validation.errors,
                workflow_name=workflow.name
            )

        return self.send(build_execution_request(workflow))

    def send(self, document: Dict[str, Any]) -> ExecutionResponse:
        """POST an execution request document to the engine."""
        logger.info(f"Submitting workflow '{document.get('name', '')}' to {self.engine_url}")

        try:
            response = self._session.post(
                self.engine_url,
                json=document,
                headers=self._headers,
                timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.warning(f"Execution request to {self.engine_url} failed: {e}")
            raise TransportError(endpoint=self.engine_url).add_details(reason=str(e))

        try:
            result = parse_execution_response(response, endpoint=self.engine_url)
        except ExecutionError as e:
            logger.warning(f"Execution engine reported an error: {e.message}")
            raise

        logger.info(
            f"Execution finished: {result.execution_stats.nodes_executed} nodes executed, "
            f"{len(result.node_results)} node results"
        )
        return result

    def close(self) -> None:
        self._session.close()
