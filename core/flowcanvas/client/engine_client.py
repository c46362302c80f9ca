"""
Engine Client - async HTTP access to the workflow engine.

Implements the collaborators the core consumes: the execution query polled
by ``PollingManager`` and the node-type listing behind ``NodeTypeCatalog``,
plus the workflow run/load/save calls an editor needs.

Endpoints:
- Public API (``/api/v1``): executions
- Internal REST (``/rest``): workflows and manual runs
- Static (``/types/nodes.json``): node-type catalog
"""

import logging
from typing import Any

import httpx

from flowcanvas.config import EngineConfig
from flowcanvas.errors import EngineAPIError, ExecutionNotFoundError
from flowcanvas.graph.model import NodeTypeInfo, Workflow
from flowcanvas.runtime.execution import ExecutionRecord

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"
REST_PREFIX = "/rest"
NODE_TYPES_PATH = "/types/nodes.json"


def _looks_like_html(text: str) -> bool:
    # Misconfigured proxies answer the static path with the editor page
    head = text.lstrip()[:15].lower()
    return head.startswith(("<!doctype", "<html"))


class EngineClient:
    """
    Thin async wrapper over the engine's HTTP API.

    Usage:
        async with EngineClient(EngineConfig(base_url="http://localhost:5678")) as client:
            record = await client.fetch_execution("42")
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config or EngineConfig()
        self._http = http_client or httpx.AsyncClient(
            base_url=self.config.base_url,
            headers=self._headers,
            timeout=self.config.timeout,
            transport=transport,
        )

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            **self.config.auth_headers,
        }

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "EngineClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ── Response handling ──

    def _handle_response(self, response: httpx.Response) -> Any:
        """Return the decoded JSON body or raise ``EngineAPIError``."""
        if response.status_code >= 400:
            try:
                body = response.json()
                detail = body.get("message", response.text) if isinstance(body, dict) else body
            except ValueError:
                detail = response.text
            raise EngineAPIError(response.status_code, str(detail))
        if not response.content:
            return None
        return response.json()

    @staticmethod
    def _unwrap(body: Any) -> Any:
        # The REST API wraps payloads as {"data": ...}; the public API does not
        if isinstance(body, dict) and set(body) == {"data"}:
            return body["data"]
        return body

    # ── Executions ──

    async def fetch_execution(self, execution_id: str) -> ExecutionRecord:
        """Fetch one execution record.

        Raises:
            ExecutionNotFoundError: The engine answered 404.
            EngineAPIError: Any other HTTP error status.
        """
        response = await self._http.get(
            f"{API_PREFIX}/executions/{execution_id}", params={"includeData": "true"}
        )
        if response.status_code == 404:
            raise ExecutionNotFoundError(execution_id)
        body = self._unwrap(self._handle_response(response))
        logger.debug(f"Fetched execution {execution_id}: status={body.get('status')}")
        return ExecutionRecord.model_validate(body)

    async def list_executions(
        self,
        workflow_id: str | None = None,
        status: str | None = None,
        limit: int | None = None,
        cursor: str | None = None,
    ) -> list[ExecutionRecord]:
        params = {
            key: value
            for key, value in {
                "workflowId": workflow_id,
                "status": status,
                "limit": limit,
                "cursor": cursor,
            }.items()
            if value is not None
        }
        response = await self._http.get(f"{API_PREFIX}/executions", params=params)
        body = self._handle_response(response) or []
        items = body.get("data", []) if isinstance(body, dict) else body
        return [ExecutionRecord.model_validate(item) for item in items]

    async def delete_execution(self, execution_id: str) -> None:
        response = await self._http.delete(f"{API_PREFIX}/executions/{execution_id}")
        if response.status_code == 404:
            raise ExecutionNotFoundError(execution_id)
        self._handle_response(response)
        logger.info(f"Deleted execution {execution_id}")

    # ── Workflows ──

    async def get_workflow(self, workflow_id: str) -> Workflow:
        response = await self._http.get(f"{REST_PREFIX}/workflows/{workflow_id}")
        return Workflow.model_validate(self._unwrap(self._handle_response(response)))

    async def update_workflow(self, workflow: Workflow, force_save: bool = True) -> Workflow:
        """Persist nodes and connections; returns the engine's copy."""
        if not workflow.id:
            raise ValueError("Cannot update a workflow without an id")
        response = await self._http.patch(
            f"{REST_PREFIX}/workflows/{workflow.id}",
            params={"forceSave": "true"} if force_save else None,
            json=workflow.to_wire(),
        )
        saved = Workflow.model_validate(self._unwrap(self._handle_response(response)))
        logger.info(f"Saved workflow {saved.name} ({saved.id})")
        return saved

    async def run_workflow(
        self,
        workflow_id: str,
        workflow: Workflow | dict[str, Any] | None = None,
        *,
        start_nodes: list[str] | None = None,
        destination_node: str | None = None,
        dirty_node_names: list[str] | None = None,
    ) -> str:
        """Start a manual run and return its execution id.

        The current workflow definition is fetched when none is given.
        """
        if workflow is None:
            workflow = await self.get_workflow(workflow_id)
        workflow_data = workflow.to_wire() if isinstance(workflow, Workflow) else workflow
        if workflow_data.get("settings") is None:
            workflow_data = {k: v for k, v in workflow_data.items() if k != "settings"}

        payload: dict[str, Any] = {"workflowData": workflow_data}
        if start_nodes:
            payload["startNodes"] = start_nodes
        if destination_node:
            payload["destinationNode"] = destination_node
        if dirty_node_names:
            payload["dirtyNodeNames"] = dirty_node_names

        response = await self._http.post(f"{REST_PREFIX}/workflows/{workflow_id}/run", json=payload)
        body = self._handle_response(response) or {}
        data = body.get("data") if isinstance(body.get("data"), dict) else {}
        execution_id = (
            data.get("executionId") or data.get("id") or body.get("executionId") or body.get("id")
        )
        if execution_id is None:
            raise EngineAPIError(response.status_code, "Run response carried no execution id")
        logger.info(f"Started workflow {workflow_id} as execution {execution_id}")
        return str(execution_id)

    # ── Node types ──

    async def list_node_types(self) -> list[dict[str, Any]]:
        """Raw node-type descriptions from the engine's static listing."""
        response = await self._http.get(NODE_TYPES_PATH)
        if response.status_code < 400 and _looks_like_html(response.text):
            raise EngineAPIError(response.status_code, "Node type listing returned HTML, not JSON")
        body = self._handle_response(response) or []
        return list(body.values()) if isinstance(body, dict) else list(body)

    async def get_node_type(self, name: str) -> NodeTypeInfo | None:
        """Look up one node type; the engine has no per-type endpoint."""
        for entry in await self.list_node_types():
            if entry.get("name") == name:
                return NodeTypeInfo.model_validate(entry)
        return None
