"""Remote action client that forwards descriptors to an HTTP action executor."""

from __future__ import annotations

from typing import Any, Dict, Optional

import requests

from ..errors import IntegrationError
from ..models import ActionDescriptor, ActionResult
from .base import ActionClient


class HttpActionClient(ActionClient):
    """POSTs action descriptors to ``<base_url>/actions/execute``.

    The remote side answers with ``{"status": ..., "detail": ..., "metadata": {...}}``.
    """

    action_type = "remote"

    def __init__(
        self,
        *,
        base_url: str,
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._session = session or requests.Session()
        self._timeout = timeout

    def execute(self, descriptor: ActionDescriptor) -> ActionResult:
        url = f"{self._base_url}/actions/execute"
        payload = {
            "type": descriptor.type,
            "target": descriptor.target,
            "parameters": descriptor.parameters,
        }
        try:
            response = self._session.post(url, json=payload, timeout=self._timeout)
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as exc:
            raise IntegrationError(f"Action executor request failed: {exc}") from exc
        except ValueError as exc:
            raise IntegrationError("Action executor returned invalid JSON") from exc

        if not isinstance(data, dict):
            raise IntegrationError("Action executor response must be a JSON object")
        metadata: Dict[str, Any] = dict(data.get("metadata") or {})
        metadata.setdefault("url", url)
        return ActionResult(
            action_type=descriptor.type,
            status=str(data.get("status", "success")),
            detail=str(data.get("detail", "")),
            metadata=metadata,
        )
