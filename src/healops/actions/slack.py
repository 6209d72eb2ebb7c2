"""Slack webhook notification client."""

from __future__ import annotations

from typing import Optional

import requests

from ..errors import IntegrationError
from ..models import ActionDescriptor, ActionResult
from .base import ActionClient


class SlackNotificationClient(ActionClient):
    """Delivers ``notify_slack`` actions to an incoming webhook."""

    action_type = "notify_slack"

    def __init__(
        self,
        *,
        webhook_url: str,
        channel: str | None = None,
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
    ) -> None:
        self._webhook_url = webhook_url
        self._channel = channel
        self._session = session or requests.Session()
        self._timeout = timeout

    def execute(self, descriptor: ActionDescriptor) -> ActionResult:
        text = str(descriptor.parameters.get("message") or descriptor.target or "HealOps notification")
        payload = {"text": text}
        if self._channel:
            payload["channel"] = self._channel
        try:
            response = self._session.post(self._webhook_url, json=payload, timeout=self._timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise IntegrationError(f"Slack webhook failed: {exc}") from exc
        return ActionResult(
            action_type=self.action_type,
            status="success",
            detail="Slack notification delivered.",
            metadata={"channel": self._channel},
        )
