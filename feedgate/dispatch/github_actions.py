"""GitHub Actions workflow dispatch.

Only the fields the workflow declares as inputs are forwarded.
A 204 from the API is the one success signal.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from feedgate.config import DispatchConfig
from feedgate.contracts.request_bodies import TRIGGER_TYPES
from feedgate.errors import InputError, UpstreamAPIError

logger = logging.getLogger(__name__)

USER_AGENT = "Feedgate/1.0 (Workflow Dispatch)"
API_VERSION = "2022-11-28"


@dataclass(frozen=True)
class DispatchRequest:
    trigger_type: str
    feed_id: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "DispatchRequest":
        trigger = payload.get("trigger_type")
        if trigger not in TRIGGER_TYPES:
            raise InputError("trigger_type must be one of: " + ", ".join(TRIGGER_TYPES))
        feed_id = payload.get("feed_id")
        if feed_id is not None and not isinstance(feed_id, str):
            feed_id = str(feed_id)
        return cls(trigger_type=trigger, feed_id=feed_id or None)

    def workflow_inputs(self) -> Dict[str, str]:
        inputs = {"trigger_type": self.trigger_type}
        if self.feed_id:
            inputs["feed_id"] = self.feed_id
        return inputs


@dataclass(frozen=True)
class DispatchOutcome:
    trigger_type: str
    feed_id: Optional[str]
    repository: str
    workflow: str


class GitHubWorkflowDispatcher:
    def __init__(self, config: DispatchConfig):
        self.config = config

    @property
    def endpoint(self) -> str:
        c = self.config
        return f"{c.api_url}/repos/{c.owner}/{c.repo}/actions/workflows/{c.workflow}/dispatches"

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.token}",
            "Accept": "application/vnd.github+json",
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
            "X-GitHub-Api-Version": API_VERSION,
        }

    def dispatch(self, req: DispatchRequest) -> DispatchOutcome:
        """Fire the workflow once.

        Raises UpstreamAPIError for any non-204 answer; requests exceptions
        propagate to the caller untouched.
        """
        body = {"ref": self.config.ref, "inputs": req.workflow_inputs()}
        logger.info(f"Dispatching {self.config.workflow} on {self.config.repository} with inputs {body['inputs']}")
        resp = requests.post(
            self.endpoint,
            data=json.dumps(body),
            headers=self._headers(),
            timeout=self.config.timeout,
        )
        logger.info(f"GitHub API response status: {resp.status_code}")
        if resp.status_code == 204:
            return DispatchOutcome(
                trigger_type=req.trigger_type,
                feed_id=req.feed_id,
                repository=self.config.repository,
                workflow=self.config.workflow,
            )
        raise _upstream_error(resp)


def _upstream_error(resp: requests.Response) -> UpstreamAPIError:
    raw = resp.text or ""
    message = f"GitHub API returned status {resp.status_code}"
    details = None
    try:
        data = json.loads(raw)
    except ValueError:
        data = None
    if isinstance(data, dict):
        if data.get("message"):
            message += f": {data['message']}"
        details = data.get("errors")
        if data.get("documentation_url"):
            logger.info(f"GitHub docs: {data['documentation_url']}")
    return UpstreamAPIError(resp.status_code, message, raw_body=raw, details=details)
