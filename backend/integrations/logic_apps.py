"""
Azure Logic Apps Client

Reads and toggles workflow state and counts recent runs through the Azure
Resource Manager REST API. Authenticates with an app registration
(client-credentials grant); the bearer token is cached privately until five
minutes before it expires.
"""

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from integrations.base import RunCounts, SetStateResult, WorkflowClient, WorkflowState

logger = structlog.get_logger()

TOKEN_REFRESH_MARGIN_SECONDS = 300


@dataclass
class _CachedToken:
    value: str
    expires_at: float  # epoch seconds


class LogicAppClient(WorkflowClient):
    """Client for Logic Apps workflows under one subscription."""

    def __init__(
        self,
        *,
        subscription_id: str,
        tenant_id: str,
        client_id: str,
        client_secret: str,
        management_url: str = "https://management.azure.com",
        login_url: str = "https://login.microsoftonline.com",
        api_version: str = "2019-05-01",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.subscription_id = subscription_id
        self.tenant_id = tenant_id
        self.client_id = client_id
        self.client_secret = client_secret
        self.management_url = management_url.rstrip("/")
        self.login_url = login_url.rstrip("/")
        self.api_version = api_version
        self.timeout = timeout
        self._transport = transport
        self._token: _CachedToken | None = None
        self._token_lock = asyncio.Lock()
        self.logger = logger.bind(client="logic_apps", subscription_id=subscription_id)

    @classmethod
    def from_settings(cls, settings) -> "LogicAppClient":
        return cls(
            subscription_id=settings.azure_subscription_id,
            tenant_id=settings.azure_tenant_id,
            client_id=settings.azure_client_id,
            client_secret=settings.azure_client_secret,
            management_url=settings.azure_management_url,
            login_url=settings.azure_login_url,
            api_version=settings.logic_apps_api_version,
            timeout=settings.remote_timeout_seconds,
        )

    # ── HTTP plumbing ──────────────────────────────────────────────────────

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def _get_access_token(self) -> str:
        async with self._token_lock:
            if self._token and time.time() < self._token.expires_at - TOKEN_REFRESH_MARGIN_SECONDS:
                return self._token.value

            async with self._client() as client:
                response = await client.post(
                    f"{self.login_url}/{self.tenant_id}/oauth2/v2.0/token",
                    data={
                        "grant_type": "client_credentials",
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                        "scope": f"{self.management_url}/.default",
                    },
                )
                response.raise_for_status()
                payload = response.json()

            self._token = _CachedToken(
                value=payload["access_token"],
                expires_at=time.time() + int(payload.get("expires_in", 3600)),
            )
            return self._token.value

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(min=1, max=10),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        token = await self._get_access_token()
        headers = {"Authorization": f"Bearer {token}"}
        async with self._client() as client:
            return await client.request(method, url, headers=headers, **kwargs)

    def _workflow_url(self, resource_group: str, workflow_name: str) -> str:
        return (
            f"{self.management_url}/subscriptions/{self.subscription_id}"
            f"/resourceGroups/{resource_group}/providers/Microsoft.Logic/workflows/{workflow_name}"
        )

    # ── WorkflowClient ─────────────────────────────────────────────────────

    async def get_state(self, resource_group: str, workflow_name: str) -> WorkflowState | None:
        if not workflow_name:
            return None
        try:
            response = await self._request(
                "GET",
                self._workflow_url(resource_group, workflow_name),
                params={"api-version": self.api_version},
            )
            if not response.is_success:
                self.logger.warning(
                    "logic_apps.get_state_rejected",
                    workflow=workflow_name,
                    status_code=response.status_code,
                )
                return None
            return WorkflowState(response.json()["properties"]["state"])
        except (httpx.HTTPError, KeyError, ValueError) as exc:
            self.logger.error("logic_apps.get_state_failed", workflow=workflow_name, error=str(exc))
            return None

    async def set_state(self, resource_group: str, workflow_name: str, state: WorkflowState) -> SetStateResult:
        if not workflow_name:
            return SetStateResult(success=False, error="workflow name not configured")
        url = self._workflow_url(resource_group, workflow_name)
        try:
            current = await self._request("GET", url, params={"api-version": self.api_version})
            if not current.is_success:
                return SetStateResult(success=False, error=f"GET {current.status_code}: {current.text[:200]}")

            # A PUT replaces the whole resource, so the definition is echoed back.
            root = current.json()
            properties = root.get("properties", {})
            body_properties: dict[str, Any] = {
                "state": state.value,
                "definition": properties.get("definition"),
                "parameters": properties.get("parameters", {}),
            }
            integration_account = (properties.get("integrationAccount") or {}).get("id")
            if integration_account:
                body_properties["integrationAccount"] = {"id": integration_account}

            updated = await self._request(
                "PUT",
                url,
                params={"api-version": self.api_version},
                json={"location": root.get("location"), "tags": root.get("tags", {}), "properties": body_properties},
            )
            if not updated.is_success:
                self.logger.warning(
                    "logic_apps.set_state_rejected",
                    workflow=workflow_name,
                    state=state.value,
                    status_code=updated.status_code,
                )
                return SetStateResult(success=False, error=f"PUT {updated.status_code}: {updated.text[:200]}")

            self.logger.info("logic_apps.state_set", workflow=workflow_name, state=state.value)
            return SetStateResult(success=True)
        except (httpx.HTTPError, KeyError, ValueError) as exc:
            self.logger.error("logic_apps.set_state_failed", workflow=workflow_name, error=str(exc))
            return SetStateResult(success=False, error=str(exc))

    async def get_recent_runs(self, resource_group: str, workflow_name: str, minutes_back: int = 30) -> RunCounts:
        if not workflow_name:
            return RunCounts()
        since = (datetime.now(timezone.utc) - timedelta(minutes=minutes_back)).strftime("%Y-%m-%dT%H:%M:%SZ")
        url: str | None = f"{self._workflow_url(resource_group, workflow_name)}/runs"
        params: dict[str, str] | None = {"api-version": self.api_version, "$filter": f"startTime ge {since}"}

        total = 0
        failed = 0
        try:
            while url:
                response = await self._request("GET", url, params=params)
                if not response.is_success:
                    self.logger.warning(
                        "logic_apps.runs_rejected",
                        workflow=workflow_name,
                        status_code=response.status_code,
                    )
                    return RunCounts()
                payload = response.json()
                for run in payload.get("value", []):
                    total += 1
                    if run.get("properties", {}).get("status") == "Failed":
                        failed += 1
                # nextLink already carries the query string
                url = payload.get("nextLink")
                params = None
        except (httpx.HTTPError, KeyError, ValueError) as exc:
            self.logger.error("logic_apps.runs_failed", workflow=workflow_name, error=str(exc))
            return RunCounts()

        return RunCounts(total=total, failed=failed)
