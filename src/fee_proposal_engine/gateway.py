from __future__ import annotations

import logging
from typing import Any

import httpx
from google.cloud import secretmanager

from .models.proposal import ProposalRecord
from .rate_table import RateTable

logger = logging.getLogger(__name__)


class ProposalGatewayError(Exception):
    """Non-success response from the proposal storage API."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class AuthenticationRequiredError(ProposalGatewayError):
    """The storage API rejected the session (HTTP 401)."""


class HttpProposalGateway:
    """Loads and saves proposals through the remote storage HTTP API.

    No retries are attempted; transport errors surface as ``httpx.HTTPError``.
    """

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str | None = None,
        project_id: str | None = None,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the gateway.

        Args:
            base_url: Root URL of the storage API
            api_key: Bearer token (or fetch from Secret Manager)
            project_id: GCP project ID for Secret Manager
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        if not api_key and project_id:
            api_key = self._get_secret(project_id, "proposal-api-key")

        headers = {"Cache-Control": "no-cache", "Pragma": "no-cache"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"

        self._client = httpx.Client(base_url=base_url, headers=headers, timeout=timeout, transport=transport)

    def close(self) -> None:
        self._client.close()

    def get(self, proposal_id: str) -> ProposalRecord | None:
        """Fetch a proposal; ``None`` when the API reports it missing."""
        response = self._client.get(f"/api/proposals/{proposal_id}")
        if response.status_code == 404:
            return None
        self._raise_for_status(response, "Failed to load proposal")
        logger.info("Loaded proposal", extra={"proposal_id": proposal_id})
        return ProposalRecord.model_validate(response.json())

    def save(self, record: ProposalRecord) -> ProposalRecord:
        """POST new proposals, PUT existing ones; returns the stored record."""
        payload = record.model_dump(mode="json", by_alias=True)
        if record.is_new:
            payload.pop("id", None)
            response = self._client.post("/api/proposals", json=payload)
        else:
            response = self._client.put(f"/api/proposals/{record.id}", json=payload)
        self._raise_for_status(response, "Failed to save proposal")

        saved = ProposalRecord.model_validate(response.json())
        logger.info("Saved proposal", extra={"proposal_id": saved.id, "created": record.is_new})
        return saved

    def fetch_hourly_rates(self) -> RateTable:
        response = self._client.get("/api/hourly-rates")
        self._raise_for_status(response, "Failed to fetch hourly rates")
        table = RateTable(response.json() or [])
        logger.info("Fetched hourly rates", extra={"rate_count": len(table)})
        return table

    def _raise_for_status(self, response: httpx.Response, fallback: str) -> None:
        if response.is_success:
            return
        message = self._error_message(response) or fallback
        logger.warning(
            "Proposal API request failed",
            extra={"status_code": response.status_code, "url": str(response.request.url), "error": message},
        )
        if response.status_code == 401:
            raise AuthenticationRequiredError(response.status_code, message)
        raise ProposalGatewayError(response.status_code, message)

    @staticmethod
    def _error_message(response: httpx.Response) -> str | None:
        try:
            body: Any = response.json()
        except ValueError:
            return response.text or None
        if isinstance(body, dict):
            return body.get("message") or body.get("error")
        return None

    def _get_secret(self, project_id: str, secret_id: str) -> str:
        """Fetch secret from Secret Manager.

        Args:
            project_id: GCP project ID
            secret_id: Secret ID

        Returns:
            Secret value
        """
        client = secretmanager.SecretManagerServiceClient()
        name = f"projects/{project_id}/secrets/{secret_id}/versions/latest"
        response = client.access_secret_version(name=name)
        return response.payload.data.decode("UTF-8")


__all__ = ["AuthenticationRequiredError", "HttpProposalGateway", "ProposalGatewayError"]
