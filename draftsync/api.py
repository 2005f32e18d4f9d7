"""API client for the encounter draft endpoints."""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from .config import config
from .exceptions import (
    DraftAPIError,
    DraftAuthenticationError,
    DraftConfigError,
    DraftInvalidResponseError,
    DraftNetworkError,
    DraftNotFoundError,
    DraftPermissionError,
    DraftRateLimitError,
    DraftSerializationError,
)

logger = logging.getLogger(__name__)

# (field name, (filename, content, content type))
Attachment = tuple[str, tuple[str, bytes, str]]


class DraftClient:
    """Async client for saving and loading encounter drafts.

    The client performs exactly one request per call; retry policy is
    owned by the auto-save engine.
    """

    def __init__(
        self,
        api_key: str | None = None,
        api_url: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize draft API client.

        Args:
            api_key: Optional API key (uses config if not provided)
            api_url: Optional API base URL (uses config if not provided)
            timeout: Request timeout in seconds (default: 30.0)
            transport: Optional httpx transport, mainly for tests
        """
        self.api_key = api_key or config.api_key
        self.api_url = (api_url or config.api_url or "").rstrip("/")
        self.timeout = timeout
        self._transport = transport

        if not self.api_url:
            raise DraftConfigError(
                "API URL not configured. Please set DRAFTSYNC_API_URL "
                "environment variable."
            )

        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            headers = {"Accept": "application/json"}
            if self.api_key:
                headers["Authorization"] = f"Bearer {self.api_key}"
            self._client = httpx.AsyncClient(
                headers=headers,
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        """Close the client and release connections."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> DraftClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    def _handle_http_error(self, e: httpx.HTTPStatusError) -> DraftAPIError:
        """Map an HTTP error response onto the draftsync exception hierarchy.

        Args:
            e: The HTTP error exception

        Returns:
            Exception to raise
        """
        status_code = e.response.status_code

        if status_code == 401:
            return DraftAuthenticationError(
                "Invalid API key or unauthorized access", status_code
            )
        elif status_code == 403:
            return DraftPermissionError(
                "Access forbidden - check your permissions", status_code
            )
        elif status_code == 404:
            return DraftNotFoundError("Encounter not found", status_code)
        elif status_code == 429:
            retry_after = e.response.headers.get("Retry-After", "")
            delay = float(retry_after) if retry_after.isdigit() else None
            return DraftRateLimitError(
                "Rate limit exceeded - please try again later", retry_after=delay
            )

        error_msg = f"API request failed with status {status_code}"

        # Try to extract more details from response body
        try:
            if e.response.content:
                error_data = e.response.json()
                if isinstance(error_data, dict):
                    msg = (
                        error_data.get("message")
                        or error_data.get("error")
                        or error_data.get("detail")
                    )
                    if msg:
                        error_msg = f"{error_msg}: {msg}"
        except ValueError:
            # Not JSON, keep the status-based message
            pass

        return DraftAPIError(error_msg, status_code)

    async def _request(
        self, method: str, endpoint: str, expect_json: bool = True, **kwargs: Any
    ) -> Any:
        """Make a single API request.

        Args:
            method: HTTP method
            endpoint: API endpoint path
            expect_json: Reject 2xx bodies that are not JSON. When False, such
                bodies are ignored and {} is returned.
            **kwargs: Additional arguments passed to httpx

        Returns:
            Response JSON data ({} for an empty or ignored body)

        Raises:
            DraftAPIError: If the request fails for any reason
        """
        url = f"{self.api_url}/{endpoint.lstrip('/')}"
        client = self._get_client()

        try:
            response = await client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise self._handle_http_error(e) from e
        except httpx.RequestError as e:
            raise DraftNetworkError(f"Network error: {e}") from e

        if not response.content:
            return {}

        content_type = response.headers.get("Content-Type", "")
        if "application/json" not in content_type:
            if not expect_json:
                logger.debug(f"Ignoring {content_type or 'untyped'} response body")
                return {}
            # An HTML page usually means a proxy or login redirect
            raise DraftInvalidResponseError(
                f"Unexpected response type: {content_type or 'unknown'}",
                response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            if not expect_json:
                return {}
            raise DraftInvalidResponseError(
                "Invalid JSON response from server", response.status_code
            ) from e

    # =========================
    # Draft Operations
    # =========================

    async def save_draft(
        self,
        encounter_id: int,
        auto_save_data: dict[str, Any],
        attachments: list[Attachment] | None = None,
    ) -> dict[str, Any]:
        """Save a draft as a multipart form.

        Args:
            encounter_id: Numeric encounter identifier
            auto_save_data: Text fields, JSON-encoded into the autoSaveData part
            attachments: Binary parts as (field, (filename, content, type))

        Returns:
            Server acknowledgement (e.g. {"success": true, "savedAt": ...}),
            or {} when the server answers 2xx without a JSON body

        Raises:
            DraftSerializationError: If auto_save_data cannot be JSON-encoded
            DraftAPIError: If the save fails
        """
        try:
            encoded = json.dumps(auto_save_data).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise DraftSerializationError(f"Cannot encode draft: {e}") from e

        # Text fields are sent as filename-less parts so the body is always
        # multipart/form-data, even without attachments.
        parts: list[tuple[str, Any]] = [
            ("encounterId", (None, str(encounter_id).encode("utf-8"))),
            ("autoSaveData", (None, encoded)),
        ]
        parts.extend(attachments or [])

        logger.debug(
            "POST auto-save for encounter %s with %d attachment(s)",
            encounter_id,
            len(attachments or []),
        )
        result: dict[str, Any] = await self._request(
            "POST", "/encounters/auto-save", expect_json=False, files=parts
        )
        return result

    async def load_draft(self, encounter_id: int) -> dict[str, Any] | None:
        """Load the server copy of a draft.

        Args:
            encounter_id: Numeric encounter identifier

        Returns:
            The autoSaveData object, or None if the server has none

        Raises:
            DraftAPIError: If the request fails
        """
        response = await self._request("GET", f"/encounters/{encounter_id}/auto-save")
        if not isinstance(response, dict):
            raise DraftInvalidResponseError("Expected a JSON object from server")
        data = response.get("autoSaveData")
        if data is None:
            return None
        if not isinstance(data, dict):
            raise DraftInvalidResponseError("autoSaveData must be a JSON object")
        return data
