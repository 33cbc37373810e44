"""
HTTP transfer of wafer-map images.

Images are posted to the file service that runs next to the database; the
service answers with the address under which the image can be fetched.
Only that address is stored in ``plg_wf_map``.
"""

import logging
from pathlib import Path
from typing import Optional, Protocol, Union

import httpx
import psycopg
from psycopg.conninfo import conninfo_to_dict

from ..config.constants import (
    DEFAULT_WAFER_MAP_API_PORT,
    WAFER_MAP_HEALTH_PATH,
    WAFER_MAP_HEALTH_TIMEOUT_SECONDS,
    WAFER_MAP_UPLOAD_PATH,
    WAFER_MAP_UPLOAD_TIMEOUT_SECONDS,
)
from ..config.settings import Settings

logger = logging.getLogger(__name__)

FALLBACK_HOST = "127.0.0.1"


class TransferError(Exception):
    """The file service answered, but not with a usable upload response."""

    pass


class WaferMapTransfer(Protocol):
    """File service client used by the wafer-map plugin."""

    def health_check(self, base_url: str) -> bool: ...

    def upload(
        self, base_url: str, file_path: Union[str, Path], sdwt: str, eqpid: str
    ) -> Optional[str]: ...


def derive_api_url(settings: Settings) -> str:
    """
    Base URL of the file service.

    Taken from ``wafer_map_api_url`` when configured, otherwise built from
    the PostgreSQL host and ``wafer_map_api_port``; falls back to localhost.
    """
    if settings.wafer_map_api_url:
        return settings.wafer_map_api_url.rstrip("/")

    port = settings.wafer_map_api_port or DEFAULT_WAFER_MAP_API_PORT
    if settings.postgres_dsn:
        try:
            host = conninfo_to_dict(settings.postgres_dsn).get("host") or ""
        except psycopg.Error as e:
            logger.error(f"Failed to derive API URL from DB connection: {e}")
            host = ""
        # libpq accepts a comma-separated host list
        host = str(host).split(",")[0].strip()
        if host and not host.startswith("/"):
            return f"http://{host}:{port}"

    return f"http://{FALLBACK_HOST}:{port}"


def reference_address(response: httpx.Response) -> str:
    """
    ``referenceAddress`` of a successful upload response.

    Raises:
        TransferError: If the body is not a JSON object carrying the address
    """
    try:
        payload = response.json()
    except ValueError as e:
        raise TransferError(f"Upload response is not JSON: {e}") from e

    if not isinstance(payload, dict):
        raise TransferError(f"Upload response is a JSON {type(payload).__name__}, not an object")

    reference = payload.get("referenceAddress")
    if not reference:
        raise TransferError("Upload response has no referenceAddress")
    return str(reference)


class HttpWaferMapTransfer:
    """
    `WaferMapTransfer` over httpx.

    Args:
        health_timeout: Seconds allowed for the health check
        upload_timeout: Seconds allowed for an upload
        transport: Optional httpx transport (tests pass `httpx.MockTransport`)
    """

    def __init__(
        self,
        health_timeout: float = WAFER_MAP_HEALTH_TIMEOUT_SECONDS,
        upload_timeout: float = WAFER_MAP_UPLOAD_TIMEOUT_SECONDS,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.health_timeout = health_timeout
        self.upload_timeout = upload_timeout
        self._transport = transport

    def _client(self, timeout: float) -> httpx.Client:
        return httpx.Client(timeout=timeout, transport=self._transport)

    def health_check(self, base_url: str) -> bool:
        """True when the service answers its health endpoint with 2xx."""
        try:
            with self._client(self.health_timeout) as client:
                response = client.get(f"{base_url}{WAFER_MAP_HEALTH_PATH}")
        except httpx.HTTPError as e:
            logger.error(f"Health check failed: {e}")
            return False
        return response.is_success

    def upload(
        self, base_url: str, file_path: Union[str, Path], sdwt: str, eqpid: str
    ) -> Optional[str]:
        """
        Post the image as multipart form data.

        Returns:
            The ``referenceAddress`` from the response, or None on failure
        """
        path = Path(file_path)
        try:
            with path.open("rb") as fh, self._client(self.upload_timeout) as client:
                response = client.post(
                    f"{base_url}{WAFER_MAP_UPLOAD_PATH}",
                    files={"file": (path.name, fh)},
                    data={"sdwt": sdwt, "eqpid": eqpid},
                )
        except (httpx.HTTPError, OSError) as e:
            logger.error(f"Upload exception: {e}")
            return None

        if not response.is_success:
            logger.error(f"Upload failed code: {response.status_code}")
            return None

        try:
            return reference_address(response)
        except TransferError as e:
            logger.error(str(e))
            return None
