# Overview: Transports that fetch changelog pulls for the replica client.

from __future__ import annotations

import logging

import httpx
from sqlalchemy.exc import SQLAlchemyError

from ..services import sync_service
from ..services.sync_service import PullResult
from .errors import TransientSyncError

logger = logging.getLogger(__name__)


class HttpTransport:
    """
    Pulls from a stockroom server over HTTP.

    Every failure to obtain a well-formed answer (connection error, timeout,
    non-2xx status, undecodable body) is a TransientSyncError.
    """

    PATH = "/api/changes"

    def __init__(self, base_url: str, *, timeout: float = 30.0, transport: httpx.BaseTransport | None = None):
        self._client = httpx.Client(base_url=base_url, timeout=timeout, transport=transport)

    def pull(self, synced_revision: int | None) -> PullResult:
        try:
            response = self._client.post(self.PATH, json={"syncedRevision": synced_revision})
        except httpx.HTTPError as exc:
            raise TransientSyncError(f"pull failed: {exc}") from exc

        if not response.is_success:
            raise TransientSyncError(f"pull failed: HTTP {response.status_code}")

        try:
            return PullResult.from_dict(response.json())
        except ValueError as exc:
            raise TransientSyncError(f"malformed pull response: {exc}") from exc

    def close(self) -> None:
        self._client.close()


class LocalTransport:
    """Pulls straight from the server's database inside a Flask app context."""

    def __init__(self, app):
        self.app = app

    def pull(self, synced_revision: int | None) -> PullResult:
        with self.app.app_context():
            try:
                return sync_service.pull(synced_revision)
            except SQLAlchemyError as exc:
                logger.warning("Local pull failed: %s", exc)
                raise TransientSyncError(f"pull failed: {exc}") from exc

    def close(self) -> None:
        pass
