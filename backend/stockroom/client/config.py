# backend/stockroom/client/config.py
from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class ClientConfig:
    # Base URL of the stockroom server (POST {server_url}/api/changes)
    server_url: str = "http://127.0.0.1:5000"

    # Replica storage; the default keeps everything in memory
    database_url: str = "sqlite://"

    interval_seconds: float = 10.0
    request_timeout: float = 30.0

    @classmethod
    def from_env(cls, environ=None) -> "ClientConfig":
        env = os.environ if environ is None else environ
        return cls(
            server_url=env.get("SYNC_SERVER_URL", cls.server_url),
            database_url=env.get("REPLICA_DATABASE_URL", cls.database_url),
            interval_seconds=float(env.get("SYNC_INTERVAL_SECONDS", cls.interval_seconds)),
            request_timeout=float(env.get("SYNC_REQUEST_TIMEOUT", cls.request_timeout)),
        )
