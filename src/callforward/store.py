"""Cursor persistence for the forwarding sequence.

The cursor is the index of the next callee.  It lives in a single Twilio Sync
document so that every webhook activation, on any worker, sees the same value;
writes carry the revision read earlier in the same leg and are dropped when
another leg got there first.  ``MemoryCursorStore`` mirrors the same contract
inside one process for local runs and tests.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from callforward.config import SyncConfig

logger = logging.getLogger(__name__)

CURSOR_FIELD = "currentIndex"


class StoreError(Exception):
    """The cursor document could not be read, created or written."""


@dataclass(frozen=True)
class CursorSnapshot:
    value: int
    revision: Optional[str] = None


def _cursor_from_data(data) -> int:
    value = data.get(CURSOR_FIELD) if isinstance(data, dict) else None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        if value is not None:
            logger.warning("Ignoring invalid stored cursor %r, treating as 0", value)
        return 0
    return value


class SyncCursorStore:
    """Cursor document kept in Twilio Sync.

    One fetch, at most one create and one re-fetch per read; writes are
    conditioned on the revision seen by that read via ``If-Match``.  Nothing is
    retried, so a slow store cannot push the webhook past the carrier's
    deadline by more than the configured request timeout.
    """

    def __init__(self, config: SyncConfig, client: httpx.AsyncClient | None = None):
        self.config = config
        self._documents_path = f"/Services/{config.service_sid}/Documents"
        if client is not None:
            self._client = client
        else:
            self._client = httpx.AsyncClient(
                base_url=config.base_url.rstrip("/"),
                auth=config.credentials,
                timeout=config.timeout,
            )

    async def close(self):
        await self._client.aclose()

    def _document_path(self, name: str) -> str:
        return f"{self._documents_path}/{name}"

    async def _fetch(self, name: str) -> Optional[CursorSnapshot]:
        resp = await self._client.get(self._document_path(name))
        if resp.status_code == 404:
            return None
        resp.raise_for_status()
        return self._snapshot(resp)

    async def _create(self, name: str) -> Optional[CursorSnapshot]:
        resp = await self._client.post(
            self._documents_path,
            data={"UniqueName": name, "Data": json.dumps({CURSOR_FIELD: 0})},
        )
        if resp.status_code == 409:
            return None
        resp.raise_for_status()
        logger.info("Created cursor document %s", name)
        return self._snapshot(resp)

    @staticmethod
    def _snapshot(resp: httpx.Response) -> CursorSnapshot:
        body = resp.json()
        revision = body.get("revision")
        return CursorSnapshot(
            value=_cursor_from_data(body.get("data")),
            revision=str(revision) if revision is not None else None,
        )

    async def get_cursor(self, session_key: str) -> CursorSnapshot:
        try:
            snapshot = await self._fetch(session_key)
            if snapshot is None:
                snapshot = await self._create(session_key)
            if snapshot is None:
                # Lost the creation race to a concurrent first leg
                logger.info("Cursor document %s created concurrently, re-fetching", session_key)
                snapshot = await self._fetch(session_key)
        except (httpx.HTTPError, ValueError) as e:
            raise StoreError(f"Failed to read cursor document {session_key}: {e}") from e

        if snapshot is None:
            raise StoreError(f"Cursor document {session_key} vanished after creation")
        return snapshot

    async def set_cursor(self, session_key: str, value: int, revision: Optional[str] = None) -> bool:
        headers = {"If-Match": revision} if revision is not None else {}
        try:
            resp = await self._client.post(
                self._document_path(session_key),
                data={"Data": json.dumps({CURSOR_FIELD: value})},
                headers=headers,
            )
            if resp.status_code == 412:
                logger.info(
                    "Cursor write to %s dropped: revision %s is stale, a concurrent leg advanced it",
                    session_key, revision,
                )
                return False
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise StoreError(f"Failed to update cursor document {session_key}: {e}") from e
        return True


class MemoryCursorStore:
    """In-process cursor store with the same revision semantics as Sync.

    Only meaningful inside a single server process; used for local development
    and tests.
    """

    def __init__(self):
        self._documents: dict[str, CursorSnapshot] = {}
        self._lock = asyncio.Lock()

    async def close(self):
        pass

    async def get_cursor(self, session_key: str) -> CursorSnapshot:
        async with self._lock:
            if session_key not in self._documents:
                self._documents[session_key] = CursorSnapshot(value=0, revision="0")
            return self._documents[session_key]

    async def set_cursor(self, session_key: str, value: int, revision: Optional[str] = None) -> bool:
        async with self._lock:
            current = self._documents.get(session_key)
            if revision is not None and current is not None and current.revision != revision:
                logger.info("Cursor write to %s dropped: revision %s is stale", session_key, revision)
                return False
            next_revision = int(current.revision) + 1 if current is not None else 0
            self._documents[session_key] = CursorSnapshot(value=value, revision=str(next_revision))
            return True


def create_store(backend: str, config: SyncConfig):
    if backend == "memory":
        logger.warning("Using in-memory cursor store; progress is lost on restart")
        return MemoryCursorStore()
    return SyncCursorStore(config)
