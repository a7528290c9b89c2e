"""Filesystem-backed document source.

Stores each document binary at ``<root>/<organization_id>/<document_id>``
with a sidecar ``.type`` file holding the content type.  Stands in for the
external document storage collaborator in local deployments and tests.
"""

from __future__ import annotations

import asyncio
import re
from pathlib import Path

import structlog

from ragdesk.interfaces.document_source import IDocumentSource
from ragdesk.utils.errors import DocumentNotFoundError

logger = structlog.get_logger(logger_name=__name__)

_SAFE_ID_RE = re.compile(r"^[A-Za-z0-9._-]+$")


def _check_id(value: str, field: str) -> str:
    if not _SAFE_ID_RE.match(value) or value in (".", ".."):
        raise DocumentNotFoundError(
            message=f"Invalid {field}: {value!r}", provider_name="filesystem"
        )
    return value


class FilesystemDocumentSource(IDocumentSource):
    """Document binaries on local disk, partitioned by organization."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    def _path(self, document_id: str, organization_id: str) -> Path:
        return (
            self._root
            / _check_id(organization_id, "organization_id")
            / _check_id(document_id, "document_id")
        )

    async def fetch(self, document_id: str, organization_id: str) -> tuple[bytes, str | None]:
        path = self._path(document_id, organization_id)
        if not path.is_file():
            raise DocumentNotFoundError(
                message=f"No stored binary for document {document_id}",
                provider_name="filesystem",
            )
        data = await asyncio.to_thread(path.read_bytes)
        type_path = path.with_name(path.name + ".type")
        content_type = type_path.read_text().strip() if type_path.is_file() else None
        return data, content_type or None

    async def store(
        self, document_id: str, organization_id: str, data: bytes, content_type: str | None = None
    ) -> None:
        path = self._path(document_id, organization_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        await asyncio.to_thread(path.write_bytes, data)
        if content_type:
            path.with_name(path.name + ".type").write_text(content_type)
        logger.info("document_stored", document_id=document_id, size=len(data))
