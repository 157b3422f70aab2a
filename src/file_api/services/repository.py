"""File metadata persistence over an injected SQL connection."""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

Row = Mapping[str, Any]


class Database(Protocol):
    """Minimal async SQL connection (``$n`` placeholders)."""

    async def connect(self) -> None: ...

    async def query(self, sql: str, params: Sequence[Any] = ()) -> list[Row]: ...

    async def query_one(self, sql: str, params: Sequence[Any] = ()) -> Row | None: ...

    def transaction(self) -> AbstractAsyncContextManager[Database]: ...

    async def disconnect(self) -> None: ...


@dataclass(frozen=True)
class FileRecord:
    id: str
    user_id: str
    file_name: str
    file_size: int
    mime_type: str
    s3_key: str
    s3_bucket: str
    uploaded_at: datetime | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_row(cls, row: Row) -> FileRecord:
        metadata = row.get("metadata") or {}
        if isinstance(metadata, str):
            metadata = json.loads(metadata)
        return cls(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            file_name=row["file_name"],
            file_size=int(row["file_size"]),
            mime_type=row["mime_type"],
            s3_key=row["s3_key"],
            s3_bucket=row["s3_bucket"],
            uploaded_at=row.get("uploaded_at"),
            metadata=dict(metadata),
        )

    def to_dict(self) -> dict[str, Any]:
        """Client-facing shape (camelCase, no storage coordinates)."""
        return {
            "id": self.id,
            "fileName": self.file_name,
            "fileSize": self.file_size,
            "mimeType": self.mime_type,
            "uploadedAt": self.uploaded_at.isoformat() if self.uploaded_at else None,
            "metadata": self.metadata,
        }


@dataclass(frozen=True)
class NewFile:
    user_id: str
    file_name: str
    file_size: int
    mime_type: str
    s3_key: str
    s3_bucket: str
    metadata: dict[str, Any] = field(default_factory=dict)


class FileRepository(Protocol):
    async def find_by_id(self, file_id: str) -> FileRecord | None: ...

    async def find_by_user_paginated(
        self, user_id: str, limit: int, offset: int
    ) -> tuple[list[FileRecord], int]: ...

    async def create(self, new_file: NewFile) -> FileRecord: ...

    async def ping(self) -> None: ...


_COLUMNS = (
    "id, user_id, file_name, file_size, mime_type, s3_key, s3_bucket, uploaded_at, metadata"
)


class SqlFileRepository:
    """``FileRepository`` over the ``files`` table."""

    def __init__(self, db: Database) -> None:
        self._db = db

    async def find_by_id(self, file_id: str) -> FileRecord | None:
        row = await self._db.query_one(f"SELECT {_COLUMNS} FROM files WHERE id = $1", [file_id])
        return FileRecord.from_row(row) if row is not None else None

    async def find_by_user_paginated(
        self, user_id: str, limit: int, offset: int
    ) -> tuple[list[FileRecord], int]:
        count_row = await self._db.query_one(
            "SELECT COUNT(*) AS count FROM files WHERE user_id = $1", [user_id]
        )
        total = int(count_row["count"]) if count_row is not None else 0

        rows = await self._db.query(
            f"SELECT {_COLUMNS} FROM files WHERE user_id = $1 "
            "ORDER BY uploaded_at DESC LIMIT $2 OFFSET $3",
            [user_id, limit, offset],
        )
        return [FileRecord.from_row(row) for row in rows], total

    async def create(self, new_file: NewFile) -> FileRecord:
        row = await self._db.query_one(
            "INSERT INTO files "
            "(user_id, file_name, file_size, mime_type, s3_key, s3_bucket, metadata) "
            f"VALUES ($1, $2, $3, $4, $5, $6, $7) RETURNING {_COLUMNS}",
            [
                new_file.user_id,
                new_file.file_name,
                new_file.file_size,
                new_file.mime_type,
                new_file.s3_key,
                new_file.s3_bucket,
                json.dumps(new_file.metadata) if new_file.metadata else None,
            ],
        )
        if row is None:
            raise RuntimeError("Failed to create file record")
        return FileRecord.from_row(row)

    async def ping(self) -> None:
        await self._db.query_one("SELECT 1 AS ok")
