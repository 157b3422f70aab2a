"""File listing, metadata, download URL and upload handlers."""

from __future__ import annotations

import base64
import binascii
import json
import re
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from urllib.parse import unquote

from file_api.config import Settings
from file_api.context import RequestContext
from file_api.exceptions import (
    AppError,
    AuthenticationError,
    AuthorizationError,
    DatabaseError,
    ErrorKind,
    NotFoundError,
    ValidationError,
)
from file_api.logging_config import get_logger
from file_api.multipart import parse_multipart, validate_multipart_request
from file_api.response import Response, created_response, success_response
from file_api.services.repository import FileRecord, FileRepository, NewFile
from file_api.services.storage import ObjectStore

logger = get_logger(__name__)

DEFAULT_LIST_LIMIT = 50
MAX_LIST_LIMIT = 100

ALLOWED_MIME_TYPES = frozenset(
    {
        # Images
        "image/jpeg",
        "image/jpg",
        "image/png",
        "image/gif",
        "image/webp",
        "image/svg+xml",
        # Documents
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "application/vnd.ms-powerpoint",
        "application/vnd.openxmlformats-officedocument.presentationml.presentation",
        "text/plain",
        "text/csv",
        # Archives
        "application/zip",
        "application/x-zip-compressed",
        "application/x-rar-compressed",
        # Other
        "application/json",
        "application/xml",
        "text/xml",
    }
)

_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)
_UNSAFE_KEY_CHARS = re.compile(r"[^a-zA-Z0-9.-]")
_MULTIPART_RESERVED_FIELDS = frozenset({"file", "fileName", "mimeType"})


@dataclass
class FileUpload:
    file_name: str
    mime_type: str
    content: bytes
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def size(self) -> int:
        return len(self.content)


def _loads_or_text(value: str) -> Any:
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return value


def _parse_positive_int(raw: str | None, name: str, *, minimum: int) -> int | None:
    if raw is None or raw == "":
        return None
    try:
        value = int(raw)
    except ValueError:
        value = minimum - 1
    if value < minimum:
        qualifier = "a positive" if minimum >= 1 else "a non-negative"
        raise ValidationError(f"Invalid {name} parameter: must be {qualifier} integer")
    return value


def parse_upload(ctx: RequestContext) -> FileUpload:
    """Read the uploaded file from a multipart, JSON or raw binary body."""
    content_type = ctx.header("content-type") or ""

    if "multipart/form-data" in content_type.lower():
        boundary = validate_multipart_request(content_type)
        if not ctx.body:
            raise ValidationError("No request body provided")
        parsed = parse_multipart(ctx.body, boundary)
        if not parsed.files:
            raise ValidationError("No file found in multipart request")
        part = parsed.files[0]
        metadata = {
            key: _loads_or_text(value)
            for key, value in parsed.fields.items()
            if key not in _MULTIPART_RESERVED_FIELDS
        }
        return FileUpload(part.filename, part.content_type, part.data, metadata)

    if not ctx.body:
        raise ValidationError("No file data provided")

    if content_type.lower().startswith("application/json"):
        try:
            payload = json.loads(ctx.body)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise ValidationError("Invalid request body format") from exc
        if not isinstance(payload, dict) or not payload.get("fileName") or not payload.get(
            "fileContent"
        ):
            raise ValidationError("Missing required fields: fileName and fileContent")
        try:
            content = base64.b64decode(payload["fileContent"], validate=True)
        except (binascii.Error, ValueError, TypeError) as exc:
            raise ValidationError("Invalid request body format") from exc
        metadata = payload.get("metadata")
        return FileUpload(
            file_name=payload["fileName"],
            mime_type=payload.get("mimeType") or "application/octet-stream",
            content=content,
            metadata=metadata if isinstance(metadata, dict) else {},
        )

    # Raw binary body with the file description in headers or query.
    file_name = ctx.header("x-file-name") or ctx.query_params.get("fileName") or "unnamed-file"
    mime_type = (
        ctx.header("x-mime-type")
        or ctx.query_params.get("mimeType")
        or "application/octet-stream"
    )
    raw_metadata = ctx.header("x-metadata") or ctx.query_params.get("metadata")
    metadata: dict[str, Any] = {}
    if raw_metadata:
        decoded = _loads_or_text(raw_metadata)
        if isinstance(decoded, dict):
            metadata = decoded
    return FileUpload(unquote(file_name), mime_type, ctx.body, metadata)


def validate_upload(upload: FileUpload, max_bytes: int) -> None:
    if upload.size == 0:
        raise ValidationError("File is empty")

    if upload.size > max_bytes:
        raise AppError(
            ErrorKind.PAYLOAD_TOO_LARGE,
            f"File size exceeds maximum allowed size of {max_bytes // (1024 * 1024)}MB",
        )

    if upload.mime_type not in ALLOWED_MIME_TYPES:
        raise ValidationError(
            f"File type '{upload.mime_type}' is not allowed. "
            f"Allowed types: {', '.join(sorted(ALLOWED_MIME_TYPES))}"
        )

    if not upload.file_name or not upload.file_name.strip():
        raise ValidationError("File name is required")

    if ".." in upload.file_name or "/" in upload.file_name or "\\" in upload.file_name:
        raise ValidationError("Invalid file name: path traversal detected")


def build_object_key(user_id: str, file_name: str) -> str:
    """``uploads/{user}/{millis}-{random}-{sanitized name}``."""
    timestamp = int(time.time() * 1000)
    suffix = uuid.uuid4().hex[:12]
    return f"uploads/{user_id}/{timestamp}-{suffix}-{_UNSAFE_KEY_CHARS.sub('_', file_name)}"


def require_user_id(ctx: RequestContext) -> str:
    if ctx.identity is None or not ctx.identity.user_id:
        raise AuthenticationError(
            "User authentication required", kind=ErrorKind.AUTHENTICATION_REQUIRED
        )
    return ctx.identity.user_id


def extract_file_id(ctx: RequestContext) -> str:
    file_id = ctx.path_params.get("fileId") or ctx.path_params.get("id")
    if not file_id:
        raise ValidationError("File ID is required")
    if not _UUID_RE.match(file_id):
        raise ValidationError("Invalid file ID format")
    return file_id


class FileHandlers:
    """Handlers for the ``/files`` routes; each expects an authenticated context."""

    def __init__(
        self, repository: FileRepository, storage: ObjectStore, settings: Settings
    ) -> None:
        self.repository = repository
        self.storage = storage
        self.settings = settings

    async def _owned_file(self, file_id: str, user_id: str) -> FileRecord:
        try:
            record = await self.repository.find_by_id(file_id)
        except Exception as exc:
            logger.exception("File lookup failed", extra={"file_id": file_id})
            raise DatabaseError("Failed to retrieve file metadata") from exc

        if record is None:
            raise NotFoundError("File")
        if record.user_id != user_id:
            raise AuthorizationError("You do not have permission to access this file")
        return record

    async def list_files(self, ctx: RequestContext) -> Response:
        user_id = require_user_id(ctx)
        limit = _parse_positive_int(ctx.query_params.get("limit"), "limit", minimum=1)
        offset = _parse_positive_int(ctx.query_params.get("offset"), "offset", minimum=0)
        limit = min(limit or DEFAULT_LIST_LIMIT, MAX_LIST_LIMIT)
        offset = offset or 0

        try:
            records, total = await self.repository.find_by_user_paginated(user_id, limit, offset)
        except Exception as exc:
            logger.exception("Listing files failed", extra={"user_id": user_id})
            raise DatabaseError("Failed to retrieve user files") from exc

        return success_response({"files": [r.to_dict() for r in records], "total": total})

    async def get_metadata(self, ctx: RequestContext) -> Response:
        user_id = require_user_id(ctx)
        file_id = extract_file_id(ctx)
        record = await self._owned_file(file_id, user_id)
        return success_response(record.to_dict())

    async def presigned_url(self, ctx: RequestContext) -> Response:
        user_id = require_user_id(ctx)
        file_id = extract_file_id(ctx)
        expires_in = _parse_positive_int(ctx.query_params.get("expiresIn"), "expiresIn", minimum=1)
        expires_in = min(
            expires_in or self.settings.PRESIGNED_URL_EXPIRES_SECONDS,
            self.settings.PRESIGNED_URL_MAX_EXPIRES_SECONDS,
        )

        record = await self._owned_file(file_id, user_id)
        url = await self.storage.presign(
            record.s3_key, expires_in, bucket=record.s3_bucket, filename=record.file_name
        )
        logger.info(
            "Download URL issued",
            extra={"user_id": user_id, "file_id": file_id, "expires_in": expires_in},
        )
        return success_response({"url": url, "expiresIn": expires_in})

    async def upload(self, ctx: RequestContext) -> Response:
        user_id = require_user_id(ctx)
        upload = parse_upload(ctx)
        validate_upload(upload, self.settings.MAX_UPLOAD_BYTES)

        key = build_object_key(user_id, upload.file_name)
        uploaded_at = datetime.now(timezone.utc)
        await self.storage.put(
            key,
            upload.content,
            upload.mime_type,
            metadata={
                "original-filename": upload.file_name,
                "uploaded-by": user_id,
                "upload-timestamp": uploaded_at.isoformat(),
                **{k: v if isinstance(v, str) else json.dumps(v) for k, v in upload.metadata.items()},
            },
        )

        try:
            record = await self.repository.create(
                NewFile(
                    user_id=user_id,
                    file_name=upload.file_name,
                    file_size=upload.size,
                    mime_type=upload.mime_type,
                    s3_key=key,
                    s3_bucket=self.storage.bucket,
                    metadata=upload.metadata,
                )
            )
        except Exception as exc:
            logger.exception("Storing file metadata failed", extra={"s3_key": key})
            raise DatabaseError("Failed to store file metadata") from exc

        logger.info(
            "File uploaded",
            extra={"user_id": user_id, "file_id": record.id, "file_size": upload.size},
        )
        return created_response(
            {
                "fileId": record.id,
                "fileName": upload.file_name,
                "uploadedAt": uploaded_at.isoformat(),
                "message": "File uploaded successfully",
            }
        )
