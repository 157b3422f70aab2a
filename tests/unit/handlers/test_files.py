"""Tests for the file handlers and upload parsing."""

from __future__ import annotations

import base64
import json
import re
from typing import Any

import pytest
from fakes import (
    FILE_ID,
    OTHER_USER_ID,
    USER_ID,
    FakeObjectStore,
    InMemoryFileRepository,
    make_record,
)

from file_api.config import Settings
from file_api.context import Identity, RequestContext
from file_api.exceptions import (
    AppError,
    AuthenticationError,
    AuthorizationError,
    DatabaseError,
    NotFoundError,
    ValidationError,
)
from file_api.handlers.files import (
    FileHandlers,
    FileUpload,
    build_object_key,
    extract_file_id,
    parse_upload,
    validate_upload,
)

BOUNDARY = "----formboundary"


def multipart_body(file_name: str, data: bytes, mime: str, **fields: str) -> bytes:
    body = b""
    for name, value in fields.items():
        body += (
            f'--{BOUNDARY}\r\nContent-Disposition: form-data; name="{name}"\r\n\r\n{value}\r\n'
        ).encode()
    body += (
        f"--{BOUNDARY}\r\n"
        f'Content-Disposition: form-data; name="file"; filename="{file_name}"\r\n'
        f"Content-Type: {mime}\r\n\r\n"
    ).encode()
    return body + data + f"\r\n--{BOUNDARY}--\r\n".encode()


def authed(ctx: RequestContext, user_id: str = USER_ID) -> RequestContext:
    return ctx.with_identity(Identity(user_id, f"{user_id}@example.com"))


@pytest.fixture
def handlers(
    repository: InMemoryFileRepository, storage: FakeObjectStore, settings: Settings
) -> FileHandlers:
    return FileHandlers(repository, storage, settings)


class TestParseUpload:
    def test_multipart(self, make_ctx: Any) -> None:
        ctx = make_ctx(
            "POST",
            "/files",
            headers={"Content-Type": f"multipart/form-data; boundary={BOUNDARY}"},
            body=multipart_body(
                "a.txt", b"hello", "text/plain", fileName="ignored", tags='["x"]', note="hi"
            ),
        )

        upload = parse_upload(ctx)

        assert upload.file_name == "a.txt"
        assert upload.mime_type == "text/plain"
        assert upload.content == b"hello"
        assert upload.metadata == {"tags": ["x"], "note": "hi"}

    def test_multipart_without_file(self, make_ctx: Any) -> None:
        body = f'--{BOUNDARY}\r\nContent-Disposition: form-data; name="a"\r\n\r\nb\r\n--{BOUNDARY}--'
        ctx = make_ctx(
            "POST",
            "/files",
            headers={"Content-Type": f"multipart/form-data; boundary={BOUNDARY}"},
            body=body,
        )
        with pytest.raises(ValidationError, match="No file found in multipart request"):
            parse_upload(ctx)

    def test_json_base64(self, make_ctx: Any) -> None:
        payload = {
            "fileName": "data.csv",
            "fileContent": base64.b64encode(b"id,name\n1,a").decode(),
            "mimeType": "text/csv",
            "metadata": {"source": "import"},
        }
        ctx = make_ctx(
            "POST", "/files", headers={"Content-Type": "application/json"}, body=json.dumps(payload)
        )

        upload = parse_upload(ctx)

        assert upload == FileUpload("data.csv", "text/csv", b"id,name\n1,a", {"source": "import"})

    def test_json_missing_fields(self, make_ctx: Any) -> None:
        ctx = make_ctx(
            "POST", "/files", headers={"Content-Type": "application/json"}, body='{"fileName": "a"}'
        )
        with pytest.raises(ValidationError, match="Missing required fields"):
            parse_upload(ctx)

    def test_raw_body_with_headers(self, make_ctx: Any) -> None:
        ctx = make_ctx(
            "POST",
            "/files",
            headers={
                "Content-Type": "application/octet-stream",
                "X-File-Name": "my%20report.pdf",
                "X-Mime-Type": "application/pdf",
                "X-Metadata": '{"k": "v"}',
            },
            body=b"%PDF-1.4",
        )

        upload = parse_upload(ctx)

        assert upload.file_name == "my report.pdf"
        assert upload.mime_type == "application/pdf"
        assert upload.metadata == {"k": "v"}

    def test_raw_body_defaults(self, make_ctx: Any) -> None:
        upload = parse_upload(make_ctx("POST", "/files", body=b"x"))
        assert upload.file_name == "unnamed-file"
        assert upload.mime_type == "application/octet-stream"

    def test_empty_body(self, make_ctx: Any) -> None:
        with pytest.raises(ValidationError, match="No file data provided"):
            parse_upload(make_ctx("POST", "/files"))


class TestValidateUpload:
    def test_accepts_valid_upload(self) -> None:
        validate_upload(FileUpload("a.pdf", "application/pdf", b"x"), 10)

    @pytest.mark.parametrize(
        ("upload", "message"),
        [
            (FileUpload("a.pdf", "application/pdf", b""), "File is empty"),
            (FileUpload("a.exe", "application/x-msdownload", b"x"), "is not allowed"),
            (FileUpload("  ", "text/plain", b"x"), "File name is required"),
            (FileUpload("../etc/passwd", "text/plain", b"x"), "path traversal"),
            (FileUpload("a\\b.txt", "text/plain", b"x"), "path traversal"),
        ],
    )
    def test_rejects(self, upload: FileUpload, message: str) -> None:
        with pytest.raises(ValidationError, match=re.escape(message)):
            validate_upload(upload, 10)

    def test_oversized_is_payload_too_large(self) -> None:
        with pytest.raises(AppError) as exc_info:
            validate_upload(FileUpload("a.txt", "text/plain", b"x" * 11), 10)
        assert exc_info.value.status_code == 413


class TestHelpers:
    def test_object_key_is_sanitised_and_unique(self) -> None:
        a = build_object_key("u1", "my report (1).pdf")
        b = build_object_key("u1", "my report (1).pdf")
        assert re.fullmatch(r"uploads/u1/\d+-[0-9a-f]{12}-my_report__1_\.pdf", a)
        assert a != b

    def test_extract_file_id(self, make_ctx: Any) -> None:
        assert extract_file_id(make_ctx(path_params={"fileId": FILE_ID})) == FILE_ID
        assert extract_file_id(make_ctx(path_params={"id": FILE_ID})) == FILE_ID
        with pytest.raises(ValidationError, match="File ID is required"):
            extract_file_id(make_ctx())
        with pytest.raises(ValidationError, match="Invalid file ID format"):
            extract_file_id(make_ctx(path_params={"fileId": "not-a-uuid"}))


class TestListFiles:
    async def test_lists_only_own_files(
        self, handlers: FileHandlers, repository: InMemoryFileRepository, make_ctx: Any
    ) -> None:
        other = make_record("11111111-1111-4111-8111-111111111111", OTHER_USER_ID)
        repository.records[other.id] = other

        response = await handlers.list_files(authed(make_ctx("GET", "/files")))

        data = response.json()["data"]
        assert data["total"] == 1
        assert [f["id"] for f in data["files"]] == [FILE_ID]
        assert "userId" not in data["files"][0]

    async def test_limit_is_capped(
        self, handlers: FileHandlers, repository: InMemoryFileRepository, make_ctx: Any
    ) -> None:
        for n in range(120):
            record = make_record(f"22222222-2222-4222-8222-{n:012d}")
            repository.records[record.id] = record

        response = await handlers.list_files(
            authed(make_ctx("GET", "/files", query_params={"limit": "500"}))
        )

        assert len(response.json()["data"]["files"]) == 100

    @pytest.mark.parametrize(
        ("params", "message"),
        [
            ({"limit": "0"}, "Invalid limit parameter: must be a positive integer"),
            ({"limit": "abc"}, "Invalid limit parameter: must be a positive integer"),
            ({"offset": "-1"}, "Invalid offset parameter: must be a non-negative integer"),
        ],
    )
    async def test_invalid_paging(
        self, handlers: FileHandlers, make_ctx: Any, params: dict[str, str], message: str
    ) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await handlers.list_files(authed(make_ctx("GET", "/files", query_params=params)))
        assert exc_info.value.message == message

    async def test_requires_identity(self, handlers: FileHandlers, make_ctx: Any) -> None:
        with pytest.raises(AuthenticationError):
            await handlers.list_files(make_ctx("GET", "/files"))

    async def test_repository_failure(
        self, handlers: FileHandlers, repository: InMemoryFileRepository, make_ctx: Any
    ) -> None:
        repository.fail = True
        with pytest.raises(DatabaseError):
            await handlers.list_files(authed(make_ctx("GET", "/files")))


class TestGetMetadata:
    async def test_owner_gets_metadata(self, handlers: FileHandlers, make_ctx: Any) -> None:
        ctx = authed(make_ctx("GET", f"/files/{FILE_ID}", path_params={"fileId": FILE_ID}))
        data = (await handlers.get_metadata(ctx)).json()["data"]
        assert data["fileName"] == "report.pdf"
        assert data["metadata"] == {"project": "alpha"}

    async def test_missing_file(self, handlers: FileHandlers, make_ctx: Any) -> None:
        missing = "33333333-3333-4333-8333-333333333333"
        ctx = authed(make_ctx(path_params={"fileId": missing}))
        with pytest.raises(NotFoundError):
            await handlers.get_metadata(ctx)

    async def test_other_owner(self, handlers: FileHandlers, make_ctx: Any) -> None:
        ctx = authed(make_ctx(path_params={"fileId": FILE_ID}), OTHER_USER_ID)
        with pytest.raises(AuthorizationError):
            await handlers.get_metadata(ctx)


class TestPresignedUrl:
    async def test_default_expiry(
        self, handlers: FileHandlers, storage: FakeObjectStore, make_ctx: Any
    ) -> None:
        ctx = authed(make_ctx(path_params={"fileId": FILE_ID}))
        data = (await handlers.presigned_url(ctx)).json()["data"]
        assert data["expiresIn"] == 3600
        assert data["url"].startswith("https://test-bucket.s3.amazonaws.com/uploads/")
        assert storage.presigned == [(make_record().s3_key, 3600)]

    async def test_expiry_is_capped(self, handlers: FileHandlers, make_ctx: Any) -> None:
        ctx = authed(make_ctx(path_params={"fileId": FILE_ID}, query_params={"expiresIn": "9999999"}))
        data = (await handlers.presigned_url(ctx)).json()["data"]
        assert data["expiresIn"] == 604800

    async def test_other_owner_gets_no_url(
        self, handlers: FileHandlers, storage: FakeObjectStore, make_ctx: Any
    ) -> None:
        ctx = authed(make_ctx(path_params={"fileId": FILE_ID}), OTHER_USER_ID)
        with pytest.raises(AuthorizationError):
            await handlers.presigned_url(ctx)
        assert storage.presigned == []


class TestUpload:
    async def test_multipart_upload(
        self,
        handlers: FileHandlers,
        repository: InMemoryFileRepository,
        storage: FakeObjectStore,
        make_ctx: Any,
    ) -> None:
        ctx = authed(
            make_ctx(
                "POST",
                "/files",
                headers={"Content-Type": f"multipart/form-data; boundary={BOUNDARY}"},
                body=multipart_body("notes.txt", b"hello", "text/plain", project="beta"),
            )
        )

        response = await handlers.upload(ctx)

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["fileName"] == "notes.txt"
        assert data["message"] == "File uploaded successfully"
        created = repository.created[0]
        assert data["fileId"] == repository.records[data["fileId"]].id
        assert created.s3_key.startswith(f"uploads/{USER_ID}/")
        assert created.s3_bucket == "test-bucket"
        assert created.metadata == {"project": "beta"}
        stored = storage.objects[created.s3_key]
        assert stored["data"] == b"hello"
        assert stored["metadata"]["uploaded-by"] == USER_ID

    async def test_invalid_upload_stores_nothing(
        self,
        handlers: FileHandlers,
        repository: InMemoryFileRepository,
        storage: FakeObjectStore,
        make_ctx: Any,
    ) -> None:
        ctx = authed(
            make_ctx(
                "POST",
                "/files",
                headers={"X-File-Name": "../x.txt", "X-Mime-Type": "text/plain"},
                body=b"data",
            )
        )
        with pytest.raises(ValidationError):
            await handlers.upload(ctx)
        assert storage.objects == {}
        assert repository.created == []

    async def test_metadata_failure_is_database_error(
        self, handlers: FileHandlers, repository: InMemoryFileRepository, make_ctx: Any
    ) -> None:
        repository.fail = True
        ctx = authed(
            make_ctx("POST", "/files", headers={"X-Mime-Type": "text/plain"}, body=b"data")
        )
        with pytest.raises(DatabaseError, match="Failed to store file metadata"):
            await handlers.upload(ctx)
