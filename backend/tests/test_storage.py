"""
Tests for resume file storage: URL resolution, local disk and Supabase REST.
"""
import asyncio
import json

import httpx
import pytest

from jobtrack.services.errors import InvalidReference, StorageError
from jobtrack.services.storage import LocalStorage, SupabaseStorage, resolve_storage_path


class TestResolveStoragePath:

    @pytest.mark.parametrize("url,expected", [
        ("https://abc.supabase.co/storage/v1/object/public/resumes/42/171_resume.pdf", "42/171_resume.pdf"),
        ("/uploads/resumes/42/171_resume.docx", "42/171_resume.docx"),
        ("https://abc.supabase.co/storage/v1/object/public/resumes/42/My%20CV.pdf", "42/My CV.pdf"),
        ("https://abc.supabase.co/storage/v1/object/public/resumes/42/a.pdf?t=123", "42/a.pdf"),
    ])
    def test_resolves_path_inside_bucket(self, url, expected):
        assert resolve_storage_path(url) == expected

    @pytest.mark.parametrize("url", [
        "",
        None,
        "https://cdn.example.com/files/42/resume.pdf",
        "https://abc.supabase.co/storage/v1/object/public/resumes/",
    ])
    def test_rejects_unusable_urls(self, url):
        with pytest.raises(InvalidReference):
            resolve_storage_path(url)

    def test_uses_given_bucket(self):
        url = "https://abc.supabase.co/storage/v1/object/public/cvs/9/x.pdf"
        assert resolve_storage_path(url, bucket="cvs") == "9/x.pdf"
        with pytest.raises(InvalidReference):
            resolve_storage_path(url)


class TestLocalStorage:

    def test_upload_download_delete(self, tmp_path):
        storage = LocalStorage(str(tmp_path))

        async def scenario():
            url = await storage.upload("5/1_resume.pdf", b"%PDF-1.4", "application/pdf")
            data = await storage.download(resolve_storage_path(url, storage.bucket))
            await storage.delete("5/1_resume.pdf")
            return url, data

        url, data = asyncio.run(scenario())
        assert url == "/uploads/resumes/5/1_resume.pdf"
        assert data == b"%PDF-1.4"
        assert not (tmp_path / "resumes" / "5" / "1_resume.pdf").exists()

    def test_missing_file(self, tmp_path):
        storage = LocalStorage(str(tmp_path))
        with pytest.raises(StorageError):
            asyncio.run(storage.download("5/missing.pdf"))

    def test_path_cannot_escape_root(self, tmp_path):
        storage = LocalStorage(str(tmp_path))
        with pytest.raises(StorageError):
            asyncio.run(storage.upload("../../etc/passwd", b"x", "text/plain"))


class TestSupabaseStorage:

    def _storage(self, handler):
        return SupabaseStorage(
            "https://abc.supabase.co/",
            "service-key",
            transport=httpx.MockTransport(handler),
        )

    def test_upload_returns_public_url(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["type"] = request.headers["Content-Type"]
            seen["body"] = request.content
            return httpx.Response(200, json={"Key": "resumes/5/a.pdf"})

        url = asyncio.run(self._storage(handler).upload("5/a.pdf", b"%PDF", "application/pdf"))

        assert url == "https://abc.supabase.co/storage/v1/object/public/resumes/5/a.pdf"
        assert seen["method"] == "POST"
        assert seen["url"] == "https://abc.supabase.co/storage/v1/object/resumes/5/a.pdf"
        assert seen["auth"] == "Bearer service-key"
        assert seen["type"] == "application/pdf"
        assert seen["body"] == b"%PDF"

    def test_upload_error_status(self):
        storage = self._storage(lambda request: httpx.Response(400, text="Duplicate"))
        with pytest.raises(StorageError, match="400"):
            asyncio.run(storage.upload("5/a.pdf", b"%PDF", "application/pdf"))

    def test_download(self):
        def handler(request):
            assert request.method == "GET"
            assert request.url.path == "/storage/v1/object/resumes/5/a.pdf"
            return httpx.Response(200, content=b"file-bytes")

        assert asyncio.run(self._storage(handler).download("5/a.pdf")) == b"file-bytes"

    def test_download_not_found(self):
        storage = self._storage(lambda request: httpx.Response(404, text="Object not found"))
        with pytest.raises(StorageError, match="404"):
            asyncio.run(storage.download("5/a.pdf"))

    def test_download_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(StorageError, match="connection refused"):
            asyncio.run(self._storage(handler).download("5/a.pdf"))

    def test_delete_sends_prefixes(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=[])

        asyncio.run(self._storage(handler).delete("5/a.pdf"))
        assert seen == {
            "method": "DELETE",
            "path": "/storage/v1/object/resumes",
            "body": {"prefixes": ["5/a.pdf"]},
        }
