# tests/test_object_storage.py

import httpx
import pytest

from cityflow.config import Settings
from cityflow.core import ObjectStorageException
from cityflow.tickets.infrastructure import HTTPObjectStorage


def storage_settings(**overrides) -> Settings:
    values = dict(storage_url="https://files.test/storage/v1/", storage_bucket="ticket-attachments")
    values.update(overrides)
    return Settings(**values)


@pytest.mark.unit
class TestHTTPObjectStorage:

    async def test_upload_posts_to_bucket_path(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"Key": "ok"})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        storage = HTTPObjectStorage(storage_settings(storage_api_key="service-key"), http_client=client)

        await storage.upload("t-1/invoice.pdf", b"%PDF", "application/pdf")

        request = seen[0]
        assert request.method == "POST"
        assert str(request.url) == "https://files.test/storage/v1/object/ticket-attachments/t-1/invoice.pdf"
        assert request.headers["Authorization"] == "Bearer service-key"
        assert request.headers["apikey"] == "service-key"
        assert request.headers["Content-Type"] == "application/pdf"
        assert request.content == b"%PDF"
        await client.aclose()

    async def test_anonymous_upload_defaults_content_type(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        await HTTPObjectStorage(storage_settings(), http_client=client).upload("t-1/blob", b"x")

        assert "Authorization" not in seen[0].headers
        assert seen[0].headers["Content-Type"] == "application/octet-stream"
        await client.aclose()

    async def test_rejected_upload_raises(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(413)))
        storage = HTTPObjectStorage(storage_settings(), http_client=client)

        with pytest.raises(ObjectStorageException) as exc:
            await storage.upload("t-1/big.zip", b"0" * 10)
        assert exc.value.details["storage_path"] == "t-1/big.zip"
        await client.aclose()

    async def test_transport_error_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        with pytest.raises(ObjectStorageException):
            await HTTPObjectStorage(storage_settings(), http_client=client).upload("t-1/a.txt", b"a")
        await client.aclose()

    def test_public_url(self):
        storage = HTTPObjectStorage(storage_settings())
        assert storage.public_url("t-1/photo 1.jpg") == (
            "https://files.test/storage/v1/object/public/ticket-attachments/t-1/photo%201.jpg"
        )
