"""
Tests for directory_client — Upload over HTTP and hub invocations.
"""

import httpx
import pytest

from exceptions import DirectoryBackendError, OperationTimeoutError
from models.actions import ActionType, ImportAction
from services.directory_client import (
    START_ANALYSIS_METHOD,
    START_IMPORT_METHOD,
    DirectoryClient,
    to_execution_payload,
)
from services.push_channel import PushChannel
from tests.conftest import FakeTransport


def _client(fast_settings, handler, transport=None):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    channel = PushChannel(fast_settings, transport or FakeTransport())
    return DirectoryClient(channel, fast_settings, http_client)


class TestExecutionPayload:
    """Tests for to_execution_payload()."""

    def test_legacy_shape(self):
        action = ImportAction(
            action_type=ActionType.CREATE_USER,
            object_name="jean.dupont",
            path="OU=Eleves",
            message="New user",
            attributes={"mail": "jean.dupont@lycee.fr"},
        )
        payload = to_execution_payload(action)

        assert payload == {
            "RowIndex": 0,
            "ActionType": "CREATE_USER",
            "Data": {
                "objectName": "jean.dupont",
                "path": "OU=Eleves",
                "message": "New user",
                "mail": "jean.dupont@lycee.fr",
            },
            "IsValid": True,
            "ValidationErrors": [],
        }

    def test_numeric_type_is_sent_as_string(self):
        payload = to_execution_payload(ImportAction(action_type=1))
        assert payload["ActionType"] == "1"


class TestUpload:
    """Tests for DirectoryClient.upload()."""

    async def test_upload_posts_multipart(self, fast_settings):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = request.content
            return httpx.Response(200, json={"fileId": "f-1"})

        client = _client(fast_settings, handler)
        result = await client.upload("users.csv", b"prenom;nom", "config-1", "conn-1")

        assert result == {"fileId": "f-1"}
        assert seen["url"] == "http://directory.test/api/import/upload"
        assert b"users.csv" in seen["body"]
        assert b"conn-1" in seen["body"]

    async def test_empty_response(self, fast_settings):
        client = _client(fast_settings, lambda request: httpx.Response(204))
        assert await client.upload("users.csv", b"", "config-1", None) is None

    async def test_rejected_upload(self, fast_settings):
        client = _client(fast_settings, lambda request: httpx.Response(500, text="boom"))

        with pytest.raises(DirectoryBackendError) as exc_info:
            await client.upload("users.csv", b"", "config-1", None)
        assert exc_info.value.details["status_code"] == 500

    async def test_timeout(self, fast_settings):
        def handler(request):
            raise httpx.ReadTimeout("too slow", request=request)

        client = _client(fast_settings, handler)
        with pytest.raises(OperationTimeoutError) as exc_info:
            await client.upload("users.csv", b"", "config-1", None)
        assert exc_info.value.details["operation"] == "upload"

    async def test_network_error(self, fast_settings):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        client = _client(fast_settings, handler)
        with pytest.raises(DirectoryBackendError):
            await client.upload("users.csv", b"", "config-1", None)


class TestHubMethods:
    """Tests for start_analysis() / start_import()."""

    async def test_start_analysis(self, fast_settings):
        transport = FakeTransport()
        client = _client(fast_settings, lambda request: httpx.Response(200), transport)

        await client.start_analysis("config-1")

        assert transport.invoked(START_ANALYSIS_METHOD) == [("config-1",)]
        await client.channel.stop()

    async def test_start_import(self, fast_settings):
        transport = FakeTransport()
        client = _client(fast_settings, lambda request: httpx.Response(200), transport)

        await client.start_import("config-1", [ImportAction(action_type="CREATE_OU", object_name="OU=6A")])

        invocations = transport.invoked(START_IMPORT_METHOD)
        payload = invocations[0][0]
        assert len(invocations) == 1
        assert payload["ConfigId"] == "config-1"
        assert payload["Actions"][0]["ActionType"] == "CREATE_OU"
        await client.channel.stop()
