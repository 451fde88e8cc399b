"""
Directory client — Requests sent to the directory backend.

The file upload goes over plain HTTP (multipart). Starting an analysis
or an import goes through the push channel, so that the backend streams
progress back on the same session.
"""

from typing import Any, Iterable, Optional

import httpx
import structlog

from config.settings import Settings, get_settings
from exceptions import DirectoryBackendError, OperationTimeoutError
from models.actions import ImportAction
from services.push_channel import PushChannel

logger = structlog.get_logger(__name__)

START_ANALYSIS_METHOD = "StartAnalysis"
START_IMPORT_METHOD = "StartImport"


def to_execution_payload(action: ImportAction) -> dict:
    """
    One action in the shape StartImport expects.

    The backend reads the type as a string whatever form it was
    reported in.
    """
    return {
        "RowIndex": 0,
        "ActionType": str(action.action_type),
        "Data": {
            "objectName": action.object_name,
            "path": action.path,
            "message": action.message,
            **{k: v for k, v in action.attributes.items() if k not in ("objectName", "path", "message")},
        },
        "IsValid": True,
        "ValidationErrors": [],
    }


class DirectoryClient:
    """
    Client for the directory backend.

    Usage:
        client = DirectoryClient(channel)
        await client.upload("users.csv", content, config_id, channel.connection_id)
        await client.start_analysis(config_id)
    """

    def __init__(
        self,
        channel: PushChannel,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.channel = channel
        self.settings = settings or get_settings()
        self._http_client = http_client

    def _headers(self) -> dict[str, str]:
        if self.settings.backend_api_key:
            return {"Authorization": f"Bearer {self.settings.backend_api_key}"}
        return {}

    async def upload(
        self,
        file_name: str,
        content: bytes,
        config_id: str,
        connection_id: Optional[str],
    ) -> Any:
        """
        Upload the input file for a configuration.

        The connection id ties the upload to this push session so the
        backend knows where to stream analysis progress.

        Raises:
            OperationTimeoutError: If the upload exceeds upload_timeout
            DirectoryBackendError: If the backend rejects the upload
        """
        logger.info(
            "uploading_import_file",
            file_name=file_name,
            size=len(content),
            config_id=config_id,
        )

        files = {"file": (file_name, content)}
        data = {"configId": config_id, "connectionId": connection_id or ""}
        timeout = self.settings.upload_timeout

        try:
            if self._http_client is not None:
                response = await self._http_client.post(
                    self.settings.upload_url,
                    files=files,
                    data=data,
                    headers=self._headers(),
                    timeout=timeout,
                )
            else:
                async with httpx.AsyncClient(timeout=timeout) as client:
                    response = await client.post(
                        self.settings.upload_url,
                        files=files,
                        data=data,
                        headers=self._headers(),
                    )
            response.raise_for_status()
        except httpx.TimeoutException as e:
            logger.error("upload_timed_out", file_name=file_name, timeout=timeout)
            raise OperationTimeoutError("upload", timeout) from e
        except httpx.HTTPStatusError as e:
            logger.error("upload_rejected", file_name=file_name, status_code=e.response.status_code)
            raise DirectoryBackendError(
                f"Upload failed ({e.response.status_code})",
                details={"status_code": e.response.status_code, "file_name": file_name},
            ) from e
        except httpx.HTTPError as e:
            logger.error("upload_failed", file_name=file_name, error=str(e))
            raise DirectoryBackendError(f"Upload failed: {e}", details={"file_name": file_name}) from e

        logger.info("import_file_uploaded", file_name=file_name)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    async def start_analysis(self, config: Any) -> Any:
        """Ask the backend to analyze the uploaded file (config id or object)."""
        logger.info("starting_analysis")
        return await self.channel.invoke(START_ANALYSIS_METHOD, config)

    async def start_import(self, config_id: str, actions: Iterable[ImportAction]) -> Any:
        """
        Ask the backend to execute actions.

        An empty action list means "execute the stored analysis".
        """
        payload = [to_execution_payload(action) for action in actions]
        logger.info("starting_import", config_id=config_id, actions=len(payload))
        return await self.channel.invoke(
            START_IMPORT_METHOD,
            {"ConfigId": config_id, "Actions": payload},
        )
