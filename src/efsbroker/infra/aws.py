"""AWS EFS client management."""

from __future__ import annotations

import logging
from types import TracebackType
from typing import TYPE_CHECKING

import aioboto3
from botocore.config import Config as BotoConfig

from efsbroker.app.config import AwsConfig

if TYPE_CHECKING:
    from types_aiobotocore_efs import EFSClient

logger = logging.getLogger(__name__)


class EfsClientFactory:
    """Creates EFS clients from one aioboto3 session.

    Usage:
        factory = EfsClientFactory(settings.aws)
        async with factory.client() as efs:
            await efs.describe_file_systems(FileSystemId=fs_id)
    """

    def __init__(self, config: AwsConfig, session: aioboto3.Session | None = None) -> None:
        self._config = config
        self._session = session or aioboto3.Session()
        self._boto_config = BotoConfig(
            connect_timeout=config.api_timeout,
            read_timeout=config.api_timeout,
            # Retries are handled by with_retry / poll loops
            retries={"max_attempts": 1, "mode": "standard"},
        )

    def client(self) -> EfsClientContext:
        return EfsClientContext(self)

    def _create(self):
        return self._session.client(
            "efs",
            region_name=self._config.region,
            endpoint_url=self._config.endpoint_url,
            aws_access_key_id=self._config.access_key_id,
            aws_secret_access_key=self._config.secret_access_key,
            config=self._boto_config,
        )


class EfsClientContext:
    """Context manager for EFS client."""

    def __init__(self, factory: EfsClientFactory) -> None:
        self._factory = factory
        self._client: EFSClient | None = None
        self._context: object | None = None

    async def __aenter__(self) -> EFSClient:
        self._context = self._factory._create()
        self._client = await self._context.__aenter__()
        return self._client

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._context:
            await self._context.__aexit__(exc_type, exc_val, exc_tb)
