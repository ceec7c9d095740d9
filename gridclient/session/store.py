"""
Grid Store: Container Lifecycle Entry Point

Materializes, opens, describes and drops containers, and tracks the
sessions it hands out so that close() releases all of them.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from gridclient.codec.rows import CodecFactory
from gridclient.core.config import GridClientConfig
from gridclient.core.errors import ClosedError, ValidationError
from gridclient.core.types import Clock, Timestamp
from gridclient.observability.metrics import ClientMetrics
from gridclient.schema.container_info import ContainerInfo
from gridclient.schema.symbols import check_container_name
from gridclient.session.container import Container
from gridclient.storage.backend import InMemoryGridBackend
from gridclient.storage.protocols import ContainerBackend, ContainerHandle

logger = logging.getLogger(__name__)


class GridStore:
    """
    Factory for container sessions.

    Example:
        store = GridStore()
        container = await store.put_container(info)
        ...
        await store.close()
    """

    __slots__ = ("_backend", "_config", "_metrics", "_clock", "_sessions", "_closed")

    def __init__(
        self,
        backend: Optional[ContainerBackend] = None,
        config: Optional[GridClientConfig] = None,
        metrics: Optional[ClientMetrics] = None,
        clock: Clock = Timestamp.now,
    ) -> None:
        self._config = config or GridClientConfig()
        validation = self._config.validate()
        if validation.is_err():
            raise ValidationError.invalid_value("configuration", self._config, validation.error)
        self._metrics = metrics or ClientMetrics(enabled=self._config.observability.metrics_enabled)
        self._clock = clock
        self._backend = backend or InMemoryGridBackend(self._config, clock=clock, metrics=self._metrics)
        self._sessions: list[Container[Any, Any]] = []
        self._closed = False

    @property
    def backend(self) -> ContainerBackend:
        return self._backend

    @property
    def metrics(self) -> ClientMetrics:
        return self._metrics

    @property
    def open_sessions(self) -> int:
        return len(self._sessions)

    async def put_container(
        self,
        info: ContainerInfo,
        modifiable: bool = False,
        codec: Optional[CodecFactory] = None,
    ) -> Container[Any, Any]:
        """
        Create a container, or open it if it already exists with this layout.

        Args:
            info: Requested layout
            modifiable: Allow replacing the layout of an existing container
            codec: Row codec factory (default GenericRowCodec)

        Raises:
            ValidationError: invalid layout, or a different existing layout
                without ``modifiable``
        """
        self._check_open("put_container")
        handle = await self._backend.put_container(info, modifiable)
        return self._open(handle, codec)

    async def get_container(
        self,
        name: str,
        codec: Optional[CodecFactory] = None,
    ) -> Optional[Container[Any, Any]]:
        self._check_open("get_container")
        check_container_name(name).unwrap()
        handle = await self._backend.open_container(name)
        return None if handle is None else self._open(handle, codec)

    async def get_container_info(self, name: str) -> Optional[ContainerInfo]:
        """Current layout with the live index and trigger lists; None if absent."""
        self._check_open("get_container_info")
        check_container_name(name).unwrap()
        return await self._backend.get_container_info(name)

    async def drop_container(self, name: str) -> None:
        """Drop a container; absent is a no-op. Open sessions become stale."""
        self._check_open("drop_container")
        check_container_name(name).unwrap()
        if not await self._backend.drop_container(name):
            logger.debug(f"drop_container '{name}': no such container")

    async def close(self) -> None:
        """Close every session opened through this store."""
        if self._closed:
            return
        self._closed = True
        for session in list(self._sessions):
            await session.close()
        logger.debug("Grid store closed")

    async def __aenter__(self) -> GridStore:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    def _check_open(self, operation: str) -> None:
        if self._closed:
            raise ClosedError.session_closed(operation)

    def _open(self, handle: ContainerHandle, codec: Optional[CodecFactory]) -> Container[Any, Any]:
        container: Container[Any, Any] = Container(
            self._backend,
            handle,
            codec=codec,
            config=self._config,
            metrics=self._metrics,
            clock=self._clock,
            on_close=self._forget,
        )
        self._sessions.append(container)
        return container

    def _forget(self, container: Container[Any, Any]) -> None:
        if container in self._sessions:
            self._sessions.remove(container)
