# cadence/core/bus/bus_service_chassis.py
from __future__ import annotations

import asyncio
import signal
import traceback
from dataclasses import dataclass
from functools import partial
from typing import Any, Coroutine, Optional

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from .async_service import CadenceBusAsync
from .bus_schemas import BaseEnvelope, ErrorInfo, ServiceRef


@dataclass(frozen=True)
class ChassisConfig:
    service_name: str
    service_version: str
    node_name: str
    bus_url: str = "redis://localhost:6379/0"
    bus_enabled: bool = False

    heartbeat_interval_sec: float = 10.0
    connect_timeout_sec: float = 10.0
    shutdown_timeout_sec: float = 10.0

    health_channel: str = "cadence:system:health"
    error_channel: str = "cadence:system:error"


class HealthPayload(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)
    status: str = "ok"
    service: str
    node: str
    version: str
    details: dict[str, Any] = Field(default_factory=dict)


class BaseChassis:
    """
    Process shell around a service's ``_run``.

    Every long-lived task goes through ``spawn``. When an essential task
    raises or returns, the chassis logs it and stops, so the process exits
    instead of idling with its work gone. Non-essential tasks (the heartbeat)
    are only logged.
    """

    def __init__(self, cfg: ChassisConfig, *, bus: Optional[CadenceBusAsync] = None):
        self.cfg = cfg
        self.bus = bus or CadenceBusAsync(cfg.bus_url, enabled=cfg.bus_enabled)

        self._stop = asyncio.Event()
        self._tasks: list[asyncio.Task] = []
        self._started = False

    def _source(self) -> ServiceRef:
        return ServiceRef(name=self.cfg.service_name, version=self.cfg.service_version, node=self.cfg.node_name)

    def _health_details(self) -> dict[str, Any]:
        return {}

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: str, essential: bool = True) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        task.add_done_callback(partial(self._task_done, essential=essential))
        self._tasks.append(task)
        return task

    def _task_done(self, task: asyncio.Task, *, essential: bool) -> None:
        if task.cancelled():
            return
        err = task.exception()
        if err is not None:
            logger.opt(exception=err).error(f"Task {task.get_name()} failed")
        elif essential and not self._stop.is_set():
            logger.warning(f"Task {task.get_name()} exited")
        if essential:
            self._stop.set()

    async def start(self, *, install_signals: bool = True) -> None:
        if self._started:
            return
        self._started = True

        if install_signals:
            self._install_signal_handlers()

        if self.bus.enabled:
            logger.info(f"Connecting bus url={self.cfg.bus_url}")
        await asyncio.wait_for(self.bus.connect(), timeout=float(self.cfg.connect_timeout_sec or 10.0))

        if self.bus.enabled:
            self.spawn(self._heartbeat_loop(), name="cadence-heartbeat", essential=False)
        self.spawn(self._run(), name=f"{self.cfg.service_name}-run")

        await self._stop.wait()
        await self._shutdown()

    async def stop(self) -> None:
        self._stop.set()

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()

        def _handler() -> None:
            logger.warning("SIGTERM/SIGINT received: shutting down")
            self._stop.set()

        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(sig, _handler)
            except NotImplementedError:
                signal.signal(sig, lambda *_: _handler())

    async def _heartbeat_loop(self) -> None:
        while not self._stop.is_set():
            try:
                payload = HealthPayload(
                    service=self.cfg.service_name,
                    node=self.cfg.node_name or "unknown",
                    version=self.cfg.service_version,
                    details=self._health_details(),
                )
                env = BaseEnvelope(kind="system.health", source=self._source(), payload=payload.model_dump(mode="json"))
                await self.bus.publish(self.cfg.health_channel, env)
            except Exception as e:
                # bus down: log only, a system.error would fail the same way
                logger.warning(f"Heartbeat publish failed: {e}")
            await asyncio.sleep(float(self.cfg.heartbeat_interval_sec or 10.0))

    async def _publish_error(self, err: BaseException, *, when: str, details: Optional[dict[str, Any]] = None) -> None:
        if not self.bus.enabled:
            return
        try:
            info = ErrorInfo(
                type=type(err).__name__,
                message=str(err),
                stack="".join(traceback.format_exception(type(err), err, err.__traceback__)),
                details={"when": when, **(details or {})},
            )
            env = BaseEnvelope(kind="system.error", source=self._source(), payload=info.model_dump(mode="json"))
            await self.bus.publish(self.cfg.error_channel, env)
        except Exception:
            logger.exception("Failed publishing system.error")

    async def _shutdown(self) -> None:
        for t in self._tasks:
            if not t.done():
                t.cancel()
        try:
            await asyncio.wait_for(
                asyncio.gather(*self._tasks, return_exceptions=True),
                timeout=float(self.cfg.shutdown_timeout_sec or 10.0),
            )
        except asyncio.TimeoutError:
            logger.warning("Shutdown timeout waiting for tasks")

        try:
            await self.bus.close()
        except Exception:
            logger.exception("Bus close failed")

    async def _run(self) -> None:
        raise NotImplementedError
