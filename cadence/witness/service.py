# cadence/witness/service.py
from __future__ import annotations

import asyncio
import random
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional

from loguru import logger
from pydantic import ValidationError

from cadence.cascade import BeatError, Heart, OutputStream, StampedOutput
from cadence.cascade.layer import Generate
from cadence.core.bus.async_service import CadenceBusAsync
from cadence.core.bus.bus_schemas import BaseEnvelope
from cadence.core.bus.bus_service_chassis import BaseChassis, ChassisConfig
from cadence.core.bus.codec import LEGACY_KIND, DecodeResult
from cadence.llm.client import OllamaGenerator
from cadence.schemas.cascade import KIND_HEAD_OUTPUT_V1, KIND_STIMULUS_V1, HeadOutputV1, StimulusV1

from .journal import OutputJournal
from .settings import Settings, settings as default_settings
from .sources import HeadlineSource, clock_sensation, memory_snippet, script_snippet

Sense = Callable[[], Awaitable[Optional[str]]]

# plain JSON on the stimulus channel decodes as LEGACY_KIND
STIMULUS_KINDS = (KIND_STIMULUS_V1, LEGACY_KIND)


class WitnessService(BaseChassis):
    """
    Keeps the heart beating and fed.

    - beat loop: one cascade per interval, failed beats are skipped
    - sense loops: clock, headline, own-code and memory sensations
    - output loop: head outputs go to the journal and the bus
    - stimulus intake: bus messages on the stimulus channel are felt
    """

    def __init__(
        self,
        settings: Settings = default_settings,
        *,
        generate: Optional[Generate] = None,
        bus: Optional[CadenceBusAsync] = None,
        headlines: Optional[HeadlineSource] = None,
        rng: Optional[random.Random] = None,
    ):
        super().__init__(
            ChassisConfig(
                service_name=settings.service_name,
                service_version=settings.service_version,
                node_name=settings.node_name,
                bus_url=settings.cadence_bus_url,
                bus_enabled=settings.cadence_bus_enabled,
                heartbeat_interval_sec=settings.heartbeat_interval_sec,
                health_channel=settings.health_channel,
                error_channel=settings.error_channel,
            ),
            bus=bus,
        )
        self.settings = settings
        self._rng = rng or random.Random()

        self._llm: Optional[OllamaGenerator] = None
        if generate is None:
            self._llm = OllamaGenerator(
                settings.ollama_url,
                settings.ollama_model,
                options=settings.llm_options(),
                connect_timeout=settings.connect_timeout_sec,
                read_timeout=settings.read_timeout_sec,
                retries=settings.llm_retries,
            )
            generate = self._llm

        profile = settings.chain_profile()
        self.heart = Heart(generate, orders=profile.orders, max_batch_size=profile.max_batch_size)
        self.journal = OutputJournal(settings.journal_path)

        if headlines is None and settings.headlines_enabled:
            headlines = HeadlineSource(settings.headlines_url, rng=self._rng)
        self.headlines = headlines
        self.script_path: Path = settings.script_snippet_path or Path(__file__)
        self._beat_task: Optional[asyncio.Task] = None

    def _health_details(self) -> Dict[str, Any]:
        return {
            "beat_count": self.heart.beat_count,
            "pending": {str(layer.order): layer.pending for layer in self.heart.chain},
        }

    # ── beats ────────────────────────────────────────────

    async def beat_once(self) -> bool:
        """Run one beat; a failed beat is logged, reported and skipped."""
        task = self._beat_task = asyncio.create_task(self.heart.beat(), name="witness-beat-once")
        try:
            # a beat in flight is never aborted halfway
            beat = await asyncio.shield(task)
        except BeatError as e:
            logger.warning(f"Skipped a beat: {e}")
            await self._publish_error(e, when="witness.beat", details={"beat_count": e.beat_count, "order": e.order})
            return False
        finally:
            # still running only when this call was cancelled; _settle_beat picks it up
            if task.done() and self._beat_task is task:
                self._beat_task = None
        logger.debug(f"Witness tick beat={beat}")
        return True

    async def _settle_beat(self) -> None:
        """Wait out a beat left running by a cancelled ``beat_once``."""
        task, self._beat_task = self._beat_task, None
        if task is None:
            return
        try:
            await task
        except BeatError as e:
            logger.warning(f"Skipped a beat during shutdown: {e}")

    async def _beat_loop(self) -> None:
        interval = float(self.settings.beat_interval_sec or 1.0)
        while not self._stop.is_set():
            await self.beat_once()
            await asyncio.sleep(interval)

    # ── senses ───────────────────────────────────────────

    async def _sense_clock(self) -> Optional[str]:
        return clock_sensation()

    async def _sense_headline(self) -> Optional[str]:
        if self.headlines is None:
            return None
        return await self.headlines.fetch()

    async def _sense_script(self) -> Optional[str]:
        return await asyncio.to_thread(
            script_snippet, self.script_path, lines=self.settings.script_snippet_lines, rng=self._rng
        )

    async def _sense_memory(self) -> Optional[str]:
        return await asyncio.to_thread(memory_snippet, self.settings.journal_path, rng=self._rng)

    async def sense_once(self, name: str, sense: Sense) -> bool:
        try:
            sensation = await sense()
        except Exception as e:
            logger.error(f"Failed to fetch {name}: {e}")
            return False
        if not sensation:
            return False
        self.heart.feel(sensation)
        return True

    async def _sense_loop(self, name: str, interval: float, sense: Sense) -> None:
        while not self._stop.is_set():
            await self.sense_once(name, sense)
            await asyncio.sleep(float(interval))

    # ── outputs ──────────────────────────────────────────

    async def record_output(self, output: str, beat_count: int) -> None:
        try:
            await asyncio.to_thread(self.journal.append, output)
        except Exception as e:
            logger.error(f"Failed to append output journal {self.journal.path}: {e}")

        if not self.bus.enabled:
            return
        head = self.heart.chain.head
        payload = HeadOutputV1(
            output=output,
            beat_count=beat_count,
            layer_order=head.order,
            tick_frequency=head.tick_frequency,
        )
        env = BaseEnvelope(kind=KIND_HEAD_OUTPUT_V1, source=self._source(), payload=payload.model_dump(mode="json"))
        try:
            await self.bus.publish(self.settings.channel_head_output, env)
        except Exception as e:
            logger.error(f"Failed to publish head output: {e}")

    async def _output_loop(self, stream: OutputStream) -> None:
        item: StampedOutput
        async for item in stream:
            await self.record_output(item.output, item.beat)

    # ── bus intake ───────────────────────────────────────

    def handle_stimulus(self, data: bytes | str) -> bool:
        return self.feel_decoded(self.bus.codec.decode(data))

    def feel_decoded(self, decoded: DecodeResult) -> bool:
        if not decoded.ok:
            logger.warning(f"Stimulus decode failed error={decoded.error}")
            return False
        if decoded.envelope.kind not in STIMULUS_KINDS:
            logger.warning(f"Stimulus rejected: unexpected kind={decoded.envelope.kind}")
            return False
        try:
            stimulus = StimulusV1.model_validate(decoded.envelope.payload)
        except ValidationError as e:
            logger.warning(f"Stimulus rejected: {e.errors()}")
            return False
        self.heart.feel(stimulus.text)
        return True

    async def _stimulus_loop(self) -> None:
        channel = self.settings.channel_stimulus
        retry = float(self.settings.stimulus_retry_sec or 5.0)
        while not self._stop.is_set():
            logger.info(f"Listening for stimuli channel={channel}")
            try:
                async for decoded in self.bus.listen(channel):
                    self.feel_decoded(decoded)
            except Exception as e:
                logger.error(f"Stimulus feed failed channel={channel}: {e}; resubscribing in {retry}s")
                await self._publish_error(e, when="witness.stimulus", details={"channel": channel})
            await asyncio.sleep(retry)

    # ── lifecycle ────────────────────────────────────────

    async def _close_clients(self) -> None:
        for closer in (self._llm, self.headlines):
            if closer is None:
                continue
            try:
                await closer.aclose()
            except Exception:
                logger.exception("Client close failed")

    async def _run(self) -> None:
        logger.info("Witness started")
        s = self.settings
        stream = self.heart.stamped_stream()
        tasks: List[asyncio.Task] = [
            asyncio.create_task(self._output_loop(stream), name="witness-output"),
            asyncio.create_task(self._beat_loop(), name="witness-beat"),
            asyncio.create_task(self._sense_loop("clock", s.clock_interval_sec, self._sense_clock), name="sense-clock"),
            asyncio.create_task(
                self._sense_loop("script snippets", s.script_snippet_interval_sec, self._sense_script),
                name="sense-script",
            ),
            asyncio.create_task(
                self._sense_loop("memory snippets", s.memory_snippet_interval_sec, self._sense_memory),
                name="sense-memory",
            ),
        ]
        if self.headlines is not None:
            tasks.append(
                asyncio.create_task(
                    self._sense_loop("headlines", s.headlines_interval_sec, self._sense_headline),
                    name="sense-headlines",
                )
            )
        if self.bus.enabled:
            tasks.append(asyncio.create_task(self._stimulus_loop(), name="witness-stimulus"))

        try:
            await asyncio.gather(*tasks)
        finally:
            stream.close()
            for t in tasks:
                t.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            await self._settle_beat()
            await self._close_clients()
