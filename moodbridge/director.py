"""The analysis engine and its fixed-interval scheduler.

A :class:`Director` owns everything with memory: the event log, the section
and style state machines, and the active configuration.  Input adapters call
:meth:`Director.record` (or the ``ingest_*`` helpers); every ``hop_ms`` the
run loop calls :meth:`Director.tick`, which recomputes features from the
current window and publishes the output packets.

Ticks run to completion on the event loop thread without awaiting, so event
ingestion (also on the loop thread) can never interleave with a tick.  If a
tick overruns and the loop falls behind, the missed deadlines are skipped
rather than replayed back-to-back.

Published packets
─────────────────
- ``{"type": "director", energy, valence, key, isMinor, section, conf}``
- ``{"type": "ai_control", style, intensity, feat}``

Subscribe with ``director.on_packet(callback)``; each packet is a plain dict
ready for ``json.dumps``.
"""

import asyncio
import dataclasses
import logging
import time
import typing

import moodbridge.config
import moodbridge.event_emitter
import moodbridge.events
import moodbridge.features
import moodbridge.section_state
import moodbridge.style_state
import moodbridge.tonal


logger = logging.getLogger(__name__)

PACKET_EVENT = "packet"


@dataclasses.dataclass(frozen=True)
class TickResult:

	"""Everything one tick computed, including the packets it published."""

	timestamp: float
	features: moodbridge.features.FeatureSnapshot
	tonal: moodbridge.tonal.TonalEstimate
	section: moodbridge.section_state.Section
	style: moodbridge.style_state.StyleDecision
	packets: typing.List[typing.Dict[str, typing.Any]]


def director_packet (tonal: moodbridge.tonal.TonalEstimate, section: moodbridge.section_state.Section) -> typing.Dict[str, typing.Any]:

	return {
		"type": "director",
		"energy": tonal.energy,
		"valence": tonal.valence,
		"key": tonal.key_root,
		"isMinor": tonal.is_minor,
		"section": int(section),
		"conf": tonal.confidence,
	}


def ai_control_packet (decision: moodbridge.style_state.StyleDecision, features: moodbridge.features.FeatureSnapshot) -> typing.Dict[str, typing.Any]:

	return {
		"type": "ai_control",
		"style": decision.style.value,
		"intensity": decision.intensity,
		"feat": features.to_dict(),
	}


class Director:

	"""Real-time performance analysis engine."""

	def __init__ (
		self,
		config: typing.Optional[moodbridge.config.AnalysisConfig] = None,
		outputs: typing.Optional[moodbridge.config.OutputConfig] = None,
		clock: typing.Callable[[], float] = time.monotonic
	) -> None:

		"""
		Create an independent engine instance.

		Parameters:
			config: Window, hop, hold-time, threshold and profile constants.
			outputs: Which packet channels to publish.
			clock: Monotonic time source in seconds. Tests pass a manual clock.
		"""

		self.config = config if config is not None else moodbridge.config.AnalysisConfig()
		self.outputs = outputs if outputs is not None else moodbridge.config.OutputConfig()
		self._clock = clock

		started = self._clock()

		self.log = moodbridge.events.EventLog(self.config.window_ms, self.config.grace_ms)
		self.section_machine = moodbridge.section_state.SectionStateMachine(self.config.section)
		self.style_machine = moodbridge.style_state.StyleStateMachine(self.config.style, now_ms=started * 1000.0)
		self.events = moodbridge.event_emitter.EventEmitter()

		self.running = False
		self.task: typing.Optional[asyncio.Task] = None
		self.tick_count = 0
		self.skipped_ticks = 0
		self.last_result: typing.Optional[TickResult] = None
		self._last_tick_time = started

	def now (self) -> float:
		return self._clock()

	def on_packet (self, callback: typing.Callable[..., typing.Any]) -> None:

		"""Subscribe to every packet published by :meth:`tick`."""

		self.events.on(PACKET_EVENT, callback)

	# Ingestion

	def record (self, event: moodbridge.events.PerformanceEvent) -> None:
		self.log.record(event)

	def ingest_osc (self, address: str, args: typing.Sequence[typing.Any]) -> typing.Optional[moodbridge.events.PerformanceEvent]:

		"""Decode and record an OSC message, stamped now. Returns the event, or None if it was not one."""

		event = moodbridge.events.from_osc(address, args, self.now())

		if event is not None:
			self.record(event)

		return event

	def ingest_midi (self, message: typing.Any) -> typing.Optional[moodbridge.events.PerformanceEvent]:

		"""Decode and record a mido message, stamped now."""

		event = moodbridge.events.from_midi(message, self.now())

		if event is not None:
			self.record(event)

		return event

	def configure (
		self,
		config: moodbridge.config.AnalysisConfig,
		outputs: typing.Optional[moodbridge.config.OutputConfig] = None
	) -> None:

		"""
		Apply a reloaded configuration from the next tick onwards.

		Buffered events and the state machines' timers are kept; only the
		constants they are compared against change.
		"""

		self.config = config
		self.log.window_ms = config.window_ms
		self.log.grace_ms = config.grace_ms
		self.section_machine.config = config.section
		self.style_machine.config = config.style

		if outputs is not None:
			self.outputs = outputs

		logger.info(f"Director reconfigured: window {config.window_ms:g}ms, hop {config.hop_ms:g}ms")

	# Analysis

	def tick (self, now: typing.Optional[float] = None) -> TickResult:

		"""
		Run one analysis step and publish its packets.

		Parameters:
			now: Tick time in seconds; defaults to the engine clock.
		"""

		if now is None:
			now = self.now()

		dt_ms = max(0.0, (now - self._last_tick_time) * 1000.0)
		self._last_tick_time = now

		config = self.config

		self.log.trim(now)
		window = self.log.window(now, config.window_ms)

		features = moodbridge.features.extract(window, config.window_ms / 1000.0)

		tonal = moodbridge.tonal.estimate(
			moodbridge.features.notes_in(window),
			features.density,
			features.velocity_mean,
			features.bend_rms,
			config.profiles
		)

		section = self.section_machine.update(tonal.energy, features.unique_pitch_count, dt_ms)
		style = self.style_machine.update(features, now * 1000.0)

		packets: typing.List[typing.Dict[str, typing.Any]] = []

		if self.outputs.director:
			packets.append(director_packet(tonal, section))

		if self.outputs.ai_control:
			packets.append(ai_control_packet(style, features))

		for packet in packets:
			self.events.emit(PACKET_EVENT, packet)

		self.tick_count += 1
		self.last_result = TickResult(
			timestamp = now,
			features = features,
			tonal = tonal,
			section = section,
			style = style,
			packets = packets
		)

		return self.last_result

	# Scheduling

	async def start (self) -> None:

		"""Start ticking every ``hop_ms`` in a background task."""

		if self.running:
			return

		self.running = True
		self._last_tick_time = self.now()
		self.task = asyncio.create_task(self._run_loop())

		logger.info(f"Director started (window {self.config.window_ms:g}ms, hop {self.config.hop_ms:g}ms)")

	async def stop (self) -> None:

		"""Stop ticking and drop any buffered events."""

		if not self.running:
			return

		self.running = False

		if self.task:
			self.task.cancel()
			try:
				await self.task
			except asyncio.CancelledError:
				pass
			self.task = None

		self.log.clear()

		logger.info("Director stopped")

	async def _run_loop (self) -> None:

		next_tick = self.now() + self.config.hop_ms / 1000.0

		while self.running:

			delay = next_tick - self.now()

			if delay > 0:
				await asyncio.sleep(delay)

			self.tick()

			hop = self.config.hop_ms / 1000.0
			next_tick += hop
			now = self.now()

			if now >= next_tick:
				missed = int((now - next_tick) // hop) + 1
				next_tick += missed * hop
				self.skipped_ticks += missed
				logger.debug(f"Tick overran, skipping {missed} tick(s)")

			# Let ingestion callbacks run between ticks even when no sleep was needed.
			await asyncio.sleep(0)
