"""Wire the director to its input adapters and the WebSocket fan-out.

A :class:`Bridge` owns one :class:`~moodbridge.director.Director` plus the
OSC listener, the optional MIDI input, the packet broadcaster and, when a
config path is given, a watcher that hot-reloads the configuration.
"""

import asyncio
import logging
import signal
import typing

import moodbridge.broadcast
import moodbridge.config
import moodbridge.director
import moodbridge.midi_input
import moodbridge.osc


logger = logging.getLogger(__name__)


class Bridge:

	"""A runnable performance-analysis service."""

	def __init__ (
		self,
		config: moodbridge.config.Config,
		config_path: typing.Optional[str] = None,
		enable_midi: bool = True
	) -> None:

		self.config = config
		bridge = config.bridge

		self.director = moodbridge.director.Director(config.analysis, config.outputs)

		self.broadcaster = moodbridge.broadcast.PacketBroadcaster(
			host = bridge.ws_host,
			port = bridge.ws_port,
			config_document = config.document
		)

		self.director.on_packet(self.broadcaster.publish)

		self.osc = moodbridge.osc.OscListener(
			self.director,
			publish = self.broadcaster.publish,
			host = bridge.osc_host,
			port = bridge.osc_port
		)

		self.midi: typing.Optional[moodbridge.midi_input.MidiInput] = None

		if enable_midi and bridge.midi_port:
			self.midi = moodbridge.midi_input.MidiInput(
				self.director,
				publish = self.broadcaster.publish,
				port_name = bridge.midi_port,
				virtual = bridge.midi_virtual
			)

		self.watcher: typing.Optional[moodbridge.config.ConfigWatcher] = None

		if config_path is not None:
			self.watcher = moodbridge.config.ConfigWatcher(config_path, self.apply_config)

	def apply_config (self, config: moodbridge.config.Config) -> None:

		"""Apply a reloaded config. Ports are fixed for the life of the process."""

		self.config = config
		self.director.configure(config.analysis, config.outputs)
		self.broadcaster.set_config(config.document)

	async def start (self) -> None:

		await self.broadcaster.start()
		await self.osc.start()

		if self.midi is not None:
			await self.midi.start()

		if self.watcher is not None:
			self.watcher.start()

		await self.director.start()

	async def stop (self) -> None:

		await self.director.stop()

		if self.watcher is not None:
			await self.watcher.stop()

		if self.midi is not None:
			await self.midi.stop()

		await self.osc.stop()
		await self.broadcaster.stop()

	async def run_until_stopped (self) -> None:

		"""
		Run until SIGINT or SIGTERM is received.
		"""

		await self.start()

		logger.info("Bridge running. Press Ctrl+C to stop.")

		stop_event = asyncio.Event()
		loop = asyncio.get_running_loop()

		def _request_stop () -> None:
			stop_event.set()

		for sig in (signal.SIGINT, signal.SIGTERM):
			loop.add_signal_handler(sig, _request_stop)

		try:
			await stop_event.wait()
		finally:
			await self.stop()
