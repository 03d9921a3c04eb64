"""Optional MIDI input.

Opens either a virtual input port (so a DAW can route a MIDI track straight
to the bridge) or an existing device by name.  MIDI is optional: when no
backend or device is available the failure is logged and the bridge carries
on with OSC only.

mido delivers messages on its own callback thread.  That thread never
touches analysis state: each message is handed to the asyncio loop with
``call_soon_threadsafe`` and decoded, timestamped and recorded there.
"""

import asyncio
import logging
import typing

import mido

if typing.TYPE_CHECKING:
	from moodbridge.director import Director


logger = logging.getLogger(__name__)

PublishFn = typing.Callable[[typing.Dict[str, typing.Any]], typing.Any]


def open_input (
	port_name: typing.Optional[str],
	callback: typing.Callable,
	virtual: bool = False
) -> typing.Tuple[typing.Optional[str], typing.Optional[typing.Any]]:

	"""
	Open a MIDI input port.

	With ``virtual=True`` a new virtual port called ``port_name`` is created.
	Otherwise the named device is opened, falling back to the first available
	input when the exact name is not present.

	Returns:
		A tuple of (port_name, midi_in_object) or (None, None) on failure.
	"""

	if port_name is None:
		return None, None

	try:
		if virtual:
			midi_in = mido.open_input(port_name, virtual=True, callback=callback)
			logger.info(f"Virtual MIDI input '{port_name}' created")
			return port_name, midi_in

		inputs = mido.get_input_names()
		logger.info(f"Available MIDI inputs: {inputs}")

		target = port_name

		if target not in inputs:
			logger.warning(f"MIDI input device '{target}' not found.")
			if not inputs:
				return None, None
			target = inputs[0]
			logger.warning(f"Fallback to: {target}")

		midi_in = mido.open_input(target, callback=callback)
		logger.info(f"Opened MIDI input: {target}")
		return target, midi_in

	except Exception as e:
		logger.warning(f"MIDI input not available ({e}). Using OSC only.")
		return None, None


class MidiInput:

	"""Bridge a mido input port into a :class:`~moodbridge.director.Director`."""

	def __init__ (
		self,
		director: "Director",
		publish: typing.Optional[PublishFn] = None,
		port_name: typing.Optional[str] = "Ableton-To-Visualiser",
		virtual: bool = True
	) -> None:

		self._director = director
		self._publish = publish
		self.port_name = port_name
		self.virtual = virtual

		self.midi_in: typing.Optional[typing.Any] = None
		self._loop: typing.Optional[asyncio.AbstractEventLoop] = None

	@property
	def is_open (self) -> bool:
		return self.midi_in is not None

	async def start (self) -> bool:

		"""Open the port. Must be called from the running event loop; returns False if MIDI is unavailable."""

		self._loop = asyncio.get_running_loop()

		name, midi_in = open_input(self.port_name, self._on_message, virtual=self.virtual)

		if midi_in is None:
			self._loop = None
			return False

		self.port_name = name
		self.midi_in = midi_in
		return True

	async def stop (self) -> None:

		if self.midi_in is not None:
			self.midi_in.close()
			self.midi_in = None
			logger.info("MIDI input closed")

		self._loop = None

	def _on_message (self, message: typing.Any) -> None:

		"""Runs on mido's callback thread: hand the message to the event loop."""

		loop = self._loop

		if loop is None or loop.is_closed():
			return

		loop.call_soon_threadsafe(self.handle, message)

	def handle (self, message: typing.Any) -> None:

		"""Record one MIDI message and forward its pass-through packet. Loop thread only."""

		event = self._director.ingest_midi(message)

		if event is not None:

			if message.type == "note_on":
				self._forward({"type": "note", "pitch": event.pitch, "vel": event.velocity})
			elif message.type == "pitchwheel":
				self._forward({"type": "bend", "value": event.value})
			elif message.type == "control_change":
				self._forward({"type": "cc", "num": event.number, "val": event.value})

		elif message.type == "program_change":
			self._forward({"type": "scene", "name": f"program-{message.program}"})

	def _forward (self, packet: typing.Dict[str, typing.Any]) -> None:

		if self._publish is not None:
			self._publish(packet)
