"""OSC input from a DAW or controller.

The listener binds a UDP port (default 127.0.0.1:9001) on the running
asyncio loop, so its handlers run on the same thread as the director's tick.

Built-in Receive Handlers
─────────────────────────
- ``/note <pitch> <vel>``: Record a note, forward ``{"type": "note"}``
- ``/bend <value>``: Record a pitch bend, forward ``{"type": "bend"}``
- ``/cc <num> <val>``: Record a control change, forward ``{"type": "cc"}``
- ``/scene <name>``: Forward ``{"type": "scene"}``
- ``/clock <bpm> <phase>``: Forward ``{"type": "clock"}``
- anything else: Forward ``{"type": "osc", address, args}``

Forwarded packets go to the ``publish`` callable, typically
:meth:`moodbridge.broadcast.PacketBroadcaster.publish`.
"""

import asyncio
import logging
import typing

import pythonosc.dispatcher
import pythonosc.osc_server

if typing.TYPE_CHECKING:
	from moodbridge.director import Director


logger = logging.getLogger(__name__)

PublishFn = typing.Callable[[typing.Dict[str, typing.Any]], typing.Any]


def _float_arg (args: typing.Sequence[typing.Any], index: int, default: float) -> float:

	if index >= len(args):
		return default

	try:
		return float(args[index])
	except (TypeError, ValueError):
		return default


class OscListener:

	"""Async OSC server feeding performance events into a :class:`~moodbridge.director.Director`."""

	def __init__ (
		self,
		director: "Director",
		publish: typing.Optional[PublishFn] = None,
		host: str = "127.0.0.1",
		port: int = 9001
	) -> None:

		self._director = director
		self._publish = publish
		self._host = host
		self._port = port

		self._server: typing.Optional[typing.Any] = None
		self._transport: typing.Optional[asyncio.BaseTransport] = None
		self._dispatcher = pythonosc.dispatcher.Dispatcher()

		self._dispatcher.map("/note", self._handle_note)
		self._dispatcher.map("/bend", self._handle_bend)
		self._dispatcher.map("/cc", self._handle_cc)
		self._dispatcher.map("/scene", self._handle_scene)
		self._dispatcher.map("/clock", self._handle_clock)
		self._dispatcher.set_default_handler(self._handle_other)

	@property
	def port (self) -> typing.Optional[int]:

		"""The bound UDP port (useful when started with ``port=0``)."""

		if self._transport is None:
			return None

		return self._transport.get_extra_info("sockname")[1]

	async def start (self) -> None:

		"""Start listening for OSC messages."""

		self._server = pythonosc.osc_server.AsyncIOOSCUDPServer(
			(self._host, self._port),
			self._dispatcher,
			asyncio.get_running_loop()  # type: ignore[arg-type]
		)

		transport, _ = await self._server.create_serve_endpoint()
		self._transport = transport

		logger.info(f"OSC listening on udp://{self._host}:{self.port}")

	async def stop (self) -> None:

		"""Stop the OSC server."""

		if self._transport:
			self._transport.close()
			self._transport = None
			logger.info("OSC listener stopped")

	def map (self, address: str, handler: typing.Callable) -> None:

		"""Register a custom OSC handler."""

		self._dispatcher.map(address, handler)

	def _forward (self, packet: typing.Dict[str, typing.Any]) -> None:

		if self._publish is not None:
			self._publish(packet)

	# Handlers

	def _handle_note (self, address: str, *args: typing.Any) -> None:
		event = self._director.ingest_osc(address, args)
		if event is not None:
			self._forward({"type": "note", "pitch": event.pitch, "vel": event.velocity})

	def _handle_bend (self, address: str, *args: typing.Any) -> None:
		event = self._director.ingest_osc(address, args)
		if event is not None:
			self._forward({"type": "bend", "value": event.value})

	def _handle_cc (self, address: str, *args: typing.Any) -> None:
		event = self._director.ingest_osc(address, args)
		if event is not None:
			self._forward({"type": "cc", "num": event.number, "val": event.value})

	def _handle_scene (self, address: str, *args: typing.Any) -> None:
		name = str(args[0]) if args else ""
		self._forward({"type": "scene", "name": name})

	def _handle_clock (self, address: str, *args: typing.Any) -> None:
		self._forward({"type": "clock", "bpm": _float_arg(args, 0, 120.0), "phase": _float_arg(args, 1, 0.0)})

	def _handle_other (self, address: str, *args: typing.Any) -> None:
		self._forward({"type": "osc", "address": address, "args": list(args)})
