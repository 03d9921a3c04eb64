import json
import logging
import typing

import websockets.asyncio.server
import websockets.exceptions

logger = logging.getLogger(__name__)


class PacketBroadcaster:

	"""
	WebSocket fan-out of output packets to connected renderers.

	Packets are serialised once and handed to websockets' ``broadcast``, which
	writes to every open connection without waiting, so a slow or stalled
	renderer never holds up the director's tick.  New clients receive the
	current configuration as ``{"type": "config", "config": ...}`` as soon as
	they connect.
	"""

	def __init__ (self, host: str = "0.0.0.0", port: int = 9002, config_document: typing.Optional[typing.Dict[str, typing.Any]] = None) -> None:

		self.host = host
		self.port = port
		self._config_document = config_document
		self._ws_server: typing.Optional[websockets.asyncio.server.Server] = None
		self._clients: typing.Set[websockets.asyncio.server.ServerConnection] = set()
		self.sent_count = 0

	@property
	def client_count (self) -> int:
		return len(self._clients)

	@property
	def bound_port (self) -> typing.Optional[int]:

		if self._ws_server is None:
			return None

		for sock in self._ws_server.sockets:
			return sock.getsockname()[1]

		return None

	async def start (self) -> None:

		self._ws_server = await websockets.asyncio.server.serve(self._handle_client, self.host, self.port)
		logger.info(f"WebSocket ws://{self.host}:{self.bound_port}")

	async def stop (self) -> None:

		if self._ws_server is None:
			return

		self._ws_server.close()
		await self._ws_server.wait_closed()
		self._ws_server = None
		self._clients.clear()

		logger.info("WebSocket server stopped")

	async def _handle_client (self, websocket: websockets.asyncio.server.ServerConnection) -> None:

		try:
			# The config packet must be the first thing a client receives.
			if self._config_document is not None:
				await websocket.send(json.dumps(self._config_packet()))

			self._clients.add(websocket)

			# Renderers do not send commands; just keep reading until they hang up.
			async for _message in websocket:
				pass

		except websockets.exceptions.ConnectionClosed:
			pass

		finally:
			self._clients.discard(websocket)

	def _config_packet (self) -> typing.Dict[str, typing.Any]:
		return {"type": "config", "config": self._config_document}

	def publish (self, packet: typing.Dict[str, typing.Any]) -> None:

		"""Send a packet to every connected client. Never blocks."""

		if not self._clients:
			return

		try:
			message = json.dumps(packet)
		except (TypeError, ValueError) as e:
			logger.error(f"Packet is not JSON-serialisable: {e}")
			return

		websockets.asyncio.server.broadcast(self._clients, message)
		self.sent_count += 1

	def set_config (self, document: typing.Dict[str, typing.Any]) -> None:

		"""Replace the config sent to new clients and push it to current ones."""

		self._config_document = document
		self.publish(self._config_packet())
