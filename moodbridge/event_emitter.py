import asyncio
import inspect
import logging
import typing


logger = logging.getLogger(__name__)

CallbackType = typing.Callable[..., typing.Any]


class EventEmitter:

	"""
	Fan-out of named events to zero or more subscribers.

	Publishing is fire-and-forget: a subscriber that raises is logged and
	skipped, and coroutine subscribers are scheduled as tasks rather than
	awaited, so no subscriber can stall the publisher.
	"""

	def __init__ (self) -> None:

		self._listeners: typing.Dict[str, typing.List[CallbackType]] = {}
		self._pending: typing.Set[asyncio.Task] = set()

	def on (self, event_name: str, callback: CallbackType) -> None:

		"""
		Register a callback for an event name.
		"""

		self._listeners.setdefault(event_name, []).append(callback)

	def off (self, event_name: str, callback: CallbackType) -> None:

		"""
		Unregister a previously registered callback.

		Raises ``ValueError`` if the callback is not registered for the event.
		"""

		if event_name not in self._listeners or callback not in self._listeners[event_name]:
			raise ValueError(f"Callback not registered for event {event_name!r}")

		self._listeners[event_name].remove(callback)

	def listener_count (self, event_name: str) -> int:
		return len(self._listeners.get(event_name, []))

	def emit (self, event_name: str, *args: typing.Any, **kwargs: typing.Any) -> None:

		"""
		Deliver an event to every subscriber without waiting on any of them.

		Coroutine callbacks need a running event loop; without one they are
		skipped with a warning.
		"""

		for callback in list(self._listeners.get(event_name, [])):

			try:
				if inspect.iscoroutinefunction(callback):
					self._schedule(callback(*args, **kwargs))
				else:
					callback(*args, **kwargs)

			except Exception:
				logger.exception(f"Subscriber for {event_name!r} failed")

	def _schedule (self, coroutine: typing.Coroutine) -> None:

		try:
			loop = asyncio.get_running_loop()
		except RuntimeError:
			coroutine.close()
			logger.warning("Async subscriber skipped: no running event loop")
			return

		task = loop.create_task(coroutine)
		self._pending.add(task)
		task.add_done_callback(self._finished)

	def _finished (self, task: asyncio.Task) -> None:

		self._pending.discard(task)

		if not task.cancelled() and task.exception() is not None:
			logger.error(f"Async subscriber failed: {task.exception()!r}")
