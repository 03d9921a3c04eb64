"""Performance events and the time-windowed event log.

A :class:`PerformanceEvent` is created at the ingestion boundary the instant
a raw OSC or MIDI message is decoded, and is never mutated afterwards.  The
:class:`EventLog` keeps them in arrival order and drops anything older than
``window + grace`` so the buffer stays bounded during long performances.

Decoders
────────
- ``from_osc(address, args, timestamp)``: ``/note pitch vel``,
  ``/bend value``, ``/cc number value``.
- ``from_midi(message, timestamp)``: ``note_on`` (velocity > 0),
  ``pitchwheel`` and ``control_change`` mido messages.

Both return ``None`` for messages that are not performance events.  Missing
or malformed numeric fields decode to 0 rather than raising.
"""

import collections
import dataclasses
import enum
import math
import typing


BEND_RANGE: int = 8192
SUSTAIN_CC: int = 64


class EventKind (enum.Enum):

	"""The three kinds of performance event the engine understands."""

	NOTE = "note"
	BEND = "bend"
	CONTROL_CHANGE = "cc"


@dataclasses.dataclass(frozen=True)
class PerformanceEvent:

	"""
	A single decoded performance event.

	Only the fields relevant to ``kind`` are meaningful: notes use ``pitch``
	and ``velocity``, bends use ``value`` (centred at 0, -8192..8191), and
	control changes use ``number`` and ``value``.
	"""

	timestamp: float
	kind: EventKind
	pitch: int = 0
	velocity: int = 0
	number: int = 0
	value: int = 0

	@classmethod
	def note (cls, timestamp: float, pitch: int, velocity: int) -> "PerformanceEvent":
		return cls(timestamp=timestamp, kind=EventKind.NOTE, pitch=pitch, velocity=velocity)

	@classmethod
	def bend (cls, timestamp: float, value: int) -> "PerformanceEvent":
		return cls(timestamp=timestamp, kind=EventKind.BEND, value=value)

	@classmethod
	def control_change (cls, timestamp: float, number: int, value: int) -> "PerformanceEvent":
		return cls(timestamp=timestamp, kind=EventKind.CONTROL_CHANGE, number=number, value=value)


class EventLog:

	"""Append-only, insertion-ordered buffer of performance events with bounded retention."""

	def __init__ (self, window_ms: float = 320.0, grace_ms: float = 500.0) -> None:

		"""
		Create an empty log.

		Parameters:
			window_ms: Length of the analysis window.
			grace_ms: Extra retention beyond the window before events are
				trimmed, so a trim does not have to run on every append.
		"""

		self.window_ms = window_ms
		self.grace_ms = grace_ms
		self._events: typing.Deque[PerformanceEvent] = collections.deque()

	def __len__ (self) -> int:
		return len(self._events)

	def __iter__ (self) -> typing.Iterator[PerformanceEvent]:
		return iter(self._events)

	def record (self, event: PerformanceEvent) -> None:

		"""Append an event in arrival order."""

		self._events.append(event)

	def window (self, now: float, duration_ms: float) -> typing.List[PerformanceEvent]:

		"""
		Return the events with ``timestamp >= now - duration_ms``, oldest first.

		The log is not modified.  Entries are in timestamp order, so the scan
		walks back from the newest event and stops at the first one that is
		too old.
		"""

		cutoff = now - duration_ms / 1000.0
		recent: typing.List[PerformanceEvent] = []

		for event in reversed(self._events):
			if event.timestamp < cutoff:
				break
			recent.append(event)

		recent.reverse()
		return recent

	def trim (self, now: float) -> int:

		"""Drop events older than ``window + grace`` and return how many were removed."""

		cutoff = now - (self.window_ms + self.grace_ms) / 1000.0
		removed = 0

		while self._events and self._events[0].timestamp < cutoff:
			self._events.popleft()
			removed += 1

		return removed

	def clear (self) -> None:
		self._events.clear()


def _int_arg (args: typing.Sequence[typing.Any], index: int) -> int:

	"""Coerce ``args[index]`` to an int, falling back to 0 when it is missing or malformed."""

	if index >= len(args):
		return 0

	raw = args[index]

	# python-osc and some senders wrap values as {"type": ..., "value": ...}
	if isinstance(raw, dict):
		raw = raw.get("value", 0)

	try:
		number = float(raw)
	except (TypeError, ValueError):
		return 0

	if math.isnan(number) or math.isinf(number):
		return 0

	return int(number)


def from_osc (address: str, args: typing.Sequence[typing.Any], timestamp: float) -> typing.Optional[PerformanceEvent]:

	"""Decode an OSC message into a performance event, or ``None`` if the address is not one."""

	if address == "/note":
		return PerformanceEvent.note(timestamp, _int_arg(args, 0), _int_arg(args, 1))

	if address == "/bend":
		return PerformanceEvent.bend(timestamp, _int_arg(args, 0))

	if address == "/cc":
		return PerformanceEvent.control_change(timestamp, _int_arg(args, 0), _int_arg(args, 1))

	return None


def from_midi (message: typing.Any, timestamp: float) -> typing.Optional[PerformanceEvent]:

	"""
	Decode a mido message into a performance event.

	A ``note_on`` with velocity 0 is a note-off by MIDI convention and is
	ignored, as are note-offs themselves: the analysis only counts onsets.
	"""

	kind = getattr(message, "type", None)

	if kind == "note_on":
		velocity = _int_arg([getattr(message, "velocity", 0)], 0)
		if velocity <= 0:
			return None
		return PerformanceEvent.note(timestamp, _int_arg([getattr(message, "note", 0)], 0), velocity)

	if kind == "pitchwheel":
		return PerformanceEvent.bend(timestamp, _int_arg([getattr(message, "pitch", 0)], 0))

	if kind == "control_change":
		return PerformanceEvent.control_change(
			timestamp,
			_int_arg([getattr(message, "control", 0)], 0),
			_int_arg([getattr(message, "value", 0)], 0)
		)

	return None
