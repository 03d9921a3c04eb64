import typing

import mido
import pytest

import moodbridge.events


class FakeMidiIn:

	"""Minimal MIDI input stub for tests."""

	def __init__ (self, name: str, callback: typing.Optional[typing.Callable] = None, virtual: bool = False) -> None:

		"""Store the callback for injecting test messages."""

		self.name = name
		self.callback = callback
		self.virtual = virtual
		self.closed = False

	def close (self) -> None:

		self.closed = True

	def inject (self, message: mido.Message) -> None:

		"""Simulate receiving a MIDI message by calling the stored callback."""

		if self.callback is not None:
			self.callback(message)


# Module-level reference so tests can access the most recently created FakeMidiIn.
_current_fake_input: typing.Optional[FakeMidiIn] = None


def _fake_get_input_names () -> list[str]:

	"""Return a fixed list of MIDI input names for tests."""

	return ["Dummy MIDI"]


def _fake_open_input (name: str, virtual: bool = False, callback: typing.Optional[typing.Callable] = None, **kwargs: typing.Any) -> FakeMidiIn:

	"""Return a fake MIDI input regardless of the name."""

	global _current_fake_input
	fake = FakeMidiIn(name, callback=callback, virtual=virtual)
	_current_fake_input = fake
	return fake


@pytest.fixture
def patch_midi (monkeypatch: pytest.MonkeyPatch) -> None:

	"""Patch mido to use a fake MIDI input for all tests that need it."""

	monkeypatch.setattr(mido, "get_input_names", _fake_get_input_names)
	monkeypatch.setattr(mido, "open_input", _fake_open_input)


class ManualClock:

	"""A clock that only moves when told to."""

	def __init__ (self, start: float = 100.0) -> None:

		self.now = start

	def __call__ (self) -> float:

		return self.now

	def advance (self, seconds: float) -> float:

		self.now += seconds
		return self.now


@pytest.fixture
def clock () -> ManualClock:

	return ManualClock()


def notes (pitches: typing.Sequence[int], start: float = 0.0, step: float = 0.01, velocity: int = 100) -> typing.List[moodbridge.events.PerformanceEvent]:

	"""Build note events at evenly spaced timestamps."""

	return [
		moodbridge.events.PerformanceEvent.note(start + i * step, pitch, velocity)
		for i, pitch in enumerate(pitches)
	]
