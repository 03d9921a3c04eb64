"""Statistical features over a window of performance events.

:func:`extract` is a pure function: it reads the events it is given, keeps
no state between calls, and never raises.  Every "no data" case degrades to
a neutral zero so an empty window simply reads as silence.
"""

import dataclasses
import math
import typing

import moodbridge.events


def clamp (value: float, low: float, high: float) -> float:

	"""Clamp ``value`` to the closed range ``[low, high]``."""

	return max(low, min(high, value))


def clamp01 (value: float) -> float:
	return clamp(value, 0.0, 1.0)


@dataclasses.dataclass(frozen=True)
class FeatureSnapshot:

	"""
	Features computed fresh from one window.

	Attributes:
		density: Note onsets per second.
		velocity_mean: Mean note velocity (0-127).
		velocity_variance: Population variance of note velocity.
		mean_pitch_interval: Mean absolute semitone step between consecutive notes.
		bend_rms: RMS pitch bend normalised to the bend range (0.0-1.0).
		unique_pitch_count: Number of distinct pitches played.
		sustain_active: Whether the most recent sustain pedal message was "down".
	"""

	density: float = 0.0
	velocity_mean: float = 0.0
	velocity_variance: float = 0.0
	mean_pitch_interval: float = 0.0
	bend_rms: float = 0.0
	unique_pitch_count: int = 0
	sustain_active: bool = False

	def to_dict (self) -> typing.Dict[str, typing.Any]:

		"""Return the snapshot with the camelCase keys renderers expect."""

		return {
			"density": self.density,
			"velocityMean": self.velocity_mean,
			"velocityVariance": self.velocity_variance,
			"meanPitchInterval": self.mean_pitch_interval,
			"bendRMS": self.bend_rms,
			"uniquePitchCount": self.unique_pitch_count,
			"sustainActive": self.sustain_active,
		}


def notes_in (events: typing.Iterable[moodbridge.events.PerformanceEvent]) -> typing.List[moodbridge.events.PerformanceEvent]:

	"""Return only the note events, preserving order."""

	return [e for e in events if e.kind is moodbridge.events.EventKind.NOTE]


def extract (events: typing.Sequence[moodbridge.events.PerformanceEvent], window_seconds: float) -> FeatureSnapshot:

	"""
	Compute a :class:`FeatureSnapshot` from the events in one window.

	Parameters:
		events: The windowed events, oldest first.
		window_seconds: Length of the window, used to turn a note count into a rate.
	"""

	notes = notes_in(events)
	bends = [e for e in events if e.kind is moodbridge.events.EventKind.BEND]

	density = len(notes) / window_seconds if window_seconds > 0 else 0.0

	velocity_mean = 0.0
	velocity_variance = 0.0

	if notes:
		velocity_mean = sum(n.velocity for n in notes) / len(notes)
		velocity_variance = sum((n.velocity - velocity_mean) ** 2 for n in notes) / len(notes)

	mean_pitch_interval = 0.0

	if len(notes) >= 2:
		ordered = sorted(notes, key=lambda n: n.timestamp)
		steps = [abs(b.pitch - a.pitch) for a, b in zip(ordered, ordered[1:])]
		mean_pitch_interval = sum(steps) / len(steps)

	bend_rms = 0.0

	if bends:
		bend_rms = clamp01(math.sqrt(sum(b.value * b.value for b in bends) / len(bends)) / moodbridge.events.BEND_RANGE)

	sustain_active = False

	for event in reversed(events):
		if event.kind is moodbridge.events.EventKind.CONTROL_CHANGE and event.number == moodbridge.events.SUSTAIN_CC:
			sustain_active = event.value > 64
			break

	return FeatureSnapshot(
		density = density,
		velocity_mean = velocity_mean,
		velocity_variance = velocity_variance,
		mean_pitch_interval = mean_pitch_interval,
		bend_rms = bend_rms,
		unique_pitch_count = len({n.pitch for n in notes}),
		sustain_active = sustain_active
	)
