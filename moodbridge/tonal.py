"""Key, mode, energy and valence estimation from a window of notes.

Key detection correlates a velocity-weighted pitch-class histogram against
rotated major and minor templates and keeps the best rotation for each mode.
It is deterministic and cheap enough to run on every tick.
"""

import dataclasses
import math
import typing

import moodbridge.events
import moodbridge.features


# Krumhansl-Kessler probe-tone ratings, tonic first.
KRUMHANSL_MAJOR: typing.Tuple[float, ...] = (6.35, 2.23, 3.48, 2.33, 4.38, 4.09, 2.52, 5.19, 2.39, 3.66, 2.29, 2.88)
KRUMHANSL_MINOR: typing.Tuple[float, ...] = (6.33, 2.68, 3.52, 5.38, 2.60, 3.53, 2.54, 4.75, 3.98, 2.69, 3.34, 3.17)

NOTE_NAMES: typing.Tuple[str, ...] = ("C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B")


def _dot (a: typing.Sequence[float], b: typing.Sequence[float]) -> float:
	return sum(x * y for x, y in zip(a, b))


def _norm (a: typing.Sequence[float]) -> float:
	return math.sqrt(_dot(a, a))


def rotate (profile: typing.Sequence[float], k: int) -> typing.List[float]:

	"""Rotate a tonic-first profile so that its tonic lands on pitch class ``k``."""

	return [profile[(i - k) % 12] for i in range(12)]


class TonalProfiles:

	"""
	Major and minor key templates used for correlation.

	The raw ratings are mean-centred on construction, so a flat chromatic
	histogram correlates to exactly zero with every key and a diatonic one
	stands out against it.
	"""

	def __init__ (
		self,
		major: typing.Sequence[float] = KRUMHANSL_MAJOR,
		minor: typing.Sequence[float] = KRUMHANSL_MINOR
	) -> None:

		if len(major) != 12 or len(minor) != 12:
			raise ValueError("Tonal profiles must have exactly 12 entries")

		self.major = tuple(float(x) for x in major)
		self.minor = tuple(float(x) for x in minor)

		# Precompute every rotation with its norm.
		self._major_rotations = self._prepare(self.major)
		self._minor_rotations = self._prepare(self.minor)

	@staticmethod
	def _prepare (profile: typing.Sequence[float]) -> typing.List[typing.Tuple[typing.List[float], float]]:

		mean = sum(profile) / 12.0
		centred = [x - mean for x in profile]
		norm = _norm(centred) or 1.0

		return [(rotate(centred, k), norm) for k in range(12)]

	def best_match (self, unit_histogram: typing.Sequence[float], minor: bool) -> typing.Tuple[int, float]:

		"""Return ``(root, score)`` of the best-correlating rotation; the lowest root wins ties."""

		rotations = self._minor_rotations if minor else self._major_rotations
		best_root = 0
		best_score = -math.inf

		for k, (template, norm) in enumerate(rotations):
			score = _dot(unit_histogram, template) / norm
			if score > best_score:
				best_root, best_score = k, score

		return best_root, best_score


DEFAULT_PROFILES = TonalProfiles()


@dataclasses.dataclass(frozen=True)
class TonalEstimate:

	"""
	Attributes:
		energy: Overall activity, 0.0-1.0.
		valence: Harmonic mood, -1.0 (dark) to 1.0 (bright).
		key_root: Pitch class of the detected tonic (0 = C).
		is_minor: 1 for minor, 0 for major.
		confidence: Similarity of the histogram to the winning template.
	"""

	energy: float
	valence: float
	key_root: int
	is_minor: int
	confidence: float

	@property
	def key_name (self) -> str:
		return NOTE_NAMES[self.key_root] + ("m" if self.is_minor else "")


def pitch_class_histogram (notes: typing.Iterable[moodbridge.events.PerformanceEvent]) -> typing.List[float]:

	"""Build a 12-bin histogram where each note contributes ``velocity / 127``."""

	histogram = [0.0] * 12

	for note in notes:
		histogram[note.pitch % 12] += note.velocity / 127.0

	return histogram


def estimate_energy (density: float, velocity_mean: float, bend_rms: float) -> float:

	clamp01 = moodbridge.features.clamp01

	return clamp01(
		0.55 * clamp01(density / 10.0) +
		0.35 * clamp01(velocity_mean / 127.0) +
		0.10 * clamp01(bend_rms)
	)


def estimate (
	notes: typing.Sequence[moodbridge.events.PerformanceEvent],
	density: float,
	velocity_mean: float,
	bend_rms: float,
	profiles: TonalProfiles = DEFAULT_PROFILES
) -> TonalEstimate:

	"""
	Estimate energy, valence and key from the notes in one window.

	Parameters:
		notes: Note events in the window.
		density: Note onsets per second (from the feature snapshot).
		velocity_mean: Mean velocity (from the feature snapshot).
		bend_rms: Normalised RMS bend (from the feature snapshot).
		profiles: Key templates to correlate against.
	"""

	histogram = pitch_class_histogram(notes)
	length = _norm(histogram) or 1.0
	unit = [x / length for x in histogram]

	major_root, major_score = profiles.best_match(unit, minor=False)
	minor_root, minor_score = profiles.best_match(unit, minor=True)

	is_minor = 1 if minor_score > major_score else 0
	key_root = minor_root if is_minor else major_root
	confidence = max(0.0, minor_score if is_minor else major_score)

	energy = estimate_energy(density, velocity_mean, bend_rms)

	avg_pitch = sum(n.pitch for n in notes) / len(notes) if notes else 60.0
	register = moodbridge.features.clamp01((avg_pitch - 48.0) / 36.0)

	valence = (-1.0 if is_minor else 1.0) * (0.4 + 0.4 * confidence) + 0.2 * (register - 0.5) * 2.0

	return TonalEstimate(
		energy = energy,
		valence = moodbridge.features.clamp(valence, -1.0, 1.0),
		key_root = key_root,
		is_minor = is_minor,
		confidence = confidence
	)
