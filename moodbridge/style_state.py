"""Playing-style classification with hysteresis.

Each tick picks a candidate style from the feature snapshot by running a
small rule table in order (later rules win), then only accepts a change of
style once ``min_hold_ms`` has passed since the last accepted change.
"""

import dataclasses
import enum
import logging
import typing

import moodbridge.features


logger = logging.getLogger(__name__)


class Style (enum.Enum):

	PAD = "pad"
	LEAD = "lead"
	ARPEGGIO = "arpeggio"
	CHORDS = "chords"


@dataclasses.dataclass
class StyleThreshold:

	"""
	Guard values for one style rule.

	``interval`` is a lower bound for lead and an upper bound for arpeggio;
	``unique_pitches`` only applies to chords.
	"""

	density: float
	intensity: float
	interval: float = 0.0
	unique_pitches: int = 0


def _default_thresholds () -> typing.Dict[Style, StyleThreshold]:

	return {
		Style.CHORDS: StyleThreshold(density=3.0, intensity=0.30, unique_pitches=3),
		Style.LEAD: StyleThreshold(density=2.0, intensity=0.45, interval=4.0),
		Style.ARPEGGIO: StyleThreshold(density=3.0, intensity=0.35, interval=3.0),
	}


@dataclasses.dataclass
class StyleConfig:

	min_hold_ms: float = 1200.0
	thresholds: typing.Dict[Style, StyleThreshold] = dataclasses.field(default_factory=_default_thresholds)


@dataclasses.dataclass(frozen=True)
class StyleDecision:

	"""The accepted style for a tick, plus the candidate the rules proposed."""

	style: Style
	intensity: float
	candidate: Style


def intensity_of (features: moodbridge.features.FeatureSnapshot) -> float:

	"""Blend note density and mean velocity into a single 0.0-1.0 intensity."""

	clamp01 = moodbridge.features.clamp01

	return clamp01(0.6 * clamp01(features.density / 10.0) + 0.4 * clamp01(features.velocity_mean / 127.0))


def pick_candidate (features: moodbridge.features.FeatureSnapshot, intensity: float, thresholds: typing.Dict[Style, StyleThreshold]) -> Style:

	"""Run the style rules in order and return the winning candidate."""

	candidate = Style.PAD

	chords = thresholds[Style.CHORDS]
	if features.unique_pitch_count >= chords.unique_pitches and features.density >= chords.density and intensity >= chords.intensity:
		candidate = Style.CHORDS

	lead = thresholds[Style.LEAD]
	if features.mean_pitch_interval >= lead.interval and features.density >= lead.density and intensity >= lead.intensity:
		candidate = Style.LEAD

	arpeggio = thresholds[Style.ARPEGGIO]
	if features.mean_pitch_interval <= arpeggio.interval and features.density >= arpeggio.density and intensity >= arpeggio.intensity:
		candidate = Style.ARPEGGIO

	# A held sustain pedal always reads as a pad.
	if features.sustain_active:
		candidate = Style.PAD

	return candidate


class StyleStateMachine:

	"""Hold a playing-style label that cannot flip faster than ``min_hold_ms``."""

	def __init__ (self, config: typing.Optional[StyleConfig] = None, now_ms: float = 0.0) -> None:

		"""
		Start in :attr:`Style.PAD`.

		Parameters:
			config: Thresholds and hold time.
			now_ms: Start time; counts as the last accepted change, so the first
				hold period after start-up never switches style.
		"""

		self.config = config if config is not None else StyleConfig()
		self.style = Style.PAD
		self.last_change_ms = now_ms

	def update (self, features: moodbridge.features.FeatureSnapshot, now_ms: float) -> StyleDecision:

		"""Evaluate the rules for this tick and apply the hold gate."""

		intensity = intensity_of(features)
		candidate = pick_candidate(features, intensity, self.config.thresholds)

		if candidate != self.style and (now_ms - self.last_change_ms) >= self.config.min_hold_ms:
			logger.debug(f"Style: {self.style.value} → {candidate.value}")
			self.style = candidate
			self.last_change_ms = now_ms

		return StyleDecision(style=self.style, intensity=intensity, candidate=candidate)
