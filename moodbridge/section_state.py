"""Structural section tracking with hysteresis.

The section advances one step (verse → pre-chorus → chorus → bridge) when
energy jumps while the harmony is busy, and falls back one step after a long
quiet stretch.  A hold timer stops noisy energy readings from walking the
section up and down on every tick.
"""

import dataclasses
import enum
import logging
import typing


logger = logging.getLogger(__name__)


class Section (enum.IntEnum):

	VERSE = 0
	PRE_CHORUS = 1
	CHORUS = 2
	BRIDGE = 3


@dataclasses.dataclass
class SectionConfig:

	"""
	Thresholds and hold times for :class:`SectionStateMachine`.

	Attributes:
		rise_threshold: Tick-to-tick energy increase that counts as "rising".
		min_unique_pitches: Distinct pitches required alongside a rise.
		advance_hold_ms: Hold time that must elapse before advancing.
		quiet_energy: Energy below which the performance counts as quiet.
		retreat_hold_ms: Hold time that must elapse before retreating.
	"""

	rise_threshold: float = 0.12
	min_unique_pitches: int = 4
	advance_hold_ms: float = 1400.0
	quiet_energy: float = 0.15
	retreat_hold_ms: float = 4000.0


class SectionStateMachine:

	"""Convert an energy/complexity trend into a discrete, slowly-changing section."""

	def __init__ (self, config: typing.Optional[SectionConfig] = None) -> None:

		self.config = config if config is not None else SectionConfig()
		self.section = Section.VERSE
		self.hold_elapsed_ms = 0.0
		self.last_energy = 0.0

	def update (self, energy: float, unique_pitch_count: int, dt_ms: float) -> Section:

		"""
		Advance the hold timer by ``dt_ms`` and apply at most one transition.

		Both guards read the same accumulated hold time, and ``rising`` makes
		them mutually exclusive, so a tick can never both advance and retreat.
		"""

		config = self.config
		self.hold_elapsed_ms += dt_ms

		rising = (energy - self.last_energy) > config.rise_threshold and unique_pitch_count >= config.min_unique_pitches

		if rising and self.hold_elapsed_ms > config.advance_hold_ms:
			self._move(min(Section.BRIDGE, self.section + 1))

		elif not rising and energy < config.quiet_energy and self.hold_elapsed_ms > config.retreat_hold_ms:
			self._move(max(Section.VERSE, self.section - 1))

		self.last_energy = energy

		return self.section

	def _move (self, index: int) -> None:

		section = Section(index)

		if section != self.section:
			logger.debug(f"Section: {self.section.name} → {section.name}")

		self.section = section
		self.hold_elapsed_ms = 0.0
