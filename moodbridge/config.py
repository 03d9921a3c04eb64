"""YAML configuration: loading, validation and hot reload.

The configuration file must contain a ``director`` section (analysis
constants) and a ``smoothing`` section (renderer-side settings, passed
through untouched to connected clients).  Anything missing inside those
sections falls back to the defaults below.

Example::

	director:
	  window_ms: 320
	  hop_ms: 80
	  section:
	    advance_hold_ms: 1400
	  style:
	    min_hold_ms: 1200
	    thresholds:
	      lead: {density: 2.0, intensity: 0.45, interval: 4}
	outputs:
	  director: true
	  ai_control: false
	bridge:
	  osc_port: 9001
	  ws_port: 9002
	smoothing:
	  energy: 0.2
"""

import asyncio
import dataclasses
import logging
import os
import typing

import yaml

import moodbridge.section_state
import moodbridge.style_state
import moodbridge.tonal


logger = logging.getLogger(__name__)

REQUIRED_SECTIONS: typing.Tuple[str, ...] = ("director", "smoothing")


class ConfigError (ValueError):

	"""Raised when a configuration document is missing or malformed."""


@dataclasses.dataclass
class AnalysisConfig:

	window_ms: float = 320.0
	hop_ms: float = 80.0
	grace_ms: float = 500.0
	section: moodbridge.section_state.SectionConfig = dataclasses.field(default_factory=moodbridge.section_state.SectionConfig)
	style: moodbridge.style_state.StyleConfig = dataclasses.field(default_factory=moodbridge.style_state.StyleConfig)
	profiles: moodbridge.tonal.TonalProfiles = dataclasses.field(default_factory=moodbridge.tonal.TonalProfiles)


@dataclasses.dataclass
class OutputConfig:

	"""Which analysis channels are published each tick."""

	director: bool = True
	ai_control: bool = False


@dataclasses.dataclass
class BridgeConfig:

	osc_host: str = "127.0.0.1"
	osc_port: int = 9001
	ws_host: str = "0.0.0.0"
	ws_port: int = 9002
	midi_port: typing.Optional[str] = "Ableton-To-Visualiser"
	midi_virtual: bool = True


@dataclasses.dataclass
class Config:

	"""
	Attributes:
		analysis: Constants read by the analysis engine.
		outputs: Enabled output channels.
		bridge: Ports for the OSC, MIDI and WebSocket adapters.
		document: The raw parsed document, broadcast to renderers as-is.
	"""

	analysis: AnalysisConfig = dataclasses.field(default_factory=AnalysisConfig)
	outputs: OutputConfig = dataclasses.field(default_factory=OutputConfig)
	bridge: BridgeConfig = dataclasses.field(default_factory=BridgeConfig)
	document: typing.Dict[str, typing.Any] = dataclasses.field(default_factory=dict)


def _section (document: typing.Dict[str, typing.Any], key: str) -> typing.Dict[str, typing.Any]:

	value = document.get(key) or {}

	if not isinstance(value, dict):
		raise ConfigError(f"Config section '{key}' must be a mapping, got {type(value).__name__}")

	return value


def _number (section: typing.Dict[str, typing.Any], key: str, default: float, where: str, positive: bool = False) -> float:

	value = section.get(key, default)

	if isinstance(value, bool) or not isinstance(value, (int, float)):
		raise ConfigError(f"{where}.{key} must be a number, got {value!r}")

	if positive and value <= 0:
		raise ConfigError(f"{where}.{key} must be greater than 0, got {value!r}")

	return float(value)


def _parse_section_config (raw: typing.Dict[str, typing.Any]) -> moodbridge.section_state.SectionConfig:

	defaults = moodbridge.section_state.SectionConfig()
	where = "director.section"

	return moodbridge.section_state.SectionConfig(
		rise_threshold = _number(raw, "rise_threshold", defaults.rise_threshold, where),
		min_unique_pitches = int(_number(raw, "min_unique_pitches", defaults.min_unique_pitches, where)),
		advance_hold_ms = _number(raw, "advance_hold_ms", defaults.advance_hold_ms, where),
		quiet_energy = _number(raw, "quiet_energy", defaults.quiet_energy, where),
		retreat_hold_ms = _number(raw, "retreat_hold_ms", defaults.retreat_hold_ms, where)
	)


def _parse_style_config (raw: typing.Dict[str, typing.Any]) -> moodbridge.style_state.StyleConfig:

	defaults = moodbridge.style_state.StyleConfig()
	thresholds = dict(defaults.thresholds)
	raw_thresholds = _section(raw, "thresholds")

	for name, values in raw_thresholds.items():

		try:
			style = moodbridge.style_state.Style(name)
		except ValueError:
			raise ConfigError(f"Unknown style '{name}' in director.style.thresholds") from None

		if style not in thresholds:
			raise ConfigError(f"Style '{name}' has no thresholds to configure")

		if not isinstance(values, dict):
			raise ConfigError(f"director.style.thresholds.{name} must be a mapping")

		base = thresholds[style]
		where = f"director.style.thresholds.{name}"

		thresholds[style] = moodbridge.style_state.StyleThreshold(
			density = _number(values, "density", base.density, where),
			intensity = _number(values, "intensity", base.intensity, where),
			interval = _number(values, "interval", base.interval, where),
			unique_pitches = int(_number(values, "unique_pitches", base.unique_pitches, where))
		)

	return moodbridge.style_state.StyleConfig(
		min_hold_ms = _number(raw, "min_hold_ms", defaults.min_hold_ms, "director.style"),
		thresholds = thresholds
	)


def _parse_profiles (raw: typing.Dict[str, typing.Any]) -> moodbridge.tonal.TonalProfiles:

	major = raw.get("major", moodbridge.tonal.KRUMHANSL_MAJOR)
	minor = raw.get("minor", moodbridge.tonal.KRUMHANSL_MINOR)

	try:
		return moodbridge.tonal.TonalProfiles(major=major, minor=minor)
	except (TypeError, ValueError) as e:
		raise ConfigError(f"Invalid director.profiles: {e}") from e


def _port (value: typing.Any, name: str) -> int:

	try:
		port = int(value)
	except (TypeError, ValueError):
		raise ConfigError(f"{name} must be an integer port, got {value!r}") from None

	if not 0 <= port <= 65535:
		raise ConfigError(f"{name} out of range: {port}")

	return port


def parse_config (document: typing.Any, environ: typing.Optional[typing.Mapping[str, str]] = None) -> Config:

	"""
	Validate a parsed YAML document and build a :class:`Config`.

	Parameters:
		document: The result of ``yaml.safe_load``.
		environ: Environment used for ``OSC_PORT`` / ``WS_PORT`` overrides
			(defaults to ``os.environ``).

	Raises:
		ConfigError: If the document is empty, not a mapping, lacks a
			required section, or has a value of the wrong type.
	"""

	if not document or not isinstance(document, dict):
		raise ConfigError("Config is empty or not a mapping")

	missing = [key for key in REQUIRED_SECTIONS if document.get(key) is None]

	if missing:
		raise ConfigError(f"Missing required config sections: {', '.join(missing)}")

	director = _section(document, "director")

	analysis = AnalysisConfig(
		window_ms = _number(director, "window_ms", 320.0, "director", positive=True),
		hop_ms = _number(director, "hop_ms", 80.0, "director", positive=True),
		grace_ms = _number(director, "grace_ms", 500.0, "director"),
		section = _parse_section_config(_section(director, "section")),
		style = _parse_style_config(_section(director, "style")),
		profiles = _parse_profiles(_section(director, "profiles"))
	)

	outputs_raw = _section(document, "outputs")
	outputs = OutputConfig(
		director = bool(outputs_raw.get("director", True)),
		ai_control = bool(outputs_raw.get("ai_control", False))
	)

	if environ is None:
		environ = os.environ

	bridge_raw = _section(document, "bridge")
	defaults = BridgeConfig()
	bridge = BridgeConfig(
		osc_host = str(bridge_raw.get("osc_host", defaults.osc_host)),
		osc_port = _port(environ.get("OSC_PORT", bridge_raw.get("osc_port", defaults.osc_port)), "osc_port"),
		ws_host = str(bridge_raw.get("ws_host", defaults.ws_host)),
		ws_port = _port(environ.get("WS_PORT", bridge_raw.get("ws_port", defaults.ws_port)), "ws_port"),
		midi_port = bridge_raw.get("midi_port", defaults.midi_port),
		midi_virtual = bool(bridge_raw.get("midi_virtual", defaults.midi_virtual))
	)

	return Config(analysis=analysis, outputs=outputs, bridge=bridge, document=document)


def load_config (config_path: str, environ: typing.Optional[typing.Mapping[str, str]] = None) -> Config:

	"""
	Load and validate a configuration file.

	Raises:
		ConfigError: If the file is missing, unparsable or invalid.
	"""

	if not os.path.exists(config_path):
		raise ConfigError(f"Config file {config_path} not found")

	try:
		with open(config_path, "r", encoding="utf-8") as f:
			document = yaml.safe_load(f)
	except OSError as e:
		raise ConfigError(f"Could not read {config_path}: {e}") from e
	except (yaml.YAMLError, UnicodeDecodeError) as e:
		raise ConfigError(f"Could not parse {config_path}: {e}") from e

	config = parse_config(document, environ)
	logger.info(f"Config loaded from {config_path}")

	return config


class ConfigWatcher:

	"""
	Poll a config file's modification time and reload it when it changes.

	A reload that fails validation is logged and ignored, leaving the last
	good configuration in place.
	"""

	def __init__ (
		self,
		config_path: str,
		on_reload: typing.Callable[[Config], typing.Any],
		interval: float = 1.0
	) -> None:

		self.config_path = config_path
		self.on_reload = on_reload
		self.interval = interval
		self._mtime = self._current_mtime()
		self._task: typing.Optional[asyncio.Task] = None

	def _current_mtime (self) -> typing.Optional[float]:

		try:
			return os.stat(self.config_path).st_mtime
		except OSError:
			return None

	def check (self) -> bool:

		"""Reload if the file changed since the last check; return True if a new config was applied."""

		mtime = self._current_mtime()

		if mtime is None or mtime == self._mtime:
			return False

		self._mtime = mtime

		try:
			config = load_config(self.config_path)
		except ConfigError as e:
			logger.error(f"Config reload failed: {e}")
			return False

		try:
			self.on_reload(config)
		except Exception:
			logger.exception("Applying reloaded config failed")
			return False

		logger.info("Config reloaded")

		return True

	async def _poll (self) -> None:

		while True:
			await asyncio.sleep(self.interval)

			try:
				self.check()
			except Exception:
				logger.exception("Config reload failed")

	def start (self) -> None:

		if self._task is None:
			self._task = asyncio.create_task(self._poll())

	async def stop (self) -> None:

		if self._task is None:
			return

		self._task.cancel()

		try:
			await self._task
		except asyncio.CancelledError:
			pass

		self._task = None
