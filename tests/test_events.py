import mido
import pytest

import moodbridge.events


PerformanceEvent = moodbridge.events.PerformanceEvent
EventKind = moodbridge.events.EventKind


# --- EventLog ---


def test_record_keeps_arrival_order () -> None:

	"""Events come back in the order they were recorded."""

	log = moodbridge.events.EventLog()

	for t in (1.0, 1.1, 1.2):
		log.record(PerformanceEvent.note(t, 60, 100))

	assert [e.timestamp for e in log] == [1.0, 1.1, 1.2]
	assert len(log) == 3


def test_window_selects_recent_events () -> None:

	"""window() returns events at or after now - duration, oldest first."""

	log = moodbridge.events.EventLog()

	for t in (1.0, 1.49, 1.5, 1.8, 2.0):
		log.record(PerformanceEvent.note(t, 60, 100))

	recent = log.window(2.0, 500)

	assert [e.timestamp for e in recent] == [1.5, 1.8, 2.0]


def test_window_does_not_mutate () -> None:

	"""Asking for a window leaves the log untouched."""

	log = moodbridge.events.EventLog()
	log.record(PerformanceEvent.note(0.0, 60, 100))
	log.record(PerformanceEvent.note(1.0, 62, 100))

	log.window(1.0, 100)

	assert len(log) == 2


def test_window_empty_log () -> None:

	log = moodbridge.events.EventLog()

	assert log.window(5.0, 320) == []


def test_trim_drops_events_older_than_window_plus_grace () -> None:

	"""trim() keeps everything newer than window + grace and reports how many it removed."""

	log = moodbridge.events.EventLog(window_ms=320, grace_ms=500)

	for t in (1.0, 1.17, 1.2, 1.9):
		log.record(PerformanceEvent.note(t, 60, 100))

	removed = log.trim(2.0)

	assert removed == 2
	assert [e.timestamp for e in log] == [1.2, 1.9]
	assert all(e.timestamp >= 2.0 - 0.82 for e in log)


def test_trim_nothing_to_remove () -> None:

	log = moodbridge.events.EventLog()
	log.record(PerformanceEvent.note(1.0, 60, 100))

	assert log.trim(1.0) == 0
	assert len(log) == 1


def test_no_deduplication () -> None:

	"""Identical events are both kept."""

	log = moodbridge.events.EventLog()
	event = PerformanceEvent.note(1.0, 60, 100)

	log.record(event)
	log.record(event)

	assert len(log) == 2


def test_events_are_immutable () -> None:

	event = PerformanceEvent.note(1.0, 60, 100)

	with pytest.raises(AttributeError):
		event.pitch = 61  # type: ignore[misc]


# --- OSC decoding ---


def test_from_osc_note () -> None:

	event = moodbridge.events.from_osc("/note", [60, 100], 1.5)

	assert event == PerformanceEvent(timestamp=1.5, kind=EventKind.NOTE, pitch=60, velocity=100)


def test_from_osc_bend_and_cc () -> None:

	bend = moodbridge.events.from_osc("/bend", [-4096], 1.0)
	cc = moodbridge.events.from_osc("/cc", [64, 127], 1.0)

	assert bend.kind is EventKind.BEND
	assert bend.value == -4096
	assert cc.kind is EventKind.CONTROL_CHANGE
	assert (cc.number, cc.value) == (64, 127)


def test_from_osc_missing_args_default_to_zero () -> None:

	"""Missing numeric fields decode as 0 rather than raising."""

	event = moodbridge.events.from_osc("/note", [], 1.0)

	assert (event.pitch, event.velocity) == (0, 0)


@pytest.mark.parametrize("raw,expected", [
	("abc", 0),
	(None, 0),
	(float("nan"), 0),
	(float("inf"), 0),
	(60.7, 60),
	("1.5e3", 1500),
	({"type": "i", "value": 61}, 61),
])
def test_from_osc_coerces_malformed_values (raw, expected) -> None:

	"""Malformed arguments never propagate an error."""

	event = moodbridge.events.from_osc("/bend", [raw], 1.0)

	assert event.value == expected


def test_from_osc_ignores_other_addresses () -> None:

	assert moodbridge.events.from_osc("/scene", ["intro"], 1.0) is None
	assert moodbridge.events.from_osc("/clock", [120, 0.5], 1.0) is None


# --- MIDI decoding ---


def test_from_midi_note_on () -> None:

	event = moodbridge.events.from_midi(mido.Message("note_on", note=64, velocity=90), 2.0)

	assert event == PerformanceEvent.note(2.0, 64, 90)


def test_from_midi_ignores_note_off () -> None:

	"""Note-offs, including note_on with velocity 0, are not onsets."""

	assert moodbridge.events.from_midi(mido.Message("note_on", note=64, velocity=0), 2.0) is None
	assert moodbridge.events.from_midi(mido.Message("note_off", note=64, velocity=40), 2.0) is None


def test_from_midi_pitchwheel () -> None:

	"""mido's signed pitch value maps straight onto the bend range."""

	low = moodbridge.events.from_midi(mido.Message("pitchwheel", pitch=-8192), 2.0)
	high = moodbridge.events.from_midi(mido.Message("pitchwheel", pitch=8191), 2.0)

	assert low.value == -8192
	assert high.value == 8191


def test_from_midi_control_change () -> None:

	event = moodbridge.events.from_midi(mido.Message("control_change", control=64, value=127), 2.0)

	assert event.kind is EventKind.CONTROL_CHANGE
	assert (event.number, event.value) == (64, 127)


def test_from_midi_ignores_other_messages () -> None:

	assert moodbridge.events.from_midi(mido.Message("program_change", program=5), 2.0) is None
	assert moodbridge.events.from_midi(mido.Message("clock"), 2.0) is None
