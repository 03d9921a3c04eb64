import random
import typing

import pytest

import moodbridge.director
import moodbridge.events
import moodbridge.features
import moodbridge.section_state
import moodbridge.style_state
import moodbridge.tonal
import conftest


PerformanceEvent = moodbridge.events.PerformanceEvent


def _random_events (rng: random.Random, count: int, start: float = 0.0) -> typing.List[PerformanceEvent]:

	"""Random mix of notes, bends and controllers at non-decreasing timestamps."""

	events = []
	t = start

	for _ in range(count):

		t += rng.uniform(0.0, 0.05)
		roll = rng.random()

		if roll < 0.6:
			events.append(PerformanceEvent.note(t, rng.randint(0, 127), rng.randint(0, 127)))
		elif roll < 0.8:
			events.append(PerformanceEvent.bend(t, rng.randint(-8192, 8191)))
		else:
			events.append(PerformanceEvent.control_change(t, rng.choice([1, 64, 74]), rng.randint(0, 127)))

	return events


@pytest.mark.parametrize("seed", range(25))
def test_outputs_stay_in_bounds (seed: int) -> None:

	"""Whatever is played, every derived value stays inside its documented range."""

	rng = random.Random(seed)
	events = _random_events(rng, rng.randint(0, 60))

	features = moodbridge.features.extract(events, 0.32)
	tonal = moodbridge.tonal.estimate(
		moodbridge.features.notes_in(events),
		features.density,
		features.velocity_mean,
		features.bend_rms
	)

	assert features.density >= 0
	assert features.velocity_variance >= 0
	assert 0.0 <= features.bend_rms <= 1.0
	assert features.unique_pitch_count >= 0

	assert 0.0 <= tonal.energy <= 1.0
	assert -1.0 <= tonal.valence <= 1.0
	assert 0 <= tonal.key_root < 12
	assert tonal.is_minor in (0, 1)
	assert tonal.confidence >= 0

	assert 0.0 <= moodbridge.style_state.intensity_of(features) <= 1.0


@pytest.mark.parametrize("seed", range(10))
def test_analysis_is_deterministic (seed: int) -> None:

	"""The same window always produces the same snapshot and estimate."""

	rng = random.Random(seed)
	events = _random_events(rng, 40)

	first = moodbridge.features.extract(events, 0.32)
	second = moodbridge.features.extract(list(events), 0.32)

	assert first == second

	notes = moodbridge.features.notes_in(events)

	assert moodbridge.tonal.estimate(notes, 1.0, 64.0, 0.2) == moodbridge.tonal.estimate(notes, 1.0, 64.0, 0.2)


@pytest.mark.parametrize("seed", range(10))
def test_state_machines_stay_in_range (seed: int) -> None:

	"""Random energy and harmony inputs never push the state machines out of their enums."""

	rng = random.Random(seed)
	section = moodbridge.section_state.SectionStateMachine()
	style = moodbridge.style_state.StyleStateMachine()
	now_ms = 0.0

	for _ in range(200):

		dt = rng.uniform(0.0, 500.0)
		now_ms += dt

		result = section.update(rng.random(), rng.randint(0, 12), dt)
		assert result in moodbridge.section_state.Section
		assert section.hold_elapsed_ms >= 0

		features = moodbridge.features.FeatureSnapshot(
			density = rng.uniform(0.0, 20.0),
			velocity_mean = rng.uniform(0.0, 127.0),
			mean_pitch_interval = rng.uniform(0.0, 12.0),
			unique_pitch_count = rng.randint(0, 12),
			sustain_active = rng.random() < 0.2
		)
		decision = style.update(features, now_ms)

		assert decision.style in moodbridge.style_state.Style
		assert 0.0 <= decision.intensity <= 1.0


@pytest.mark.parametrize("seed", range(5))
def test_log_stays_bounded (seed: int) -> None:

	"""Across a long random performance the log never holds events older than window plus grace."""

	rng = random.Random(seed)
	clock = conftest.ManualClock()
	director = moodbridge.director.Director(clock=clock)
	horizon = (director.config.window_ms + director.config.grace_ms) / 1000.0

	for event in _random_events(rng, 500, start=clock.now):

		clock.now = event.timestamp
		director.record(event)

		if rng.random() < 0.3:
			result = director.tick()
			assert 0.0 <= result.tonal.energy <= 1.0

			oldest = next(iter(director.log), None)
			if oldest is not None:
				assert oldest.timestamp >= clock.now - horizon
