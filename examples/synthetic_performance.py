import logging
import random

import moodbridge
import moodbridge.events

logging.basicConfig(level=logging.DEBUG)

# A manual clock so the whole "performance" runs instantly.
now = 0.0

director = moodbridge.Director(clock=lambda: now)
director.outputs.ai_control = True

rng = random.Random(7)

# Four phrases: a sparse A minor pad, a busier C major build, a dense
# arpeggiated peak and a long quiet tail.
PHRASES = [
	("pad",      [57, 60, 64],                 1.5,  50),
	("build",    [60, 64, 67, 72, 71, 69],    6.0,  90),
	("peak",     [60, 62, 64, 65, 67, 69, 71], 14.0, 120),
	("tail",     [48],                          0.5,  30),
]

for name, pitches, rate, velocity in PHRASES:

	print(f"--- {name}")

	next_note = now

	for _ in range(60):

		# One 80ms hop.
		end = now + 0.08

		while next_note < end:
			pitch = rng.choice(pitches)
			director.record(moodbridge.events.PerformanceEvent.note(next_note, pitch, velocity + rng.randint(-10, 7)))
			next_note += 1.0 / rate

		now = end
		result = director.tick()

	print(
		f"energy {result.tonal.energy:.2f}  valence {result.tonal.valence:+.2f}  "
		f"key {result.tonal.key_name:<3}  section {result.section.name.lower():<10}  "
		f"style {result.style.style.value}"
	)
