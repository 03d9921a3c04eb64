"""Play a short phrase at a running bridge over OSC.

Start the bridge first (``python -m moodbridge --no-midi``), then run this
script and watch the director packets on ws://localhost:9002.
"""

import itertools
import time

import pythonosc.udp_client


client = pythonosc.udp_client.SimpleUDPClient("127.0.0.1", 9001)

client.send_message("/scene", "demo")
client.send_message("/clock", [120.0, 0.0])

arpeggio = [57, 60, 64, 69, 72, 69, 64, 60]

for step, pitch in zip(range(64), itertools.cycle(arpeggio)):

	client.send_message("/note", [pitch, 96])

	if step % 16 == 8:
		client.send_message("/bend", 2048)
	elif step % 16 == 12:
		client.send_message("/bend", 0)

	time.sleep(0.125)
