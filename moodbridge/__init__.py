"""
moodbridge - live performance analysis for music visualisers.

moodbridge listens to a live performance (notes, pitch bends and control
changes arriving over OSC or MIDI) and turns it into a small, steady
description of how the music feels right now, published several times a
second to any number of WebSocket renderers.

Each tick (every 80 ms by default) it looks at the last 320 ms of playing and
reports:

- **Energy** (0-1) from note density, loudness and pitch bend.
- **Valence** (-1 to 1), brighter for major keys and higher registers.
- **Key and mode** from a velocity-weighted pitch-class histogram
  correlated against Krumhansl-Kessler key profiles.
- **Section** (verse, pre-chorus, chorus, bridge), advancing when the energy
  jumps with busy harmony and falling back after a long quiet stretch.
- **Style** (pad, lead, arpeggio, chords) with a continuous intensity.

Section and style are held by hysteresis timers so a visualiser does not
flicker between states on every noisy tick.

Running the bridge:

    ```
    python -m moodbridge --config config/config.yaml
    ```

Using the engine directly:

    ```python
    import moodbridge

    director = moodbridge.Director()
    director.on_packet(print)

    director.ingest_osc("/note", [60, 100])
    director.ingest_osc("/note", [64, 100])
    director.tick()
    ```

Package-level exports: ``Director``, ``Bridge``, ``load_config``.
"""

import moodbridge.bridge
import moodbridge.config
import moodbridge.director


Bridge = moodbridge.bridge.Bridge
Director = moodbridge.director.Director
load_config = moodbridge.config.load_config
