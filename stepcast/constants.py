"""MIDI range constants and sequencer defaults.

Channels are 4-bit (0-15). A sequencer holds at most one track per channel,
because a track's index doubles as the input channel it listens on.

Note numbers and velocities are 7-bit (0-127). Note names use the
**C4 = 60** convention (Middle C), matching most DAWs.
"""

# MIDI standard ranges
MIN_CHANNEL = 0
MAX_CHANNEL = 15
MIN_NOTE = 0
MAX_NOTE = 127
MIN_VELOCITY = 0
MAX_VELOCITY = 127

# One track per channel
MAX_TRACKS = MAX_CHANNEL + 1

# Defaults
DEFAULT_BPM = 120.0
DEFAULT_BEATS_PER_BAR = 4
DEFAULT_VELOCITY = 100
DEFAULT_OUTPUT_CHANNELS = (0,)

# Message types (mido naming)
NOTE_ON = 'note_on'
NOTE_OFF = 'note_off'
