"""
Stepcast - a multi-track MIDI step sequencer that broadcasts over virtual ports.

Stepcast plays a set of tracks, each a list of note steps positioned in
beats, as one looping timeline. It creates two virtual MIDI ports,
``"<name> Out"`` for other applications to listen to and ``"<name> In"`` for
them to play into. Notes arriving on channel *n* are re-routed through the
track at index *n*, so a track's output channels, mute and solo state apply
both to its own steps and to anything played into it.

- **Steps, not a piano roll.** A step is a chord (or single note) with a beat
  position, a beat duration and a velocity. Tracks need not keep steps in order.
- **One timeline.** All tracks compile into a single beat-positioned event list
  that loops at the longest track's end.
- **Live tempo.** Changing tempo while playing rescales the clock without
  rebuilding or restarting.
- **Mute without stuck notes.** A muted track sends note-ons at velocity 0 and
  always forwards note-offs.
- **Background build.** ``play_async()`` compiles the timeline on a worker thread
  and starts playback on the event loop.

Minimal example:

    ```python
    import asyncio
    import stepcast

    seq = stepcast.Sequencer("Stepcast", tempo=stepcast.Tempo(bpm=110))

    bass = stepcast.Track("bass", output_channels=[1])
    bass.add_step(0, 1, [36], velocity=100)
    bass.add_step(2, 1, [stepcast.Note.from_name("G1")])
    seq.add_track(bass)

    asyncio.run(seq.run())
    ```

Package-level exports: ``Sequencer``, ``Tempo``, ``Track``, ``Step``, ``Note``.
"""

import stepcast.sequencer
import stepcast.tempo
import stepcast.track


Sequencer = stepcast.sequencer.Sequencer
Tempo = stepcast.tempo.Tempo
Track = stepcast.track.Track
Step = stepcast.track.Step
Note = stepcast.track.Note
