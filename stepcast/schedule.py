"""Compile tracks into a looping, beat-positioned event timeline.

The timeline only stores beat offsets. Converting beats to seconds is the
playback clock's job, so a tempo change never requires a rebuild.
"""

import dataclasses
import logging
import typing

import stepcast.constants
import stepcast.tempo
import stepcast.track


logger = logging.getLogger(__name__)


@dataclasses.dataclass (frozen=True)
class AbsoluteEvent:

	"""
	A note event at an absolute beat offset within the loop.
	"""

	beat_offset: float
	message_type: str
	note: int
	velocity: int
	track_index: int


@dataclasses.dataclass (frozen=True)
class Timeline:

	"""
	Every note event of every track, sorted by beat offset, plus the loop length.
	"""

	events: typing.Tuple[AbsoluteEvent, ...] = ()
	loop_length_beats: float = 0.0


	@property
	def is_empty (self) -> bool:

		"""True when there is nothing to play."""

		return not self.events


	def events_between (self, start: float, end: float) -> typing.List[AbsoluteEvent]:

		"""
		Return the events with ``start <= beat_offset < end``, in timeline order.
		"""

		return [event for event in self.events if start <= event.beat_offset < end]


def build (tracks: typing.Sequence[stepcast.track.Track], tempo: stepcast.tempo.Tempo) -> Timeline:

	"""Build the playback timeline for a set of tracks.

	Each note of each step produces a ``note_on`` at the step position and a
	``note_off`` at the step end, both carrying the step velocity and the index
	of the owning track. Steps are sorted by position first; the merge is a
	stable sort, so events sharing an offset keep track, step and note order.

	Parameters:
		tracks: Tracks in channel order. The index of each track is written to
			every event it produces.
		tempo: The tempo the timeline will be played at. Only used for logging;
			offsets stay in beats.

	Returns:
		The compiled timeline. No tracks, or no steps, gives an empty timeline
		with a loop length of 0.
	"""

	events: typing.List[AbsoluteEvent] = []
	loop_length = 0.0

	for track_index, track in enumerate(tracks):

		for step in sorted(track.steps, key=lambda s: s.position):

			for note in step.notes:

				events.append(AbsoluteEvent(
					beat_offset = step.position,
					message_type = stepcast.constants.NOTE_ON,
					note = note.midi_note,
					velocity = step.velocity,
					track_index = track_index
				))

				events.append(AbsoluteEvent(
					beat_offset = step.end,
					message_type = stepcast.constants.NOTE_OFF,
					note = note.midi_note,
					velocity = step.velocity,
					track_index = track_index
				))

		loop_length = max(loop_length, track.duration)

	events.sort(key=lambda event: event.beat_offset)

	logger.debug(
		f"Built timeline: {len(events)} events over {loop_length:g} beats "
		f"({loop_length * tempo.seconds_per_beat:.2f}s at {tempo.bpm:g} BPM)"
	)

	return Timeline(events=tuple(events), loop_length_beats=loop_length)
