import bisect
import logging
import typing

import stepcast.schedule
import stepcast.tempo


logger = logging.getLogger(__name__)


class PlaybackClock:

	"""
	Walks a timeline in beat time and reports which events are due.

	The clock has two states, stopped and playing. It does not own a timer:
	the caller measures wall-clock time and feeds it to `tick()`, which
	converts seconds to beats at the current tempo. Changing the tempo only
	changes that conversion rate from then on.
	"""

	def __init__ (self, tempo: typing.Optional[stepcast.tempo.Tempo] = None) -> None:

		"""
		Create a stopped clock.
		"""

		self._tempo = tempo if tempo is not None else stepcast.tempo.Tempo()
		self._timeline: typing.Optional[stepcast.schedule.Timeline] = None
		self._offsets: typing.List[float] = []
		self._position = 0.0
		self._next_index = 0
		self._loop_count = 0
		self._playing = False


	@property
	def is_playing (self) -> bool:

		return self._playing

	@property
	def tempo (self) -> stepcast.tempo.Tempo:

		return self._tempo

	@property
	def timeline (self) -> typing.Optional[stepcast.schedule.Timeline]:

		"""The timeline being played, or None when stopped."""

		return self._timeline

	@property
	def position (self) -> float:

		"""Current beat position within the loop."""

		return self._position

	@property
	def loop_count (self) -> int:

		"""Number of times playback has wrapped back to beat 0."""

		return self._loop_count

	@property
	def bar (self) -> int:

		return int(self._position // self._tempo.beats_per_bar)

	@property
	def beat_in_bar (self) -> int:

		return int(self._position % self._tempo.beats_per_bar)


	def start (self, timeline: stepcast.schedule.Timeline, tempo: stepcast.tempo.Tempo, endpoint_available: bool = True) -> bool:

		"""Start playing *timeline* from beat 0.

		Parameters:
			timeline: The compiled timeline. Replaces any timeline already playing.
			tempo: Tempo used to convert elapsed seconds to beats.
			endpoint_available: Whether the transport has somewhere to send
				events. When False the clock refuses to start.

		Returns:
			True if the clock is now playing, False if start was refused.
		"""

		if not endpoint_available:
			logger.warning("Clock start refused: no MIDI output endpoint available")
			return False

		self._tempo = tempo
		self._timeline = timeline
		self._offsets = [event.beat_offset for event in timeline.events]
		self._position = 0.0
		self._next_index = 0
		self._loop_count = 0
		self._playing = True

		logger.info(f"Clock started: {len(timeline.events)} events, loop of {timeline.loop_length_beats:g} beats at {tempo.bpm:g} BPM")

		return True


	def stop (self) -> None:

		"""
		Stop playback and discard the timeline. Safe to call when already stopped.
		"""

		if not self._playing and self._timeline is None:
			return

		self._playing = False
		self._timeline = None
		self._offsets = []
		self._position = 0.0
		self._next_index = 0

		logger.info("Clock stopped")


	def set_tempo (self, tempo: stepcast.tempo.Tempo) -> None:

		"""
		Change the beats-per-second rate from this instant forward.
		"""

		self._tempo = tempo


	def replace_timeline (self, timeline: stepcast.schedule.Timeline) -> None:

		"""
		Swap in a rebuilt timeline while playing, keeping the beat position.
		"""

		if not self._playing:
			return

		position = self._position

		self._timeline = timeline
		self._offsets = [event.beat_offset for event in timeline.events]
		self.seek(position)

		logger.info(f"Clock timeline replaced: {len(timeline.events)} events, resuming at beat {self._position:.2f}")


	def seek (self, position: float) -> None:

		"""
		Move to *position* (wrapped into the loop) without firing anything.

		Events at or before the new position count as already fired for the
		current pass.
		"""

		if self._timeline is None:
			return

		loop_length = self._timeline.loop_length_beats

		self._position = position % loop_length if loop_length > 0 else 0.0
		self._next_index = bisect.bisect_right(self._offsets, self._position)


	def tick (self, elapsed_seconds: float) -> typing.List[stepcast.schedule.AbsoluteEvent]:

		"""Advance by *elapsed_seconds* of wall-clock time and return the events now due.

		An event is due once the position reaches its offset, so events at
		beat 0 fire on the first tick even when no time has elapsed. Crossing
		the loop end fires the rest of the pass (including events exactly at
		the loop length) and continues from the top of the loop; a long tick
		may cross several passes.

		With a loop length of 0 nothing is ever due and the position stays at 0.
		"""

		if elapsed_seconds < 0:
			raise ValueError("Elapsed time cannot be negative")

		if not self._playing or self._timeline is None:
			return []

		loop_length = self._timeline.loop_length_beats

		if loop_length <= 0:
			return []

		events = self._timeline.events
		due: typing.List[stepcast.schedule.AbsoluteEvent] = []

		self._position += elapsed_seconds * self._tempo.beats_per_second

		while self._position >= loop_length:
			due.extend(events[self._next_index:])
			self._position -= loop_length
			self._next_index = 0
			self._loop_count += 1
			logger.debug(f"Loop {self._loop_count} started")

		while self._next_index < len(events) and events[self._next_index].beat_offset <= self._position:
			due.append(events[self._next_index])
			self._next_index += 1

		return due


	def seconds_until_next_event (self) -> typing.Optional[float]:

		"""
		Wall-clock time until the next event (or the loop end), at the current tempo.

		Returns None when nothing will ever become due.
		"""

		if not self._playing or self._timeline is None or self._timeline.loop_length_beats <= 0:
			return None

		if self._next_index < len(self._offsets):
			target = self._offsets[self._next_index]
		else:
			target = self._timeline.loop_length_beats

		return max(0.0, target - self._position) / self._tempo.beats_per_second
