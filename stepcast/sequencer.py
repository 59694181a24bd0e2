import asyncio
import collections
import logging
import threading
import time
import typing

import stepcast.clock
import stepcast.constants
import stepcast.router
import stepcast.schedule
import stepcast.tempo
import stepcast.track
import stepcast.transport


logger = logging.getLogger(__name__)

# (member tracks, copies taken at the same moment), index-aligned.
TrackSnapshot = typing.Tuple[typing.Tuple[stepcast.track.Track, ...], typing.Tuple[stepcast.track.Track, ...]]


class Sequencer:

	"""
	Multi-track step sequencer that broadcasts to, and routes from, a MIDI transport.

	The sequencer owns the track list (at most 16 tracks, one per channel),
	the tempo and the playback clock. The track at index *n* listens on
	channel *n*: both its scheduled notes and any note arriving from outside
	on channel *n* are routed to the track's output channels.

	Threading:
		Track list mutation (add/remove/mute/solo) and reads by the router
		share one lock. `play()`, `stop()` and the tempo setter must be called
		on the thread running the event loop that drives playback (or from
		plain code with no event loop, driving the clock with `advance()`).
		Incoming note events may arrive on the transport's own thread; they are
		routed on the playback event loop when one is running.
	"""

	def __init__ (
		self,
		name: str,
		tempo: typing.Optional[stepcast.tempo.Tempo] = None,
		transport: typing.Optional[stepcast.transport.Transport] = None,
		spin_wait: bool = True
	) -> None:

		"""Create the sequencer and connect it to a transport.

		Parameters:
			name: Sequencer name. Also names the virtual ports when the default
				transport is used (``"<name> In"`` and ``"<name> Out"``).
			tempo: Initial tempo. Defaults to 120 BPM in 4/4.
			transport: MIDI transport. When omitted, a `MidiTransport` with
				virtual ports is created and opened.
			spin_wait: When True, the playback loop busy-waits for the final
				sub-millisecond before each event for tighter timing.
		"""

		self.name = name

		self._lock = threading.Lock()
		self._notes_lock = threading.Lock()
		self._tracks: typing.List[stepcast.track.Track] = []
		self._tempo = tempo if tempo is not None else stepcast.tempo.Tempo()
		self._clock = stepcast.clock.PlaybackClock(self._tempo)

		# Notes currently sounding, (channel, note) -> number of note-ons not yet released.
		self.active_notes: typing.Counter[typing.Tuple[int, int]] = collections.Counter()

		# Tracks the playing timeline was built from; see _snapshot().
		self._playing_tracks: TrackSnapshot = ((), ())

		self.task: typing.Optional[asyncio.Task] = None
		# Event loop driving playback; incoming notes are handed to it.
		self._loop: typing.Optional[asyncio.AbstractEventLoop] = None
		self._last_tick_time = 0.0
		# Bumped by stop() so a play_async() build that finishes later does not start playback.
		self._generation = 0

		self._spin_wait = spin_wait
		self._spin_threshold: float = 0.001
		# Upper bound on a single sleep, so tempo changes and rebuilds are picked up promptly.
		self._max_sleep: float = 0.01

		if transport is None:
			midi_transport = stepcast.transport.MidiTransport(name)
			midi_transport.open()
			transport = midi_transport

		self.transport = transport
		self.transport.attach(self)


	# Properties

	@property
	def is_playing (self) -> bool:

		return self._clock.is_playing

	@property
	def timeline (self) -> typing.Optional[stepcast.schedule.Timeline]:

		"""The compiled timeline while playing, otherwise None."""

		return self._clock.timeline

	@property
	def clock (self) -> stepcast.clock.PlaybackClock:

		return self._clock

	@property
	def tempo (self) -> stepcast.tempo.Tempo:

		return self._tempo

	@tempo.setter
	def tempo (self, tempo: stepcast.tempo.Tempo) -> None:

		"""
		Replace the tempo. During playback the new rate applies from now on,
		without restarting or rebuilding.
		"""

		if not isinstance(tempo, stepcast.tempo.Tempo):
			raise TypeError(f"Expected a Tempo, got {type(tempo).__name__}")

		# Time already elapsed is converted at the old rate.
		self._flush_clock()

		self._tempo = tempo
		self._clock.set_tempo(tempo)

		logger.info(f"Tempo set to {tempo.bpm:.2f} BPM, {tempo.beats_per_bar} beats per bar")

	@property
	def tracks (self) -> typing.Tuple[stepcast.track.Track, ...]:

		"""A snapshot of the track list. The tracks themselves are live objects."""

		with self._lock:
			return tuple(self._tracks)

	@tracks.setter
	def tracks (self, tracks: typing.Sequence[stepcast.track.Track]) -> None:

		tracks = list(tracks)

		if len(tracks) > stepcast.constants.MAX_TRACKS:
			raise ValueError(f"A sequencer holds at most {stepcast.constants.MAX_TRACKS} tracks, got {len(tracks)}")

		with self._lock:
			self._tracks = tracks

		logger.info(f"Track list replaced ({len(tracks)} tracks)")


	def set_bpm (self, bpm: float) -> None:

		"""
		Change the BPM, keeping the time signature.
		"""

		self.tempo = self._tempo.with_bpm(bpm)


	# Track management

	def add_track (self, track: stepcast.track.Track, index: typing.Optional[int] = None) -> bool:

		"""Insert a track, appending by default.

		Parameters:
			track: The track to add.
			index: Position to insert at, clamped to ``[0, len(tracks)]``.

		Returns:
			True if the track was inserted. False, with the track list unchanged,
			when the sequencer already holds 16 tracks.
		"""

		with self._lock:

			if len(self._tracks) >= stepcast.constants.MAX_TRACKS:
				logger.warning(f"Track '{track.name}' not added: sequencer already has {stepcast.constants.MAX_TRACKS} tracks")
				return False

			insert_at = len(self._tracks) if index is None else max(0, min(index, len(self._tracks)))
			self._tracks.insert(insert_at, track)

		logger.info(f"Added track '{track.name}' at index {insert_at}")

		return True


	def remove_track (self, track: stepcast.track.Track) -> bool:

		"""
		Remove a track. Returns False if it is not in this sequencer.
		"""

		with self._lock:

			index = self._index_of(track)

			if index is None:
				logger.warning(f"Cannot remove track '{track.name}': not in this sequencer")
				return False

			del self._tracks[index]

		logger.info(f"Removed track '{track.name}' from index {index}")

		return True


	def mute_track (self, track: stepcast.track.Track) -> bool:

		"""
		Mute a track: its notes keep sounding at velocity 0 until unmuted.
		"""

		return self._set_flag(track, "is_mute", True)

	def unmute_track (self, track: stepcast.track.Track) -> bool:

		return self._set_flag(track, "is_mute", False)

	def solo_track (self, track: stepcast.track.Track) -> bool:

		"""
		Mark a track as soloed. Solo is stored only; routing ignores it.
		"""

		return self._set_flag(track, "is_solo", True)

	def unsolo_track (self, track: stepcast.track.Track) -> bool:

		return self._set_flag(track, "is_solo", False)


	def _index_of (self, track: stepcast.track.Track) -> typing.Optional[int]:

		"""Find a track by identity. Caller must hold the lock."""

		for index, candidate in enumerate(self._tracks):
			if candidate is track:
				return index

		return None


	def _set_flag (self, track: stepcast.track.Track, attribute: str, value: bool) -> bool:

		"""
		Set a mute/solo flag on a member track. Returns False if it is not a member.
		"""

		with self._lock:

			if self._index_of(track) is None:
				logger.warning(f"Cannot set {attribute} on track '{track.name}': not in this sequencer")
				return False

			setattr(track, attribute, value)

		logger.info(f"Track '{track.name}': {attribute} = {value}")

		return True


	def _snapshot (self) -> TrackSnapshot:

		"""
		Copy the track list for building, so the build never sees later edits.

		Returns the member tracks alongside their copies. Playback routes
		through the copies and reads only the mute flag from the members.
		"""

		with self._lock:
			sources = tuple(self._tracks)

		return sources, tuple(track.snapshot() for track in sources)


	# Transport control

	def play (self) -> bool:

		"""Build the timeline from the current tracks and start playback from beat 0.

		When called inside a running event loop, a background task drives the
		clock. Otherwise the caller drives it with `advance()`.

		Returns:
			True if playback started. False when the transport has no output
			endpoint, in which case nothing changes.
		"""

		if not self.transport.endpoint_available:
			logger.warning("Cannot play: no MIDI output endpoint available")
			return False

		snapshot = self._snapshot()
		timeline = stepcast.schedule.build(snapshot[1], self._tempo)

		return self._commit(timeline, snapshot, self._generation)


	async def play_async (self, completion: typing.Optional[typing.Callable[[bool], typing.Any]] = None) -> bool:

		"""Build the timeline on a worker thread, then start playback on the event loop.

		Parameters:
			completion: Called exactly once with whether playback started, after
				the resulting state is visible on the sequencer. Useful to
				dismiss a loading state.

		Returns:
			The same flag passed to *completion*. A `stop()` issued while the
			build is running makes this return False.
		"""

		if not self.transport.endpoint_available:
			logger.warning("Cannot play: no MIDI output endpoint available")
			started = False

		else:
			generation = self._generation
			snapshot = self._snapshot()

			loop = asyncio.get_running_loop()
			timeline = await loop.run_in_executor(None, stepcast.schedule.build, snapshot[1], self._tempo)

			started = self._commit(timeline, snapshot, generation)

		if completion is not None:
			completion(started)

		return started


	def _commit (self, timeline: stepcast.schedule.Timeline, snapshot: TrackSnapshot, generation: int) -> bool:

		"""
		Start the clock on a freshly built timeline, unless stop() ran since the build began.
		"""

		if generation != self._generation:
			logger.info("Playback not started: stopped while the timeline was building")
			return False

		self._release_active_notes()

		if not self._clock.start(timeline, self._tempo, self.transport.endpoint_available):
			return False

		self._playing_tracks = snapshot

		self._last_tick_time = time.perf_counter()
		self._start_driver()

		logger.info(f"Sequencer '{self.name}' playing")

		return True


	def rebuild (self) -> bool:

		"""Rebuild the timeline from the current tracks without stopping.

		Playback continues from the current beat position (wrapped into the
		new loop length). Notes still sounding are released first, since the
		new timeline may no longer contain their note-offs.

		Returns:
			False when not playing.
		"""

		if not self._clock.is_playing:
			return False

		self._flush_clock()

		snapshot = self._snapshot()
		timeline = stepcast.schedule.build(snapshot[1], self._tempo)

		self._release_active_notes()
		self._clock.replace_timeline(timeline)
		self._playing_tracks = snapshot

		return True


	def stop (self) -> None:

		"""
		Stop playback, discard the timeline and release sounding notes. Idempotent.
		"""

		self._generation += 1

		was_playing = self._clock.is_playing
		self._clock.stop()

		if self.task is not None:
			if not self.task.done():
				self.task.cancel()
			self.task = None

		self._loop = None
		self._playing_tracks = ((), ())
		self._release_active_notes()

		if was_playing:
			logger.info(f"Sequencer '{self.name}' stopped")


	async def run (self) -> None:

		"""Start playback and wait until it is stopped.

		Returns at once when there is nothing to play (a loop length of 0).
		Cancelling ``run()`` itself stops playback and propagates.
		"""

		if not self.play():
			return

		task = self.task

		try:
			if task is not None and self._clock.timeline is not None and self._clock.timeline.loop_length_beats > 0:
				# wait() does not raise when the driver is cancelled by stop().
				await asyncio.wait({task})
		finally:
			self.stop()


	def close (self) -> None:

		"""
		Stop playback and close the transport.
		"""

		self.stop()
		self.transport.attach(None)
		self.transport.close()


	# Playback

	def advance (self, elapsed_seconds: float) -> typing.List[stepcast.router.RoutedEvent]:

		"""Advance the clock and send every event that became due.

		Scheduled events go through the router on their track's channel, so
		mute and output channel fan-out apply to playback exactly as they do
		to incoming notes. Routing uses the tracks as they were when the
		timeline was built; only mute is read live. Other track edits take
		effect on `rebuild()` or the next `play()`.

		Returns:
			The events sent, in order.
		"""

		due = self._clock.tick(elapsed_seconds)

		if not due:
			return []

		sources, tracks = self._playing_tracks

		for source, track in zip(sources, tracks):
			track.is_mute = source.is_mute

		sent: typing.List[stepcast.router.RoutedEvent] = []

		for event in due:
			routed = stepcast.router.route(event.note, event.velocity, event.track_index, tracks, event.message_type)
			self._send(routed)
			sent.extend(routed)

		logger.debug(f"Beat {self._clock.position:.3f}: sent {len(sent)} events")

		return sent


	def _flush_clock (self) -> None:

		"""Bring a loop-driven clock up to date before its rate or timeline changes."""

		if not self._clock.is_playing or self.task is None or self.task.done():
			return

		now = time.perf_counter()
		self.advance(now - self._last_tick_time)
		self._last_tick_time = now


	def _start_driver (self) -> None:

		"""
		Start the playback loop task if an event loop is running here.
		"""

		try:
			loop = asyncio.get_running_loop()
		except RuntimeError:
			logger.debug("No running event loop: drive playback with advance()")
			return

		self._loop = loop

		if self.task is None or self.task.done():
			self.task = loop.create_task(self._run_loop())


	async def _run_loop (self) -> None:

		"""Drive the clock from the wall clock until playback stops.

		Sleeps until the next event is due (capped at `_max_sleep`). With spin
		wait enabled, the last `_spin_threshold` seconds before an event are
		busy-waited rather than slept.
		"""

		while self._clock.is_playing:

			now = time.perf_counter()
			self.advance(now - self._last_tick_time)
			self._last_tick_time = now

			wait = self._clock.seconds_until_next_event()

			if wait is None or wait >= self._max_sleep:
				await asyncio.sleep(self._max_sleep)

			elif self._spin_wait and wait > self._spin_threshold:
				target = now + wait
				await asyncio.sleep(wait - self._spin_threshold)
				while time.perf_counter() < target:
					pass

			else:
				await asyncio.sleep(wait)


	def _send (self, events: typing.Iterable[stepcast.router.RoutedEvent]) -> None:

		"""
		Send routed events to the transport, tracking which notes are sounding.
		"""

		for event in events:

			key = (event.channel, event.note)

			with self._notes_lock:
				if event.message_type == stepcast.constants.NOTE_ON and event.velocity > 0:
					self.active_notes[key] += 1
				elif self.active_notes[key] > 1:
					self.active_notes[key] -= 1
				else:
					self.active_notes.pop(key, None)

			if event.message_type == stepcast.constants.NOTE_ON:
				self.transport.send_note_on(event.note, event.velocity, event.channel)
			else:
				self.transport.send_note_off(event.note, event.velocity, event.channel)


	def _release_active_notes (self) -> None:

		"""
		Send note_off for every note still sounding.
		"""

		with self._notes_lock:
			notes = list(self.active_notes)
			self.active_notes.clear()

		for channel, note in notes:
			self.transport.send_note_off(note, 0, channel)

		if notes:
			logger.info(f"Released {len(notes)} sounding notes")


	# EventSink

	def received_note_on (self, note: int, velocity: int, channel: int) -> None:

		"""
		Route a note-on arriving from the transport. Ignored while stopped.
		"""

		self._dispatch_incoming(note, velocity, channel, stepcast.constants.NOTE_ON)

	def received_note_off (self, note: int, velocity: int, channel: int) -> None:

		self._dispatch_incoming(note, velocity, channel, stepcast.constants.NOTE_OFF)


	def _dispatch_incoming (self, note: int, velocity: int, channel: int, message_type: str) -> None:

		"""
		Run the routing of an incoming note on the playback event loop.

		The transport calls in from its own thread; routing and sending happen
		on the loop so they interleave cleanly with scheduled events. With no
		loop driving playback the note is routed on the calling thread.
		"""

		loop = self._loop

		if loop is None or loop.is_closed():
			self._route_incoming(note, velocity, channel, message_type)
			return

		try:
			running = asyncio.get_running_loop()
		except RuntimeError:
			running = None

		if running is loop:
			self._route_incoming(note, velocity, channel, message_type)
			return

		try:
			loop.call_soon_threadsafe(self._route_incoming, note, velocity, channel, message_type)
		except RuntimeError:
			# Loop closed between the check and the call.
			logger.debug(f"Dropped incoming {message_type}: event loop closed")


	def _route_incoming (self, note: int, velocity: int, channel: int, message_type: str) -> None:

		if not self._clock.is_playing:
			return

		routed = stepcast.router.route(note, velocity, channel, self.tracks, message_type)

		if not routed:
			logger.debug(f"Unrouted {message_type} on channel {channel}")
			return

		self._send(routed)
