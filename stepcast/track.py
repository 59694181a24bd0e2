"""Step and track value types.

A `Track` holds `Step` objects: groups of simultaneous notes that fire at a
beat position, last for a beat duration and share one velocity. Positions and
durations are in beats (floats); conversion to wall-clock time happens in
the playback clock.

Module-level constants:
- `NOTE_NAME_TO_PC`: Maps note names (e.g. `"C"`, `"F#"`, `"Bb"`) to pitch classes (0-11)
"""

import dataclasses
import re
import typing

import stepcast.constants


NOTE_NAME_TO_PC: typing.Dict[str, int] = {
	"C": 0,
	"C#": 1,
	"Db": 1,
	"D": 2,
	"D#": 3,
	"Eb": 3,
	"E": 4,
	"F": 5,
	"F#": 6,
	"Gb": 6,
	"G": 7,
	"G#": 8,
	"Ab": 8,
	"A": 9,
	"A#": 10,
	"Bb": 10,
	"B": 11,
}

_NOTE_NAME_PATTERN = re.compile(r"^([A-Ga-g][#b]?)(-?\d+)$")


def validate_channel (channel: int) -> int:

	"""Return *channel* unchanged, or raise ``ValueError`` if it is not a 4-bit MIDI channel."""

	if not stepcast.constants.MIN_CHANNEL <= channel <= stepcast.constants.MAX_CHANNEL:
		raise ValueError(
			f"MIDI channel must be between {stepcast.constants.MIN_CHANNEL} and "
			f"{stepcast.constants.MAX_CHANNEL}, got {channel}"
		)

	return channel


@dataclasses.dataclass (frozen=True)
class Note:

	"""
	A MIDI note number (0-127).
	"""

	midi_note: int


	def __post_init__ (self) -> None:

		"""Reject note numbers outside the 7-bit MIDI range."""

		if not stepcast.constants.MIN_NOTE <= self.midi_note <= stepcast.constants.MAX_NOTE:
			raise ValueError(f"MIDI note must be between 0 and 127, got {self.midi_note}")


	@classmethod
	def from_name (cls, name: str) -> "Note":

		"""Parse a scientific pitch name such as ``"C4"``, ``"F#2"`` or ``"Bb-1"``.

		Parameters:
			name: Note letter, optional ``#`` or ``b``, then the octave number.

		Returns:
			The note, using the C4 = 60 convention.

		Raises:
			ValueError: If the name cannot be parsed or falls outside 0-127.

		Example:
			```python
			Note.from_name("C4").midi_note    # → 60
			Note.from_name("A4").midi_note    # → 69
			Note.from_name("Db-1").midi_note  # → 1
			```
		"""

		match = _NOTE_NAME_PATTERN.match(name.strip())

		if match is None:
			raise ValueError(f"Unknown note name: {name!r}. Expected e.g. 'C4', 'F#2', 'Bb3'.")

		pitch, octave = match.groups()
		pitch = pitch[0].upper() + pitch[1:]

		if pitch not in NOTE_NAME_TO_PC:
			raise ValueError(f"Unknown note name: {name!r}. Expected e.g. 'C4', 'F#2', 'Bb3'.")

		return cls((int(octave) + 1) * 12 + NOTE_NAME_TO_PC[pitch])


NoteLike = typing.Union[Note, int]


def _to_note (value: NoteLike) -> Note:

	if isinstance(value, Note):
		return value

	return Note(int(value))


@dataclasses.dataclass
class Step:

	"""
	A group of notes firing together at `position` and lasting `duration` beats.

	`notes` behaves as a set: duplicates are dropped, first occurrence wins, so
	iteration order stays deterministic. Plain ints are accepted and converted
	to `Note`.
	"""

	position: float
	duration: float
	notes: typing.List[Note] = dataclasses.field(default_factory=list)
	velocity: int = stepcast.constants.DEFAULT_VELOCITY


	def __post_init__ (self) -> None:

		"""
		Validate timing and velocity, and normalise the note collection.
		"""

		if self.position < 0:
			raise ValueError("Step position cannot be negative")

		if self.duration <= 0:
			raise ValueError("Step duration must be positive")

		if not stepcast.constants.MIN_VELOCITY <= self.velocity <= stepcast.constants.MAX_VELOCITY:
			raise ValueError(f"Velocity must be between 0 and 127, got {self.velocity}")

		unique: typing.List[Note] = []

		for value in self.notes:
			note = _to_note(value)
			if note not in unique:
				unique.append(note)

		self.notes = unique


	@property
	def end (self) -> float:

		"""Beat at which the step's notes are released."""

		return self.position + self.duration


@dataclasses.dataclass (eq=False)
class Track:

	"""
	An unordered list of steps plus routing, mute and solo state.

	The track's index in its sequencer is the input channel it listens on;
	`output_channels` lists the channels its notes are fanned out to.
	Tracks compare by identity, so two tracks with identical content are
	still distinct members of a sequencer.
	"""

	name: str
	steps: typing.List[Step] = dataclasses.field(default_factory=list)
	output_channels: typing.List[int] = dataclasses.field(default_factory=lambda: list(stepcast.constants.DEFAULT_OUTPUT_CHANNELS))
	is_mute: bool = False
	is_solo: bool = False


	def __post_init__ (self) -> None:

		"""Copy the inputs and validate output channels."""

		self.steps = list(self.steps)
		self.output_channels = [validate_channel(channel) for channel in self.output_channels]


	@property
	def duration (self) -> float:

		"""Beat at which the last step ends, or 0 for an empty track."""

		return max((step.end for step in self.steps), default=0.0)


	def add_step (self, position: float, duration: float, notes: typing.Iterable[NoteLike], velocity: int = stepcast.constants.DEFAULT_VELOCITY) -> Step:

		"""
		Create a step from beat values and append it to the track.
		"""

		step = Step(
			position = position,
			duration = duration,
			notes = list(notes),
			velocity = velocity
		)

		self.steps.append(step)

		return step


	def snapshot (self) -> "Track":

		"""
		Return a copy whose step and channel lists are independent of this track.

		Steps themselves are shared; the playback code never mutates them.
		"""

		return Track(
			name = self.name,
			steps = list(self.steps),
			output_channels = list(self.output_channels),
			is_mute = self.is_mute,
			is_solo = self.is_solo
		)
