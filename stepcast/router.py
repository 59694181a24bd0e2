"""Fan incoming note events out to each track's output channels.

A note event arriving on channel *n* belongs to the track at index *n*. The
router repeats it on every channel in that track's ``output_channels``:

- ``note_on`` is sent at velocity 0 when the track is muted.
- ``note_off`` is always sent at its original velocity, so muting a track
  while a note is held can never leave it stuck.
- Solo is stored on tracks but does not affect routing.

``route()`` only reads its arguments and can be called from any thread.
"""

import dataclasses
import typing

import stepcast.constants
import stepcast.track


@dataclasses.dataclass (frozen=True)
class RoutedEvent:

	"""
	A note event addressed to one output channel.
	"""

	message_type: str
	note: int
	velocity: int
	channel: int


def route (
	note: int,
	velocity: int,
	channel: int,
	tracks: typing.Sequence[stepcast.track.Track],
	message_type: str = stepcast.constants.NOTE_ON
) -> typing.List[RoutedEvent]:

	"""Route one note event through the track listening on *channel*.

	Parameters:
		note: MIDI note number.
		velocity: Incoming velocity.
		channel: Input channel; selects ``tracks[channel]``.
		tracks: Tracks in channel order.
		message_type: ``"note_on"`` or ``"note_off"``.

	Returns:
		One event per output channel of the track, in the track's channel
		order. Empty when no track listens on *channel*.

	Raises:
		ValueError: For any other message type.

	Example:
		```python
		track = Track("bass", output_channels=[2, 5], is_mute=True)
		route(60, 100, 0, [track])
		# → [RoutedEvent('note_on', 60, 0, 2), RoutedEvent('note_on', 60, 0, 5)]
		```
	"""

	if message_type not in (stepcast.constants.NOTE_ON, stepcast.constants.NOTE_OFF):
		raise ValueError(f"Cannot route message type {message_type!r}")

	if not 0 <= channel < len(tracks):
		return []

	track = tracks[channel]

	if message_type == stepcast.constants.NOTE_ON and track.is_mute:
		velocity = 0

	return [
		RoutedEvent(
			message_type = message_type,
			note = note,
			velocity = velocity,
			channel = output_channel
		)
		for output_channel in track.output_channels
	]
