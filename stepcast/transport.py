"""MIDI transport: the sequencer's only connection to the outside world.

The sequencer depends on the `Transport` protocol, not on mido. It sends
note events out through the transport, and registers itself as the
transport's single `EventSink` to receive note events arriving from other
applications.

`MidiTransport` is the mido implementation. By default it creates two virtual
ports, ``"<name> In"`` and ``"<name> Out"``, so DAWs and synths can connect
to the sequencer by name.
"""

import logging
import typing

import mido

import stepcast.midi_utils


logger = logging.getLogger(__name__)


@typing.runtime_checkable
class EventSink (typing.Protocol):

	"""
	Receiver for note events arriving from the transport.

	Calls may come from the transport's input thread.
	"""

	def received_note_on (self, note: int, velocity: int, channel: int) -> None:

		...

	def received_note_off (self, note: int, velocity: int, channel: int) -> None:

		...


@typing.runtime_checkable
class Transport (typing.Protocol):

	"""
	Protocol for the MIDI delivery layer used by the sequencer.
	"""

	@property
	def endpoint_available (self) -> bool:

		"""True when there is somewhere to send events."""

		...

	def send_note_on (self, note: int, velocity: int, channel: int) -> None:

		...

	def send_note_off (self, note: int, velocity: int, channel: int) -> None:

		...

	def attach (self, sink: typing.Optional[EventSink]) -> None:

		"""Set (or clear, with None) the receiver for incoming note events."""

		...

	def close (self) -> None:

		...


class MidiTransport:

	"""
	Transport backed by mido ports (virtual by default).
	"""

	def __init__ (
		self,
		name: str,
		output_device_name: typing.Optional[str] = None,
		input_device_name: typing.Optional[str] = None,
		virtual: bool = True
	) -> None:

		"""Configure the transport. Ports are not opened until `open()`.

		Parameters:
			name: Base name for the virtual ports (``"<name> In"`` / ``"<name> Out"``).
			output_device_name: Existing output device to use instead of a virtual port.
			input_device_name: Existing input device to use instead of a virtual port.
			virtual: Create virtual ports when no device name is given. When False
				and no output device is named, the first available output is used
				and no input is opened.
		"""

		self.name = name
		self.output_device_name = output_device_name
		self.input_device_name = input_device_name
		self.virtual = virtual

		self.midi_out: typing.Any = None
		self.midi_in: typing.Any = None
		self._sink: typing.Optional[EventSink] = None


	@property
	def endpoint_available (self) -> bool:

		return self.midi_out is not None


	def open (self) -> None:

		"""
		Open (or create) the output and input ports. Failures are logged and
		leave the corresponding port closed.
		"""

		if self.midi_out is None:
			device_name, midi_out = stepcast.midi_utils.open_output_port(f"{self.name} Out", self.output_device_name, self.virtual)
			if device_name:
				self.output_device_name = device_name
				self.midi_out = midi_out

		if self.midi_in is None:
			device_name, midi_in = stepcast.midi_utils.open_input_port(f"{self.name} In", self.input_device_name, self.virtual, self._on_midi_input)
			if device_name:
				self.input_device_name = device_name
				self.midi_in = midi_in


	def attach (self, sink: typing.Optional[EventSink]) -> None:

		self._sink = sink


	def close (self) -> None:

		"""
		Close both ports and detach the sink.
		"""

		self._sink = None

		if self.midi_in is not None:
			self.midi_in.close()
			self.midi_in = None

		if self.midi_out is not None:
			self.midi_out.close()
			self.midi_out = None

		logger.info(f"Transport '{self.name}' closed")


	def send_note_on (self, note: int, velocity: int, channel: int) -> None:

		self._send(mido.Message('note_on', channel=channel, note=note, velocity=velocity))


	def send_note_off (self, note: int, velocity: int, channel: int) -> None:

		self._send(mido.Message('note_off', channel=channel, note=note, velocity=velocity))


	def _send (self, message: mido.Message) -> None:

		"""
		Send a message to the output port, if one is open.
		"""

		if self.midi_out is None:
			return

		try:
			self.midi_out.send(message)
		except Exception:
			logger.exception("MIDI send failed (port may be disconnected)")


	def _on_midi_input (self, message: typing.Any) -> None:

		"""Forward incoming note messages to the sink.

		This runs in mido's callback thread. Anything other than note on/off is
		ignored.
		"""

		sink = self._sink

		if sink is None:
			return

		if message.type == 'note_on':
			sink.received_note_on(message.note, message.velocity, message.channel)

		elif message.type == 'note_off':
			sink.received_note_off(message.note, message.velocity, message.channel)
