import threading
import typing

import mido
import pytest

import stepcast.sequencer
import stepcast.transport


class FakeMidiOut:

	"""MIDI output stub that records outgoing messages."""

	def __init__ (self, name: str = "", virtual: bool = False) -> None:

		self.name = name
		self.virtual = virtual
		self.sent: list[mido.Message] = []
		self.closed = False

	def send (self, message: mido.Message) -> None:

		"""Record the message instead of sending it."""

		self.sent.append(message)

	def close (self) -> None:

		self.closed = True


class FakeMidiIn:

	"""Minimal MIDI input stub for tests."""

	def __init__ (self, name: str = "", virtual: bool = False, callback: typing.Optional[typing.Callable] = None) -> None:

		"""Store the callback for injecting test messages."""

		self.name = name
		self.virtual = virtual
		self.callback = callback
		self.closed = False

	def close (self) -> None:

		self.closed = True

	def inject (self, message: mido.Message) -> None:

		"""Simulate receiving a MIDI message by calling the stored callback."""

		if self.callback is not None:
			self.callback(message)


# Module-level references so tests can reach the most recently opened fake ports.
current_fake_output: typing.Optional[FakeMidiOut] = None
current_fake_input: typing.Optional[FakeMidiIn] = None


def _fake_get_output_names () -> list[str]:

	return ["Dummy MIDI"]


def _fake_get_input_names () -> list[str]:

	return ["Dummy MIDI"]


def _fake_open_output (name: str, virtual: bool = False, **kwargs: typing.Any) -> FakeMidiOut:

	"""Return a fake MIDI output regardless of the name."""

	global current_fake_output
	current_fake_output = FakeMidiOut(name=name, virtual=virtual)
	return current_fake_output


def _fake_open_input (name: str, virtual: bool = False, callback: typing.Optional[typing.Callable] = None, **kwargs: typing.Any) -> FakeMidiIn:

	"""Return a fake MIDI input regardless of the name."""

	global current_fake_input
	current_fake_input = FakeMidiIn(name=name, virtual=virtual, callback=callback)
	return current_fake_input


@pytest.fixture
def patch_midi (monkeypatch: pytest.MonkeyPatch) -> None:

	"""Patch mido to use fake MIDI output and input for all tests that need it."""

	monkeypatch.setattr(mido, "get_output_names", _fake_get_output_names)
	monkeypatch.setattr(mido, "open_output", _fake_open_output)
	monkeypatch.setattr(mido, "get_input_names", _fake_get_input_names)
	monkeypatch.setattr(mido, "open_input", _fake_open_input)


class FakeTransport:

	"""In-memory transport that records every note sent."""

	def __init__ (self, available: bool = True) -> None:

		self.available = available
		self.sent: list[tuple[str, int, int, int]] = []
		# Thread ident of each send, index-aligned with sent.
		self.send_threads: list[int] = []
		self.sink: typing.Optional[stepcast.transport.EventSink] = None
		self.closed = False

	@property
	def endpoint_available (self) -> bool:

		return self.available

	def send_note_on (self, note: int, velocity: int, channel: int) -> None:

		self.sent.append(('note_on', note, velocity, channel))
		self.send_threads.append(threading.get_ident())

	def send_note_off (self, note: int, velocity: int, channel: int) -> None:

		self.sent.append(('note_off', note, velocity, channel))
		self.send_threads.append(threading.get_ident())

	def attach (self, sink: typing.Optional[stepcast.transport.EventSink]) -> None:

		self.sink = sink

	def close (self) -> None:

		self.closed = True


@pytest.fixture
def transport () -> FakeTransport:

	return FakeTransport()


@pytest.fixture
def sequencer (transport: FakeTransport) -> stepcast.sequencer.Sequencer:

	"""A sequencer on a fake transport, with spin-wait disabled."""

	return stepcast.sequencer.Sequencer("Test", transport=transport, spin_wait=False)
