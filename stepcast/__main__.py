import asyncio
import logging
import sys

import stepcast.config
import stepcast.sequencer
import stepcast.tempo
import stepcast.track
import stepcast.transport


logger = logging.getLogger(__name__)


def build_demo_tracks () -> list:

	"""
	A two-bar drum and bass loop on channels 9 and 1.
	"""

	drums = stepcast.track.Track("drums", output_channels=[9])

	for beat in range(8):
		drums.add_step(beat, 0.25, [36 if beat % 2 == 0 else 38], velocity=110)
		drums.add_step(beat + 0.5, 0.25, [42], velocity=70)

	bass = stepcast.track.Track("bass", output_channels=[1])

	for position, name in [(0, "C2"), (1.5, "C2"), (3, "G1"), (4, "A#1"), (6, "F1")]:
		bass.add_step(position, 1, [stepcast.track.Note.from_name(name)], velocity=96)

	return [drums, bass]


def main () -> None:

	"""
	Main entry point: ``python -m stepcast [config.yaml]``.
	"""

	config_path = sys.argv[1] if len(sys.argv) > 1 else 'config.yaml'
	config = stepcast.config.load_config(config_path)

	logging.basicConfig(level=config.log_level.upper())

	logger.info("Stepcast starting...")

	transport = stepcast.transport.MidiTransport(
		name = config.name,
		output_device_name = config.output_device,
		input_device_name = config.input_device,
		virtual = config.virtual
	)
	transport.open()

	seq = stepcast.sequencer.Sequencer(
		name = config.name,
		tempo = stepcast.tempo.Tempo(bpm=config.bpm, beats_per_bar=config.beats_per_bar),
		transport = transport
	)

	for track in build_demo_tracks():
		seq.add_track(track)

	try:
		asyncio.run(seq.run())
	except KeyboardInterrupt:
		logger.info("Stopping...")
	finally:
		seq.close()


if __name__ == "__main__":
	main()
