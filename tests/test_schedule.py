import random

import pytest

import stepcast.schedule
import stepcast.tempo

from stepcast.track import Step, Track


TEMPO = stepcast.tempo.Tempo(bpm=120)


def test_single_step_yields_on_and_off () -> None:

	"""One step, one note gives exactly one note_on at the position and one note_off at the end."""

	track = Track("lead", steps=[Step(position=0, duration=1, notes=[60], velocity=100)])

	timeline = stepcast.schedule.build([track], TEMPO)

	assert [(e.beat_offset, e.message_type, e.note, e.velocity, e.track_index) for e in timeline.events] == [
		(0, 'note_on', 60, 100, 0),
		(1, 'note_off', 60, 100, 0),
	]
	assert timeline.loop_length_beats == 1


def test_loop_length_is_longest_track () -> None:

	short = Track("short", steps=[Step(position=3, duration=1, notes=[60])])
	long = Track("long", steps=[Step(position=5, duration=2, notes=[48])])

	timeline = stepcast.schedule.build([short, long], TEMPO)

	assert timeline.loop_length_beats == 7


def test_no_tracks_gives_empty_timeline () -> None:

	timeline = stepcast.schedule.build([], TEMPO)

	assert timeline.is_empty
	assert timeline.loop_length_beats == 0


def test_empty_track_contributes_nothing () -> None:

	filled = Track("filled", steps=[Step(position=0, duration=2, notes=[60])])

	timeline = stepcast.schedule.build([Track("empty"), filled], TEMPO)

	assert {e.track_index for e in timeline.events} == {1}
	assert timeline.loop_length_beats == 2


def test_unsorted_steps_are_sorted_by_position () -> None:

	track = Track("lead", steps=[
		Step(position=2, duration=1, notes=[64]),
		Step(position=0, duration=1, notes=[60]),
	])

	timeline = stepcast.schedule.build([track], TEMPO)
	note_ons = [e.note for e in timeline.events if e.message_type == 'note_on']

	assert note_ons == [60, 64]


def test_chord_emits_one_pair_per_note () -> None:

	track = Track("keys", steps=[Step(position=0, duration=4, notes=[60, 64, 67], velocity=80)])

	timeline = stepcast.schedule.build([track], TEMPO)

	assert len(timeline.events) == 6
	assert [e.note for e in timeline.events[:3]] == [60, 64, 67]
	assert all(e.velocity == 80 for e in timeline.events)


def test_ties_keep_track_and_step_order () -> None:

	"""Events at the same beat keep track order, and a note_off precedes the next step's note_on."""

	first = Track("first", steps=[
		Step(position=0, duration=1, notes=[60]),
		Step(position=1, duration=1, notes=[60]),
	])
	second = Track("second", steps=[Step(position=1, duration=1, notes=[36])])

	timeline = stepcast.schedule.build([first, second], TEMPO)
	at_one = [(e.track_index, e.message_type, e.note) for e in timeline.events if e.beat_offset == 1]

	assert at_one == [
		(0, 'note_off', 60),
		(0, 'note_on', 60),
		(1, 'note_on', 36),
	]


def test_events_are_sorted () -> None:

	tracks = [
		Track("a", steps=[Step(position=3, duration=0.5, notes=[60]), Step(position=0.25, duration=4, notes=[62])]),
		Track("b", steps=[Step(position=1, duration=1, notes=[40])]),
	]

	offsets = [e.beat_offset for e in stepcast.schedule.build(tracks, TEMPO).events]

	assert offsets == sorted(offsets)


def test_every_note_on_has_a_later_note_off () -> None:

	"""Each note_on is matched by a note_off for the same track and note at or after it."""

	rng = random.Random(7)
	tracks = []

	for index in range(5):
		track = Track(f"track {index}")
		for _ in range(rng.randint(0, 12)):
			track.add_step(
				position = rng.choice([0, 0.25, 0.5, 1, 2.5, 3, 7]),
				duration = rng.choice([0.1, 0.25, 1, 3]),
				notes = rng.sample(range(36, 84), rng.randint(1, 3)),
				velocity = rng.randint(0, 127)
			)
		tracks.append(track)

	events = list(stepcast.schedule.build(tracks, TEMPO).events)

	for on in [e for e in events if e.message_type == 'note_on']:
		matches = [
			off for off in events
			if off.message_type == 'note_off'
			and off.track_index == on.track_index
			and off.note == on.note
			and off.beat_offset >= on.beat_offset
		]
		assert matches
		events.remove(matches[0])


def test_events_between () -> None:

	track = Track("lead", steps=[Step(position=0, duration=1, notes=[60]), Step(position=2, duration=1, notes=[62])])

	timeline = stepcast.schedule.build([track], TEMPO)

	assert [(e.beat_offset, e.message_type) for e in timeline.events_between(1, 3)] == [(1, 'note_off'), (2, 'note_on')]
