import dataclasses
import math

import stepcast.constants


@dataclasses.dataclass (frozen=True)
class Tempo:

	"""
	Tempo (BPM) and time signature of a sequencer.

	Tempo is a single scalar for the whole sequence; there is no tempo curve.
	Replace the instance to change it.
	"""

	bpm: float = stepcast.constants.DEFAULT_BPM
	beats_per_bar: int = stepcast.constants.DEFAULT_BEATS_PER_BAR


	def __post_init__ (self) -> None:

		"""
		Reject non-finite or non-positive tempo and time signature values.
		"""

		if not math.isfinite(self.bpm) or self.bpm <= 0:
			raise ValueError("BPM must be a finite positive number")

		if self.beats_per_bar <= 0:
			raise ValueError("Beats per bar must be positive")

		if int(self.beats_per_bar) != self.beats_per_bar:
			raise ValueError("Beats per bar must be a whole number")


	@property
	def seconds_per_beat (self) -> float:

		"""Wall-clock length of one beat."""

		return 60.0 / self.bpm


	@property
	def beats_per_second (self) -> float:

		"""Beats traversed per second of wall-clock time."""

		return self.bpm / 60.0


	def with_bpm (self, bpm: float) -> "Tempo":

		"""Return a copy at a different BPM, keeping the time signature."""

		return dataclasses.replace(self, bpm=bpm)
