"""Sequencer configuration loaded from YAML.

Example ``config.yaml``::

    name: Stepcast
    bpm: 110
    beats_per_bar: 4
    virtual: true
    output_device: null
    input_device: null
    log_level: INFO

Every key is optional. Unknown keys are ignored with a warning.
"""

import dataclasses
import logging
import math
import os
import typing

import yaml

import stepcast.constants


logger = logging.getLogger(__name__)


@dataclasses.dataclass
class Config:

	"""
	Settings for building a sequencer and its transport.
	"""

	name: str = "Stepcast"
	bpm: float = stepcast.constants.DEFAULT_BPM
	beats_per_bar: int = stepcast.constants.DEFAULT_BEATS_PER_BAR
	output_device: typing.Optional[str] = None
	input_device: typing.Optional[str] = None
	virtual: bool = True
	log_level: str = "INFO"


	def __post_init__ (self) -> None:

		if not math.isfinite(self.bpm) or self.bpm <= 0:
			raise ValueError("Config bpm must be a finite positive number")

		if self.beats_per_bar <= 0:
			raise ValueError("Config beats_per_bar must be positive")

		if logging.getLevelName(self.log_level.upper()) not in (logging.DEBUG, logging.INFO, logging.WARNING, logging.ERROR, logging.CRITICAL):
			raise ValueError(f"Unknown log level: {self.log_level!r}")


def load_config (config_path: str = 'config.yaml') -> Config:

	"""
	Load configuration from a YAML file, falling back to defaults when it does not exist.
	"""

	if not os.path.exists(config_path):
		logger.warning(f"Config file {config_path} not found. Using defaults.")
		return Config()

	with open(config_path, 'r') as f:
		raw = yaml.safe_load(f) or {}

	if not isinstance(raw, dict):
		raise ValueError(f"Config file {config_path} must contain a mapping")

	known = {field.name for field in dataclasses.fields(Config)}

	for key in raw:
		if key not in known:
			logger.warning(f"Ignoring unknown config key: {key!r}")

	return Config(**{key: value for key, value in raw.items() if key in known})
