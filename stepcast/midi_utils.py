import logging
import typing

import mido

logger = logging.getLogger(__name__)

PortResult = typing.Tuple[typing.Optional[str], typing.Optional[typing.Any]]


def open_output_port(port_name: str, device_name: typing.Optional[str] = None, virtual: bool = True) -> PortResult:
    """
    Open a MIDI output port.

    - If `device_name` is provided, opens that existing device.
    - Otherwise, if `virtual` is True, creates a virtual port called `port_name`
      that other applications can connect to.
    - Otherwise, auto-discovers devices: uses the first one found, with a
      warning if more than one exists.

    Returns:
        A tuple of (port_name, midi_out_object) or (None, None) on failure.
    """
    try:
        if device_name is not None:
            outputs = mido.get_output_names()
            logger.info(f"Available MIDI outputs: {outputs}")

            if device_name not in outputs:
                logger.error(
                    f"MIDI output device '{device_name}' not found. "
                    f"Available devices: {outputs}"
                )
                return None, None

            midi_out = mido.open_output(device_name)
            logger.info(f"Opened MIDI output: {device_name}")
            return device_name, midi_out

        if virtual:
            midi_out = mido.open_output(port_name, virtual=True)
            logger.info(f"Created virtual MIDI output: {port_name}")
            return port_name, midi_out

        outputs = mido.get_output_names()
        logger.info(f"Available MIDI outputs: {outputs}")

        if not outputs:
            logger.error("No MIDI output devices found.")
            return None, None

        if len(outputs) > 1:
            logger.warning(f"Several MIDI outputs found - using '{outputs[0]}'. Set output_device to choose.")

        midi_out = mido.open_output(outputs[0])
        logger.info(f"Opened MIDI output: {outputs[0]}")
        return outputs[0], midi_out

    except Exception as e:
        logger.error(f"Failed to open MIDI output: {e}")
        return None, None


def open_input_port(port_name: str, device_name: typing.Optional[str] = None, virtual: bool = True, callback: typing.Optional[typing.Callable] = None) -> PortResult:
    """
    Open a MIDI input port that delivers messages to `callback`.

    - If `device_name` is provided, opens that device. When the precise name is
      not found, falls back to the first available input and logs a warning.
    - Otherwise, if `virtual` is True, creates a virtual port called `port_name`.
    - Otherwise returns (None, None): input is optional.

    Returns:
        A tuple of (port_name, midi_in_object) or (None, None) on failure.
    """
    try:
        if device_name is not None:
            inputs = mido.get_input_names()
            logger.info(f"Available MIDI inputs: {inputs}")

            target = device_name

            if target not in inputs:
                logger.warning(f"MIDI input device '{target}' not found.")
                if inputs:
                    target = inputs[0]
                    logger.warning(f"Fallback to: {target}")
                else:
                    return None, None

            midi_in = mido.open_input(target, callback=callback)
            logger.info(f"Opened MIDI input: {target}")
            return target, midi_in

        if virtual:
            midi_in = mido.open_input(port_name, virtual=True, callback=callback)
            logger.info(f"Created virtual MIDI input: {port_name}")
            return port_name, midi_in

        return None, None

    except Exception as e:
        logger.error(f"Failed to open MIDI input: {e}")
        return None, None
