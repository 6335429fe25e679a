"""Serial port enumeration and the 1200bps reset touch."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

import serial
from serial.tools.list_ports import comports

from sketchflow.errors import SerialError

__all__ = ["PortInfo", "SerialError", "list_serial_ports", "list_serial_devices", "touch_port"]

logger = logging.getLogger(__name__)

TOUCH_BAUD_RATE = 1200


@dataclass
class PortInfo:
    device: str
    description: str
    hwid: str


def list_serial_ports() -> list[PortInfo]:
    """List available serial ports."""
    ports = []
    for p in comports():
        ports.append(PortInfo(
            device=p.device,
            description=p.description,
            hwid=p.hwid,
        ))
    return ports


async def list_serial_devices() -> list[str]:
    """Snapshot of enumerated serial device identifiers, in OS order."""
    ports = await asyncio.to_thread(list_serial_ports)
    return [p.device for p in ports]


def _open_error(port: str, e: Exception) -> SerialError:
    if isinstance(e, PermissionError):
        return SerialError(f"Permission denied opening {port}: {e}", exit_code=4)
    msg = str(e).lower()
    if "busy" in msg or "resource" in msg:
        return SerialError(f"Port {port} is busy: {e}", exit_code=3)
    return SerialError(f"Cannot open {port}: {e}", exit_code=2)


def touch_port(port: str, baud_rate: int = TOUCH_BAUD_RATE) -> None:
    """Open and close `port` at 1200 baud to make the board jump to its bootloader.

    The handle is always released, even when configuring it fails.
    """
    ser = serial.Serial()
    ser.port = port
    ser.baudrate = baud_rate
    try:
        logger.debug("Opening %s at %d baud for reset", port, baud_rate)
        try:
            ser.open()
        except (PermissionError, serial.SerialException) as e:
            raise _open_error(port, e) from e
        ser.dtr = False
    finally:
        ser.close()
