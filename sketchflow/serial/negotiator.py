"""Upload port negotiation: 1200bps touch reset and port rediscovery."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from sketchflow.output import OutputChannel
from sketchflow.properties import PropertySet
from sketchflow.serial.port import list_serial_devices, touch_port

logger = logging.getLogger(__name__)

TOUCH_SETTLE_DELAY = 0.4
POLL_INTERVAL = 0.25
UPLOAD_PORT_TIMEOUT = 10.0
SAME_PORT_GRACE = 5.0
ENUMERATION_SETTLE = 0.25
POST_UPLOAD_DELAY = 1.0
POST_UPLOAD_TIMEOUT = 2.0

ListDevices = Callable[[], Awaitable[list[str]]]
Sleep = Callable[[float], Awaitable[None]]
Touch = Callable[[str], None]


class SerialPortNegotiator:
    """Stages the serial device before the upload tool runs.

    Boards with native USB (Leonardo, Zero, ...) enter their bootloader when
    the port is opened at 1200 baud and closed again, and then re-enumerate,
    often under a different device name. The negotiator performs that reset
    and finds the port the bootloader shows up on.

    Elapsed time is counted in poll increments rather than read from a
    clock, so the timing is deterministic under a fake `sleep`.
    """

    def __init__(
        self,
        list_devices: ListDevices = list_serial_devices,
        sleep: Sleep = asyncio.sleep,
        touch: Touch = touch_port,
        channel: OutputChannel | None = None,
    ):
        self._list_devices = list_devices
        self._sleep = sleep
        self._touch = touch
        self._channel = channel

    async def prepare_upload_port(self, port: str, properties: PropertySet, verbose: bool = False) -> str:
        """Reset the board if the platform asks for it and return the port to upload to."""
        do_touch = properties.get("upload.use_1200bps_touch") == "true"
        wait = properties.get("upload.wait_for_upload_port") == "true"
        if not do_touch:
            return port

        upload_port = None
        before = await self._list_devices()
        if port in before:
            if verbose and self._channel is not None:
                self._channel.info(f"Forcing reset using 1200bps open/close on port {port}")
            await self.touch(port)
        await self._sleep(TOUCH_SETTLE_DELAY)

        if wait:
            upload_port = await self.wait_for_upload_port(port, before)
            await self._sleep(ENUMERATION_SETTLE)
        await self._sleep(TOUCH_SETTLE_DELAY)

        if upload_port is None:
            return port
        if upload_port != port:
            logger.info("Board re-enumerated on %s (was %s)", upload_port, port)
        return upload_port

    async def touch(self, port: str) -> None:
        await asyncio.to_thread(self._touch, port)

    async def wait_for_upload_port(self, port: str, before: list[str]) -> str | None:
        """Poll for a newly appeared device for up to UPLOAD_PORT_TIMEOUT seconds.

        A device absent from the previous snapshot is taken to be the
        rebooted board. After SAME_PORT_GRACE seconds the original port is
        accepted too: some boards come back under the same name. That
        fallback is a heuristic and can hide a reset that never happened.
        """
        elapsed = 0.0
        while elapsed < UPLOAD_PORT_TIMEOUT:
            now = await self._list_devices()
            for device in now:
                if device not in before:
                    return device
            before = now
            await self._sleep(POLL_INTERVAL)
            elapsed += POLL_INTERVAL

            if elapsed >= SAME_PORT_GRACE and port in now:
                return port
        logger.debug("No upload port appeared within %.0fs", UPLOAD_PORT_TIMEOUT)
        return None

    async def wait_for_port(self, port: str) -> None:
        """Give a board that just got flashed time to come back on `port`."""
        await self._sleep(POST_UPLOAD_DELAY)
        elapsed = 0.0
        while elapsed < POST_UPLOAD_TIMEOUT:
            if port in await self._list_devices():
                return
            await self._sleep(POLL_INTERVAL)
            elapsed += POLL_INTERVAL
