"""Serial port discovery.

Each call re-enumerates the devices the OS currently reports; nothing is
cached, so a port listed by one call may be gone by the next.
"""

from __future__ import annotations

from serial.tools.list_ports import comports

from serialterm.models.port import PortInfo
from serialterm.utils.logging import get_logger

logger = get_logger(__name__)


def list_port_details() -> list[PortInfo]:
    """Return the serial devices present right now, sorted by device name.

    Returns an empty list when the platform enumeration fails.
    """
    try:
        found = comports()
    except Exception as exc:
        logger.warning("port_scan_failed", error=str(exc))
        return []

    ports = [
        PortInfo(
            device=p.device,
            description=p.description or "",
            hwid=p.hwid or "",
        )
        for p in found
    ]
    ports.sort(key=lambda p: p.device)
    logger.debug("port_scan_complete", count=len(ports))
    return ports


def list_ports() -> list[str]:
    """Return the names of the serial devices present right now."""
    return [p.device for p in list_port_details()]
