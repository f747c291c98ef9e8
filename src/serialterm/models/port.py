"""Serial port listing models."""

from __future__ import annotations

from pydantic import BaseModel, Field


class PortInfo(BaseModel):
    """A serial device reported by the operating system."""

    device: str = Field(description="Platform port name, e.g. /dev/ttyUSB0 or COM3")
    description: str = ""
    hwid: str = ""

    @property
    def display_name(self) -> str:
        if self.description and self.description != "n/a":
            return f"{self.device} - {self.description}"
        return self.device
