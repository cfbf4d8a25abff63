"""Device profiles — per-device-type instructions injected into every prompt."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class DeviceProfile:
    """What kind of machine the sessions talk to, and how to operate it."""

    name: str
    device_type: str
    prompt: str

    def render(self) -> str:
        return (
            "[Device profile]\n"
            f"- Type: {self.name}\n"
            f"- Device id: {self.device_type}\n"
            "- Operating rules:\n"
            f"{self.prompt}\n"
        )

    @classmethod
    def load(cls, path: str | Path) -> "DeviceProfile":
        """Read a profile from a JSON file with name, deviceType and prompt."""
        data = json.loads(Path(path).read_text())
        return cls(
            name=data.get("name", ""),
            device_type=data.get("deviceType", data.get("device_type", "")),
            prompt=data.get("prompt", ""),
        )


def render_profile(profile: DeviceProfile | None) -> str:
    return profile.render() if profile else ""
