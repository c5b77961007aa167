"""
Named option bundles: built-in presets plus user presets stored as JSON.
"""

import os
import json
import uuid
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .core.options import OutputMode, ProcessingOptions
from .exceptions import ConfigurationError, LevelerError

DEFAULT_PRESETS_FILE = os.path.join(os.path.expanduser("~"), ".leveler", "presets.json")


@dataclass(frozen=True)
class Preset:
    name: str
    options: ProcessingOptions
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self):
        return {"id": self.id, "name": self.name, "options": self.options.to_dict()}

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            options=ProcessingOptions.from_dict(data.get("options", {})),
        )


BUILT_IN_PRESETS = (
    Preset(
        id="00000000-0000-0000-0000-000000000001",
        name="Podcast Standard",
        options=ProcessingOptions(target_lufs=-18, true_peak=-1.0, lra=11.0,
                                  output_mode=OutputMode.BOTH, mp3_bitrate=160,
                                  sample_rate=44100, phase_rotation=True),
    ),
    Preset(
        id="00000000-0000-0000-0000-000000000002",
        name="Podcast Loud",
        options=ProcessingOptions(target_lufs=-16, true_peak=-1.0, lra=11.0,
                                  output_mode=OutputMode.BOTH, mp3_bitrate=192,
                                  sample_rate=44100, phase_rotation=True),
    ),
    Preset(
        id="00000000-0000-0000-0000-000000000003",
        name="WAV Only (Mastering)",
        options=ProcessingOptions(target_lufs=-18, true_peak=-1.0, lra=11.0,
                                  output_mode=OutputMode.WAV, mp3_bitrate=160,
                                  sample_rate=48000, phase_rotation=True),
    ),
)


class PresetStore:
    """Keeps user presets in a JSON file next to the built-in ones."""

    def __init__(self, path: Optional[str] = None):
        self.path = path or DEFAULT_PRESETS_FILE
        self.presets: List[Preset] = []
        self.selected_preset_id: Optional[str] = None
        self.logger = logging.getLogger(__name__)
        self.load()

    @property
    def all_presets(self) -> List[Preset]:
        return list(BUILT_IN_PRESETS) + self.presets

    @property
    def selected_preset(self) -> Optional[Preset]:
        if self.selected_preset_id is None:
            return None
        return next((p for p in self.all_presets if p.id == self.selected_preset_id), None)

    def is_built_in(self, preset: Preset) -> bool:
        return any(p.id == preset.id for p in BUILT_IN_PRESETS)

    def find(self, name_or_id: str) -> Preset:
        """
        Look up a preset by id or case-insensitive name.

        Raises:
            ConfigurationError: If no preset matches.
        """
        wanted = name_or_id.strip().lower()
        for preset in self.all_presets:
            if preset.id == name_or_id or preset.name.lower() == wanted:
                return preset
        raise ConfigurationError("Unknown preset", "preset", name_or_id)

    def save_preset(self, name: str, options: ProcessingOptions) -> Preset:
        preset = Preset(name=name, options=options)
        self.presets.append(preset)
        self.save()
        self.logger.info(f"Saved preset: {name}")
        return preset

    def delete_preset(self, preset: Preset):
        if self.is_built_in(preset):
            raise LevelerError(f"Built-in preset cannot be deleted: {preset.name}")
        self.presets = [p for p in self.presets if p.id != preset.id]
        if self.selected_preset_id == preset.id:
            self.selected_preset_id = None
        self.save()

    def load(self):
        """Load user presets; an unreadable file leaves the user list empty."""
        if not os.path.exists(self.path):
            return
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            self.presets = [Preset.from_dict(item) for item in data]
        except (OSError, ValueError, KeyError, TypeError, LevelerError) as e:
            self.logger.warning(f"Failed to load presets from {self.path}: {e}")
            self.presets = []

    def save(self):
        try:
            os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
            with open(self.path, 'w', encoding='utf-8') as f:
                json.dump([p.to_dict() for p in self.presets], f, indent=2)
        except OSError as e:
            raise ConfigurationError(f"Failed to save presets: {e}", "presets_file", self.path) from e
