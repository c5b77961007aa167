"""
Processing options shared by every job of a batch.
"""

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict

from ..exceptions import ValidationError


class OutputMode(Enum):
    """Which files a job should leave behind."""
    WAV = "WAV"
    MP3 = "MP3"
    BOTH = "Both"

    @property
    def wants_wav(self) -> bool:
        return self in (OutputMode.WAV, OutputMode.BOTH)

    @property
    def wants_mp3(self) -> bool:
        return self in (OutputMode.MP3, OutputMode.BOTH)

    @classmethod
    def parse(cls, value) -> "OutputMode":
        """Accept an OutputMode, its value, or a case-insensitive name."""
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        for mode in cls:
            if text in (mode.value.lower(), mode.name.lower()):
                return mode
        raise ValidationError("Unknown output mode", "output_mode", value)


TARGET_LUFS_RANGE = (-24.0, -14.0)
TRUE_PEAK_RANGE = (-3.0, -0.1)
MP3_BITRATES = (128, 160, 192)
SAMPLE_RATES = (44100, 48000)


@dataclass(frozen=True)
class ProcessingOptions:
    """
    Immutable loudness and encoding settings.

    Every field is validated independently on construction; there are no
    cross-field constraints.
    """
    target_lufs: float = -18.0
    true_peak: float = -1.0
    lra: float = 11.0
    output_mode: OutputMode = OutputMode.BOTH
    mp3_bitrate: int = 160
    sample_rate: int = 44100
    phase_rotation: bool = True

    def __post_init__(self):
        object.__setattr__(self, "output_mode", OutputMode.parse(self.output_mode))

        low, high = TARGET_LUFS_RANGE
        if not low <= float(self.target_lufs) <= high:
            raise ValidationError(f"Target loudness must be within [{low:g}, {high:g}] LUFS",
                                  "target_lufs", self.target_lufs)
        low, high = TRUE_PEAK_RANGE
        if not low <= round(float(self.true_peak), 4) <= high:
            raise ValidationError(f"True peak must be within [{low:g}, {high:g}] dBTP",
                                  "true_peak", self.true_peak)
        if float(self.lra) <= 0:
            raise ValidationError("Loudness range must be positive", "lra", self.lra)
        for name in ("mp3_bitrate", "sample_rate"):
            value = getattr(self, name)
            # Whole floats are stored as int so argument strings stay integral
            if isinstance(value, float) and value.is_integer():
                object.__setattr__(self, name, int(value))
        if self.mp3_bitrate not in MP3_BITRATES:
            raise ValidationError(f"Bitrate must be one of {MP3_BITRATES}", "mp3_bitrate", self.mp3_bitrate)
        if self.sample_rate not in SAMPLE_RATES:
            raise ValidationError(f"Sample rate must be one of {SAMPLE_RATES}", "sample_rate", self.sample_rate)

    @property
    def target_lufs_string(self) -> str:
        """Target loudness as used in filter expressions and file names."""
        value = float(self.target_lufs)
        if value == round(value):
            return str(int(value))
        return f"{value:.1f}"

    @property
    def true_peak_string(self) -> str:
        return f"{float(self.true_peak):.1f}"

    @property
    def lra_string(self) -> str:
        return f"{float(self.lra):.0f}"

    @property
    def mp3_bitrate_string(self) -> str:
        return f"{self.mp3_bitrate}k"

    @property
    def sample_rate_display(self) -> str:
        return "44.1 kHz" if self.sample_rate == 44100 else "48 kHz"

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["output_mode"] = self.output_mode.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProcessingOptions":
        """Build options from a mapping, falling back to defaults for missing keys."""
        defaults = cls()
        return cls(
            target_lufs=float(data.get("target_lufs", defaults.target_lufs)),
            true_peak=float(data.get("true_peak", defaults.true_peak)),
            lra=float(data.get("lra", defaults.lra)),
            output_mode=OutputMode.parse(data.get("output_mode", defaults.output_mode)),
            mp3_bitrate=int(data.get("mp3_bitrate", defaults.mp3_bitrate)),
            sample_rate=int(data.get("sample_rate", defaults.sample_rate)),
            phase_rotation=bool(data.get("phase_rotation", defaults.phase_rotation)),
        )

    def __str__(self):
        return (f"Target={self.target_lufs_string} LUFS, TP={self.true_peak_string} dBTP, "
                f"LRA={self.lra_string}, Output={self.output_mode.value}, "
                f"MP3={self.mp3_bitrate_string}, SR={self.sample_rate}, "
                f"Phase rotation={'on' if self.phase_rotation else 'off'}")
