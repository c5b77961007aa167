"""
Parsing of the loudnorm measurement report printed by FFmpeg.
"""

import json
import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Optional

# Keys of the loudnorm JSON report, named as on LoudnormMeasurements
MEASUREMENT_FIELDS = ("input_i", "input_tp", "input_lra", "input_thresh", "target_offset")


@dataclass(frozen=True)
class LoudnormMeasurements:
    """Values measured by the first loudnorm pass."""
    input_i: float
    input_tp: float
    input_lra: float
    input_thresh: float
    target_offset: float

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> Optional["LoudnormMeasurements"]:
        """
        Build measurements from a decoded loudnorm report.

        All five fields must be present and numeric; otherwise None is returned.
        """
        values = {}
        for key in MEASUREMENT_FIELDS:
            value = _parse_number(data.get(key))
            if value is None:
                return None
            values[key] = value
        return cls(**values)


def _parse_number(value: Any) -> Optional[float]:
    # bool is an int subclass but never a measurement
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str) and "_" not in value:
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    # Digital silence is reported as -inf
    return number if math.isfinite(number) else None


def extract_last_json_object(text: str) -> Optional[str]:
    """Return the span from the last '{' to the last '}' in text, if any."""
    start = text.rfind("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end < start:
        return None
    return text[start:end + 1]


def parse_loudnorm_json(stderr_text: str) -> Optional[LoudnormMeasurements]:
    """
    Extract loudnorm measurements from FFmpeg's diagnostic output.

    FFmpeg interleaves informational lines with the JSON report on stderr, and
    the report is printed once at the end of the analysis pass, so only the
    last brace-delimited span is considered.

    Args:
        stderr_text: Full stderr captured from the analysis run

    Returns:
        LoudnormMeasurements, or None if no complete report could be decoded
    """
    if not stderr_text:
        return None

    json_text = extract_last_json_object(stderr_text)
    if json_text is None:
        return None

    try:
        data = json.loads(json_text)
    except json.JSONDecodeError as e:
        logging.debug(f"Could not decode loudnorm report: {e}")
        return None

    if not isinstance(data, dict):
        return None

    return LoudnormMeasurements.from_json(data)
