"""
Custom exception hierarchy for Leveler.

Every error carries an error code and a user-facing suggestion so the CLI
(and any other caller of the queue) can render a readable message without
knowing which stage of the pipeline produced it.
"""


class LevelerError(Exception):
    """Base exception for all application-specific errors."""

    def __init__(self, message, error_code=None, suggestion=None):
        self.error_code = error_code
        self.suggestion = suggestion
        super().__init__(message)

    def get_user_message(self):
        """Get a user-friendly error message with suggestions."""
        message = str(self)
        if self.suggestion:
            message += f"\n\nSuggestion: {self.suggestion}"
        if self.error_code:
            message += f"\nError Code: {self.error_code}"
        return message


class DependencyError(LevelerError):
    """Raised when a required external program is not available."""

    def __init__(self, dependency_name, message=None):
        self.dependency_name = dependency_name

        if not message:
            message = f"Required dependency '{dependency_name}' is not available"

        suggestion = self._get_dependency_suggestion(dependency_name)
        super().__init__(message, error_code="DEP001", suggestion=suggestion)

    def _get_dependency_suggestion(self, dependency_name):
        suggestions = {
            "ffmpeg": (
                "Install FFmpeg from https://ffmpeg.org/ and ensure it's in your "
                "system PATH, or point LEVELER_FFMPEG at the binary"
            ),
        }
        return suggestions.get(dependency_name.lower(), f"Please install {dependency_name}")


class ToolNotFoundError(DependencyError):
    """Raised when the FFmpeg executable cannot be located."""

    def __init__(self, message=None):
        super().__init__("ffmpeg", message or "FFmpeg not found. Please ensure FFmpeg is installed.")


class FileProcessingError(LevelerError):
    """Base class for errors that fail a single job."""

    def __init__(self, message, filename=None, operation=None):
        self.filename = filename
        self.operation = operation
        super().__init__(message, error_code="FILE001")


class AnalysisError(FileProcessingError):
    """Raised when the analysis pass yields no loudness measurements."""

    def __init__(self, filename=None):
        super().__init__(
            "Failed to analyze audio - no loudness measurements obtained.",
            filename, "analysis"
        )
        self.suggestion = "Check that the file contains decodable audio"
        self.error_code = "ANA001"


class RenderError(FileProcessingError):
    """Raised when the normalization render exits with a non-zero status."""

    def __init__(self, diagnostic_tail, filename=None):
        self.diagnostic_tail = diagnostic_tail
        super().__init__(f"Processing failed: {diagnostic_tail}", filename, "render")
        self.suggestion = "Check the log for the full FFmpeg output"
        self.error_code = "REND001"


class EncodeError(FileProcessingError):
    """Raised when the MP3 encode fails."""

    def __init__(self, diagnostic_tail, filename=None):
        self.diagnostic_tail = diagnostic_tail
        super().__init__(f"MP3 encoding failed: {diagnostic_tail}", filename, "encode")
        self.suggestion = "Check that your FFmpeg build includes libmp3lame"
        self.error_code = "ENC001"


class OutputNotCreatedError(FileProcessingError):
    """Raised when FFmpeg reports success but the expected file is missing."""

    def __init__(self, filename=None, output_path=None):
        self.output_path = output_path
        super().__init__("Output file was not created.", filename, "verify")
        self.suggestion = "Check write permissions for the output directory"
        self.error_code = "OUT001"


class ValidationError(LevelerError):
    """Raised when input validation fails."""

    def __init__(self, message, validation_type, value=None):
        self.validation_type = validation_type
        self.value = value

        full_message = f"Validation failed ({validation_type}): {message}"
        if value is not None:
            full_message += f" (value: {value})"

        suggestion = self._get_validation_suggestion(validation_type)
        super().__init__(full_message, error_code="VAL001", suggestion=suggestion)

    def _get_validation_suggestion(self, validation_type):
        suggestions = {
            "target_lufs": "Use a target loudness between -24 and -14 LUFS",
            "true_peak": "Use a true peak ceiling between -3.0 and -0.1 dBTP",
            "lra": "Use a positive loudness range target (e.g. 11)",
            "output_mode": "Choose one of: wav, mp3, both",
            "mp3_bitrate": "Use one of 128, 160 or 192 kbps",
            "sample_rate": "Use 44100 or 48000 Hz",
            "path": "Ensure the path exists and you have appropriate permissions",
        }
        return suggestions.get(validation_type, "Please check the input and try again")


class ResourceError(LevelerError):
    """Raised when system resource constraints are encountered."""

    def __init__(self, message, resource_type, required=None, available=None):
        self.resource_type = resource_type
        self.required = required
        self.available = available

        full_message = f"Resource constraint ({resource_type}): {message}"
        if required and available:
            full_message += f" (required: {required}, available: {available})"

        suggestions = {
            "disk_space": "Free up disk space next to the input files",
        }
        super().__init__(
            full_message, error_code="RES001",
            suggestion=suggestions.get(resource_type, f"Insufficient {resource_type} available")
        )


class ConfigurationError(LevelerError):
    """Raised when configuration is invalid or missing."""

    def __init__(self, message, config_key=None, config_value=None):
        self.config_key = config_key
        self.config_value = config_value

        full_message = f"Configuration error: {message}"
        if config_key:
            full_message += f" (key: {config_key})"
        if config_value is not None:
            full_message += f" (value: {config_value})"

        suggestion = "Check your preset file and command line options"
        super().__init__(full_message, error_code="CFG001", suggestion=suggestion)


def classify_error(exception):
    """Classify errors for appropriate handling strategies."""
    if isinstance(exception, (DependencyError, ConfigurationError)):
        return "fatal"
    elif isinstance(exception, FileProcessingError):
        return "recoverable"
    elif isinstance(exception, ResourceError):
        return "retry"
    elif isinstance(exception, ValidationError):
        return "user_error"
    else:
        return "unknown"


def get_error_summary(errors):
    """Generate a summary of multiple errors for reporting."""
    if not errors:
        return "No errors occurred."

    summary = f"Processing completed with {len(errors)} error(s):\n\n"

    error_groups = {}
    for error in errors:
        error_groups.setdefault(type(error).__name__, []).append(error)

    for error_type, error_list in error_groups.items():
        summary += f"{error_type} ({len(error_list)} occurrence(s)):\n"
        for i, error in enumerate(error_list[:3], 1):
            summary += f"  {i}. {str(error)}\n"
        if len(error_list) > 3:
            summary += f"  ... and {len(error_list) - 3} more\n"
        summary += "\n"

    return summary.strip()
