"""Custom exceptions for the application."""

class ApplicationError(Exception):
    """Base application error."""
    pass

class ValidationError(ApplicationError):
    """Invalid geometry or malformed detection data."""
    pass

class CalibrationError(ApplicationError):
    """Calibration protocol guard violations."""
    pass

class ImageLoadError(ApplicationError):
    """Batch image could not be read or decoded."""
    pass

class ConfigError(ApplicationError):
    """Configuration-related errors."""
    pass

class DetectionError(ApplicationError):
    """Base exception for detection-related errors."""
    pass

class AIServiceError(DetectionError):
    """Segmentation model request failed or returned unusable output."""
    pass

class ExportError(ApplicationError):
    """Report export errors."""
    pass
