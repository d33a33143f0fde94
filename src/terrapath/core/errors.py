"""
Custom exception hierarchy for terrapath.

This module defines the exceptions raised by the search driver, the
pathfinding settings and the terrain collaborators.
"""

from typing import Any, Dict, List, Optional


class TerrapathException(Exception):
    """
    Base exception for all terrapath-specific errors.

    Attributes:
        error_code: String identifier for the error type
        message: User-friendly error message
        details: Technical details for logging/debugging
        suggestions: Optional list of resolution suggestions
    """

    def __init__(
        self,
        message: str,
        error_code: str,
        details: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
    ):
        """
        Initialize TerrapathException.

        Args:
            message: User-friendly error message
            error_code: String identifier for the error type
            details: Technical details for logging
            suggestions: List of suggestions for resolution
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.suggestions = suggestions or []

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary.

        Returns:
            Dictionary representation of the error
        """
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "suggestions": self.suggestions,
        }

    def __str__(self) -> str:
        """String representation of the exception."""
        return f"{self.error_code}: {self.message}"

    def __repr__(self) -> str:
        """Detailed string representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"error_code='{self.error_code}', "
            f"message='{self.message}')"
        )


class ValidationError(TerrapathException):
    """
    Raised when input validation fails.

    Used for non-finite coordinates, negative path priorities or
    malformed terrain arrays.
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
    ):
        """
        Initialize ValidationError.

        Args:
            message: User-friendly error message
            field: Name of the field that failed validation
            details: Technical details about the validation failure
            suggestions: List of suggestions for fixing the validation error
        """
        error_details = details or {}
        if field:
            error_details["field"] = field

        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            details=error_details,
            suggestions=suggestions or ["Check the input values and try again"],
        )


class ConfigurationError(TerrapathException):
    """
    Raised when pathfinding configuration is invalid.

    Used for priority indices outside a per-priority settings list and
    for settings that cannot drive a search.
    """

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
    ):
        """
        Initialize ConfigurationError.

        Args:
            message: User-friendly error message
            config_key: Configuration key that is invalid
            details: Technical details about the configuration error
            suggestions: List of suggestions for resolution
        """
        error_details = details or {}
        if config_key:
            error_details["config_key"] = config_key

        default_suggestions = [
            "Provide one entry per path priority in every per-priority setting",
            "Check environment variables are set correctly",
        ]

        super().__init__(
            message=message,
            error_code="CONFIGURATION_ERROR",
            details=error_details,
            suggestions=suggestions or default_suggestions,
        )


class SearchStateError(TerrapathException):
    """
    Raised when a search operation is not allowed in the current state.

    For example stepping a search that was never started, or starting a
    search that has not been reset.
    """

    def __init__(
        self,
        message: str,
        current_state: Optional[str] = None,
        expected_state: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
    ):
        """
        Initialize SearchStateError.

        Args:
            message: User-friendly error message
            current_state: State the search is in
            expected_state: State the operation requires
            details: Technical details about the state error
            suggestions: List of suggestions for resolution
        """
        error_details = details or {}
        if current_state:
            error_details["current_state"] = current_state
        if expected_state:
            error_details["expected_state"] = expected_state

        default_suggestions = [
            "Call reset() before starting a new search",
            "Only step a search while it is running",
        ]

        super().__init__(
            message=message,
            error_code="SEARCH_STATE_ERROR",
            details=error_details,
            suggestions=suggestions or default_suggestions,
        )


class TerrainError(TerrapathException):
    """
    Raised when terrain data is inconsistent.

    Used for elevation and water rasters of different shapes or a
    transform that cannot be inverted.
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
    ):
        """
        Initialize TerrainError.

        Args:
            message: User-friendly error message
            details: Technical details about the terrain data
            suggestions: List of suggestions for resolution
        """
        default_suggestions = [
            "Verify the elevation and water rasters share the same grid",
            "Check the affine transform of the raster",
        ]

        super().__init__(
            message=message,
            error_code="TERRAIN_ERROR",
            details=details,
            suggestions=suggestions or default_suggestions,
        )
