"""
Custom exceptions for the event intelligence pipeline.

These exceptions provide clear error semantics across the system.
Services catch them at their boundaries; none of them is meant to reach
rendering code.
"""


class IntelligenceError(Exception):
    """Base exception for event intelligence failures."""
    pass


class StorageError(IntelligenceError):
    """Raised when the durable key-value store cannot be read or written."""
    pass


class RuleImportError(IntelligenceError):
    """Raised when an alert rule export cannot be parsed."""
    pass


class ConfigurationError(IntelligenceError):
    """Raised when configuration is invalid or missing."""
    pass
