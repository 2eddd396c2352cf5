"""Custom exceptions for git-source-control.

Workers never raise: failures of git invocations are reported through the
command's error messages. These exceptions are raised by the host-facing
layers (settings loading, provider entry points, the CLI).
"""


class SourceControlError(RuntimeError):
    """Base class for all source control errors."""
    pass


# Environment Errors
class GitNotFoundError(SourceControlError):
    """The git binary could not be executed."""

    def __init__(self, binary_path: str):
        self.binary_path = binary_path
        super().__init__(
            f"Git binary '{binary_path}' not found or not executable. "
            f"Install git or set binary_path in the settings file."
        )


class NotARepositoryError(SourceControlError):
    """No .git directory above the given path."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"'{path}' is not inside a git repository")


# Provider Errors
class ProviderError(SourceControlError):
    """Base class for provider dispatch errors."""
    pass


class UnsupportedOperationError(ProviderError):
    """No worker is registered for the operation."""

    def __init__(self, operation: str, provider: str):
        self.operation = operation
        super().__init__(
            f"Operation '{operation}' not supported by source control provider '{provider}'"
        )


# Configuration Errors
class ConfigError(SourceControlError):
    """Invalid settings file."""
    pass
