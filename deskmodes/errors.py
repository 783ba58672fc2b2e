"""
Error types for DeskModes.

Per-application outcomes (not running, skipped, failed) are values and are
never raised. The exceptions below describe store and Dock failures; the
store and synchronizer catch them internally and fall back, so they mostly
surface in logs and in `to_dict()` payloads for the embedding application.
"""

from enum import Enum
from typing import Optional, Dict, Any


class ErrorCode(Enum):
    """
    Error codes for DeskModes.

    - 1100-1199: Configuration store errors
    - 1200-1299: Dock synchronization errors
    - 1300-1399: Mode errors
    """

    # Configuration store errors (1100-1199)
    CONFIG_LOAD_FAILED = 1100
    CONFIG_CORRUPT = 1101
    CONFIG_WRITE_FAILED = 1102
    BACKUP_FAILED = 1103

    # Dock synchronization errors (1200-1299)
    DOCK_READ_FAILED = 1200
    DOCK_WRITE_FAILED = 1201
    DOCK_RESTART_FAILED = 1202

    # Mode errors (1300-1399)
    MODE_NOT_FOUND = 1300


class DeskModesError(Exception):
    """Base exception for DeskModes errors."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        suggestion: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize error.

        Args:
            code: Error code from ErrorCode enum
            message: Human-readable error message
            suggestion: Suggested recovery action
            context: Additional context for debugging
        """
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.context = context or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert error to a JSON-friendly dictionary.

        Returns:
            Error dictionary with code, message, suggestion, and context
        """
        result = {
            "code": self.code.value,
            "message": self.message
        }

        if self.suggestion:
            result["suggestion"] = self.suggestion

        if self.context:
            result["context"] = self.context

        return result


class ConfigLoadError(DeskModesError):
    """Primary configuration document could not be read or parsed."""

    def __init__(self, file_path: str, reason: str):
        super().__init__(
            code=ErrorCode.CONFIG_LOAD_FAILED,
            message=f"Failed to load config from {file_path}: {reason}",
            suggestion="The backup or the defaults will be used instead",
            context={"file_path": file_path, "reason": reason}
        )


class StoreCorruptError(DeskModesError):
    """Neither the primary nor the backup configuration document could be parsed."""

    def __init__(self, primary_path: str, backup_path: str, reason: str):
        super().__init__(
            code=ErrorCode.CONFIG_CORRUPT,
            message=f"Configuration at {primary_path} and backup {backup_path} are unreadable: {reason}",
            suggestion="Defaults were restored; re-create your modes",
            context={"primary_path": primary_path, "backup_path": backup_path, "reason": reason}
        )


class ConfigWriteError(DeskModesError):
    """Configuration document could not be written."""

    def __init__(self, file_path: str, reason: str):
        super().__init__(
            code=ErrorCode.CONFIG_WRITE_FAILED,
            message=f"Failed to save configuration to {file_path}: {reason}",
            suggestion="Check disk space and permissions",
            context={"file_path": file_path, "reason": reason}
        )


class BackupError(DeskModesError):
    """Previous configuration could not be copied to the backup document."""

    def __init__(self, backup_path: str, reason: str):
        super().__init__(
            code=ErrorCode.BACKUP_FAILED,
            message=f"Could not back up config to {backup_path}: {reason}",
            suggestion="Check permissions on the configuration directory",
            context={"backup_path": backup_path, "reason": reason}
        )


class SyncReadError(DeskModesError):
    """Dock preferences document could not be read or parsed."""

    def __init__(self, file_path: str, reason: str):
        super().__init__(
            code=ErrorCode.DOCK_READ_FAILED,
            message=f"Failed to read Dock preferences {file_path}: {reason}",
            suggestion="Ensure the Dock has been launched at least once",
            context={"file_path": file_path, "reason": reason}
        )


class SyncWriteError(DeskModesError):
    """Dock preferences document could not be written."""

    def __init__(self, file_path: str, reason: str):
        super().__init__(
            code=ErrorCode.DOCK_WRITE_FAILED,
            message=f"Failed to write Dock preferences {file_path}: {reason}",
            suggestion="Check permissions on ~/Library/Preferences",
            context={"file_path": file_path, "reason": reason}
        )


class ShellRestartError(DeskModesError):
    """Dock process could not be restarted after a preferences write."""

    def __init__(self, command: str, reason: str):
        super().__init__(
            code=ErrorCode.DOCK_RESTART_FAILED,
            message=f"Failed to restart Dock: {reason}",
            suggestion="Restart the Dock manually with: killall Dock",
            context={"command": command, "reason": reason}
        )


class ModeNotFoundError(DeskModesError):
    """Requested mode id does not exist in the configuration."""

    def __init__(self, mode_id: str):
        super().__init__(
            code=ErrorCode.MODE_NOT_FOUND,
            message=f"Mode not found: {mode_id}",
            suggestion="List available modes with: deskmodes modes list",
            context={"mode_id": mode_id}
        )
