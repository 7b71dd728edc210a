"""
Exception taxonomy for schema-driven generation
"""

from __future__ import annotations

import copy


class SchemagenError(Exception):
    """Base class for all schemagen errors"""

    pass


class ConfigInvalid(SchemagenError):
    """Configuration document is malformed or has duplicate target keys"""

    pass


class SchemaError(SchemagenError):
    """Schema document could not be turned into a valid Type Model"""

    pass


class TypeCycleError(SchemagenError):
    """A structural type refers back to itself"""

    pass


class TargetError(SchemagenError):
    """Error attributed to a single generation target.

    Attributes:
        target: Output path of the target that failed
    """

    def __init__(self, message: str, target: str | None = None) -> None:
        super().__init__(message)
        self.target = target

    def __str__(self) -> str:
        message = super().__str__()
        if self.target:
            return f"[{self.target}] {message}"
        return message

    def for_target(self, target: str) -> "TargetError":
        """Copy of this error attributed to `target` (cached errors are shared between targets)"""
        clone = copy.copy(self)
        clone.target = target
        clone.__cause__ = self.__cause__
        return clone


class ModuleLoadError(TargetError):
    """Generator module reference cannot be resolved or executed"""

    pass


class VisitorExportMissing(TargetError):
    """Named export is absent or cannot produce a visitor instance"""

    pass


class VisitorRuntimeError(TargetError):
    """A visitor hook raised during traversal

    Attributes:
        hook: Name of the hook that raised
        node: Description of the model node being visited
    """

    def __init__(self, message: str, target: str | None = None, hook: str = "", node: str = "") -> None:
        super().__init__(message, target)
        self.hook = hook
        self.node = node


class FileWriteError(TargetError):
    """Destination file could not be written"""

    def __init__(self, message: str, target: str | None = None, path: str = "") -> None:
        super().__init__(message, target)
        self.path = path


class CommandExecutionError(TargetError):
    """A runAfter command exited non-zero

    Attributes:
        command: Command text as configured
        exit_code: Process exit status
    """

    def __init__(
        self,
        message: str,
        target: str | None = None,
        command: str = "",
        exit_code: int | None = None,
        stderr: str = "",
    ) -> None:
        super().__init__(message, target)
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr


class GenerationCancelled(TargetError):
    """Run was cancelled before this target could write or run commands"""

    pass
