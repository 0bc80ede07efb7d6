"""Exception types raised by the composition pipeline."""

from typing import Optional


class PipelineError(Exception):
    """Base class for all ffcompose errors."""


class InvalidLayerError(PipelineError):
    """A layer or option failed validation before reaching the engine."""

    def __init__(self, message: str, layer_id: Optional[str] = None):
        self.layer_id = layer_id
        if layer_id is not None:
            message = f"Invalid layer '{layer_id}': {message}"
        super().__init__(message)


class EngineExecutionError(PipelineError):
    """FFmpeg exited with a non-success return code.

    ``diagnostic_output`` is the raw engine output, kept verbatim so the
    failing filter graph or command can be debugged from logs.
    """

    def __init__(
        self,
        operation: str,
        diagnostic_output: str,
        stack_trace: Optional[str] = None,
        command: Optional[str] = None,
    ):
        self.operation = operation
        self.diagnostic_output = diagnostic_output
        self.stack_trace = stack_trace
        self.command = command
        super().__init__(f"{operation} failed: {diagnostic_output}")


class FilesystemError(PipelineError):
    """Scratch directory unwritable or an input path unreadable."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(message)


class ProbeError(PipelineError):
    """The engine probe failed or returned output that could not be parsed."""
