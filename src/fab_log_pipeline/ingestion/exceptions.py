"""
Exceptions raised inside the ingestion package.

None of them reaches the host: a locked or vanished file becomes a
`TailResult` status, a malformed line is dropped and counted, and
`IngestionPlugin.process_and_upload` logs anything else.
"""

from typing import Optional


class IngestionError(Exception):
    """Base class of the ingestion exceptions."""

    pass


class ValidationError(IngestionError):
    """A record cannot be written as is (e.g. it has no source timestamp)."""

    def __init__(self, message: str, field: Optional[str] = None, value: object = None):
        self.message = message
        self.field = field
        self.value = value

        context = ""
        if field and value is not None:
            context = f" (field='{field}', value={value!r})"
        elif field:
            context = f" (field='{field}')"
        super().__init__(message + context)


class ParseError(IngestionError):
    """
    A single line does not have the expected layout.

    Attributes:
        line_number: 1-based position in the read range, when known
        line_content: Offending text, shortened to 100 characters in the message
    """

    MAX_SHOWN = 100

    def __init__(
        self,
        message: str,
        line_number: Optional[int] = None,
        line_content: Optional[str] = None,
    ):
        self.message = message
        self.line_number = line_number
        self.line_content = line_content

        if line_number is None:
            super().__init__(message)
            return

        shown = ""
        if line_content:
            text = line_content
            if len(text) > self.MAX_SHOWN:
                text = text[: self.MAX_SHOWN] + "..."
            shown = f": {text!r}"
        super().__init__(f"{message} (line {line_number}{shown})")


class FileNotReadyError(IngestionError):
    """The producer kept the file locked through every open attempt."""

    def __init__(self, path: str, attempts: int, cause: Optional[Exception] = None):
        self.path = path
        self.attempts = attempts
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"File not ready after {attempts} attempts: {path}{detail}")


class PluginNotFoundError(IngestionError):
    """No plugin is registered under the requested name."""

    def __init__(self, plugin_name: str, available_plugins: Optional[list[str]] = None):
        self.plugin_name = plugin_name
        self.available_plugins = sorted(available_plugins or [])

        if self.available_plugins:
            hint = f"Available plugins: {', '.join(self.available_plugins)}"
        else:
            hint = "No plugins registered."
        super().__init__(f"Unknown plugin: '{plugin_name}'. {hint}")
