"""
Exceptions raised by the exporter and its host adapters.
"""


class ExportError(Exception):
    """Base class for errors that abort an export."""

    code = "EXPORT_FAILED"


class NoActivePageError(ExportError):
    """There is no page or focused block to export."""

    code = "NO_ACTIVE_PAGE"

    def __init__(self, message: str = "NO_ACTIVE_PAGE"):
        super().__init__(message)


class HostError(Exception):
    """A call to the host application failed."""

    def __init__(self, method: str, message: str):
        super().__init__(f"{method}: {message}")
        self.method = method
