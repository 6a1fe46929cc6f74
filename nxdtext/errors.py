from __future__ import annotations


class NxdError(Exception):
    """Base class for all NXD codec errors."""
    pass


class NxdIoError(NxdError):
    """Raised when the stream ends before a field could be read."""
    pass


class InvalidHeaderError(NxdError):
    """Raised for bad magic/version or structurally inconsistent offsets."""

    def __init__(self, msg: str = "Invalid file header"):
        super().__init__(msg)


class UnsupportedFormatError(NxdError):
    """Raised for unknown row types and unknown table names."""

    def __init__(self, msg: str = "Unsupported format"):
        super().__init__(msg)


class TextEncodingError(NxdError):
    def __init__(self, offset: int, msg: str = ""):
        super().__init__(
            msg or f"The text that starts at offset {offset} is not a valid UTF-8 sequence"
        )
        self.offset = offset


class RowError(NxdError):
    def __init__(self, row: int, source: NxdError):
        super().__init__(f"Error when trying to read row {row}:\n  {source}")
        self.row = row
        self.source = source


class CellError(NxdError):
    def __init__(self, col: int, offset: int, source: NxdError):
        super().__init__(
            f"Error when trying to read cell {col} at offset {offset}:\n    {source}"
        )
        self.col = col
        self.offset = offset
        self.source = source


class CatalogError(NxdError):
    """Raised when a JSON or PO override catalog cannot be used."""
    pass
