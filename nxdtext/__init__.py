from .errors import (
    CatalogError,
    CellError,
    InvalidHeaderError,
    NxdError,
    NxdIoError,
    RowError,
    TextEncodingError,
    UnsupportedFormatError,
)
from .nxd_parser import make_key, read_rows, update_rows
from .nxd_tables import NXD_COLUMNS, Cell, Str, load_columns

__version__ = "0.1.0"
