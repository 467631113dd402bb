"""ziphtml - Edit the text of HTML documents inside ZIP archives."""

__version__ = "1.0.0"

from .archive import Archive, AssetIndex
from .document import WorkingDocument, apply_edit, apply_edits, materialize
from .errors import (
    ArchiveError,
    ConfigError,
    MissingInputError,
    SessionFormatError,
    ZiphtmlError,
)
from .export import export_to_archive, package_archive
from .paths import resolve
from .session import Session, export_session, import_session, open_tab
from .textnodes import TextNodeRecord, index_text_nodes

__all__ = [
    "Archive",
    "AssetIndex",
    "WorkingDocument",
    "TextNodeRecord",
    "Session",
    "resolve",
    "index_text_nodes",
    "materialize",
    "apply_edit",
    "apply_edits",
    "export_to_archive",
    "package_archive",
    "open_tab",
    "export_session",
    "import_session",
    "ZiphtmlError",
    "MissingInputError",
    "ArchiveError",
    "SessionFormatError",
    "ConfigError",
    "__version__",
]
