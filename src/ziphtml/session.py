"""Editing sessions and their save/restore format.

A session is the explicit state of one editing run: the open tabs, which
tab is active, which document was last selected and which HTML documents
the archive offers. Every operation takes the session (and the archive it
edits) as arguments.

Session files are ZIP containers with exactly two entries::

    archive.zip     the packed archive as it was when the session was saved
    session.json    selection state and, per tab, the text node records

Only ``index``, ``original`` and ``updated`` are stored per text node. On
restore each tab's document is parsed again, its text nodes are numbered
again, and saved ``updated`` values are matched back in by index.
"""

import json
import logging
import zipfile
from collections.abc import Iterable
from dataclasses import dataclass, field
from io import BytesIO
from typing import Any

from .archive import Archive, AssetIndex
from .document import WorkingDocument, apply_edits, materialize
from .errors import ArchiveError, MissingInputError, SessionFormatError
from .export import export_to_archive

logger = logging.getLogger(__name__)

SESSION_VERSION = 1
ARCHIVE_ENTRY = "archive.zip"
METADATA_ENTRY = "session.json"


@dataclass
class Session:
    """State of one editing run over a single archive."""

    selected_path: str | None = None
    active_tab_id: str | None = None
    tabs: list[WorkingDocument] = field(default_factory=list)
    html_paths: list[str] = field(default_factory=list)
    skip_tags: tuple[str, ...] = ()


def new_session(
    archive: Archive,
    html_extensions: list[str] | None = None,
    skip_tags: Iterable[str] = (),
) -> Session:
    """Create an empty session for a freshly loaded archive."""
    if archive is None:
        raise MissingInputError("No archive loaded")
    return Session(
        html_paths=archive.html_paths(html_extensions),
        skip_tags=tuple(skip_tags),
    )


def find_tab(session: Session, tab_id: str | None) -> WorkingDocument | None:
    """Return the tab with ``tab_id``, or None."""
    for tab in session.tabs:
        if tab.id == tab_id:
            return tab
    return None


def active_tab(session: Session) -> WorkingDocument | None:
    """Return the active tab, or None."""
    return find_tab(session, session.active_tab_id)


def require_active_tab(session: Session) -> WorkingDocument:
    """Return the active tab.

    Raises:
        MissingInputError: If no tab is active.
    """
    tab = active_tab(session)
    if tab is None:
        raise MissingInputError("No active tab")
    return tab


def open_tab(
    session: Session,
    archive: Archive,
    assets: AssetIndex,
    path: str,
    name: str | None = None,
    encoding: str = "utf-8",
) -> WorkingDocument:
    """Open an archive document in a new tab and make it active.

    Several tabs may be opened on the same path; each keeps its own edits.

    Raises:
        MissingInputError: If there is no archive, no path, or the path is
            not an entry of the archive.
    """
    if archive is None:
        raise MissingInputError("No archive loaded")
    if not path:
        raise MissingInputError("No document selected")
    if path not in archive:
        raise MissingInputError(f"Document not found in archive: {path}")

    doc = materialize(
        archive.read_text(path, encoding),
        path,
        assets,
        name=name,
        skip_tags=session.skip_tags,
    )
    session.tabs = [*session.tabs, doc]
    session.selected_path = path
    session.active_tab_id = doc.id
    return doc


def activate_tab(session: Session, tab_id: str) -> WorkingDocument:
    """Make ``tab_id`` the active tab.

    Raises:
        MissingInputError: If there is no such tab.
    """
    tab = find_tab(session, tab_id)
    if tab is None:
        raise MissingInputError(f"No tab with id {tab_id}")
    session.active_tab_id = tab.id
    session.selected_path = tab.path
    return tab


def close_tab(session: Session, tab_id: str) -> None:
    """Close a tab. Closing the active tab activates the last remaining one."""
    remaining = [tab for tab in session.tabs if tab.id != tab_id]
    if len(remaining) == len(session.tabs):
        raise MissingInputError(f"No tab with id {tab_id}")

    session.tabs = remaining
    if session.active_tab_id == tab_id:
        session.active_tab_id = remaining[-1].id if remaining else None


def save_active_tab(
    session: Session, archive: Archive, encoding: str = "utf-8"
) -> str:
    """Export the active tab into the archive. Returns the written HTML."""
    if archive is None:
        raise MissingInputError("No archive loaded")
    tab = require_active_tab(session)
    return export_to_archive(tab, archive, encoding=encoding)


def session_to_dict(archive: Archive, session: Session) -> dict[str, Any]:
    """Build the ``session.json`` record for a session."""
    return {
        "version": SESSION_VERSION,
        "selectedPath": session.selected_path,
        "activeTabId": session.active_tab_id,
        "htmlPaths": list(session.html_paths),
        "skipTags": list(session.skip_tags),
        "archiveHash": archive.content_hash(),
        "tabs": [
            {
                "id": tab.id,
                "name": tab.name,
                "path": tab.path,
                "textNodes": [record.to_dict() for record in tab.text_nodes],
            }
            for tab in session.tabs
        ],
    }


def export_session(archive: Archive, session: Session) -> bytes:
    """Package the archive and the session state into a session file.

    Args:
        archive: Archive in its current state.
        session: Session to save.

    Returns:
        Session file bytes.

    Raises:
        MissingInputError: If there is no archive.
    """
    if archive is None:
        raise MissingInputError("No archive loaded")

    metadata = session_to_dict(archive, session)

    buffer = BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        zf.writestr(ARCHIVE_ENTRY, archive.pack())
        zf.writestr(
            METADATA_ENTRY, json.dumps(metadata, indent=2, ensure_ascii=False)
        )

    logger.info("Saved session with %d tab(s)", len(session.tabs))
    return buffer.getvalue()


def _read_session_entries(blob: bytes) -> tuple[bytes, dict[str, Any]]:
    try:
        with zipfile.ZipFile(BytesIO(blob)) as zf:
            names = set(zf.namelist())
            for required in (ARCHIVE_ENTRY, METADATA_ENTRY):
                if required not in names:
                    raise SessionFormatError(
                        f"Session file is missing '{required}'"
                    )
            archive_bytes = zf.read(ARCHIVE_ENTRY)
            metadata_bytes = zf.read(METADATA_ENTRY)
    except zipfile.BadZipFile as e:
        raise SessionFormatError(f"Not a session file: {e}") from e

    try:
        metadata = json.loads(metadata_bytes.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise SessionFormatError(f"Invalid {METADATA_ENTRY}: {e}") from e

    if not isinstance(metadata, dict):
        raise SessionFormatError(f"{METADATA_ENTRY} must contain an object")

    return archive_bytes, metadata


def _saved_updates(saved_tab: dict[str, Any]) -> dict[int, str]:
    updates = {}
    records = saved_tab.get("textNodes") or []
    if not isinstance(records, list):
        logger.warning("Ignoring malformed textNodes: %r", records)
        return updates
    for record in records:
        try:
            updates[int(record["index"])] = str(record["updated"])
        except (KeyError, TypeError, ValueError):
            logger.warning("Ignoring malformed text node record: %r", record)
    return updates


def _restore_tab(
    saved_tab: Any,
    archive: Archive,
    assets: AssetIndex,
    selected_path: str | None,
    skip_tags: tuple[str, ...],
    encoding: str,
) -> WorkingDocument | None:
    if not isinstance(saved_tab, dict):
        logger.warning("Ignoring malformed tab record: %r", saved_tab)
        return None

    path = saved_tab.get("path") or selected_path
    if path is not None and not isinstance(path, str):
        logger.warning("Ignoring tab with malformed path: %r", path)
        return None
    if not path or path not in archive:
        logger.info(
            "Skipping tab %r: %s is not in the archive", saved_tab.get("name"), path
        )
        return None

    doc = materialize(
        archive.read_text(path, encoding),
        path,
        assets,
        name=saved_tab.get("name") or None,
        skip_tags=skip_tags,
        lenient_assets=True,
    )
    if saved_tab.get("id"):
        doc.id = str(saved_tab["id"])

    updates = _saved_updates(saved_tab)
    matched = {index: text for index, text in updates.items() if doc.record(index)}
    if len(matched) < len(updates):
        logger.warning(
            "%s changed since the session was saved: %d edit(s) dropped",
            path,
            len(updates) - len(matched),
        )
    apply_edits(doc, matched)
    return doc


def import_session(
    blob: bytes,
    encoding: str = "utf-8",
    html_extensions: list[str] | None = None,
    image_extensions: list[str] | None = None,
) -> tuple[Archive, AssetIndex, Session]:
    """Restore an archive and its session from a session file.

    Args:
        blob: Session file bytes.
        encoding: Encoding of HTML entries.
        html_extensions: Extensions of HTML documents, used when the session
            does not list them.
        image_extensions: Extensions of preview images.

    Returns:
        Tuple of (archive, asset index, session). Nothing is returned for a
        rejected file; there is no partial restore.

    Raises:
        SessionFormatError: If an entry is missing, the metadata is not a
            JSON object, a top-level field has the wrong type, the archive is
            unreadable, or the archive does not match its recorded hash.
    """
    archive_bytes, metadata = _read_session_entries(blob)

    try:
        archive = Archive.from_bytes(archive_bytes)
    except ArchiveError as e:
        raise SessionFormatError(f"Invalid {ARCHIVE_ENTRY}: {e}") from e

    expected_hash = metadata.get("archiveHash")
    if expected_hash and archive.content_hash() != expected_hash:
        raise SessionFormatError(
            "Archive hash mismatch: session file may be corrupted"
        )

    for key in ("tabs", "skipTags", "htmlPaths"):
        if not isinstance(metadata.get(key) or [], list):
            raise SessionFormatError(f"{METADATA_ENTRY}: {key!r} must be a list")
    selected_path = metadata.get("selectedPath")
    if selected_path is not None and not isinstance(selected_path, str):
        raise SessionFormatError(
            f"{METADATA_ENTRY}: 'selectedPath' must be a string"
        )

    assets = AssetIndex.with_aliases(archive, image_extensions)
    skip_tags = tuple(str(tag) for tag in metadata.get("skipTags") or ())

    tabs = []
    for saved_tab in metadata.get("tabs") or []:
        tab = _restore_tab(
            saved_tab, archive, assets, selected_path, skip_tags, encoding
        )
        if tab is not None:
            tabs.append(tab)

    active_id = metadata.get("activeTabId")
    if not any(tab.id == active_id for tab in tabs):
        active_id = tabs[0].id if tabs else None

    html_paths = metadata.get("htmlPaths") or archive.html_paths(html_extensions)
    session = Session(
        selected_path=selected_path,
        active_tab_id=active_id,
        tabs=tabs,
        html_paths=[str(path) for path in html_paths],
        skip_tags=skip_tags,
    )
    logger.info("Restored session with %d tab(s)", len(tabs))
    return archive, assets, session
