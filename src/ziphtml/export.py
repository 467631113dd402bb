"""Writing working documents back into archives.

Export restores original image references, serializes the whole document
and stores it in the archive, replacing whatever was there. Exporting two
tabs opened on the same path keeps only the last one written.
"""

import logging
import re

from .archive import Archive
from .document import WorkingDocument, restore_images, substitute_images
from .textnodes import set_node_text

logger = logging.getLogger(__name__)


def export_to_archive(
    doc: WorkingDocument,
    archive: Archive,
    archive_path: str | None = None,
    encoding: str = "utf-8",
) -> str:
    """Serialize a working document into the archive.

    Args:
        doc: Working document to export.
        archive: Archive to write into.
        archive_path: Key to write under. Defaults to the document's path.
        encoding: Encoding of the stored HTML.

    Returns:
        The serialized HTML document.
    """
    archive_path = archive_path or doc.path

    for record in doc.text_nodes:
        set_node_text(doc.nodes, record.index, record.updated)

    restore_images(doc)
    try:
        html = str(doc.soup)
        archive.set(archive_path, html, encoding=encoding)
    finally:
        # The open tab keeps showing previewable images
        substitute_images(doc)
        doc.refresh_preview()

    logger.info("Saved %s into archive (%d bytes)", archive_path, len(html))
    return html


def package_archive(archive: Archive) -> bytes:
    """Pack an archive into downloadable ZIP bytes."""
    return archive.pack()


def sanitize_filename(name: str, default: str = "updated.zip") -> str:
    """Strip whitespace and non-word characters from a download name.

    Dots and dashes are kept so extensions survive.

    Args:
        name: Requested file name.
        default: Name to use when nothing is left.

    Returns:
        A safe file name.
    """
    cleaned = re.sub(r"[^\w.\-]", "", name or "")
    cleaned = cleaned.strip(".")
    return cleaned or default


def render_preview_page(doc: WorkingDocument, title: str | None = None) -> str:
    """Build a standalone HTML page showing the document's preview markup.

    Images are embedded as data URIs, so the page renders without the
    archive.
    """
    title = _html_escape(title or doc.name)
    head = doc.soup.head
    styles = ""
    if head is not None:
        styles = "\n".join(str(tag) for tag in head.find_all(["style", "link"]))

    return f"""<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>Preview: {title}</title>
{styles}
</head>
<body>
{doc.preview_markup}
</body>
</html>
"""


def _html_escape(s: str) -> str:
    """Escape a string for HTML text content."""
    return (
        s.replace("&", "&amp;")
        .replace('"', "&quot;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
    )
