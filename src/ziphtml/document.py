"""Working documents: parsed HTML bound to its editable text.

A working document is one editor tab. It owns the parsed tree, the numbered
text node records, the node handles those records address, and the preview
markup rendered from the tree. Images are swapped for preview handles while
the document is open; their original ``src`` values are kept on the working
document, never in the markup, and put back by the export serializer.
"""

import logging
import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from bs4 import BeautifulSoup, FeatureNotFound, NavigableString, Tag

from .archive import AssetIndex
from .textnodes import TextNodeRecord, index_text_nodes, set_node_text

logger = logging.getLogger(__name__)


@dataclass
class WorkingDocument:
    """An editable HTML document opened from an archive."""

    id: str
    name: str
    path: str
    soup: BeautifulSoup
    assets: AssetIndex
    text_nodes: list[TextNodeRecord] = field(default_factory=list)
    preview_markup: str = ""
    skip_tags: tuple[str, ...] = ()
    lenient_assets: bool = False
    nodes: list[NavigableString] = field(default_factory=list, repr=False)
    images: list[tuple[Tag, str]] = field(default_factory=list, repr=False)

    @property
    def body(self) -> Tag:
        """The <body> element, or the whole document if there is none."""
        return self.soup.body or self.soup

    def record(self, index: int) -> TextNodeRecord | None:
        """Return the record numbered ``index``, or None."""
        if 1 <= index <= len(self.text_nodes):
            return self.text_nodes[index - 1]
        return None

    def refresh_preview(self) -> str:
        """Re-render ``preview_markup`` from the body."""
        self.preview_markup = self.body.decode_contents()
        return self.preview_markup


def parse_html(html: str) -> BeautifulSoup:
    """Parse HTML with lxml, falling back to the built-in parser."""
    try:
        return BeautifulSoup(html, "lxml")
    except FeatureNotFound:
        return BeautifulSoup(html, "html.parser")


def _collect_images(soup: BeautifulSoup) -> list[tuple[Tag, str]]:
    images = []
    for img in soup.find_all("img"):
        src = img.get("src")
        if not src:
            continue
        images.append((img, src))
    return images


def substitute_images(doc: WorkingDocument) -> int:
    """Point every known image at its preview handle.

    Returns:
        Number of images substituted. Unresolved images keep their
        original reference.
    """
    substituted = 0
    for img, original in doc.images:
        if doc.lenient_assets:
            handle = doc.assets.lookup_lenient(doc.path, original)
        else:
            handle = doc.assets.lookup(doc.path, original)

        if handle is None:
            logger.debug("No archive asset for %r in %s", original, doc.path)
            continue

        img["src"] = handle
        substituted += 1
    return substituted


def restore_images(doc: WorkingDocument) -> None:
    """Put every substituted image back to its original reference."""
    for img, original in doc.images:
        img["src"] = original


def materialize(
    raw_html: str,
    archive_path: str,
    asset_index: AssetIndex,
    name: str | None = None,
    skip_tags: Iterable[str] = (),
    lenient_assets: bool = False,
) -> WorkingDocument:
    """Build a working document from raw HTML.

    Args:
        raw_html: The HTML document as a string.
        archive_path: Archive key the document was read from.
        asset_index: Preview handles for the archive's images.
        name: Tab name. Defaults to ``archive_path``.
        skip_tags: Tag names whose text is never indexed.
        lenient_assets: Use the restore-time resolver for images.

    Returns:
        A new working document with a fresh id.
    """
    soup = parse_html(raw_html)
    doc = WorkingDocument(
        id=uuid.uuid4().hex,
        name=name or archive_path,
        path=archive_path,
        soup=soup,
        assets=asset_index,
        skip_tags=tuple(skip_tags),
        lenient_assets=lenient_assets,
    )

    doc.images = _collect_images(soup)
    substituted = substitute_images(doc)

    doc.text_nodes, doc.nodes = index_text_nodes(doc.body, doc.skip_tags)
    doc.refresh_preview()

    logger.info(
        "Opened %s: %d text node(s), %d of %d image(s) previewable",
        archive_path,
        len(doc.text_nodes),
        substituted,
        len(doc.images),
    )
    return doc


def _set_text(doc: WorkingDocument, index: int, new_text: str) -> bool:
    record = doc.record(index)
    if record is None:
        logger.debug("Ignoring edit of unknown text node %d in %s", index, doc.path)
        return False

    record.updated = new_text
    set_node_text(doc.nodes, index, new_text)
    return True


def apply_edit(doc: WorkingDocument, index: int, new_text: str) -> WorkingDocument:
    """Set the text of one node and re-render the preview.

    Unknown indexes are ignored. No other record is renumbered or touched.

    Args:
        doc: Working document to edit in place.
        index: 1-based text node index.
        new_text: Replacement text.

    Returns:
        The same working document.
    """
    if _set_text(doc, index, new_text):
        doc.refresh_preview()
    return doc


def apply_edits(doc: WorkingDocument, edits: Mapping[int, str]) -> WorkingDocument:
    """Apply several edits in index order, re-rendering the preview once."""
    changed = False
    for index in sorted(edits):
        changed = _set_text(doc, index, edits[index]) or changed
    if changed:
        doc.refresh_preview()
    return doc
