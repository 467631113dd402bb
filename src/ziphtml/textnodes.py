"""Deterministic numbering of the editable text in a parsed document.

Text nodes are identified only by their position among the non-blank text
nodes of a document-order walk. Saved edits are matched back onto a freshly
parsed document by that position, so the walk must not depend on anything
but the document structure.
"""

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from bs4 import (
    CData,
    Comment,
    Declaration,
    Doctype,
    NavigableString,
    ProcessingInstruction,
    Tag,
)

logger = logging.getLogger(__name__)

# NavigableString subclasses that are markup, not text
_NON_TEXT = (Comment, CData, ProcessingInstruction, Declaration, Doctype)


@dataclass
class TextNodeRecord:
    """One editable text node."""

    index: int
    original: str
    updated: str

    def to_dict(self) -> dict:
        return {"index": self.index, "original": self.original, "updated": self.updated}


def _inside_skipped(node: NavigableString, skip_tags: frozenset[str]) -> bool:
    if not skip_tags:
        return False
    return any(parent.name in skip_tags for parent in node.parents)


def iter_text_nodes(
    root: Tag, skip_tags: Iterable[str] = ()
) -> Iterator[NavigableString]:
    """Yield the non-blank text nodes under ``root`` in document order.

    Args:
        root: Element (or whole document) to walk.
        skip_tags: Tag names whose text is never yielded.

    Yields:
        Text nodes whose stripped content is non-empty.
    """
    skip = frozenset(skip_tags)
    for element in root.descendants:
        if not isinstance(element, NavigableString):
            continue
        if isinstance(element, _NON_TEXT):
            continue
        if not element.strip():
            continue
        if _inside_skipped(element, skip):
            continue
        yield element


def index_text_nodes(
    root: Tag, skip_tags: Iterable[str] = ()
) -> tuple[list[TextNodeRecord], list[NavigableString]]:
    """Number the non-blank text nodes under ``root`` starting at 1.

    Args:
        root: Element (or whole document) to walk.
        skip_tags: Tag names whose text is never indexed.

    Returns:
        Tuple of (records, nodes). ``nodes[i - 1]`` is the text node
        behind the record with index ``i``.
    """
    records = []
    nodes = []
    for position, node in enumerate(iter_text_nodes(root, skip_tags), start=1):
        text = str(node)
        records.append(TextNodeRecord(index=position, original=text, updated=text))
        nodes.append(node)
    return records, nodes


def set_node_text(nodes: list[NavigableString], index: int, text: str) -> bool:
    """Replace the text of the node numbered ``index``.

    The replacement node is stored back into ``nodes`` so later edits keep
    addressing the live tree.

    Args:
        nodes: Node list returned by ``index_text_nodes``.
        index: 1-based record index.
        text: New text content.

    Returns:
        True if a live node was updated, False if the index is unknown or
        the node is no longer attached to the document.
    """
    if index < 1 or index > len(nodes):
        logger.debug("No text node %d (document has %d)", index, len(nodes))
        return False

    node = nodes[index - 1]
    if node.parent is None:
        logger.warning("Text node %d is detached from its document, skipping", index)
        return False

    if str(node) == text:
        return True

    replacement = type(node)(text)
    node.replace_with(replacement)
    nodes[index - 1] = replacement
    return True
