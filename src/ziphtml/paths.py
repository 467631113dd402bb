"""Archive path resolution for asset references.

Two resolvers live here. ``resolve`` is used when a document is first
materialized and maps an ``src`` value onto a canonical archive key.
``candidate_keys`` is used when a session is restored: it strips query
strings and fragments and produces several guesses, because saved documents
may have been authored with different relative-path conventions.

``resolve`` keeps ``?query`` and ``#fragment`` suffixes,
``candidate_keys`` drops them.
"""

import re

_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.\-]*:")


def document_dir(document_path: str) -> str:
    """Return the directory part of an archive path ("" at the root)."""
    return "/".join(document_path.split("/")[:-1])


def strip_dot_slash(reference: str) -> str:
    """Remove a single leading "./" from a reference."""
    if reference.startswith("./"):
        return reference[2:]
    return reference


def fold_segments(path: str) -> str:
    """Collapse "." and ".." segments of a slash-separated path.

    A ".." with nothing left to pop is dropped.
    """
    clean: list[str] = []
    for part in path.split("/"):
        if part == "..":
            if clean:
                clean.pop()
        elif part != ".":
            clean.append(part)
    return "/".join(clean)


def resolve(base_document_path: str, raw_reference: str) -> str:
    """Resolve an asset reference against the document that contains it.

    Args:
        base_document_path: Archive path of the referencing HTML document.
        raw_reference: Value of the ``src`` attribute.

    Returns:
        Canonical archive key. When the document sits at the archive root the
        reference is returned with "./" stripped and no ".." folding.
    """
    normalized = strip_dot_slash(raw_reference)
    directory = document_dir(base_document_path)
    if not directory:
        return normalized
    return fold_segments(f"{directory}/{normalized}")


def strip_query_fragment(reference: str) -> str:
    """Drop anything from the first "?" or "#" onwards."""
    return re.split(r"[?#]", reference, maxsplit=1)[0]


def is_external(reference: str) -> bool:
    """Check whether a reference points outside the archive.

    URLs with a scheme (``http:``, ``data:``, ``blob:`` ...) and
    protocol-relative ``//host/...`` references are external.
    """
    return bool(_SCHEME_RE.match(reference)) or reference.startswith("//")


def basename(path: str) -> str:
    """Return the last segment of a slash-separated path."""
    return path.rstrip("/").split("/")[-1]


def _unique(items: list[str]) -> list[str]:
    seen = set()
    result = []
    for item in items:
        if item and item not in seen:
            seen.add(item)
            result.append(item)
    return result


def candidate_keys(base_document_path: str, raw_reference: str) -> list[str]:
    """Build the ordered lookup candidates used when restoring a session.

    Order: the raw reference (query/fragment stripped), the reference with
    "./" stripped, the reference prefixed with the document's directory,
    and the bare filename. Duplicates are removed, first occurrence wins.
    """
    stripped = strip_query_fragment(raw_reference)
    relative = strip_dot_slash(stripped)
    candidates = [stripped, relative]

    directory = document_dir(base_document_path)
    if directory:
        candidates.append(fold_segments(f"{directory}/{relative}"))

    candidates.append(basename(relative))
    return _unique(candidates)


def alias_keys(path: str) -> list[str]:
    """Return every key an archive image is registered under on restore."""
    bare = path.lstrip("/")
    name = basename(bare)
    return _unique([path, "/" + bare, bare, name, "./" + name])
