"""ZIP archive container and preview asset index.

The archive is held fully in memory as an ordered mapping of entry path to
bytes. Images are exposed to previews through ``data:`` URIs so that a
rendered document can show archive assets without touching the archive.
"""

import base64
import hashlib
import logging
import mimetypes
import zipfile
from io import BytesIO
from pathlib import Path

from .config import DEFAULT_HTML_EXTENSIONS, DEFAULT_IMAGE_EXTENSIONS
from .errors import ArchiveError
from .paths import alias_keys, candidate_keys, fold_segments, is_external, resolve

logger = logging.getLogger(__name__)

HASH_LENGTH = 16  # 128 bits

# Fixed timestamp so packing the same entries yields the same bytes
ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)

MIME_OVERRIDES = {
    ".svg": "image/svg+xml",
    ".webp": "image/webp",
}


def detect_mime(path: str) -> str:
    """Detect MIME type of an archive entry.

    Args:
        path: Entry path inside the archive.

    Returns:
        MIME type string.
    """
    suffix = Path(path).suffix.lower()
    if suffix in MIME_OVERRIDES:
        return MIME_OVERRIDES[suffix]

    mime, _ = mimetypes.guess_type(path)
    return mime or "application/octet-stream"


def canonical_key(path: str) -> str:
    """Canonicalize an archive path: no leading "/" or "./", no ".." segments."""
    return fold_segments(path.lstrip("/"))


def _has_extension(path: str, extensions: list[str]) -> bool:
    lowered = path.lower()
    return any(lowered.endswith(ext) for ext in extensions)


class Archive:
    """In-memory ZIP archive: an ordered mapping of path to bytes."""

    def __init__(self, entries: dict[str, bytes] | None = None):
        self._entries: dict[str, bytes] = dict(entries or {})

    @classmethod
    def from_bytes(cls, data: bytes) -> "Archive":
        """Load an archive from ZIP bytes.

        Raises:
            ArchiveError: If the bytes are not a readable ZIP file.
        """
        entries = {}
        try:
            with zipfile.ZipFile(BytesIO(data)) as zf:
                for info in zf.infolist():
                    if info.is_dir():
                        continue
                    entries[info.filename] = zf.read(info)
        except zipfile.BadZipFile as e:
            raise ArchiveError(f"Not a ZIP archive: {e}") from e

        logger.debug("Loaded archive with %d entries", len(entries))
        return cls(entries)

    @classmethod
    def from_path(cls, path: Path) -> "Archive":
        """Load an archive from a file on disk."""
        path = Path(path)
        try:
            data = path.read_bytes()
        except OSError as e:
            raise ArchiveError(f"Cannot read archive {path}: {e}") from e
        return cls.from_bytes(data)

    def __contains__(self, path: str) -> bool:
        return path in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, path: str) -> bytes:
        """Return the bytes stored under ``path``.

        Raises:
            ArchiveError: If there is no such entry.
        """
        try:
            return self._entries[path]
        except KeyError:
            raise ArchiveError(f"No entry '{path}' in archive") from None

    def read_text(self, path: str, encoding: str = "utf-8") -> str:
        """Return an entry decoded as text."""
        return self.get(path).decode(encoding, errors="replace")

    def set(self, path: str, data: bytes | str, encoding: str = "utf-8") -> None:
        """Replace (or add) the entry at ``path``."""
        if isinstance(data, str):
            data = data.encode(encoding)
        self._entries[path] = data

    def paths(self) -> list[str]:
        """Return all entry paths in archive order."""
        return list(self._entries)

    def html_paths(self, extensions: list[str] | None = None) -> list[str]:
        """Return the paths of HTML documents in archive order."""
        extensions = extensions or DEFAULT_HTML_EXTENSIONS
        return [p for p in self._entries if _has_extension(p, extensions)]

    def image_paths(self, extensions: list[str] | None = None) -> list[str]:
        """Return the paths of image entries in archive order."""
        extensions = extensions or DEFAULT_IMAGE_EXTENSIONS
        return [p for p in self._entries if _has_extension(p, extensions)]

    def pack(self) -> bytes:
        """Pack the archive into deflated ZIP bytes."""
        buffer = BytesIO()
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
            for path, data in self._entries.items():
                info = zipfile.ZipInfo(path, date_time=ZIP_EPOCH)
                info.compress_type = zipfile.ZIP_DEFLATED
                zf.writestr(info, data)
        return buffer.getvalue()

    def content_hash(self) -> str:
        """Compute a truncated SHA-256 over all entry paths and contents.

        Returns:
            Hex-encoded truncated hash (32 characters / 128 bits).
        """
        digest = hashlib.sha256()
        for path in sorted(self._entries):
            digest.update(path.encode("utf-8"))
            digest.update(b"\0")
            digest.update(hashlib.sha256(self._entries[path]).digest())
        return digest.digest()[:HASH_LENGTH].hex()


def preview_handle(path: str, data: bytes) -> str:
    """Build a data URI that renders ``data`` in a preview."""
    b64_data = base64.b64encode(data).decode("ascii")
    return f"data:{detect_mime(path)};base64,{b64_data}"


class AssetIndex:
    """Mapping of canonical archive path to preview handle."""

    def __init__(self, handles: dict[str, str] | None = None):
        self._handles: dict[str, str] = dict(handles or {})

    @classmethod
    def from_archive(
        cls, archive: Archive, extensions: list[str] | None = None
    ) -> "AssetIndex":
        """Index every image entry under its canonical key."""
        index = cls()
        for path in archive.image_paths(extensions):
            index._handles[canonical_key(path)] = preview_handle(
                path, archive.get(path)
            )
        logger.debug("Indexed %d image(s) for preview", len(index))
        return index

    @classmethod
    def with_aliases(
        cls, archive: Archive, extensions: list[str] | None = None
    ) -> "AssetIndex":
        """Index every image under its canonical key and its alias keys.

        Used on session restore. The full path of an image always maps to
        that image; a shorter alias shared by several images keeps the first
        image registered under it.
        """
        index = cls()
        image_paths = archive.image_paths(extensions)
        for path in image_paths:
            index._handles[canonical_key(path)] = preview_handle(
                path, archive.get(path)
            )
        for path in image_paths:
            handle = index._handles[canonical_key(path)]
            for alias in alias_keys(path):
                index._handles.setdefault(alias, handle)
        logger.debug(
            "Indexed %d image(s) under %d key(s) for restore",
            len(image_paths),
            len(index),
        )
        return index

    def __contains__(self, key: str) -> bool:
        return key in self._handles

    def __len__(self) -> int:
        return len(self._handles)

    def get(self, key: str) -> str | None:
        return self._handles.get(key)

    def lookup(self, document_path: str, reference: str) -> str | None:
        """Find the preview handle for a reference at materialization time."""
        return self._handles.get(resolve(document_path, reference))

    def lookup_lenient(self, document_path: str, reference: str) -> str | None:
        """Find the preview handle for a reference at restore time.

        External references and existing preview handles are never
        re-resolved. Candidates are tried in order; the first hit wins.
        """
        if is_external(reference):
            return None
        for key in candidate_keys(document_path, reference):
            handle = self._handles.get(key)
            if handle is not None:
                return handle
        return None
