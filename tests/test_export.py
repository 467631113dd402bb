"""Tests for ziphtml.export module."""

import zipfile
from io import BytesIO

import pytest

from ziphtml.archive import Archive, AssetIndex
from ziphtml.document import apply_edit, materialize
from ziphtml.export import (
    export_to_archive,
    package_archive,
    render_preview_page,
    sanitize_filename,
)

PNG = b"\x89PNG\r\n\x1a\nfake-logo"

INDEX_HTML = """<!DOCTYPE html>
<html>
<head><title>Site</title><style>p { color: red; }</style></head>
<body>
<p>Hello</p><p>World</p>
<img src="./img/logo.png" alt="Logo">
</body>
</html>"""


@pytest.fixture
def archive():
    return Archive({"index.html": INDEX_HTML.encode(), "img/logo.png": PNG})


@pytest.fixture
def assets(archive):
    return AssetIndex.from_archive(archive)


@pytest.fixture
def doc(archive, assets):
    return materialize(archive.read_text("index.html"), "index.html", assets)


class TestExportToArchive:
    """Tests for export_to_archive function."""

    def test_restores_original_src(self, doc, archive):
        html = export_to_archive(doc, archive)

        assert 'src="./img/logo.png"' in html
        assert "data:" not in html

    def test_writes_returned_html(self, doc, archive):
        html = export_to_archive(doc, archive)

        assert archive.get("index.html") == html.encode("utf-8")

    def test_includes_edits(self, doc, archive):
        apply_edit(doc, 2, "Earth")

        html = export_to_archive(doc, archive)

        assert "<p>Hello</p><p>Earth</p>" in html
        assert "World" not in html

    def test_serializes_whole_document(self, doc, archive):
        html = export_to_archive(doc, archive)

        assert "<title>Site</title>" in html
        assert "<!DOCTYPE html>" in html

    def test_preview_survives_export(self, doc, archive):
        export_to_archive(doc, archive)

        assert "data:image/png;base64," in doc.preview_markup
        assert doc.images[0][0]["src"].startswith("data:image/png")

    def test_export_twice_is_stable(self, doc, archive):
        first = export_to_archive(doc, archive)
        second = export_to_archive(doc, archive)

        assert first == second

    def test_custom_archive_path(self, doc, archive):
        apply_edit(doc, 1, "Copy")

        export_to_archive(doc, archive, "copy.html")

        assert "Copy" in archive.get("copy.html").decode()
        assert archive.get("index.html") == INDEX_HTML.encode()

    def test_round_trip(self, doc, archive, assets):
        """Test re-materializing exported HTML sees the edits as originals."""
        apply_edit(doc, 1, "Goodbye")
        apply_edit(doc, 2, "Earth")
        export_to_archive(doc, archive)

        reopened = materialize(archive.read_text("index.html"), "index.html", assets)

        assert len(reopened.text_nodes) == len(doc.text_nodes)
        assert [r.original for r in reopened.text_nodes] == [
            r.updated for r in doc.text_nodes
        ]

    def test_last_export_wins(self, archive, assets):
        """Test two tabs on one path overwrite each other without merging."""
        html = archive.read_text("index.html")
        first = materialize(html, "index.html", assets)
        second = materialize(html, "index.html", assets)
        apply_edit(first, 1, "From first")
        apply_edit(second, 2, "From second")

        export_to_archive(first, archive)
        export_to_archive(second, archive)

        written = archive.read_text("index.html")
        assert "From second" in written
        assert "From first" not in written
        assert "<p>Hello</p>" in written

    def test_reapplies_record_text(self, doc, archive):
        """Test records are written even if a node was changed behind them."""
        doc.text_nodes[0].updated = "Direct"

        html = export_to_archive(doc, archive)

        assert "<p>Direct</p>" in html


class TestPackageArchive:
    def test_returns_zip_bytes(self, archive):
        data = package_archive(archive)

        with zipfile.ZipFile(BytesIO(data)) as zf:
            assert zf.namelist() == ["index.html", "img/logo.png"]


class TestSanitizeFilename:
    """Tests for download name sanitizing."""

    def test_strips_spaces_and_symbols(self):
        assert sanitize_filename("my site!.zip") == "mysite.zip"

    def test_keeps_dashes_and_underscores(self):
        assert sanitize_filename("site-v2_final.zip") == "site-v2_final.zip"

    def test_strips_path_separators(self):
        assert sanitize_filename("../x.zip") == "x.zip"

    def test_falls_back_to_default(self):
        assert sanitize_filename("   ") == "updated.zip"
        assert sanitize_filename("!!!", default="out.zip") == "out.zip"


class TestRenderPreviewPage:
    def test_embeds_preview(self, doc):
        apply_edit(doc, 2, "Earth")

        page = render_preview_page(doc)

        assert "<p>Earth</p>" in page
        assert "data:image/png;base64," in page
        assert "<title>Preview: index.html</title>" in page
        assert "color: red" in page

    def test_escapes_title(self, doc):
        page = render_preview_page(doc, title="<b>Tab</b>")

        assert "Preview: &lt;b&gt;Tab&lt;/b&gt;" in page
