"""Tests for ziphtml.document module."""

import pytest

from ziphtml.archive import Archive, AssetIndex
from ziphtml.document import apply_edit, apply_edits, materialize, parse_html

PNG = b"\x89PNG\r\n\x1a\nfake-logo"

INDEX_HTML = """<!DOCTYPE html>
<html>
<head><title>Site</title></head>
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
def doc(assets):
    return materialize(INDEX_HTML, "index.html", assets)


class TestParseHtml:
    def test_parses_document(self):
        soup = parse_html("<html><body><p>Hi</p></body></html>")

        assert soup.body.p.string == "Hi"


class TestMaterialize:
    """Tests for materialize function."""

    def test_indexes_body_text(self, doc):
        assert [(r.index, r.original) for r in doc.text_nodes] == [
            (1, "Hello"),
            (2, "World"),
        ]

    def test_head_text_not_indexed(self, doc):
        assert "Site" not in [r.original for r in doc.text_nodes]

    def test_substitutes_preview_handle(self, doc):
        assert 'src="data:image/png;base64,' in doc.preview_markup
        assert "./img/logo.png" not in doc.preview_markup

    def test_original_src_kept_out_of_band(self, doc):
        assert [original for _, original in doc.images] == ["./img/logo.png"]
        assert "data-original-src" not in str(doc.soup)

    def test_missing_asset_keeps_reference(self, assets):
        html = '<html><body><img src="img/missing.png"></body></html>'

        doc = materialize(html, "index.html", assets)

        assert 'src="img/missing.png"' in doc.preview_markup

    def test_image_without_src_is_skipped(self, assets):
        html = '<html><body><img alt="nothing"><p>Text</p></body></html>'

        doc = materialize(html, "index.html", assets)

        assert doc.images == []
        assert "src" not in doc.preview_markup

    def test_relative_to_document_directory(self, assets):
        html = '<html><body><img src="../img/logo.png"></body></html>'

        doc = materialize(html, "about/team.html", assets)

        assert "data:image/png;base64," in doc.preview_markup

    def test_strict_resolver_misses_bare_filename(self, archive):
        html = '<html><body><img src="logo.png"></body></html>'

        doc = materialize(html, "pages/a.html", AssetIndex.from_archive(archive))

        assert 'src="logo.png"' in doc.preview_markup

    def test_lenient_resolver_finds_bare_filename(self, archive):
        html = '<html><body><img src="logo.png?v=1"></body></html>'

        doc = materialize(
            html,
            "pages/a.html",
            AssetIndex.with_aliases(archive),
            lenient_assets=True,
        )

        assert "data:image/png;base64," in doc.preview_markup

    def test_name_defaults_to_path(self, doc):
        assert doc.name == "index.html"
        assert doc.path == "index.html"

    def test_custom_name(self, assets):
        doc = materialize(INDEX_HTML, "index.html", assets, name="Home")

        assert doc.name == "Home"

    def test_fresh_ids(self, assets):
        first = materialize(INDEX_HTML, "index.html", assets)
        second = materialize(INDEX_HTML, "index.html", assets)

        assert first.id != second.id

    def test_fragment_without_body(self, assets):
        doc = materialize("<p>Just text</p>", "frag.html", assets)

        assert [r.original for r in doc.text_nodes] == ["Just text"]

    def test_skip_tags(self, assets):
        html = "<html><body><p>A</p><script>var x;</script></body></html>"

        doc = materialize(html, "index.html", assets, skip_tags=["script"])

        assert [r.original for r in doc.text_nodes] == ["A"]


class TestApplyEdit:
    """Tests for apply_edit function."""

    def test_edit_leaves_neighbour_untouched(self, doc):
        apply_edit(doc, 2, "Earth")

        assert "<p>Hello</p>" in doc.preview_markup
        assert "<p>Earth</p>" in doc.preview_markup
        assert "World" not in doc.preview_markup
        assert doc.text_nodes[0].updated == "Hello"

    def test_updates_record(self, doc):
        apply_edit(doc, 2, "Earth")

        record = doc.record(2)
        assert record.original == "World"
        assert record.updated == "Earth"

    def test_returns_same_document(self, doc):
        assert apply_edit(doc, 1, "Hi") is doc

    def test_does_not_renumber(self, doc):
        apply_edit(doc, 1, "   ")

        assert [r.index for r in doc.text_nodes] == [1, 2]
        assert doc.record(2).original == "World"

    def test_unknown_index_is_noop(self, doc):
        before = doc.preview_markup

        apply_edit(doc, 99, "Nope")
        apply_edit(doc, 0, "Nope")

        assert doc.preview_markup == before

    def test_repeated_edits(self, doc):
        """Test each keystroke replaces the previous value."""
        for value in ("E", "Ea", "Ear", "Eart", "Earth"):
            apply_edit(doc, 2, value)

        assert [p.get_text() for p in doc.soup.find_all("p")] == ["Hello", "Earth"]

    def test_keeps_preview_handle(self, doc):
        apply_edit(doc, 1, "Hi")

        assert "data:image/png;base64," in doc.preview_markup

    def test_apply_edits(self, doc):
        apply_edits(doc, {2: "Earth", 1: "Goodbye", 7: "ignored"})

        assert "<p>Goodbye</p><p>Earth</p>" in doc.preview_markup
