"""Tests for ziphtml.paths module."""

from ziphtml.paths import (
    alias_keys,
    basename,
    candidate_keys,
    document_dir,
    fold_segments,
    is_external,
    resolve,
    strip_query_fragment,
)


class TestResolve:
    """Tests for the materialization-time resolver."""

    def test_strips_leading_dot_slash_at_root(self):
        assert resolve("index.html", "./img/logo.png") == "img/logo.png"

    def test_joins_document_directory(self):
        assert resolve("pages/about.html", "img/a.png") == "pages/img/a.png"

    def test_folds_parent_segments(self):
        assert resolve("pages/about.html", "../img/a.png") == "img/a.png"

    def test_drops_current_dir_segments(self):
        assert resolve("a/b/c.html", "./x/./y.png") == "a/b/x/y.png"

    def test_parent_beyond_root_is_dropped(self):
        """Test popping an empty stack is silently ignored."""
        assert resolve("pages/a.html", "../../img/a.png") == "img/a.png"

    def test_no_folding_without_document_directory(self):
        """Test root documents return the reference without folding."""
        assert resolve("index.html", "../img/a.png") == "../img/a.png"

    def test_keeps_query_and_fragment(self):
        assert resolve("p/a.html", "img.png?v=2") == "p/img.png?v=2"
        assert resolve("index.html", "img.png#top") == "img.png#top"

    def test_only_one_leading_dot_slash_stripped(self):
        assert resolve("index.html", "././a.png") == "./a.png"

    def test_root_document_keys_resolve_to_themselves(self):
        """Test resolving a key again from a root document changes nothing."""
        key = resolve("index.html", "./img/logo.png")
        assert resolve("index.html", key) == key

    def test_nested_document_keys_are_not_fixed_points(self):
        """Test a resolved key is relative again when resolved from a subfolder."""
        key = resolve("pages/a.html", "img/x.png")

        assert key == "pages/img/x.png"
        # Keys are archive-absolute; resolve treats every reference as relative.
        assert resolve("pages/a.html", key) == "pages/pages/img/x.png"


class TestHelpers:
    """Tests for small path helpers."""

    def test_document_dir(self):
        assert document_dir("index.html") == ""
        assert document_dir("a/b/page.html") == "a/b"

    def test_fold_segments(self):
        assert fold_segments("a/./b/../c") == "a/c"
        assert fold_segments("../a") == "a"

    def test_basename(self):
        assert basename("img/logo.png") == "logo.png"
        assert basename("logo.png") == "logo.png"

    def test_strip_query_fragment(self):
        assert strip_query_fragment("a.png?x=1#y") == "a.png"
        assert strip_query_fragment("a.png#frag") == "a.png"
        assert strip_query_fragment("a.png") == "a.png"


class TestIsExternal:
    """Tests for external reference detection."""

    def test_urls_with_scheme(self):
        assert is_external("http://example.com/a.png")
        assert is_external("https://example.com/a.png")
        assert is_external("data:image/png;base64,AAAA")
        assert is_external("blob:https://example.com/1234")

    def test_protocol_relative(self):
        assert is_external("//cdn.example.com/a.png")

    def test_archive_references(self):
        assert not is_external("img/a.png")
        assert not is_external("./a.png")
        assert not is_external("../img/a.png")
        assert not is_external("/img/a.png")


class TestCandidateKeys:
    """Tests for restore-time lookup candidates."""

    def test_order_of_candidates(self):
        keys = candidate_keys("pages/index.html", "./img/a.png?v=1")

        assert keys == ["./img/a.png", "img/a.png", "pages/img/a.png", "a.png"]

    def test_parent_reference(self):
        keys = candidate_keys("about/team.html", "../img/logo.png")

        assert keys == ["../img/logo.png", "img/logo.png", "logo.png"]

    def test_root_document_deduplicates(self):
        assert candidate_keys("index.html", "a.png") == ["a.png"]


class TestAliasKeys:
    """Tests for restore-time image aliases."""

    def test_nested_image(self):
        assert alias_keys("img/logo.png") == [
            "img/logo.png",
            "/img/logo.png",
            "logo.png",
            "./logo.png",
        ]

    def test_root_image(self):
        assert alias_keys("logo.png") == ["logo.png", "/logo.png", "./logo.png"]
