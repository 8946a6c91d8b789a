from reader.merge import article_urls, merge
from tests.factories import make_article


def _batch(*urls):
    return [make_article(id=f"c-{i}", url=u) for i, u in enumerate(urls)]


# ── merge ─────────────────────────────────────────────────────

class TestMerge:
    def test_all_new_when_nothing_stored(self):
        c = _batch("a", "b")
        assert merge(set(), c) == c

    def test_drops_known_urls(self):
        c = _batch("a", "b", "c")
        out = merge({"b"}, c)
        assert [a.url for a in out] == ["a", "c"]

    def test_preserves_candidate_order(self):
        c = _batch("z", "y", "x")
        assert [a.url for a in merge(set(), c)] == ["z", "y", "x"]

    def test_empty_url_never_merged(self):
        c = _batch("", "a", "")
        out = merge(set(), c)
        assert [a.url for a in out] == ["a"]

    def test_repeated_url_in_batch_taken_once(self):
        c = _batch("a", "a", "b")
        out = merge(set(), c)
        assert [a.id for a in out] == ["c-0", "c-2"]

    def test_does_not_mutate_existing_set(self):
        existing = {"a"}
        merge(existing, _batch("b"))
        assert existing == {"a"}

    def test_same_inputs_same_output(self):
        c = _batch("a", "b")
        assert merge({"a"}, c) == merge({"a"}, c)

    def test_feeding_output_back_yields_nothing(self):
        existing = {"x"}
        c = _batch("a", "x", "", "b", "a")
        first = merge(existing, c)
        assert merge(existing | article_urls(first), c) == []

    def test_empty_candidates(self):
        assert merge({"a"}, []) == []


# ── article_urls ──────────────────────────────────────────────

class TestArticleUrls:
    def test_collects_urls(self):
        assert article_urls(_batch("a", "b", "a")) == {"a", "b"}

    def test_skips_empty(self):
        assert article_urls(_batch("", "a")) == {"a"}
