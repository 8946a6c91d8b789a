import os
import json

import pytest

from reader.store import JsonFileStore, MemoryStore
from tests.factories import make_article, make_feed


@pytest.fixture
def store_file(tmp_path):
    return str(tmp_path / "store.json")


@pytest.fixture(params=["memory", "json"])
def store(request, store_file):
    if request.param == "memory":
        return MemoryStore()
    return JsonFileStore(store_file)


# ── Store contract (both implementations) ─────────────────────

class TestStoreContract:
    def test_empty(self, store):
        assert store.load_feeds() == []
        assert store.load_articles() == []

    def test_save_and_get_feed(self, store):
        feed = make_feed()
        store.save_feed(feed)
        assert store.get_feed("feed-1") == feed
        assert store.get_feed_by_url(feed.url) == feed
        assert store.get_feed("nope") is None

    def test_save_feed_overwrites(self, store):
        store.save_feed(make_feed(title="Old"))
        store.save_feed(make_feed(title="New"))
        assert [f.title for f in store.load_feeds()] == ["New"]

    def test_articles_per_feed(self, store):
        store.save_articles([
            make_article(id="1", feed_id="f1", url="a"),
            make_article(id="2", feed_id="f2", url="b"),
            make_article(id="3", feed_id="f1", url=""),
        ])
        assert [a.id for a in store.load_articles("f1")] == ["1", "3"]
        assert store.load_article_urls("f1") == {"a"}
        assert len(store.load_articles()) == 3

    def test_save_articles_updates_same_url(self, store):
        store.save_articles([make_article(id="1", url="a")])
        store.save_articles([make_article(id="1", url="a", is_read=True)])
        assert store.load_articles()[0].is_read

    def test_save_articles_refuses_id_reused_for_other_url(self, store):
        store.save_articles([make_article(id="1", url="a")])
        store.save_articles([make_article(id="1", url="b"), make_article(id="2", url="c")])
        assert {a.id: a.url for a in store.load_articles()} == {"1": "a", "2": "c"}

    def test_update_article(self, store):
        store.save_articles([make_article(id="1")])
        store.update_article(make_article(id="1", is_read=True))
        assert store.load_articles()[0].is_read

    def test_update_unknown_article(self, store):
        with pytest.raises(KeyError):
            store.update_article(make_article(id="ghost"))

    def test_delete_articles(self, store):
        store.save_articles([make_article(id="1"), make_article(id="2")])
        store.delete_articles(["1", "missing"])
        assert [a.id for a in store.load_articles()] == ["2"]

    def test_delete_feed_cascades(self, store):
        store.save_feed(make_feed(id="f1"))
        store.save_feed(make_feed(id="f2", url="other"))
        store.save_articles([make_article(id="1", feed_id="f1"), make_article(id="2", feed_id="f2")])
        store.delete_feed("f1")
        assert [f.id for f in store.load_feeds()] == ["f2"]
        assert [a.id for a in store.load_articles()] == ["2"]


# ── JsonFileStore persistence ─────────────────────────────────

class TestJsonFileStore:
    def test_persists_across_instances(self, store_file):
        s1 = JsonFileStore(store_file)
        s1.save_feed(make_feed())
        s1.save_articles([make_article(is_starred=True)])
        s2 = JsonFileStore(store_file)
        assert s2.load_feeds() == [make_feed()]
        assert s2.load_articles()[0].is_starred

    def test_no_tmp_left(self, store_file):
        JsonFileStore(store_file).save_feed(make_feed())
        assert not os.path.exists(f"{store_file}.tmp")

    def test_corrupted_file_set_aside(self, store_file):
        with open(store_file, "w") as f:
            f.write("{broken")
        s = JsonFileStore(store_file)
        assert s.load_feeds() == []
        assert os.path.exists(f"{store_file}.corrupt")

    def test_not_a_dict(self, store_file):
        with open(store_file, "w") as f:
            json.dump([], f)
        assert JsonFileStore(store_file).load_articles() == []
