"""Tests for the block tree walker."""

from media_mirror.core import OutcomeStatus
from media_mirror.api import build_driver
from tests.fixtures.fake_store import InMemoryDocumentStore, container_block, image_block, text_block

FINAL = "https://cdn.jsdelivr.net/gh/acme/media@main/images/{}.png"


def _walker(store, config, blob_store, client):
    return build_driver(config, client, store, blob_store).walker


def _final(name):
    return image_block(name, FINAL.format(name), hosted=False)


class TestTreeWalker:
    """Traversal order, bounds and failure isolation."""

    def test_nested_blocks_reached(self, config, blob_store, origin):
        store = InMemoryDocumentStore(children={
            "doc": [text_block("t1"), container_block("col"), _final("a")],
            "col": [container_block("inner")],
            "inner": [_final("b")],
        })
        with origin.client() as client:
            report = _walker(store, config, blob_store, client).walk("doc")

        assert [o.target_id for o in report.outcomes] == ["b", "a"]
        assert report.containers_visited == 3
        assert report.first_media_url == FINAL.format("b")

    def test_depth_bound(self, config, blob_store, origin):
        """Containers deeper than max_depth are never listed."""
        cfg = config.model_copy(update={"max_depth": 1})
        store = InMemoryDocumentStore(children={
            "doc": [container_block("l1")],
            "l1": [container_block("l2"), _final("shallow")],
            "l2": [_final("deep")],
        })
        with origin.client() as client:
            report = _walker(store, cfg, blob_store, client).walk("doc")

        assert store.listed_containers == {"doc", "l1"}
        assert [o.target_id for o in report.outcomes] == ["shallow"]

    def test_depth_zero_lists_root_only(self, config, blob_store, origin):
        cfg = config.model_copy(update={"max_depth": 0})
        store = InMemoryDocumentStore(children={"doc": [container_block("l1")], "l1": [_final("x")]})
        with origin.client() as client:
            _walker(store, cfg, blob_store, client).walk("doc")
        assert store.listed_containers == {"doc"}

    def test_pagination_is_per_container(self, config, blob_store, origin):
        cfg = config.model_copy(update={"page_size": 2})
        store = InMemoryDocumentStore(children={
            "doc": [_final("a"), container_block("box"), _final("c"), _final("d"), _final("e")],
            "box": [_final("b1"), _final("b2"), _final("b3")],
        })
        with origin.client() as client:
            report = _walker(store, cfg, blob_store, client).walk("doc")

        assert [o.target_id for o in report.outcomes] == ["a", "b1", "b2", "b3", "c", "d", "e"]
        assert [c for c, _ in store.listings] == ["doc", "box", "box", "doc", "doc"]
        # The child's cursor never leaks into the parent's listing
        assert store.listings == [
            ("doc", None), ("box", None), ("box", "2"), ("doc", "2"), ("doc", "4"),
        ]

    def test_cycle_guard(self, config, blob_store, origin):
        store = InMemoryDocumentStore(children={
            "doc": [container_block("loop")],
            "loop": [container_block("doc"), _final("a")],
        })
        with origin.client() as client:
            report = _walker(store, config, blob_store, client).walk("doc")
        assert [o.target_id for o in report.outcomes] == ["a"]
        assert len(store.listings) == 2

    def test_listing_failure_is_contained(self, config, blob_store, origin):
        store = InMemoryDocumentStore(children={
            "doc": [container_block("broken"), _final("after")],
            "broken": [_final("lost")],
        })
        store.fail_listing.add("broken")
        with origin.client() as client:
            report = _walker(store, config, blob_store, client).walk("doc")

        assert [o.target_id for o in report.outcomes] == ["after"]
        assert len(report.errors) == 1
        assert "broken" in report.errors[0]

    def test_block_failure_does_not_stop_siblings(self, config, blob_store, origin):
        origin.add("https://files.example.com/ok.png", b"not-an-image-but-small")
        store = InMemoryDocumentStore(children={"doc": [
            image_block("gone", "https://files.example.com/missing.png"),
            image_block("ok", "https://files.example.com/ok.png"),
        ]})
        with origin.client() as client:
            report = _walker(store, config, blob_store, client).walk("doc")

        statuses = {o.target_id: o.status for o in report.outcomes}
        assert statuses == {"gone": OutcomeStatus.FAILED, "ok": OutcomeStatus.REWRITTEN}
        assert report.first_media_url.endswith(".png")


    def test_first_media_counts_planned_blocks(self, config, blob_store, origin):
        cfg = config.model_copy(update={"dry_run": True})
        store = InMemoryDocumentStore(children={"doc": [
            image_block("hosted", "https://files.example.com/a.png"),
            _final("later"),
        ]})
        with origin.client() as client:
            report = _walker(store, cfg, blob_store, client).walk("doc")

        assert report.first_media.target_id == "hosted"
        assert report.first_media.status == OutcomeStatus.PLANNED
        assert report.first_media_url is None
