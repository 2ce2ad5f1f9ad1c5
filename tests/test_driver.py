"""End-to-end migration runs against in-memory stores."""

import hashlib
from datetime import timedelta

import pytest

from media_mirror.core import Action, DocumentSelector, DocumentSummary, MediaRef, OutcomeStatus
from media_mirror.errors import SelectionError
from tests.fixtures.fake_store import CDN_PREFIX, InMemoryDocumentStore, container_block, image_block
from tests.fixtures.images import image_size, noise_image, solid_image

HOSTED = "https://prod-files-secure.s3.us-west-2.amazonaws.com/ws/{}/image.png?X-Amz-Signature=abc"


def _hosted(origin, name, data):
    return origin.add(HOSTED.format(name), data)


def _stored_url(data: bytes, ext: str) -> str:
    return f"{CDN_PREFIX}/images/{hashlib.sha1(data).hexdigest()}.{ext}"


class TestMigration:
    """Single-run behaviour."""

    def test_small_hosted_image_stored_verbatim(self, run_migration, origin, blob_store):
        data = solid_image()
        store = InMemoryDocumentStore(
            documents=[DocumentSummary(id="doc", title="Post")],
            children={"doc": [image_block("b1", _hosted(origin, "a", data))]},
        )
        report = run_migration(store)

        expected = _stored_url(data, "png")
        assert store.block_writes == [("b1", expected)]
        assert store.block("b1").media == MediaRef.external(expected)
        assert blob_store.read(expected[len(CDN_PREFIX) + 1:]) == data
        assert report.uploads == 1
        assert report.outcomes[0].action == Action.MIGRATE_NATIVE

    def test_oversized_image_transcoded(self, run_migration, origin, blob_store, config):
        data = noise_image(400, 300)
        assert len(data) >= config.size_threshold
        store = InMemoryDocumentStore(
            documents=[DocumentSummary(id="doc")],
            children={"doc": [image_block("b1", _hosted(origin, "big", data))]},
        )
        report = run_migration(store)

        url = store.block_writes[0][1]
        path = url[len(CDN_PREFIX) + 1:]
        stored = blob_store.read(path)
        assert url == _stored_url(stored, "webp")
        assert image_size(stored) == ("WEBP", 128, 96)
        assert report.uploads == 1

    def test_duplicate_content_deduplicated(self, run_migration, origin):
        data = solid_image(color=(1, 2, 3))
        store = InMemoryDocumentStore(
            documents=[DocumentSummary(id="d1"), DocumentSummary(id="d2")],
            children={
                "d1": [image_block("b1", _hosted(origin, "one", data))],
                "d2": [image_block("b2", _hosted(origin, "two", data))],
            },
        )
        report = run_migration(store)

        (_, first), (_, second) = store.block_writes
        assert first == second
        assert (report.uploads, report.existing) == (1, 1)

    def test_relink_does_not_fetch(self, run_migration, origin):
        raw = "https://raw.githubusercontent.com/acme/media/main/images/abc.png"
        store = InMemoryDocumentStore(
            documents=[DocumentSummary(id="doc")],
            children={"doc": [image_block("b1", raw, hosted=False)]},
        )
        report = run_migration(store)

        assert store.block_writes == [("b1", f"{CDN_PREFIX}/images/abc.png")]
        assert origin.requests == []
        assert report.uploads == 0

    def test_foreign_image_mirrored(self, run_migration, origin):
        data = solid_image(color=(9, 9, 9), fmt="JPEG")
        url = origin.add("https://images.example.com/photo?id=7", data)
        store = InMemoryDocumentStore(
            documents=[DocumentSummary(id="doc")],
            children={"doc": [image_block("b1", url, hosted=False)]},
        )
        report = run_migration(store)

        assert store.block_writes == [("b1", _stored_url(data, "jpg"))]
        assert report.outcomes[0].action == Action.MIRROR_FOREIGN

    def test_fetch_failure_isolated(self, run_migration, origin):
        good = _hosted(origin, "good", solid_image())
        origin.add(HOSTED.format("expired"), b"<Error>AccessDenied</Error>", status=403)
        store = InMemoryDocumentStore(
            documents=[DocumentSummary(id="doc")],
            children={"doc": [
                image_block("bad", HOSTED.format("expired")),
                image_block("good", good),
            ]},
        )
        report = run_migration(store)

        assert [b for b, _ in store.block_writes] == ["good"]
        failed = [o for o in report.outcomes if o.status == OutcomeStatus.FAILED]
        assert [o.target_id for o in failed] == ["bad"]
        assert "HTTP 403" in failed[0].error
        assert report.has_failures

    def test_malformed_url_fails_only_its_block(self, run_migration, origin):
        good = _hosted(origin, "good", solid_image())
        store = InMemoryDocumentStore(
            documents=[DocumentSummary(id="doc")],
            children={"doc": [
                image_block("bad", "https://[broken/x.png", hosted=False),
                image_block("good", good),
            ]},
        )
        report = run_migration(store)

        statuses = {o.target_id: o.status for o in report.outcomes if o.target == "block"}
        assert statuses == {"bad": OutcomeStatus.FAILED, "good": OutcomeStatus.REWRITTEN}
        assert [b for b, _ in store.block_writes] == ["good"]

    def test_rewrite_failure_isolated(self, run_migration, origin):
        store = InMemoryDocumentStore(
            documents=[DocumentSummary(id="doc")],
            children={"doc": [
                image_block("locked", _hosted(origin, "a", solid_image())),
                image_block("b2", _hosted(origin, "b", solid_image(color=(0, 0, 0)))),
            ]},
        )
        store.fail_writes.add("locked")
        report = run_migration(store)

        statuses = {o.target_id: o.status for o in report.outcomes if o.target == "block"}
        assert statuses == {"locked": OutcomeStatus.FAILED, "b2": OutcomeStatus.REWRITTEN}

    def test_selection_failure_is_fatal(self, run_migration):
        store = InMemoryDocumentStore()
        store.fail_query = True
        with pytest.raises(SelectionError):
            run_migration(store)

    def test_selector_is_passed_through(self, run_migration):
        store = InMemoryDocumentStore()
        selector = DocumentSelector(edited_within=timedelta(days=1), status="Published")
        run_migration(store, selector=selector)
        assert store.queries == [selector]

    def test_concurrent_documents(self, run_migration, origin, config):
        docs = [DocumentSummary(id=f"d{i}") for i in range(6)]
        children = {
            d.id: [image_block(f"{d.id}-img", _hosted(origin, d.id, solid_image(color=(i, 0, 0))))]
            for i, d in enumerate(docs)
        }
        store = InMemoryDocumentStore(documents=docs, children=children)
        report = run_migration(store, config.model_copy(update={"concurrency": 3}))

        assert [d.document_id for d in report.documents] == [d.id for d in docs]
        assert report.uploads == 6
        assert len(store.block_writes) == 6


class TestCovers:
    """Cover migration and derivation from the first image."""

    def test_cover_from_first_image(self, run_migration, origin):
        data = solid_image()
        store = InMemoryDocumentStore(
            documents=[DocumentSummary(id="doc")],
            children={"doc": [
                container_block("toggle"),
                image_block("second", _hosted(origin, "second", solid_image(color=(5, 5, 5)))),
            ], "toggle": [image_block("first", _hosted(origin, "first", data))]},
        )
        run_migration(store)
        assert store.cover_writes == [("doc", _stored_url(data, "png"))]

    def test_existing_cover_kept_without_force(self, run_migration, origin):
        cover = f"{CDN_PREFIX}/images/cover.png"
        store = InMemoryDocumentStore(
            documents=[DocumentSummary(id="doc", cover=MediaRef.external(cover))],
            children={"doc": [image_block("b1", _hosted(origin, "a", solid_image()))]},
        )
        run_migration(store)
        assert store.cover_writes == []

    def test_force_replaces_cover(self, run_migration, origin, config):
        data = solid_image()
        store = InMemoryDocumentStore(
            documents=[DocumentSummary(id="doc", cover=MediaRef.external("https://example.com/old.png"))],
            children={"doc": [image_block("b1", _hosted(origin, "a", data))]},
        )
        run_migration(store, config.model_copy(update={"force": True}))
        assert store.cover_writes == [("doc", _stored_url(data, "png"))]

    def test_hosted_cover_migrated(self, run_migration, origin):
        data = solid_image(color=(0, 200, 0))
        store = InMemoryDocumentStore(
            documents=[DocumentSummary(id="doc", cover=MediaRef.hosted(_hosted(origin, "cover", data)))],
            children={"doc": []},
        )
        report = run_migration(store)
        assert store.cover_writes == [("doc", _stored_url(data, "png"))]
        assert report.outcomes[0].target == "cover"

    def test_final_cover_causes_no_io(self, run_migration, origin, config):
        cover = f"{CDN_PREFIX}/images/done.png"
        store = InMemoryDocumentStore(
            documents=[DocumentSummary(id="doc", cover=MediaRef.external(cover))],
            children={"doc": []},
        )
        report = run_migration(store, config.model_copy(update={"cover_from_first_image": False}))

        assert origin.requests == []
        assert store.writes == 0
        assert report.uploads == 0
        assert report.outcomes[0].status == OutcomeStatus.UNCHANGED


class TestIdempotence:
    """Re-running over migrated documents."""

    def _populated(self, origin):
        return InMemoryDocumentStore(
            documents=[DocumentSummary(id="d1"), DocumentSummary(id="d2", cover=MediaRef.hosted(
                _hosted(origin, "cover", solid_image(color=(7, 7, 7)))
            ))],
            children={
                "d1": [
                    image_block("a", _hosted(origin, "a", solid_image())),
                    container_block("box"),
                ],
                "box": [image_block("b", _hosted(origin, "b", noise_image(300, 300, seed=3)))],
                "d2": [image_block("c", "https://raw.githubusercontent.com/acme/media/main/images/x.png", hosted=False)],
            },
        )

    def test_second_run_is_a_no_op(self, run_migration, origin):
        store = self._populated(origin)
        first = run_migration(store)
        assert not first.has_failures
        writes, fetches = store.writes, len(origin.requests)

        second = run_migration(store)

        assert store.writes == writes
        assert len(origin.requests) == fetches
        assert second.uploads == 0
        assert second.count_by_status()[OutcomeStatus.REWRITTEN] == 0
        assert all(o.action == Action.NO_ACTION for o in second.outcomes if o.action is not None)

    def test_dry_run_changes_nothing(self, run_migration, origin, config, blob_store):
        store = self._populated(origin)
        report = run_migration(store, config.model_copy(update={"dry_run": True}))

        assert store.writes == 0
        assert origin.requests == []
        assert not blob_store.base_dir.joinpath("images").exists()
        planned = {o.target_id: o for o in report.outcomes if o.status == OutcomeStatus.PLANNED}
        assert set(planned) >= {"a", "b", "c", "d2"}
        assert planned["c"].url == f"{CDN_PREFIX}/images/x.png"
        assert "planned" in report.summary()

    def test_mirror_mode_second_run_is_a_no_op(self, run_migration, origin, config):
        mirror = config.model_copy(update={"branch_mismatch": "mirror"})
        data = solid_image(color=(40, 80, 120))
        other_branch = origin.add("https://raw.githubusercontent.com/acme/media/dev/images/x.png", data)
        store = InMemoryDocumentStore(
            documents=[DocumentSummary(id="doc")],
            children={"doc": [image_block("b1", other_branch, hosted=False)]},
        )

        first = run_migration(store, mirror)
        assert store.block_writes == [("b1", _stored_url(data, "png"))]
        assert first.uploads == 1
        writes = store.writes

        second = run_migration(store, mirror)
        assert store.writes == writes
        assert second.uploads == 0
        assert len(origin.requests) == 1

    def test_dry_run_cover_follows_first_image(self, run_migration, origin, config):
        """The planned cover comes from the first image even before it has a URL."""
        store = InMemoryDocumentStore(
            documents=[DocumentSummary(id="doc")],
            children={"doc": [
                image_block("first", _hosted(origin, "first", solid_image())),
                image_block("second", f"{CDN_PREFIX}/images/second.png", hosted=False),
            ]},
        )
        report = run_migration(store, config.model_copy(update={"dry_run": True}))

        cover = [o for o in report.outcomes if o.target == "cover"]
        assert len(cover) == 1
        assert cover[0].status == OutcomeStatus.PLANNED
        assert cover[0].url is None
        assert store.writes == 0
