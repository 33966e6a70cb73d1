"""Unit tests for k8swatch.cache.resource_mirror.ResourceMirror."""

from __future__ import annotations

import threading

from conftest import make_resource
from hypothesis import given, settings
from hypothesis import strategies as st

from k8swatch.cache.resource_mirror import ResourceMirror
from k8swatch.models.resources import CustomResource, ResourceEvent, WatchEventType

ADDED = WatchEventType.ADDED
MODIFIED = WatchEventType.MODIFIED
DELETED = WatchEventType.DELETED


def _event(event_type: WatchEventType, resource: CustomResource) -> ResourceEvent[CustomResource]:
    return ResourceEvent(type=event_type, resource=resource)


def _content(mirror: ResourceMirror[CustomResource]) -> dict[str, str]:
    return {r.uid: r.spec["value"] for r in mirror.snapshot()}


# ---------------------------------------------------------------------------
# Event application
# ---------------------------------------------------------------------------


class TestApply:
    def test_added_inserts_resource(self) -> None:
        mirror: ResourceMirror[CustomResource] = ResourceMirror()
        assert mirror.apply(_event(ADDED, make_resource("a", value="1"))) is True
        assert _content(mirror) == {"a": "1"}

    def test_modified_replaces_matching_uid(self) -> None:
        mirror: ResourceMirror[CustomResource] = ResourceMirror()
        mirror.apply(_event(ADDED, make_resource("a", value="1")))
        mirror.apply(_event(ADDED, make_resource("b", value="1")))

        assert mirror.apply(_event(MODIFIED, make_resource("a", value="2"))) is True

        assert len(mirror) == 2
        assert _content(mirror) == {"a": "2", "b": "1"}

    def test_deleted_removes_matching_uid(self) -> None:
        mirror: ResourceMirror[CustomResource] = ResourceMirror()
        mirror.apply(_event(ADDED, make_resource("a")))
        mirror.apply(_event(ADDED, make_resource("b")))

        assert mirror.apply(_event(DELETED, make_resource("a"))) is True

        assert [r.uid for r in mirror] == ["b"]

    def test_modified_for_unknown_uid_is_dropped(self) -> None:
        """An update for a never-added uid does not upsert."""
        mirror: ResourceMirror[CustomResource] = ResourceMirror()
        mirror.apply(_event(ADDED, make_resource("a", value="1")))

        assert mirror.apply(_event(MODIFIED, make_resource("ghost", value="9"))) is False

        assert len(mirror) == 1
        assert mirror.get("ghost") is None

    def test_deleted_for_unknown_uid_is_noop(self) -> None:
        mirror: ResourceMirror[CustomResource] = ResourceMirror()
        mirror.apply(_event(ADDED, make_resource("a")))

        assert mirror.apply(_event(DELETED, make_resource("ghost"))) is False

        assert len(mirror) == 1

    def test_duplicate_added_is_not_deduplicated(self) -> None:
        """A second ADDED for a present uid adds a second entry."""
        mirror: ResourceMirror[CustomResource] = ResourceMirror()
        mirror.apply(_event(ADDED, make_resource("a", value="1")))

        mirror.apply(_event(ADDED, make_resource("a", value="2")))

        assert len(mirror) == 2
        assert [r.uid for r in mirror] == ["a", "a"]

    def test_bookmark_and_error_do_not_mutate(self) -> None:
        mirror: ResourceMirror[CustomResource] = ResourceMirror()
        mirror.apply(_event(ADDED, make_resource("a")))

        assert mirror.apply(_event(WatchEventType.BOOKMARK, make_resource("b"))) is False
        assert mirror.apply(ResourceEvent(type=WatchEventType.ERROR, error=RuntimeError("x"))) is False

        assert [r.uid for r in mirror] == ["a"]


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


class TestReads:
    def test_snapshot_is_a_copy(self) -> None:
        mirror: ResourceMirror[CustomResource] = ResourceMirror()
        mirror.apply(_event(ADDED, make_resource("a")))

        snapshot = mirror.snapshot()
        snapshot.clear()

        assert len(mirror) == 1

    def test_iteration_tolerates_concurrent_mutation(self) -> None:
        mirror: ResourceMirror[CustomResource] = ResourceMirror()
        for uid in "abc":
            mirror.apply(_event(ADDED, make_resource(uid)))

        seen = []
        for resource in mirror:
            mirror.apply(_event(DELETED, resource))
            seen.append(resource.uid)

        assert seen == ["a", "b", "c"]
        assert len(mirror) == 0

    def test_replace_all_discards_previous_content(self) -> None:
        mirror: ResourceMirror[CustomResource] = ResourceMirror()
        mirror.apply(_event(ADDED, make_resource("old")))

        mirror.replace_all([make_resource("x"), make_resource("y")])

        assert sorted(r.uid for r in mirror) == ["x", "y"]

    def test_get_by_uid(self) -> None:
        mirror: ResourceMirror[CustomResource] = ResourceMirror()
        resource = make_resource("a", value="v")
        mirror.apply(_event(ADDED, resource))

        assert mirror.get("a") is resource
        assert mirror.get("b") is None

    def test_custom_uid_function(self) -> None:
        mirror: ResourceMirror[dict] = ResourceMirror(uid_of=lambda r: r["id"])
        mirror.apply(ResourceEvent(type=ADDED, resource={"id": 1, "v": "a"}))
        mirror.apply(ResourceEvent(type=MODIFIED, resource={"id": 1, "v": "b"}))

        assert mirror.snapshot() == [{"id": 1, "v": "b"}]


class TestConcurrentMutation:
    def test_parallel_adds_are_all_kept(self) -> None:
        mirror: ResourceMirror[CustomResource] = ResourceMirror()

        def add_many(prefix: str) -> None:
            for i in range(250):
                mirror.apply(_event(ADDED, make_resource(f"{prefix}-{i}")))

        threads = [threading.Thread(target=add_many, args=(str(n),)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(mirror) == 1000


# ---------------------------------------------------------------------------
# Property: final content equals the added-and-not-deleted set
# ---------------------------------------------------------------------------

_ops = st.lists(
    st.tuples(
        st.sampled_from([ADDED, MODIFIED, DELETED]),
        st.sampled_from(["a", "b", "c", "d", "e"]),
        st.text(min_size=1, max_size=4),
    ),
    max_size=60,
)


class TestMirrorProperties:
    @given(ops=_ops)
    @settings(max_examples=200)
    def test_final_content_matches_model(self, ops: list[tuple[WatchEventType, str, str]]) -> None:
        """ADDED only for absent uids; MODIFIED/DELETED for any uid."""
        mirror: ResourceMirror[CustomResource] = ResourceMirror()
        model: dict[str, str] = {}

        for event_type, uid, value in ops:
            if event_type == ADDED:
                if uid in model:
                    continue
                model[uid] = value
            elif event_type == MODIFIED:
                if uid in model:
                    model[uid] = value
            else:
                model.pop(uid, None)
            mirror.apply(_event(event_type, make_resource(uid, value=value)))

        assert _content(mirror) == model
        assert len(mirror) == len(model)

    @given(ops=_ops)
    @settings(max_examples=100)
    def test_unknown_updates_never_change_size(self, ops: list[tuple[WatchEventType, str, str]]) -> None:
        mirror: ResourceMirror[CustomResource] = ResourceMirror()
        for _, uid, value in ops:
            mirror.apply(_event(MODIFIED, make_resource(uid, value=value)))
            mirror.apply(_event(DELETED, make_resource(uid, value=value)))

        assert len(mirror) == 0
