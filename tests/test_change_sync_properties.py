"""Property-based tests for incremental change synchronization."""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from fakes import FakeDrive, FrozenClock, TickClock, change, make_file, make_folder, scenario_a_tree
from drive_registry.crawl.governor import TimeBudget
from drive_registry.crawl.traversal import FrontierTraversal
from drive_registry.errors import MissingCursorError
from drive_registry.models.entities import ChangeKind, ChangePage, EntityKind, FolderRow
from drive_registry.models.reports import RunStatus
from drive_registry.remote.errors import RemoteErrorKind
from drive_registry.storage.checkpoint_store import CURSOR_KEY, InMemoryCheckpointStore
from drive_registry.storage.output_sink import InMemoryOutputSink
from drive_registry.sync.change_sync import SYNC_PARENT_SENTINEL, ChangeSync
from drive_registry.sync.cursor_recovery import CursorRecovery
from drive_registry.utils.retry import BackoffRetrier


def make_sync(drive, checkpoint, sink, sleeps=None, max_lag_waits=1, max_cursor_recoveries=3) -> ChangeSync:
    retry = BackoffRetrier(max_attempts=5, sleep=lambda _: None, jitter=lambda: 0.0)
    recovery = CursorRecovery(
        drive,
        retry,
        lag_wait_seconds=5.0,
        max_lag_waits=max_lag_waits,
        sleep=sleeps.append if sleeps is not None else (lambda _: None),
    )
    return ChangeSync(drive, checkpoint, sink, retry, recovery, "R", max_cursor_recoveries=max_cursor_recoveries)


def unlimited() -> TimeBudget:
    return TimeBudget(10.0, clock=FrozenClock())


def crawled_scenario_a() -> tuple[FakeDrive, InMemoryCheckpointStore, InMemoryOutputSink]:
    """Scenario A after a completed crawl, with the cursor pinned to ``c0``."""
    drive = scenario_a_tree()
    checkpoint = InMemoryCheckpointStore()
    sink = InMemoryOutputSink()
    retry = BackoffRetrier(sleep=lambda _: None)
    FrontierTraversal(drive, checkpoint, sink, retry, "R").run(unlimited())
    checkpoint.set(CURSOR_KEY, "c0")
    return drive, checkpoint, sink


def change_kinds(sink: InMemoryOutputSink) -> list[tuple[str, ChangeKind]]:
    return [(record.entity_id, record.change_kind) for record in sink.changes]


class TestScenarios:
    def test_removed_file_is_logged_but_registry_row_kept(self):
        drive, checkpoint, sink = crawled_scenario_a()
        drive.change_pages["c0"] = ChangePage(changes=[change("F1", removed=True)], new_cursor="c1")

        report = make_sync(drive, checkpoint, sink).run(unlimited())

        assert report.status is RunStatus.COMPLETED
        assert report.removed == 1
        assert change_kinds(sink) == [("F1", ChangeKind.REMOVED)]
        assert sink.changes[0].entity_kind is EntityKind.FILE
        assert [row.id for row in sink.entities] == ["F1"]
        assert checkpoint.get(CURSOR_KEY) == "c1"

    def test_empty_feed_without_new_cursor_repersists_start(self):
        drive, checkpoint, sink = crawled_scenario_a()
        drive.change_pages["c0"] = ChangePage(changes=[], new_cursor=None)

        report = make_sync(drive, checkpoint, sink).run(unlimited())

        assert report.status is RunStatus.COMPLETED
        assert not report.has_changes
        assert report.persisted_cursor == "c0"
        assert checkpoint.get(CURSOR_KEY) == "c0"
        assert sink.changes == []


class TestClassification:
    def test_new_file_in_tracked_folder_is_added(self):
        drive, checkpoint, sink = crawled_scenario_a()
        new_file = make_file("F2", "Notes.pdf", parents=["A"])
        drive.change_pages["c0"] = ChangePage(changes=[change("F2", entity=new_file)], new_cursor="c1")

        report = make_sync(drive, checkpoint, sink).run(unlimited())

        assert report.added == 1
        assert change_kinds(sink) == [("F2", ChangeKind.ADDED)]
        row = sink.entities[-1]
        assert row.id == "F2"
        assert row.discovery_parent_name == SYNC_PARENT_SENTINEL

    def test_known_file_is_updated_without_new_row(self):
        drive, checkpoint, sink = crawled_scenario_a()
        renamed = make_file("F1", "Report v2.pdf", parents=["R"])
        drive.change_pages["c0"] = ChangePage(changes=[change("F1", entity=renamed)], new_cursor="c1")

        report = make_sync(drive, checkpoint, sink).run(unlimited())

        assert report.updated == 1
        assert change_kinds(sink) == [("F1", ChangeKind.UPDATED)]
        assert len(sink.entities) == 1

    def test_change_outside_tracked_tree_is_ignored(self):
        drive, checkpoint, sink = crawled_scenario_a()
        outsider = make_file("X", parents=["elsewhere"])
        drive.change_pages["c0"] = ChangePage(changes=[change("X", entity=outsider)], new_cursor="c1")

        report = make_sync(drive, checkpoint, sink).run(unlimited())

        assert report.ignored == 1
        assert sink.changes == []
        assert checkpoint.get(CURSOR_KEY) == "c1"

    def test_folder_added_earlier_in_the_feed_brings_its_children_into_scope(self):
        drive, checkpoint, sink = crawled_scenario_a()
        folder = make_folder("B", "Sub B", parents=["A"])
        nested = make_file("F3", parents=["B"])
        drive.change_pages["c0"] = ChangePage(
            changes=[change("B", entity=folder), change("F3", entity=nested)],
            new_cursor="c1",
        )

        make_sync(drive, checkpoint, sink).run(unlimited())

        assert change_kinds(sink) == [("B", ChangeKind.ADDED), ("F3", ChangeKind.ADDED)]
        assert "B" in [row.id for row in sink.folders]

    def test_removed_folder_and_unknown_removal(self):
        drive, checkpoint, sink = crawled_scenario_a()
        drive.change_pages["c0"] = ChangePage(
            changes=[change("A", removed=True), change("ghost", removed=True)],
            new_cursor="c1",
        )

        report = make_sync(drive, checkpoint, sink).run(unlimited())

        assert change_kinds(sink) == [("A", ChangeKind.REMOVED_FOLDER)]
        assert report.removed == 1
        assert report.ignored == 1

    def test_feed_spanning_several_pages_persists_final_cursor(self):
        drive, checkpoint, sink = crawled_scenario_a()
        drive.change_pages["c0"] = ChangePage(
            changes=[change("F4", entity=make_file("F4", parents=["R"]))],
            next_page_token="p2",
        )
        drive.change_pages["p2"] = ChangePage(
            changes=[change("F5", entity=make_file("F5", parents=["A"]))],
            new_cursor="c9",
        )

        report = make_sync(drive, checkpoint, sink).run(unlimited())

        assert report.pages_processed == 2
        assert report.added == 2
        assert checkpoint.get(CURSOR_KEY) == "c9"


class TestCursorSafety:
    def test_missing_cursor_is_fatal(self):
        drive = scenario_a_tree()
        with pytest.raises(MissingCursorError):
            make_sync(drive, InMemoryCheckpointStore(), InMemoryOutputSink()).run(unlimited())

    def test_interrupted_sync_keeps_cursor_and_replay_is_idempotent(self):
        drive, checkpoint, sink = crawled_scenario_a()
        drive.change_pages["c0"] = ChangePage(
            changes=[
                change("F6", entity=make_file("F6", parents=["R"])),
                change("F7", entity=make_file("F7", parents=["R"])),
            ],
            next_page_token="p2",
        )
        drive.change_pages["p2"] = ChangePage(changes=[], new_cursor="c1")

        # Polls: page (1), F6 (2), F7 (3) -> trips before F7.
        first = make_sync(drive, checkpoint, sink).run(TimeBudget(3, clock=TickClock()))

        assert first.status is RunStatus.INTERRUPTED
        assert checkpoint.get(CURSOR_KEY) == "c0"
        assert [row.id for row in sink.entities] == ["F1", "F6"]

        second = make_sync(drive, checkpoint, sink).run(unlimited())

        assert second.status is RunStatus.COMPLETED
        assert checkpoint.get(CURSOR_KEY) == "c1"
        assert [row.id for row in sink.entities] == ["F1", "F6", "F7"]

    def test_page_failure_keeps_cursor_and_logs_error(self):
        drive, checkpoint, sink = crawled_scenario_a()
        drive.change_pages["c0"] = ChangePage(changes=[], new_cursor="c1")
        drive.fail("list_changes", "c0", RemoteErrorKind.FORBIDDEN)

        report = make_sync(drive, checkpoint, sink).run(unlimited())

        assert report.status is RunStatus.INTERRUPTED
        assert checkpoint.get(CURSOR_KEY) == "c0"
        assert [(e.location, e.target_id) for e in sink.errors] == [("list_changes", "c0")]

    def test_rejected_cursor_is_replaced_by_fresh_one(self):
        drive, checkpoint, sink = crawled_scenario_a()
        checkpoint.set(CURSOR_KEY, "stale")
        drive.fresh_cursors = ["c-new"]
        drive.change_pages["c-new"] = ChangePage(changes=[], new_cursor="c-next")

        report = make_sync(drive, checkpoint, sink).run(unlimited())

        assert report.status is RunStatus.COMPLETED
        assert report.cursor_recoveries == 1
        assert checkpoint.get(CURSOR_KEY) == "c-next"
        assert [e.target_id for e in sink.errors] == ["stale"]

    def test_recovered_cursor_is_kept_when_feed_has_no_new_cursor(self):
        drive, checkpoint, sink = crawled_scenario_a()
        checkpoint.set(CURSOR_KEY, "stale")
        drive.fresh_cursors = ["c-new"]
        drive.change_pages["c-new"] = ChangePage(changes=[], new_cursor=None)

        report = make_sync(drive, checkpoint, sink).run(unlimited())

        assert report.status is RunStatus.COMPLETED
        assert report.persisted_cursor == "c-new"
        assert checkpoint.get(CURSOR_KEY) == "c-new"

    def test_lagging_cursor_waits_then_gives_up_after_bounded_recoveries(self):
        drive, checkpoint, sink = crawled_scenario_a()
        checkpoint.set(CURSOR_KEY, "stale")
        drive.fresh_cursors = ["stale"]
        sleeps: list[float] = []

        report = make_sync(drive, checkpoint, sink, sleeps=sleeps, max_cursor_recoveries=2).run(unlimited())

        assert report.status is RunStatus.INTERRUPTED
        assert report.cursor_recoveries == 2
        assert sleeps == [5.0, 5.0]
        assert checkpoint.get(CURSOR_KEY) == "stale"
        assert sink.errors[-1].location == "cursor_recovery"

    def test_failed_recovery_leaves_cursor_untouched(self):
        drive, checkpoint, sink = crawled_scenario_a()
        checkpoint.set(CURSOR_KEY, "stale")
        drive.fail("get_fresh_cursor", "", RemoteErrorKind.FORBIDDEN)

        report = make_sync(drive, checkpoint, sink).run(unlimited())

        assert report.status is RunStatus.INTERRUPTED
        assert checkpoint.get(CURSOR_KEY) == "stale"
        assert [e.location for e in sink.errors] == ["list_changes", "cursor_recovery"]


@st.composite
def change_feeds(draw: st.DrawFn) -> list:
    """Feeds touching the Scenario A tree plus a few outsiders."""
    candidates = [
        change("F1", removed=True),
        change("A", removed=True),
        change("F1", entity=make_file("F1", parents=["R"])),
        change("N1", entity=make_file("N1", parents=["A"])),
        change("N2", entity=make_folder("N2", parents=["R"])),
        change("N3", entity=make_file("N3", parents=["N2"])),
        change("X1", entity=make_file("X1", parents=["outside"])),
        change("ghost", removed=True),
    ]
    return draw(st.lists(st.sampled_from(candidates), max_size=12))


@given(feed=change_feeds())
@settings(max_examples=75, deadline=None)
def test_replaying_a_feed_adds_no_registry_rows(feed: list):
    drive, checkpoint, sink = crawled_scenario_a()
    drive.change_pages["c0"] = ChangePage(changes=feed, new_cursor="c1")

    make_sync(drive, checkpoint, sink).run(unlimited())
    rows_after_first = (len(sink.entities), len(sink.folders))

    checkpoint.set(CURSOR_KEY, "c0")
    second = make_sync(drive, checkpoint, sink).run(unlimited())

    assert second.status is RunStatus.COMPLETED
    assert (len(sink.entities), len(sink.folders)) == rows_after_first
    assert len({row.id for row in sink.entities}) == len(sink.entities)
    assert len({row.id for row in sink.folders}) == len(sink.folders)
    assert checkpoint.get(CURSOR_KEY) == "c1"


def test_file_removed_and_restored_in_one_run_keeps_a_single_row():
    drive, checkpoint, sink = crawled_scenario_a()
    drive.change_pages["c0"] = ChangePage(
        changes=[change("F1", removed=True), change("F1", entity=make_file("F1", parents=["R"]))],
        new_cursor="c1",
    )

    make_sync(drive, checkpoint, sink).run(unlimited())

    assert change_kinds(sink) == [("F1", ChangeKind.REMOVED), ("F1", ChangeKind.ADDED)]
    assert [row.id for row in sink.entities] == ["F1"]


def test_previously_tracked_file_moved_out_of_tree_is_ignored():
    drive, checkpoint, sink = crawled_scenario_a()
    moved = make_file("F1", "Report.pdf", parents=["elsewhere"])
    drive.change_pages["c0"] = ChangePage(changes=[change("F1", entity=moved)], new_cursor="c1")

    report = make_sync(drive, checkpoint, sink).run(unlimited())

    assert report.ignored == 1
    assert report.updated == 0
    assert sink.changes == []


def test_sink_failure_during_sync_keeps_cursor():
    class DownChangeSink(InMemoryOutputSink):
        def append_changes(self, rows):
            raise RuntimeError("sheet unavailable")

    drive, checkpoint, _ = crawled_scenario_a()
    sink = DownChangeSink()
    sink.folders = [FolderRow(id="R", name="Root")]
    drive.change_pages["c0"] = ChangePage(
        changes=[change("F9", entity=make_file("F9", parents=["R"]))],
        new_cursor="c1",
    )

    report = make_sync(drive, checkpoint, sink).run(unlimited())

    assert report.status is RunStatus.INTERRUPTED
    assert checkpoint.get(CURSOR_KEY) == "c0"
    assert any("sheet unavailable" in e for e in report.errors)
