"""
Unit tests for the incremental backup orchestrator.

Tests cover:
- Export planning (start/stop offsets, ranges)
- Not-ready and up-to-date no-ops
- Consistency checks between record, listing and tip
- Failure mid-batch leaves the record and no partial artifacts
- Runs within one clock second never reuse an artifact name
"""

import errno
from datetime import datetime

import pytest

from dbaas.binlog_backup.backup import (
    AUDIT_FILENAME,
    IncrementalBackupOrchestrator,
    IncrementalStatus,
    SegmentExport,
    list_artifacts,
    plan_exports,
)
from dbaas.binlog_backup.backup.artifacts import ArtifactKind
from dbaas.binlog_backup.binlog.base import LogCoordinate
from dbaas.binlog_backup.binlog.memory import InMemoryLogCatalog
from dbaas.binlog_backup.errors import ConsistencyError, NotReadyError, ParseError, ToolInvocationError
from dbaas.binlog_backup.position import POSITION_FILENAME, PositionStore


class TestPlanExports:
    """Tests for plan_exports."""

    def test_multi_segment_batch(self):
        """Only the first file gets a start offset, only the last a stop offset."""
        exports = plan_exports(
            LogCoordinate("seg005", 1200),
            ["seg007", "seg005", "seg006"],
            LogCoordinate("seg007", 5000),
        )

        assert exports == [
            SegmentExport("seg005", start_position=1200),
            SegmentExport("seg006"),
            SegmentExport("seg007", stop_position=5000),
        ]

    def test_single_segment_batch(self):
        """Same file: both bounds on the one export."""
        exports = plan_exports(LogCoordinate("seg005", 1200), ["seg005"], LogCoordinate("seg005", 3000))

        assert exports == [SegmentExport("seg005", start_position=1200, stop_position=3000)]

    def test_older_segments_ignored(self):
        exports = plan_exports(
            LogCoordinate("seg005", 1200),
            ["seg003", "seg004", "seg005", "seg006"],
            LogCoordinate("seg006", 10),
        )

        assert [e.segment for e in exports] == ["seg005", "seg006"]

    def test_up_to_date(self):
        assert plan_exports(LogCoordinate("seg007", 5000), ["seg007"], LogCoordinate("seg007", 5000)) == []

    def test_tip_not_newest_listed(self):
        """A rollover between listing and tip read is detected."""
        with pytest.raises(ConsistencyError, match="not the same as the last position"):
            plan_exports(LogCoordinate("seg005", 1200), ["seg005", "seg006"], LogCoordinate("seg007", 4))

    def test_stored_segment_purged(self):
        with pytest.raises(ConsistencyError, match="no longer on the server"):
            plan_exports(LogCoordinate("seg005", 1200), ["seg006", "seg007"], LogCoordinate("seg007", 4))

    def test_tip_behind_stored(self):
        with pytest.raises(ConsistencyError, match="behind"):
            plan_exports(LogCoordinate("seg007", 5000), ["seg007"], LogCoordinate("seg007", 400))

    def test_empty_listing(self):
        with pytest.raises(ConsistencyError):
            plan_exports(LogCoordinate("seg005", 1200), [], LogCoordinate("seg005", 1300))


class TestIncrementalBackupOrchestrator:
    """Tests for IncrementalBackupOrchestrator."""

    @pytest.fixture
    def store(self):
        return PositionStore()

    @pytest.fixture
    def scenario_catalog(self):
        """Catalog for scenario A: seg005..seg007, tip seg007:5000."""
        catalog = InMemoryLogCatalog(["seg005", "seg006", "seg007"])
        catalog.set_tip(LogCoordinate("seg007", 5000))
        return catalog

    def test_scenario_a_three_exports(self, scenario_catalog, tools, runner, store, destination, clock):
        store.save(destination, LogCoordinate("seg005", 1200))

        result = IncrementalBackupOrchestrator(scenario_catalog, tools, clock=clock).run(destination)

        assert result.status == IncrementalStatus.EXPORTED
        assert runner.exports() == [
            ("seg005", 1200, None),
            ("seg006", None, None),
            ("seg007", None, 5000),
        ]
        assert store.load(destination) == LogCoordinate("seg007", 5000)
        assert result.start == LogCoordinate("seg005", 1200)
        assert result.coordinate == LogCoordinate("seg007", 5000)

    def test_artifacts_sorted_match_export_order(self, scenario_catalog, tools, store, destination, clock):
        store.save(destination, LogCoordinate("seg005", 1200))

        result = IncrementalBackupOrchestrator(scenario_catalog, tools, clock=clock).run(destination)

        listed = list_artifacts(destination, ArtifactKind.INCREMENTAL)
        assert [a.path for a in listed] == [a.path for a in result.artifacts]
        assert [a.name for a in listed] == [
            "20240721100000_seg005_inc_bak.sql",
            "20240721100000_seg006_inc_bak.sql",
            "20240721100000_seg007_inc_bak.sql",
        ]

    def test_scenario_b_nothing_new(self, tools, runner, store, destination):
        """Stored coordinate equals the tip: no export, record unchanged."""
        catalog = InMemoryLogCatalog(["seg007"])
        catalog.set_tip(LogCoordinate("seg007", 5000))
        store.save(destination, LogCoordinate("seg007", 5000))
        before = (destination / POSITION_FILENAME).stat().st_mtime_ns

        result = IncrementalBackupOrchestrator(catalog, tools).run(destination)

        assert result.status == IncrementalStatus.UP_TO_DATE
        assert result.artifacts == []
        assert runner.calls == []
        assert (destination / POSITION_FILENAME).stat().st_mtime_ns == before

    def test_second_run_is_noop(self, scenario_catalog, tools, runner, store, destination, clock):
        """Running twice without new binlog writes exports once."""
        store.save(destination, LogCoordinate("seg005", 1200))
        orchestrator = IncrementalBackupOrchestrator(scenario_catalog, tools, clock=clock)

        orchestrator.run(destination)
        second = orchestrator.run(destination)

        assert second.status == IncrementalStatus.UP_TO_DATE
        assert len(runner.exports()) == 3
        assert len(list_artifacts(destination, ArtifactKind.INCREMENTAL)) == 3

    def test_scenario_c_skip_when_unready(self, catalog, tools, runner, destination):
        result = IncrementalBackupOrchestrator(catalog, tools).run(destination, skip_if_unready=True)

        assert result.status == IncrementalStatus.SKIPPED_NOT_READY
        assert runner.calls == []
        assert catalog.calls == []
        assert list_artifacts(destination, ArtifactKind.INCREMENTAL) == []

    def test_skip_when_destination_missing(self, catalog, tools, destination):
        result = IncrementalBackupOrchestrator(catalog, tools).run(destination / "20240721", skip_if_unready=True)

        assert result.status == IncrementalStatus.SKIPPED_NOT_READY

    def test_not_ready_without_skip(self, catalog, tools, destination):
        with pytest.raises(NotReadyError, match="full backup first"):
            IncrementalBackupOrchestrator(catalog, tools).run(destination)

    def test_malformed_record(self, catalog, tools, destination):
        (destination / POSITION_FILENAME).write_text("binlog.000001")

        with pytest.raises(ParseError):
            IncrementalBackupOrchestrator(catalog, tools).run(destination, skip_if_unready=True)

    def test_consistency_error_exports_nothing(self, tools, runner, store, destination):
        catalog = InMemoryLogCatalog(["seg005", "seg006"])
        catalog.set_tip(LogCoordinate("seg007", 4))
        store.save(destination, LogCoordinate("seg005", 1200))

        with pytest.raises(ConsistencyError):
            IncrementalBackupOrchestrator(catalog, tools).run(destination)

        assert runner.calls == []
        assert store.load(destination) == LogCoordinate("seg005", 1200)

    def test_failure_mid_batch(self, scenario_catalog, tools, runner, store, destination, clock):
        """seg006 fails: seg007 never attempted, record kept, partial files removed."""
        store.save(destination, LogCoordinate("seg005", 1200))
        runner.fail_when(lambda c: c.program == "mysqlbinlog" and c.args[-1] == "seg006", write_output=True)

        with pytest.raises(ToolInvocationError):
            IncrementalBackupOrchestrator(scenario_catalog, tools, clock=clock).run(destination)

        assert [e[0] for e in runner.exports()] == ["seg005", "seg006"]
        assert store.load(destination) == LogCoordinate("seg005", 1200)
        assert list_artifacts(destination, ArtifactKind.INCREMENTAL) == []
        assert "Incremental backup failed at seg006" in (destination / AUDIT_FILENAME).read_text()

    def test_retry_after_failure_exports_whole_range(self, scenario_catalog, tools, runner, store, destination, clock):
        store.save(destination, LogCoordinate("seg005", 1200))
        runner.fail_when(lambda c: c.program == "mysqlbinlog" and c.args[-1] == "seg007")
        orchestrator = IncrementalBackupOrchestrator(scenario_catalog, tools, clock=clock)

        with pytest.raises(ToolInvocationError):
            orchestrator.run(destination)

        runner._failures.clear()
        runner.calls.clear()
        result = orchestrator.run(destination)

        assert runner.exports() == [("seg005", 1200, None), ("seg006", None, None), ("seg007", None, 5000)]
        assert len(list_artifacts(destination, ArtifactKind.INCREMENTAL)) == 3
        assert result.coordinate == LogCoordinate("seg007", 5000)

    def test_audit_brackets_batch(self, scenario_catalog, tools, store, destination, clock):
        store.save(destination, LogCoordinate("seg005", 1200))

        IncrementalBackupOrchestrator(scenario_catalog, tools, clock=clock).run(destination)

        lines = (destination / AUDIT_FILENAME).read_text().strip().splitlines()
        lines = [line for line in lines if line]
        assert lines[0].startswith("---- Start incremental backup from seg005, position: 1200")
        assert "file: seg005, start: 1200, stop: -" in lines[1]
        assert "file: seg006, start: -, stop: -" in lines[2]
        assert "file: seg007, start: -, stop: 5000" in lines[3]
        assert lines[4].startswith("---- End backup file: seg007, position: 5000")

    def test_write_error_mid_batch(self, scenario_catalog, tools, runner, store, destination, clock):
        """A disk error on seg006 removes seg005's artifact too."""
        store.save(destination, LogCoordinate("seg005", 1200))
        runner.raise_when(
            lambda c: c.program == "mysqlbinlog" and c.args[-1] == "seg006",
            OSError(errno.ENOSPC, "No space left on device"),
            write_output=True,
        )

        with pytest.raises(OSError):
            IncrementalBackupOrchestrator(scenario_catalog, tools, clock=clock).run(destination)

        assert list_artifacts(destination, ArtifactKind.INCREMENTAL) == []
        assert store.load(destination) == LogCoordinate("seg005", 1200)
        assert "Incremental backup failed at seg006" in (destination / AUDIT_FILENAME).read_text()


class TestArtifactNamesAcrossRuns:
    """Consecutive incremental runs never share or reorder artifact names."""

    @pytest.fixture
    def store(self, destination):
        store = PositionStore()
        store.save(destination, LogCoordinate("binlog.000001", 157))
        return store

    def test_runs_in_same_second(self, catalog, tools, runner, store, destination):
        frozen = datetime(2024, 7, 21, 10, 0, 0)
        orchestrator = IncrementalBackupOrchestrator(catalog, tools, clock=lambda: frozen)

        catalog.write(100)
        orchestrator.run(destination)
        catalog.write(100)
        orchestrator.run(destination)

        artifacts = list_artifacts(destination, ArtifactKind.INCREMENTAL)
        assert [a.name for a in artifacts] == [
            "20240721100000_binlog.000001_inc_bak.sql",
            "20240721100001_binlog.000001_inc_bak.sql",
        ]
        assert "--start-position=157" in artifacts[0].path.read_text()
        assert "--start-position=257" in artifacts[1].path.read_text()
        assert store.load(destination) == LogCoordinate("binlog.000001", 357)

    def test_clock_behind_existing_artifacts(self, catalog, tools, store, destination):
        """A clock set back still names the new artifact after the old ones."""
        (destination / "20240721120000_binlog.000001_inc_bak.sql").write_text("-- earlier run\n")
        catalog.write(100)

        result = IncrementalBackupOrchestrator(
            catalog, tools, clock=lambda: datetime(2024, 7, 21, 9, 0, 0)
        ).run(destination)

        assert [a.name for a in result.artifacts] == ["20240721120001_binlog.000001_inc_bak.sql"]
        assert (destination / "20240721120000_binlog.000001_inc_bak.sql").read_text() == "-- earlier run\n"

    def test_failed_run_keeps_earlier_artifacts(self, catalog, tools, runner, store, destination):
        """Cleanup after a failure in the same second only touches the failed run's files."""
        frozen = datetime(2024, 7, 21, 10, 0, 0)
        orchestrator = IncrementalBackupOrchestrator(catalog, tools, clock=lambda: frozen)
        catalog.write(100)
        orchestrator.run(destination)

        catalog.write(100)
        runner.fail_when(lambda c: c.program == "mysqlbinlog", write_output=True)
        with pytest.raises(ToolInvocationError):
            orchestrator.run(destination)

        assert [a.name for a in list_artifacts(destination, ArtifactKind.INCREMENTAL)] == [
            "20240721100000_binlog.000001_inc_bak.sql",
        ]
        assert store.load(destination) == LogCoordinate("binlog.000001", 257)
