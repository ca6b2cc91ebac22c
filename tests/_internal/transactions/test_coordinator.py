"""
Tests for CommitCoordinator
"""

import pytest

from stagedwrite._internal.transactions.base import CommitStatus
from stagedwrite.core.api import StagedOutputFormat
from stagedwrite.core.exceptions import (
    IllegalStateError,
    JobCommitFatalError,
    PartialCommitError,
)
from stagedwrite.core.locator import TableLocator

JOB_ID = "job_20140820_0001"
AREA = TableLocator("proj", f"ds_hadoop_temporary_{JOB_ID}")
FINAL = TableLocator("proj", "ds", "tbl")

ATTEMPT_A = "attempt_20140820_0001_m_000000_0"
ATTEMPT_B = "attempt_20140820_0001_m_000000_1"  # speculative copy of A's task
ATTEMPT_C = "attempt_20140820_0001_m_000001_0"


class TestCommitCoordinator:
    """Test CommitCoordinator class"""

    @pytest.fixture
    def output(self, store):
        return StagedOutputFormat(store)

    @pytest.fixture
    def coordinator(self, output, job_config):
        return output.get_commit_coordinator(job_config)

    @pytest.fixture
    def stage(self, output, task_context):
        """Write rows through a cleanly closed attempt writer"""

        def run(attempt_id: str, words: list[str]) -> None:
            with output.open_writer(task_context(attempt_id)) as writer:
                for i, word in enumerate(words):
                    writer.write({"word": word, "count": i})

        return run

    def final_words(self, store) -> list[str]:
        return sorted(store.read_rows(FINAL).column("word").to_pylist())

    def test_locators(self, coordinator):
        assert coordinator.final == FINAL
        assert coordinator.staging_area == AREA
        assert coordinator.staging_locator(ATTEMPT_A) == AREA.with_table(f"tbl_{ATTEMPT_A}")

    def test_commit_record_lifecycle(self, coordinator, output, task_context):
        assert coordinator.get_commit_record(ATTEMPT_A).status == CommitStatus.ABORTED

        writer = output.open_writer(task_context(ATTEMPT_A))
        assert coordinator.get_commit_record(ATTEMPT_A).status == CommitStatus.OPEN

        writer.close()
        assert coordinator.get_commit_record(ATTEMPT_A).status == CommitStatus.COMMIT_CANDIDATE

        coordinator.commit_job([ATTEMPT_A])
        assert coordinator.get_commit_record(ATTEMPT_A).status == CommitStatus.ABORTED

    def test_list_commit_records(self, coordinator, stage):
        assert coordinator.list_commit_records() == []

        stage(ATTEMPT_A, ["a"])
        stage(ATTEMPT_C, ["c"])

        records = coordinator.list_commit_records()
        assert [r.attempt_id for r in records] == [ATTEMPT_A, ATTEMPT_C]
        assert all(r.status == CommitStatus.COMMIT_CANDIDATE for r in records)

    def test_commit_task(self, coordinator, stage):
        stage(ATTEMPT_A, ["a"])

        record = coordinator.commit_task(ATTEMPT_A)

        assert record.status == CommitStatus.COMMIT_CANDIDATE
        assert record.locator == coordinator.staging_locator(ATTEMPT_A)

    def test_commit_task_not_closed(self, coordinator, output, task_context):
        writer = output.open_writer(task_context(ATTEMPT_A))
        writer.write({"word": "a", "count": 1})

        with pytest.raises(IllegalStateError):
            coordinator.commit_task(ATTEMPT_A)
        with pytest.raises(IllegalStateError):
            coordinator.commit_task(ATTEMPT_C)
        writer.fail()

    def test_abort_task(self, coordinator, store, stage):
        stage(ATTEMPT_B, ["b"])

        record = coordinator.abort_task(ATTEMPT_B)

        assert record.status == CommitStatus.ABORTED
        assert not store.table_exists(coordinator.staging_locator(ATTEMPT_B))

    def test_abort_task_idempotent(self, coordinator, stage):
        stage(ATTEMPT_B, ["b"])
        coordinator.abort_task(ATTEMPT_B)

        record = coordinator.abort_task(ATTEMPT_B)

        assert record.status == CommitStatus.ABORTED
        assert coordinator.abort_task("attempt-never-ran").status == CommitStatus.ABORTED

    def test_commit_job(self, coordinator, store, stage):
        stage(ATTEMPT_A, ["apple", "avocado", "apricot"])
        stage(ATTEMPT_C, ["cherry"])

        result = coordinator.commit_job([ATTEMPT_A, ATTEMPT_C])

        assert result.merged == [f"tbl_{ATTEMPT_A}", f"tbl_{ATTEMPT_C}"]
        assert result.rows_merged == 4
        assert result.cleanup is not None and result.cleanup.ok
        assert self.final_words(store) == ["apple", "apricot", "avocado", "cherry"]
        assert not store.dataset_exists(AREA)

    def test_commit_job_excludes_losers(self, coordinator, store, stage):
        stage(ATTEMPT_A, ["a1", "a2"])
        stage(ATTEMPT_B, ["b1", "b2"])

        result = coordinator.commit_job([ATTEMPT_A])

        assert result.merged == [f"tbl_{ATTEMPT_A}"]
        assert self.final_words(store) == ["a1", "a2"]
        assert not store.dataset_exists(AREA)

    def test_commit_job_twice(self, coordinator, store, stage):
        stage(ATTEMPT_A, ["a"])
        coordinator.commit_job([ATTEMPT_A])

        result = coordinator.commit_job([ATTEMPT_A])

        assert result.already_complete
        assert result.merged == []
        assert self.final_words(store) == ["a"]

    def test_commit_job_appends_to_existing_table(self, output, job_config, store, stage):
        stage(ATTEMPT_A, ["first"])
        output.get_commit_coordinator(job_config).commit_job([ATTEMPT_A])

        second = dict(job_config, **{"mapreduce.job.id": "job_20140820_0002"})
        output.open_writer(dict(second, **{"mapreduce.task.attempt.id": "attempt-x"})).close()
        with output.open_writer(dict(second, **{"mapreduce.task.attempt.id": "attempt-y"})) as writer:
            writer.write({"word": "second", "count": 1})
        result = output.get_commit_coordinator(second).commit_job(["attempt-y"])

        assert result.merged == ["tbl_attempt-y"]
        assert self.final_words(store) == ["first", "second"]
        assert not store.dataset_exists(TableLocator("proj", "ds_hadoop_temporary_job_20140820_0002"))

    def test_commit_job_empty_winner(self, coordinator, store, output, task_context):
        output.open_writer(task_context(ATTEMPT_A)).close()

        result = coordinator.commit_job([ATTEMPT_A])

        assert result.rows_merged == 0
        assert store.count_rows(FINAL) == 0
        assert not store.dataset_exists(AREA)

    def test_commit_job_no_winners(self, coordinator, store, stage):
        stage(ATTEMPT_A, ["a"])

        result = coordinator.commit_job([])

        assert result.merged == []
        assert not store.table_exists(FINAL)
        assert not store.dataset_exists(AREA)

    def test_commit_job_missing_winner_skipped(self, coordinator, store, stage):
        stage(ATTEMPT_A, ["a"])

        result = coordinator.commit_job([ATTEMPT_A, "attempt_20140820_0001_m_000009_0"])

        assert result.merged == [f"tbl_{ATTEMPT_A}"]
        assert self.final_words(store) == ["a"]

    def test_commit_job_duplicate_slot(self, coordinator, store, stage):
        stage(ATTEMPT_A, ["a"])
        stage(ATTEMPT_B, ["b"])

        with pytest.raises(IllegalStateError):
            coordinator.commit_job([ATTEMPT_A, ATTEMPT_B])

        assert not store.table_exists(FINAL)
        assert store.dataset_exists(AREA)

    def test_commit_job_winner_not_closed(self, coordinator, store, output, task_context, stage):
        stage(ATTEMPT_A, ["a"])
        writer = output.open_writer(task_context(ATTEMPT_C))
        writer.write({"word": "c", "count": 1})
        writer.fail()

        with pytest.raises(IllegalStateError):
            coordinator.commit_job([ATTEMPT_A, ATTEMPT_C])

        assert not store.table_exists(FINAL)

    def test_commit_job_list_failure(self, coordinator, store, stage):
        stage(ATTEMPT_A, ["a"])
        store.fail("list_tables")

        with pytest.raises(JobCommitFatalError):
            coordinator.commit_job([ATTEMPT_A])

        store.heal()
        assert store.dataset_exists(AREA)
        assert not store.table_exists(FINAL)

    def test_partial_commit_then_resume(self, coordinator, output, job_config, store, stage):
        stage(ATTEMPT_A, ["a1", "a2"])
        stage(ATTEMPT_C, ["c1"])
        store.fail("copy_table", table=f"tbl_{ATTEMPT_C}")

        with pytest.raises(PartialCommitError) as exc_info:
            coordinator.commit_job([ATTEMPT_A, ATTEMPT_C])

        assert exc_info.value.merged == [f"tbl_{ATTEMPT_A}"]
        assert exc_info.value.failed == [f"tbl_{ATTEMPT_C}"]
        assert self.final_words(store) == ["a1", "a2"]
        assert store.dataset_exists(AREA)

        # Restarted coordinator rebuilds its state from the store
        store.heal()
        result = output.get_commit_coordinator(job_config).commit_job([ATTEMPT_A, ATTEMPT_C])

        assert result.skipped == [f"tbl_{ATTEMPT_A}"]
        assert result.merged == [f"tbl_{ATTEMPT_C}"]
        assert self.final_words(store) == ["a1", "a2", "c1"]
        assert not store.dataset_exists(AREA)

    def test_resume_after_lost_status_update(self, coordinator, output, job_config, store, stage):
        stage(ATTEMPT_A, ["a1", "a2"])
        store.fail("set_properties", table=f"tbl_{ATTEMPT_A}")

        with pytest.raises(PartialCommitError):
            coordinator.commit_job([ATTEMPT_A])

        # Rows landed even though the staging table still reads commit_candidate
        assert self.final_words(store) == ["a1", "a2"]
        assert coordinator.get_commit_record(ATTEMPT_A).status == CommitStatus.COMMIT_CANDIDATE

        store.heal()
        result = output.get_commit_coordinator(job_config).commit_job([ATTEMPT_A])

        assert result.merged == []
        assert result.skipped == [f"tbl_{ATTEMPT_A}"]
        assert self.final_words(store) == ["a1", "a2"]

    def test_transient_copy_failure_is_retried(self, coordinator, store, stage):
        stage(ATTEMPT_A, ["a"])
        store.fail("copy_table", times=1)

        result = coordinator.commit_job([ATTEMPT_A])

        assert result.merged == [f"tbl_{ATTEMPT_A}"]
        assert self.final_words(store) == ["a"]

    def test_cleanup_failure_does_not_fail_commit(self, coordinator, store, stage):
        stage(ATTEMPT_A, ["a"])
        stage(ATTEMPT_B, ["b"])
        store.fail("delete_table", table=f"tbl_{ATTEMPT_B}")

        with pytest.warns(UserWarning):
            result = coordinator.commit_job([ATTEMPT_A])

        assert result.merged == [f"tbl_{ATTEMPT_A}"]
        assert not result.cleanup.ok
        assert result.warnings
        assert self.final_words(store) == ["a"]

    def test_abort_job(self, coordinator, store, stage):
        stage(ATTEMPT_A, ["a"])
        stage(ATTEMPT_C, ["c"])

        result = coordinator.abort_job()

        assert result.ok
        assert not store.dataset_exists(AREA)
        assert not store.table_exists(FINAL)

    def test_abort_job_twice(self, coordinator, stage):
        stage(ATTEMPT_A, ["a"])
        coordinator.abort_job()

        result = coordinator.abort_job()

        assert result.ok
        assert result.tables_deleted == []

    def test_merge_marker(self, coordinator):
        assert coordinator.merge_marker(coordinator.staging_locator(ATTEMPT_A)) == (
            f"{JOB_ID}/tbl_{ATTEMPT_A}"
        )
