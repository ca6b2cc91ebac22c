"""
Tests for staging locators
"""

import pytest

from stagedwrite.core.config import OutputConfig
from stagedwrite.core.exceptions import ConfigError
from stagedwrite.core.identity import AttemptIdentity, JobIdentity
from stagedwrite.core.locator import (
    TEMP_DATASET_SUFFIX,
    TableLocator,
    attempt_id_from_staging_table,
    attempt_staging_locator,
    final_locator,
    job_id_from_staging_dataset,
    staging_area_locator,
)

JOB = JobIdentity("job_20140820_0001")
FINAL = TableLocator("proj", "ds", "tbl")


def attempt(attempt_id: str) -> AttemptIdentity:
    return AttemptIdentity(job_id=JOB.job_id, attempt_id=attempt_id)


class TestFinalLocator:
    """Test final_locator()"""

    def test_from_mapping(self, job_config):
        assert final_locator(job_config) == FINAL

    def test_from_config(self, job_config):
        assert final_locator(OutputConfig.from_mapping(job_config)) == FINAL

    @pytest.mark.parametrize(
        "key",
        ["stagedwrite.output.project.id", "stagedwrite.output.dataset.id", "stagedwrite.output.table.id"],
    )
    def test_missing_part(self, job_config, key):
        job_config[key] = ""

        with pytest.raises(ConfigError):
            final_locator(job_config)


class TestStagingLocators:
    """Test staging area and attempt table naming"""

    def test_staging_area(self):
        area = staging_area_locator(JOB, FINAL)

        assert area == TableLocator("proj", "ds_hadoop_temporary_job_20140820_0001")
        assert area.dataset == "ds" + TEMP_DATASET_SUFFIX + JOB.job_id

    def test_attempt_table(self):
        locator = attempt_staging_locator(attempt("attempt-1"), FINAL, JOB)

        assert locator == TableLocator("proj", "ds_hadoop_temporary_job_20140820_0001", "tbl_attempt-1")

    def test_framework_attempt_table(self):
        attempt_id = "attempt_201408201023_0001_r_000001_1"
        locator = attempt_staging_locator(attempt(attempt_id), FINAL, JOB)

        assert locator.table == "tbl_attempt_201408201023_0001_r_000001_1"

    def test_deterministic(self):
        first = attempt_staging_locator(attempt("attempt-1"), FINAL, JOB)
        again = attempt_staging_locator(attempt("attempt-1"), FINAL, JOB)

        assert first == again

    def test_injective(self):
        ids = ["attempt-1", "attempt-2", "1", "11", "attempt_1_0001_m_000000_0", "attempt_1_0001_m_000000_1"]

        names = {attempt_staging_locator(attempt(i), FINAL, JOB) for i in ids}

        assert len(names) == len(ids)

    def test_inside_staging_area(self):
        locator = attempt_staging_locator(attempt("attempt-1"), FINAL, JOB)

        assert locator.dataset_locator() == staging_area_locator(JOB, FINAL)

    def test_round_trip(self):
        locator = attempt_staging_locator(attempt("attempt-7"), FINAL, JOB)

        assert attempt_id_from_staging_table(locator.table, FINAL) == "attempt-7"

    @pytest.mark.parametrize("name", ["other_attempt-1", "tbl_", "tbl"])
    def test_unrecognised_table(self, name):
        assert attempt_id_from_staging_table(name, FINAL) is None

    def test_job_from_staging_dataset(self):
        area = staging_area_locator(JOB, FINAL)

        assert job_id_from_staging_dataset(area.dataset, "ds") == JOB.job_id
        assert job_id_from_staging_dataset("ds", "ds") is None
        assert job_id_from_staging_dataset("other_hadoop_temporary_job_1_1", "ds") is None

    def test_str(self):
        assert str(FINAL) == "proj:ds.tbl"
        assert str(FINAL.dataset_locator()) == "proj:ds"
