import os

os.environ.setdefault("APP_ENVIRONMENT", "testing")

import pytest  # noqa: E402

from talent_reports.infrastructure.config import ReportConfig, reset_settings  # noqa: E402
from fakes import InMemoryReportDataSource  # noqa: E402


@pytest.fixture
def source() -> InMemoryReportDataSource:
    return InMemoryReportDataSource()


@pytest.fixture
def report_config() -> ReportConfig:
    return ReportConfig()


@pytest.fixture(autouse=True)
def _fresh_settings():
    reset_settings()
    yield
    reset_settings()
