import os

import pytest

import config

from .fakes import FakeJumpCloud


def pytest_sessionstart(session):  # noqa: ANN201, ARG001, ANN001
    mock_env = {
        "JUMPCLOUD_API_KEY": "x",
        "JUMPCLOUD_API_URL": "https://jumpcloud.test/api",
        "LOG_LEVEL": "DEBUG",
    }
    os.environ |= mock_env


@pytest.fixture
def cfg() -> config.Config:
    """Config with every sleep disabled so that retry and paging tests run instantly."""
    return config.load_config(
        {
            "backoff_base_ms": 0,
            "rate_limit_ms": 0,
            "page_delay_ms": 0,
        }
    )


@pytest.fixture
def jc() -> FakeJumpCloud:
    return FakeJumpCloud()
