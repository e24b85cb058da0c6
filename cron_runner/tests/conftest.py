"""
Root test configuration and fixtures.

Shared fixtures:
- mock_backend: Scripted in-memory pipeline backend
- fast_retry_config / fast_poll_config: Millisecond timings so tests never sleep for long
- pipeline_client: PipelineClient wired to mock_backend
"""

import pytest

from cron_runner.integrations.pipeline.client import PipelineClient
from cron_runner.integrations.pipeline.models import PollConfig
from cron_runner.integrations.pipeline.retry import RetryConfig
from cron_runner.tests.mocks.mock_pipeline_backend import (
    TEST_BASE_URL,
    TEST_TOKEN,
    MockPipelineBackend,
)


@pytest.fixture
def mock_backend() -> MockPipelineBackend:
    return MockPipelineBackend(token=TEST_TOKEN)


@pytest.fixture
def fast_retry_config() -> RetryConfig:
    return RetryConfig(
        max_retries=3,
        initial_backoff=0.001,
        max_backoff=0.005,
        backoff_factor=2.0,
    )


@pytest.fixture
def fast_poll_config() -> PollConfig:
    return PollConfig(
        initial_interval=0.001,
        max_interval=0.005,
        max_wait_time=5.0,
    )


@pytest.fixture
def pipeline_client(mock_backend, fast_retry_config, fast_poll_config) -> PipelineClient:
    return PipelineClient(
        base_url=TEST_BASE_URL,
        api_token=TEST_TOKEN,
        retry_config=fast_retry_config,
        poll_config=fast_poll_config,
        transport=mock_backend.get_mock_transport(),
    )
