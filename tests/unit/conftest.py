# Copyright 2026 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import pytest

from google.cloud.spanner_client.config import (
    SessionCreationOptions,
    SessionPoolOptions,
    TransientRetrySettings,
)
from google.cloud.spanner_client.internal.service import SpannerService
from google.cloud.spanner_client.pool import SessionPool
from google.cloud.spanner_client.request_id import (
    ProcessState,
    RequestIdGenerator,
)
from google.cloud.spanner_client.routing import LeaderRoutingPolicy

from ._helper import DATABASE, FakeSpanner

PROCESS_ID = "00000000000000ff"


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def reset_process_state():
    ProcessState.reset_for_testing()
    yield
    ProcessState.reset_for_testing()


@pytest.fixture
def fake_spanner() -> FakeSpanner:
    return FakeSpanner()


@pytest.fixture
def sleeps() -> list:
    """Records the delays passed to an injected sleep function."""
    return []


@pytest.fixture
def service(fake_spanner, sleeps) -> SpannerService:
    return SpannerService(
        fake_spanner,
        DATABASE,
        RequestIdGenerator(client_id=1, channel_id=1, process_id=PROCESS_ID),
        routing_policy=LeaderRoutingPolicy(enabled=True),
        transient_retry=TransientRetrySettings(max_attempts=3),
        sleep=sleeps.append,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def creation_options() -> SessionCreationOptions:
    return SessionCreationOptions(
        database_path=DATABASE, labels={"env": "test"}
    )


@pytest.fixture
def make_pool(service, creation_options, clock):
    """Creates session pools that are closed at the end of the test."""
    pools = []

    def _make(**options):
        options.setdefault("keepalive_interval", 3600)
        options.setdefault("threads", 2)
        pool = SessionPool(
            service,
            creation_options,
            SessionPoolOptions(**options),
            clock=clock,
        )
        pools.append(pool)
        return pool

    yield _make
    for pool in pools:
        pool.close()
