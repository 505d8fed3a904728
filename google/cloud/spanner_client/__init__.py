#  Copyright 2026 Google LLC
#
#  Licensed under the Apache License, Version 2.0 (the "License");
#  you may not use this file except in compliance with the License.
#  You may obtain a copy of the License at
#
#        http://www.apache.org/licenses/LICENSE-2.0
#
#  Unless required by applicable law or agreed to in writing, software
#  distributed under the License is distributed on an "AS IS" BASIS,
#  WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#  See the License for the specific language governing permissions and
#  limitations under the License.

"""Session pooling and transaction retries for Cloud Spanner."""
import logging
from typing import Final

from google.cloud.spanner_client.client import Client, snapshot_selector
from google.cloud.spanner_client.config import (
    ClientConfig,
    RetrySettings,
    SessionCreationOptions,
    SessionPoolOptions,
    TransientRetrySettings,
)
from google.cloud.spanner_client.internal.errors import (
    BatchUpdateError,
    ClientClosedError,
    ObjectClosedError,
    SessionCheckoutTimeoutError,
    SessionLimitError,
    SpannerClientError,
    SpannerError,
    request_id_of,
)
from google.cloud.spanner_client.mutations import Commit
from google.cloud.spanner_client.pool import SessionPool
from google.cloud.spanner_client.request_id import (
    ProcessState,
    RequestId,
    RequestIdGenerator,
)
from google.cloud.spanner_client.results import Results
from google.cloud.spanner_client.routing import (
    LeaderRoutingPolicy,
    OperationKind,
)
from google.cloud.spanner_client.runner import TransactionRunner
from google.cloud.spanner_client.session import Session
from google.cloud.spanner_client.session_cache import SessionCache
from google.cloud.spanner_client.transaction import Transaction

__version__: Final[str] = "0.1.0"

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

__all__: list[str] = [
    "BatchUpdateError",
    "Client",
    "ClientClosedError",
    "ClientConfig",
    "Commit",
    "LeaderRoutingPolicy",
    "ObjectClosedError",
    "OperationKind",
    "ProcessState",
    "RequestId",
    "RequestIdGenerator",
    "Results",
    "RetrySettings",
    "Session",
    "SessionCache",
    "SessionCheckoutTimeoutError",
    "SessionCreationOptions",
    "SessionLimitError",
    "SessionPool",
    "SessionPoolOptions",
    "SpannerClientError",
    "SpannerError",
    "Transaction",
    "TransactionRunner",
    "TransientRetrySettings",
    "request_id_of",
    "snapshot_selector",
]
