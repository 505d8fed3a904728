# Copyright 2026 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#      https://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Configuration for the client, its session pool and retries."""
from dataclasses import dataclass, field
import os
import re
from typing import Dict, Mapping, Optional

EMULATOR_HOST_ENV = "SPANNER_EMULATOR_HOST"
LEADER_AWARE_ROUTING_ENV = "SPANNER_ENABLE_LEADER_AWARE_ROUTING"

_DATABASE_PATH = re.compile(
    r"\Aprojects/[^/]+/instances/[^/]+/databases/[^/]+\Z"
)
_FALSE_VALUES = ("0", "false", "no", "off")


def _default_threads() -> int:
    return max(2, (os.cpu_count() or 1) * 2)


def validate_database_path(database_path: str) -> str:
    """Checks that ``database_path`` is a full database resource name.

    Raises:
        ValueError: If the path is empty or malformed.
    """
    if not database_path:
        raise ValueError(
            "database_path is required for session creation options"
        )
    if not _DATABASE_PATH.match(database_path):
        raise ValueError(
            "database_path must look like "
            "projects/<project>/instances/<instance>/databases/<database>, "
            f"got {database_path!r}"
        )
    return database_path


@dataclass(frozen=True)
class SessionPoolOptions:
    """Sizing and maintenance options of a :class:`SessionPool`.

    Attributes:
        min_sessions: Sessions created up front and kept warm.
        max_sessions: Upper bound on sessions owned by the pool.
        keepalive: Seconds after their last use that idle sessions are
            pinged or released.
        keepalive_interval: Seconds between two background sweeps.
        fail_on_session_limit: Raise ``SessionLimitError`` at capacity
            instead of waiting for a checkin.
        checkout_timeout: Seconds a waiting checkout may block before
            ``SessionCheckoutTimeoutError`` is raised. None waits without a
            limit.
        threads: Worker threads for background keepalive and release work.
    """

    min_sessions: int = 10
    max_sessions: int = 100
    keepalive: float = 1800
    keepalive_interval: float = 300
    fail_on_session_limit: bool = True
    checkout_timeout: Optional[float] = 60
    threads: int = field(default_factory=_default_threads)

    def __post_init__(self) -> None:
        if self.max_sessions < 1:
            raise ValueError("max_sessions must be at least 1")
        if self.min_sessions < 0 or self.min_sessions > self.max_sessions:
            raise ValueError(
                "min_sessions must be between 0 and max_sessions"
            )
        if self.keepalive_interval <= 0:
            raise ValueError("keepalive_interval must be positive")
        if self.checkout_timeout is not None and self.checkout_timeout <= 0:
            raise ValueError("checkout_timeout must be positive")
        if self.threads < 1:
            raise ValueError("threads must be at least 1")


@dataclass(frozen=True)
class SessionCreationOptions:
    """Options sent with every session creation request."""

    database_path: str
    labels: Mapping[str, str] = field(default_factory=dict)
    creator_role: Optional[str] = None

    def __post_init__(self) -> None:
        validate_database_path(self.database_path)


@dataclass(frozen=True)
class RetrySettings:
    """Backoff applied when a transaction is aborted by the server.

    The delay before retry ``n`` (starting at 0) is
    ``min(initial_delay * multiplier ** n, max_delay)``, stretched by up to
    ``jitter`` of itself. A delay suggested by the server wins.

    Attributes:
        max_attempts: Maximum number of attempts, None for no limit.
        deadline: Seconds after which no further attempt is started.
    """

    max_attempts: Optional[int] = None
    deadline: float = 120.0
    initial_delay: float = 1.3
    multiplier: float = 1.3
    max_delay: float = 32.0
    jitter: float = 0.0

    def __post_init__(self) -> None:
        if self.max_attempts is not None and self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if not 0.0 <= self.jitter <= 1.0:
            raise ValueError("jitter must be between 0 and 1")


@dataclass(frozen=True)
class TransientRetrySettings:
    """Retries of unary RPCs failing with ``ServiceUnavailable``."""

    max_attempts: int = 3
    initial_delay: float = 0.25
    multiplier: float = 2.0
    max_delay: float = 5.0


def _env_flag(value: Optional[str], default: bool) -> bool:
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() not in _FALSE_VALUES


@dataclass(frozen=True)
class ClientConfig:
    """Settings taken from the process environment."""

    emulator_host: Optional[str] = None
    enable_leader_aware_routing: bool = True

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "ClientConfig":
        """Reads ``SPANNER_EMULATOR_HOST`` and
        ``SPANNER_ENABLE_LEADER_AWARE_ROUTING``."""
        environ = os.environ if environ is None else environ
        return cls(
            emulator_host=environ.get(EMULATOR_HOST_ENV) or None,
            enable_leader_aware_routing=_env_flag(
                environ.get(LEADER_AWARE_ROUTING_ENV), True
            ),
        )
