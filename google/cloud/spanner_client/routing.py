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
"""Leader aware routing.

For a multi-region instance most of the write latency comes from round trips
between the frontend and the leader region. The
``x-goog-spanner-route-to-leader`` header lets the frontend send a request
straight to the leader region (``"true"``) or to the nearest replica
(``"false"``). The header is omitted entirely when routing is disabled.
"""
import enum
from typing import Optional, Union

from google.cloud.spanner_v1 import TransactionOptions, TransactionSelector

ROUTE_TO_LEADER_HEADER = "x-goog-spanner-route-to-leader"


class OperationKind(enum.Enum):
    CREATE_SESSION = "create_session"
    BATCH_CREATE_SESSIONS = "batch_create_sessions"
    GET_SESSION = "get_session"
    DELETE_SESSION = "delete_session"
    BEGIN_TRANSACTION = "begin_transaction"
    COMMIT = "commit"
    ROLLBACK = "rollback"
    EXECUTE_BATCH_DML = "execute_batch_dml"
    READ = "read"
    EXECUTE_QUERY = "execute_query"


_ALWAYS_LEADER = frozenset(
    {
        OperationKind.CREATE_SESSION,
        OperationKind.BATCH_CREATE_SESSIONS,
        OperationKind.GET_SESSION,
        OperationKind.COMMIT,
        OperationKind.ROLLBACK,
        OperationKind.EXECUTE_BATCH_DML,
    }
)

TransactionSpec = Union[TransactionSelector, TransactionOptions, None]


def _which_oneof(message, oneof: str) -> Optional[str]:
    return type(message).pb(message).WhichOneof(oneof)


def _is_read_only(options: TransactionOptions) -> bool:
    return _which_oneof(options, "mode") == "read_only"


def is_read_only_selector(selector: TransactionSpec) -> bool:
    """True when the selector runs on a read-only transaction."""
    if selector is None:
        return False
    if isinstance(selector, TransactionOptions):
        return _is_read_only(selector)
    kind = _which_oneof(selector, "selector")
    if kind == "single_use":
        return _is_read_only(selector.single_use)
    if kind == "begin":
        return _is_read_only(selector.begin)
    # Only read-write transactions are referenced by id in this client.
    return False


class LeaderRoutingPolicy:
    """Decides the route-to-leader header value of each RPC."""

    def __init__(self, enabled: bool = True) -> None:
        self._enabled = enabled

    @property
    def enabled(self) -> bool:
        return self._enabled

    def route_to_leader(
        self, kind: OperationKind, transaction: TransactionSpec = None
    ) -> bool:
        """Returns whether the RPC should be routed to the leader region.

        Args:
            kind: The RPC being sent.
            transaction: The transaction selector of a read or query, or the
                options of a ``BeginTransaction`` call.
        """
        if not self._enabled:
            return False
        if kind in _ALWAYS_LEADER:
            return True
        if kind is OperationKind.DELETE_SESSION:
            return False
        return not is_read_only_selector(transaction)

    def header_value(
        self, kind: OperationKind, transaction: TransactionSpec = None
    ) -> Optional[str]:
        """Returns ``"true"``/``"false"``, or None to omit the header."""
        if not self._enabled:
            return None
        return "true" if self.route_to_leader(kind, transaction) else "false"
