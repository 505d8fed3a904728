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
"""In-memory stand-in for the gapic Spanner client used by unit tests."""
import base64
from collections import defaultdict
import datetime
import threading
from typing import Dict, List, Optional

from google.api_core import exceptions
from google.cloud.spanner_v1 import (
    BatchCreateSessionsResponse,
    CommitResponse,
    ExecuteBatchDmlResponse,
    PartialResultSet,
    ResultSet,
    ResultSetMetadata,
    ResultSetStats,
    Session,
    StructType,
    Transaction,
    TransactionOptions,
    Type,
    TypeCode,
)
from google.protobuf import struct_pb2
from google.rpc import status_pb2

DATABASE = "projects/p/instances/i/databases/d"
COMMIT_TIMESTAMP = datetime.datetime(
    2026, 1, 2, 3, 4, 5, tzinfo=datetime.timezone.utc
)


def single_column_result(
    name: str, code: TypeCode, values: List[str]
) -> List[PartialResultSet]:
    """Builds a one partial result with one column of string encoded
    values."""
    partial = PartialResultSet(
        metadata=ResultSetMetadata(
            row_type=StructType(
                fields=[StructType.Field(name=name, type_=Type(code=code))]
            )
        )
    )
    PartialResultSet.pb(partial).values.extend(
        struct_pb2.Value(string_value=v) for v in values
    )
    return [partial]


def update_count_result(count: int) -> List[PartialResultSet]:
    return [
        PartialResultSet(
            metadata=ResultSetMetadata(row_type=StructType()),
            stats=ResultSetStats(row_count_exact=count),
        )
    ]


def _copy(partial: PartialResultSet) -> PartialResultSet:
    return PartialResultSet.deserialize(PartialResultSet.serialize(partial))


class FakeSpanner:
    """
    Records every request with its metadata and answers from in-memory
    state. Errors queued with :meth:`add_error` are raised, in order, by the
    next calls of the named method.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.requests: List[tuple] = []
        self.session_counter = 0
        self.sessions: Dict[str, Session] = {}
        self.deleted_sessions: List[str] = []
        self.transaction_counter = 0
        self.transactions: Dict[bytes, TransactionOptions] = {}
        self.errors: Dict[str, list] = defaultdict(list)
        self.results: Dict[str, List[PartialResultSet]] = {}
        self.batch_create_limit: Optional[int] = None

    # --- Test hooks ---

    def add_error(self, method: str, error: Exception) -> None:
        with self._lock:
            self.errors[method].append(error)

    def add_result(self, key: str, partials: List[PartialResultSet]) -> None:
        """Sets the partial results of a query (by SQL) or read (by table)."""
        self.results[key.lower().strip()] = partials

    def requests_of(self, method: str) -> list:
        return [r for m, r, _ in self.requests if m == method]

    def metadata_of(self, method: str) -> List[Dict[str, str]]:
        return [dict(md) for m, _, md in self.requests if m == method]

    def clear_requests(self) -> None:
        with self._lock:
            self.requests = []

    def _record(self, method: str, request, metadata) -> None:
        with self._lock:
            self.requests.append((method, request, list(metadata)))
            errors = self.errors.get(method)
            error = errors.pop(0) if errors else None
        if error is not None:
            raise error

    def _create_session(self, database: str, template: Session) -> Session:
        with self._lock:
            self.session_counter += 1
            session = Session(
                name=f"{database}/sessions/{self.session_counter}",
                labels=dict(template.labels),
                creator_role=template.creator_role,
                multiplexed=template.multiplexed,
            )
            self.sessions[session.name] = session
        return session

    def _create_transaction(
        self, session: str, options: TransactionOptions
    ) -> Transaction:
        if session not in self.sessions:
            raise exceptions.NotFound(f"Session not found: {session}")
        with self._lock:
            self.transaction_counter += 1
            transaction_id = base64.urlsafe_b64encode(
                f"{session}/transactions/{self.transaction_counter}".encode()
            )
            self.transactions[transaction_id] = options
        return Transaction(id=transaction_id)

    def _maybe_begin(self, request) -> Optional[Transaction]:
        kind = type(request.transaction).pb(request.transaction).WhichOneof(
            "selector"
        )
        if kind == "begin":
            return self._create_transaction(
                request.session, request.transaction.begin
            )
        return None

    # --- SpannerRpcProtocol ---

    def create_session(self, request, metadata=(), **kwargs):
        self._record("create_session", request, metadata)
        return self._create_session(request.database, request.session)

    def batch_create_sessions(self, request, metadata=(), **kwargs):
        self._record("batch_create_sessions", request, metadata)
        count = request.session_count
        if self.batch_create_limit is not None:
            count = min(count, self.batch_create_limit)
        return BatchCreateSessionsResponse(
            session=[
                self._create_session(
                    request.database, request.session_template
                )
                for _ in range(count)
            ]
        )

    def get_session(self, request, metadata=(), **kwargs):
        self._record("get_session", request, metadata)
        session = self.sessions.get(request.name)
        if session is None:
            raise exceptions.NotFound(f"Session not found: {request.name}")
        return session

    def delete_session(self, request, metadata=(), **kwargs):
        self._record("delete_session", request, metadata)
        with self._lock:
            self.sessions.pop(request.name, None)
            self.deleted_sessions.append(request.name)

    def begin_transaction(self, request, metadata=(), **kwargs):
        self._record("begin_transaction", request, metadata)
        return self._create_transaction(request.session, request.options)

    def commit(self, request, metadata=(), **kwargs):
        self._record("commit", request, metadata)
        if request.transaction_id:
            with self._lock:
                if request.transaction_id not in self.transactions:
                    raise exceptions.NotFound("Transaction not found")
                del self.transactions[request.transaction_id]
        elif request.session not in self.sessions:
            raise exceptions.NotFound(f"Session not found: {request.session}")
        return CommitResponse(commit_timestamp=COMMIT_TIMESTAMP)

    def rollback(self, request, metadata=(), **kwargs):
        self._record("rollback", request, metadata)
        with self._lock:
            self.transactions.pop(request.transaction_id, None)

    def execute_batch_dml(self, request, metadata=(), **kwargs):
        self._record("execute_batch_dml", request, metadata)
        started = self._maybe_begin(request)
        response = ExecuteBatchDmlResponse(status=status_pb2.Status(code=0))
        for i, _ in enumerate(request.statements):
            result = ResultSet(stats=ResultSetStats(row_count_exact=1))
            if i == 0 and started is not None:
                result.metadata = ResultSetMetadata(transaction=started)
            response.result_sets.append(result)
        return response

    def _stream(self, method: str, key: str, request, metadata):
        self._record(method, request, metadata)
        if request.session not in self.sessions:
            raise exceptions.NotFound(f"Session not found: {request.session}")
        started = self._maybe_begin(request)
        partials = [
            _copy(p)
            for p in self.results.get(
                key.lower().strip(),
                single_column_result("", TypeCode.INT64, ["1"]),
            )
        ]
        if started is not None:
            partials[0].metadata.transaction = started
        return iter(partials)

    def execute_streaming_sql(self, request, metadata=(), **kwargs):
        return self._stream(
            "execute_streaming_sql", request.sql, request, metadata
        )

    def streaming_read(self, request, metadata=(), **kwargs):
        return self._stream("streaming_read", request.table, request, metadata)
