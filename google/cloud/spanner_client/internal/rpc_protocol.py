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
"""Protocol defining the expected interface for the Spanner RPC client."""
from typing import Iterable, Protocol, Sequence, Tuple, runtime_checkable

from google.cloud.spanner_v1 import (
    BatchCreateSessionsRequest,
    BatchCreateSessionsResponse,
    BeginTransactionRequest,
    CommitRequest,
    CommitResponse,
    CreateSessionRequest,
    DeleteSessionRequest,
    ExecuteBatchDmlRequest,
    ExecuteBatchDmlResponse,
    ExecuteSqlRequest,
    GetSessionRequest,
    PartialResultSet,
    ReadRequest,
    RollbackRequest,
    Session,
    Transaction,
)

Metadata = Sequence[Tuple[str, str]]


@runtime_checkable
class SpannerRpcProtocol(Protocol):
    """
    Protocol defining the RPC surface the session pool and transaction
    runner depend on.

    ``google.cloud.spanner_v1.services.spanner.SpannerClient`` satisfies it;
    tests substitute an in-memory implementation.
    """

    def create_session(
        self, request: CreateSessionRequest, metadata: Metadata = (), **kwargs
    ) -> Session:
        """Calls the CreateSession RPC."""
        ...

    def batch_create_sessions(
        self,
        request: BatchCreateSessionsRequest,
        metadata: Metadata = (),
        **kwargs,
    ) -> BatchCreateSessionsResponse:
        """Calls the BatchCreateSessions RPC."""
        ...

    def get_session(
        self, request: GetSessionRequest, metadata: Metadata = (), **kwargs
    ) -> Session:
        """Calls the GetSession RPC."""
        ...

    def delete_session(
        self, request: DeleteSessionRequest, metadata: Metadata = (), **kwargs
    ) -> None:
        """Calls the DeleteSession RPC."""
        ...

    def begin_transaction(
        self,
        request: BeginTransactionRequest,
        metadata: Metadata = (),
        **kwargs,
    ) -> Transaction:
        """Calls the BeginTransaction RPC."""
        ...

    def commit(
        self, request: CommitRequest, metadata: Metadata = (), **kwargs
    ) -> CommitResponse:
        """Calls the Commit RPC."""
        ...

    def rollback(
        self, request: RollbackRequest, metadata: Metadata = (), **kwargs
    ) -> None:
        """Calls the Rollback RPC."""
        ...

    def execute_batch_dml(
        self,
        request: ExecuteBatchDmlRequest,
        metadata: Metadata = (),
        **kwargs,
    ) -> ExecuteBatchDmlResponse:
        """Calls the ExecuteBatchDml RPC."""
        ...

    def execute_streaming_sql(
        self, request: ExecuteSqlRequest, metadata: Metadata = (), **kwargs
    ) -> Iterable[PartialResultSet]:
        """Calls the ExecuteStreamingSql RPC."""
        ...

    def streaming_read(
        self, request: ReadRequest, metadata: Metadata = (), **kwargs
    ) -> Iterable[PartialResultSet]:
        """Calls the StreamingRead RPC."""
        ...
