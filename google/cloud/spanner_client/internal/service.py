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
"""Module for the SpannerService class, the single path to the RPC client.

Every call made through the service carries the database resource prefix,
the route-to-leader header when leader aware routing is enabled, and a
request id. Calls failing with ``ServiceUnavailable`` are retried with the
same request number and the next attempt number.
"""
import logging
import time
from typing import Any, Callable, Iterator, List, Optional, Tuple

from google.api_core import exceptions
from google.cloud.spanner_v1 import (
    BatchCreateSessionsRequest,
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
    TransactionOptions,
)

from ..config import TransientRetrySettings
from ..request_id import REQUEST_ID_HEADER, RequestId, RequestIdGenerator
from ..routing import (
    ROUTE_TO_LEADER_HEADER,
    LeaderRoutingPolicy,
    OperationKind,
    TransactionSpec,
)
from .errors import attach_request_id
from .rpc_protocol import Metadata, SpannerRpcProtocol

logger = logging.getLogger(__name__)

RESOURCE_PREFIX_HEADER = "google-cloud-resource-prefix"


class ResponseStream(Iterator[PartialResultSet]):
    """A server stream whose first response has already been received.

    Errors raised while reading the rest of the stream carry the request id
    of the call that opened it.
    """

    def __init__(
        self,
        first: Optional[PartialResultSet],
        rest: Iterator[PartialResultSet],
        request_id: RequestId,
    ) -> None:
        self._pending = first
        self._rest = rest
        self._exhausted = first is None
        self.request_id = request_id

    def __iter__(self) -> "ResponseStream":
        return self

    def __next__(self) -> PartialResultSet:
        if self._pending is not None:
            item, self._pending = self._pending, None
            return item
        if self._exhausted:
            raise StopIteration
        try:
            return next(self._rest)
        except StopIteration:
            self._exhausted = True
            raise
        except Exception as e:
            self._exhausted = True
            attach_request_id(e, self.request_id)
            raise


class SpannerService:
    """Wraps a :class:`SpannerRpcProtocol` with per-call metadata.

    Args:
        rpc: The gapic ``SpannerClient`` or any object with the same surface.
        database: Full database resource name.
        request_ids: Generator of request ids for the channel of ``rpc``.
        routing_policy: Decides the route-to-leader header of each call.
        transient_retry: Retry settings for ``ServiceUnavailable``.
        sleep: Function used to wait between attempts.
    """

    def __init__(
        self,
        rpc: SpannerRpcProtocol,
        database: str,
        request_ids: RequestIdGenerator,
        routing_policy: Optional[LeaderRoutingPolicy] = None,
        transient_retry: Optional[TransientRetrySettings] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if not isinstance(rpc, SpannerRpcProtocol):
            raise TypeError(
                f"rpc must implement SpannerRpcProtocol, got {type(rpc)}"
            )
        self._rpc = rpc
        self._database = database
        self._request_ids = request_ids
        self._routing_policy = routing_policy or LeaderRoutingPolicy()
        self._transient_retry = transient_retry or TransientRetrySettings()
        self._sleep = sleep

    @property
    def rpc(self) -> SpannerRpcProtocol:
        return self._rpc

    @property
    def database(self) -> str:
        return self._database

    @property
    def request_ids(self) -> RequestIdGenerator:
        return self._request_ids

    @property
    def routing_policy(self) -> LeaderRoutingPolicy:
        return self._routing_policy

    def next_request_id(self) -> RequestId:
        """Allocates the id of a new logical request."""
        return self._request_ids.next_request()

    def metadata(
        self,
        kind: OperationKind,
        request_id: RequestId,
        transaction: TransactionSpec = None,
    ) -> List[Tuple[str, str]]:
        """Builds the metadata sent with one attempt of an RPC."""
        metadata = [(RESOURCE_PREFIX_HEADER, self._database)]
        route = self._routing_policy.header_value(kind, transaction)
        if route is not None:
            metadata.append((ROUTE_TO_LEADER_HEADER, route))
        metadata.append((REQUEST_ID_HEADER, str(request_id)))
        return metadata

    def _invoke(
        self,
        kind: OperationKind,
        call: Callable[[Metadata], Any],
        request_id: Optional[RequestId] = None,
        transaction: TransactionSpec = None,
    ) -> Tuple[Any, RequestId]:
        settings = self._transient_retry
        request_id = request_id or self.next_request_id()
        delay = settings.initial_delay
        attempts = 0
        while True:
            attempts += 1
            metadata = self.metadata(kind, request_id, transaction)
            try:
                return call(metadata), request_id
            except exceptions.ServiceUnavailable as e:
                attach_request_id(e, request_id)
                if attempts >= settings.max_attempts:
                    raise
                logger.debug(
                    "%s unavailable (request %s), retrying in %.2fs",
                    kind.value,
                    request_id,
                    delay,
                )
                self._sleep(delay)
                delay = min(delay * settings.multiplier, settings.max_delay)
                request_id = request_id.next_attempt()
            except Exception as e:
                attach_request_id(e, request_id)
                raise

    def _unary(
        self,
        kind: OperationKind,
        method: Callable[..., Any],
        request: Any,
        request_id: Optional[RequestId] = None,
        transaction: TransactionSpec = None,
    ) -> Any:
        response, _ = self._invoke(
            kind,
            lambda metadata: method(
                request=request, metadata=metadata, retry=None
            ),
            request_id=request_id,
            transaction=transaction,
        )
        return response

    def _stream(
        self,
        kind: OperationKind,
        method: Callable[..., Any],
        request: Any,
        request_id: Optional[RequestId] = None,
    ) -> ResponseStream:
        def start(metadata: Metadata):
            stream = iter(
                method(request=request, metadata=metadata, retry=None)
            )
            return next(stream, None), stream

        (first, rest), request_id = self._invoke(
            kind,
            start,
            request_id=request_id,
            transaction=request.transaction,
        )
        return ResponseStream(first, rest, request_id)

    # -------------------------------------------------------------------------
    # Sessions
    # -------------------------------------------------------------------------
    def create_session(self, template: Optional[Session] = None) -> Session:
        request = CreateSessionRequest(
            database=self._database, session=template or Session()
        )
        return self._unary(
            OperationKind.CREATE_SESSION, self._rpc.create_session, request
        )

    def batch_create_sessions(
        self, session_count: int, template: Optional[Session] = None
    ) -> List[Session]:
        request = BatchCreateSessionsRequest(
            database=self._database,
            session_count=session_count,
            session_template=template or Session(),
        )
        response = self._unary(
            OperationKind.BATCH_CREATE_SESSIONS,
            self._rpc.batch_create_sessions,
            request,
        )
        return list(response.session)

    def get_session(self, name: str) -> Session:
        return self._unary(
            OperationKind.GET_SESSION,
            self._rpc.get_session,
            GetSessionRequest(name=name),
        )

    def delete_session(self, name: str) -> None:
        self._unary(
            OperationKind.DELETE_SESSION,
            self._rpc.delete_session,
            DeleteSessionRequest(name=name),
        )

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------
    def begin_transaction(
        self,
        session: str,
        options: TransactionOptions,
        request_id: Optional[RequestId] = None,
    ) -> Transaction:
        request = BeginTransactionRequest(session=session, options=options)
        return self._unary(
            OperationKind.BEGIN_TRANSACTION,
            self._rpc.begin_transaction,
            request,
            request_id=request_id,
            transaction=options,
        )

    def commit(
        self, request: CommitRequest, request_id: Optional[RequestId] = None
    ) -> CommitResponse:
        return self._unary(
            OperationKind.COMMIT,
            self._rpc.commit,
            request,
            request_id=request_id,
        )

    def rollback(self, session: str, transaction_id: bytes) -> None:
        self._unary(
            OperationKind.ROLLBACK,
            self._rpc.rollback,
            RollbackRequest(session=session, transaction_id=transaction_id),
        )

    def execute_batch_dml(
        self,
        request: ExecuteBatchDmlRequest,
        request_id: Optional[RequestId] = None,
    ) -> ExecuteBatchDmlResponse:
        return self._unary(
            OperationKind.EXECUTE_BATCH_DML,
            self._rpc.execute_batch_dml,
            request,
            request_id=request_id,
            transaction=request.transaction,
        )

    # -------------------------------------------------------------------------
    # Streaming reads and queries
    # -------------------------------------------------------------------------
    def execute_streaming_sql(
        self, request: ExecuteSqlRequest, request_id: Optional[RequestId] = None
    ) -> ResponseStream:
        return self._stream(
            OperationKind.EXECUTE_QUERY,
            self._rpc.execute_streaming_sql,
            request,
            request_id=request_id,
        )

    def streaming_read(
        self, request: ReadRequest, request_id: Optional[RequestId] = None
    ) -> ResponseStream:
        return self._stream(
            OperationKind.READ,
            self._rpc.streaming_read,
            request,
            request_id=request_id,
        )
