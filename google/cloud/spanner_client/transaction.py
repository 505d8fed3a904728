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
"""Module for the read-write Transaction class.

A transaction starts out ``Pending``: no id has been assigned by the server
yet. It becomes ``Active`` either through an explicit :meth:`Transaction.begin`
or when the first query or read, sent with an inline begin selector, returns
the id in its result metadata. A transaction that is still pending at commit
time is committed as a single-use transaction.
"""
from dataclasses import dataclass
import datetime
import logging
import threading
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Optional,
    Sequence,
    Tuple,
    Union,
)

from google.api_core import exceptions
from google.cloud.spanner_v1 import (
    CommitRequest,
    CommitResponse,
    ExecuteBatchDmlRequest,
    ExecuteSqlRequest,
    ReadRequest,
    TransactionOptions,
    TransactionSelector,
    Type,
)

from .internal.errors import BatchUpdateError, SpannerClientError
from .internal.service import ResponseStream, SpannerService
from .internal.types import to_key_set, to_struct
from .mutations import Commit, Rows
from .request_id import RequestId
from .results import Results
from .session import Session

logger = logging.getLogger(__name__)

Statement = Union[str, Tuple[str, Optional[Dict[str, Any]]]]


@dataclass(frozen=True)
class Pending:
    """No transaction id has been assigned yet."""


@dataclass(frozen=True)
class Active:
    """The server has assigned ``transaction_id``."""

    transaction_id: bytes


TransactionState = Union[Pending, Active]


class Transaction:
    """A read-write transaction on a checked out session.

    Reads and queries see the writes of earlier DML statements of the same
    transaction. Mutations added through :meth:`insert`, :meth:`update`,
    :meth:`upsert`, :meth:`replace` and :meth:`delete` are buffered and sent
    with the commit.
    """

    def __init__(
        self,
        session: Session,
        service: Optional[SpannerService] = None,
        previous_transaction_id: Optional[bytes] = None,
    ) -> None:
        """Initializes a pending Transaction.

        Args:
            session (Session): The session to run on. It is borrowed, not
                owned.
            service (SpannerService): Defaults to the session's service.
            previous_transaction_id (bytes): Id of the aborted transaction
                this one retries.
        """
        self._session = session
        self._service = service or session.service
        self._previous_transaction_id = previous_transaction_id
        self._state: TransactionState = Pending()
        self._lock = threading.Lock()
        self._commit = Commit()
        self._seqno = 0
        self._committed = False
        self._rolled_back = False
        self.commit_response: Optional[CommitResponse] = None

    @property
    def session(self) -> Session:
        return self._session

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def transaction_id(self) -> Optional[bytes]:
        """The server assigned id, or None while the transaction is pending."""
        state = self._state
        return state.transaction_id if isinstance(state, Active) else None

    @property
    def previous_transaction_id(self) -> Optional[bytes]:
        return self._previous_transaction_id

    @property
    def committed(self) -> bool:
        return self._committed

    @property
    def rolled_back(self) -> bool:
        return self._rolled_back

    @property
    def mutations(self) -> Commit:
        return self._commit

    def transaction_options(self) -> TransactionOptions:
        """Options used to begin the transaction."""
        read_write = TransactionOptions.ReadWrite()
        if self._previous_transaction_id:
            read_write = TransactionOptions.ReadWrite(
                multiplexed_session_previous_transaction_id=(
                    self._previous_transaction_id
                )
            )
        return TransactionOptions(read_write=read_write)

    def _check_open(self) -> None:
        if self._committed:
            raise SpannerClientError(
                "Transaction has already been committed", error_code=9
            )
        if self._rolled_back:
            raise SpannerClientError(
                "Transaction has already been rolled back", error_code=9
            )

    def begin(self) -> bytes:
        """Begins the transaction with an explicit BeginTransaction call.

        Returns:
            bytes: The transaction id. A transaction that is already active
            returns its id without an RPC.
        """
        with self._lock:
            self._check_open()
            if isinstance(self._state, Active):
                return self._state.transaction_id
            transaction_pb = self._service.begin_transaction(
                self._session.name, self.transaction_options()
            )
            self._state = Active(transaction_pb.id)
            logger.debug("Began transaction on session %s", self._session.name)
            return transaction_pb.id

    def _execute(
        self,
        build_request: Callable[[TransactionSelector, int], Any],
        call: Callable[[Any], ResponseStream],
    ) -> Results:
        with self._lock:
            self._check_open()
            self._seqno += 1
            if isinstance(self._state, Active):
                selector = TransactionSelector(id=self._state.transaction_id)
                request = build_request(selector, self._seqno)
            else:
                # The first response is read under the lock so that
                # concurrent statements do not each begin a transaction.
                selector = TransactionSelector(
                    begin=self.transaction_options()
                )
                results = Results(call(build_request(selector, self._seqno)))
                transaction_id = results.transaction_id
                if not transaction_id:
                    raise SpannerClientError(
                        "The server did not return a transaction id for an "
                        "inline begin",
                        error_code=13,
                    )
                self._state = Active(transaction_id)
                return results
        return Results(call(request))

    def execute_query(
        self,
        sql: str,
        params: Optional[Dict[str, Any]] = None,
        param_types: Optional[Dict[str, Type]] = None,
    ) -> Results:
        """Executes a SQL query or DML statement in the transaction."""

        def build(selector: TransactionSelector, seqno: int):
            return ExecuteSqlRequest(
                session=self._session.name,
                sql=sql,
                params=to_struct(params),
                param_types=param_types or {},
                transaction=selector,
                seqno=seqno,
            )

        return self._execute(build, self._service.execute_streaming_sql)

    def execute_update(
        self,
        sql: str,
        params: Optional[Dict[str, Any]] = None,
        param_types: Optional[Dict[str, Type]] = None,
    ) -> int:
        """Executes a DML statement and returns the number of rows changed."""
        return self.execute_query(sql, params, param_types).update_count()

    def read(
        self,
        table: str,
        columns: Sequence[str],
        keys: Any = None,
        index: str = "",
        limit: int = 0,
    ) -> Results:
        """Reads rows by key from a table or index."""

        def build(selector: TransactionSelector, seqno: int):
            return ReadRequest(
                session=self._session.name,
                table=table,
                columns=list(columns),
                key_set=to_key_set(keys),
                index=index,
                limit=limit,
                transaction=selector,
            )

        return self._execute(build, self._service.streaming_read)

    def batch_update(self, statements: Sequence[Statement]) -> List[int]:
        """Executes DML statements in one ExecuteBatchDml call.

        Args:
            statements: SQL strings or ``(sql, params)`` tuples.

        Returns:
            List[int]: The number of rows changed by each statement.

        Raises:
            BatchUpdateError: If a statement failed. The counts of the
                statements before it are kept on the error.
        """
        request_statements = []
        for statement in statements:
            sql, params = (
                (statement, None) if isinstance(statement, str) else statement
            )
            request_statements.append(
                ExecuteBatchDmlRequest.Statement(
                    sql=sql, params=to_struct(params)
                )
            )

        with self._lock:
            self._check_open()
            self._seqno += 1
            if isinstance(self._state, Active):
                selector = TransactionSelector(id=self._state.transaction_id)
            else:
                selector = TransactionSelector(
                    begin=self.transaction_options()
                )
            response = self._service.execute_batch_dml(
                ExecuteBatchDmlRequest(
                    session=self._session.name,
                    transaction=selector,
                    statements=request_statements,
                    seqno=self._seqno,
                )
            )
            result_sets = list(response.result_sets)
            if isinstance(self._state, Pending) and result_sets:
                transaction_id = result_sets[0].metadata.transaction.id
                if transaction_id:
                    self._state = Active(transaction_id)

        row_counts = [rs.stats.row_count_exact for rs in result_sets]
        code = response.status.code
        if code == 10:
            raise exceptions.Aborted(response.status.message)
        if code != 0:
            raise BatchUpdateError(response.status.message, code, row_counts)
        return row_counts

    def insert(self, table: str, rows: Rows) -> None:
        self._check_open()
        self._commit.insert(table, rows)

    def update(self, table: str, rows: Rows) -> None:
        self._check_open()
        self._commit.update(table, rows)

    def upsert(self, table: str, rows: Rows) -> None:
        self._check_open()
        self._commit.upsert(table, rows)

    def replace(self, table: str, rows: Rows) -> None:
        self._check_open()
        self._commit.replace(table, rows)

    def delete(self, table: str, keys: Any = None) -> None:
        self._check_open()
        self._commit.delete(table, keys)

    def commit(
        self,
        request_id: Optional[RequestId] = None,
        return_commit_stats: bool = False,
    ) -> datetime.datetime:
        """Commits the transaction and its buffered mutations.

        Args:
            request_id: Id to send with the Commit call, so that retried
                commits of one logical operation share a request number.
            return_commit_stats: Ask the server for commit statistics, kept
                on :attr:`commit_response`.

        Returns:
            datetime.datetime: The commit timestamp.
        """
        with self._lock:
            self._check_open()
            request = CommitRequest(
                session=self._session.name,
                mutations=self._commit.mutations,
                return_commit_stats=return_commit_stats,
            )
            if isinstance(self._state, Active):
                request.transaction_id = self._state.transaction_id
            else:
                request.single_use_transaction = self.transaction_options()
            response = self._service.commit(request, request_id=request_id)
            self._committed = True
            self.commit_response = response
        logger.debug("Committed transaction on session %s", self._session.name)
        return response.commit_timestamp

    def rollback(self) -> None:
        """Rolls the transaction back.

        A pending transaction has nothing to roll back on the server and is
        only marked rolled back.
        """
        with self._lock:
            if self._rolled_back:
                return
            if self._committed:
                raise SpannerClientError(
                    "Transaction has already been committed", error_code=9
                )
            self._rolled_back = True
            if isinstance(self._state, Active):
                self._service.rollback(
                    self._session.name, self._state.transaction_id
                )
