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
"""Module for the Client class, the entry point of the library."""
import datetime
import logging
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    Mapping,
    Optional,
    Sequence,
    Union,
)

from google.api_core.client_options import ClientOptions
from google.auth.credentials import Credentials
from google.cloud.spanner_v1 import (
    ExecuteSqlRequest,
    Mutation,
    ReadRequest,
    TransactionOptions,
    TransactionSelector,
    Type,
)
from google.cloud.spanner_v1.services.spanner import SpannerClient
from google.cloud.spanner_v1.services.spanner.transports import (
    SpannerGrpcTransport,
)
import grpc

from .abstract_resource import AbstractResource
from .config import (
    ClientConfig,
    RetrySettings,
    SessionCreationOptions,
    SessionPoolOptions,
    validate_database_path,
)
from .internal.errors import ClientClosedError, SpannerClientError
from .internal.rpc_protocol import SpannerRpcProtocol
from .internal.service import SpannerService
from .internal.types import to_key_set, to_struct
from .mutations import Commit, Rows
from .pool import SessionPool
from .request_id import ProcessState, RequestIdGenerator
from .results import Results
from .routing import LeaderRoutingPolicy
from .runner import TransactionRunner
from .session_cache import SessionCache

logger = logging.getLogger(__name__)

Duration = Union[datetime.timedelta, float]


def _to_timedelta(value: Duration) -> datetime.timedelta:
    if isinstance(value, datetime.timedelta):
        return value
    return datetime.timedelta(seconds=value)


def snapshot_selector(
    strong: Optional[bool] = None,
    read_timestamp: Optional[datetime.datetime] = None,
    min_read_timestamp: Optional[datetime.datetime] = None,
    exact_staleness: Optional[Duration] = None,
    max_staleness: Optional[Duration] = None,
) -> TransactionOptions:
    """Builds read-only options for a single-use read or query.

    At most one timestamp bound may be given. Without any, the read is
    strong.

    Raises:
        ValueError: If more than one bound is given.
    """
    bounds = {
        "strong": strong,
        "read_timestamp": read_timestamp,
        "min_read_timestamp": min_read_timestamp,
        "exact_staleness": exact_staleness,
        "max_staleness": max_staleness,
    }
    given = {name: value for name, value in bounds.items() if value is not None}
    if len(given) > 1:
        raise ValueError(
            "Only one of strong, read_timestamp, min_read_timestamp, "
            f"exact_staleness and max_staleness may be set, got {sorted(given)}"
        )

    if "read_timestamp" in given:
        read_only = TransactionOptions.ReadOnly(read_timestamp=read_timestamp)
    elif "min_read_timestamp" in given:
        read_only = TransactionOptions.ReadOnly(
            min_read_timestamp=min_read_timestamp
        )
    elif "exact_staleness" in given:
        read_only = TransactionOptions.ReadOnly(
            exact_staleness=_to_timedelta(exact_staleness)
        )
    elif "max_staleness" in given:
        read_only = TransactionOptions.ReadOnly(
            max_staleness=_to_timedelta(max_staleness)
        )
    else:
        read_only = TransactionOptions.ReadOnly(strong=True)
    read_only.return_read_timestamp = True
    return TransactionOptions(read_only=read_only)


def _database_path(database: str, project: Optional[str]) -> str:
    if project and not database.startswith("projects/"):
        database = f"projects/{project}/{database}"
    return validate_database_path(database)


def _create_rpc(
    credentials: Optional[Credentials], emulator_host: Optional[str]
) -> SpannerClient:
    if emulator_host:
        logger.debug("Connecting to the emulator at %s", emulator_host)
        transport = SpannerGrpcTransport(
            channel=grpc.insecure_channel(emulator_host)
        )
        return SpannerClient(transport=transport)
    return SpannerClient(
        credentials=credentials,
        client_options=ClientOptions(api_endpoint="spanner.googleapis.com"),
    )


class Client(AbstractResource):
    """Reads, queries and writes to one Spanner database.

    Operations run on sessions taken from a :class:`SessionPool`, or on a
    single multiplexed session when ``multiplexed_sessions`` is set. The
    client must be closed to delete its sessions; using it as a context
    manager does that on every exit path.

    Example::

        with Client("projects/p/instances/i/databases/d") as client:
            for row in client.execute_query("SELECT 1").rows():
                print(row)
    """

    def __init__(
        self,
        database: str,
        *,
        project: Optional[str] = None,
        credentials: Optional[Credentials] = None,
        rpc: Optional[SpannerRpcProtocol] = None,
        emulator_host: Optional[str] = None,
        pool_options: Optional[SessionPoolOptions] = None,
        session_labels: Optional[Mapping[str, str]] = None,
        database_role: Optional[str] = None,
        enable_leader_aware_routing: Optional[bool] = None,
        multiplexed_sessions: bool = False,
        retry_settings: Optional[RetrySettings] = None,
        process_id: Union[int, str, None] = None,
    ) -> None:
        """Initializes the client and its sessions.

        Args:
            database: Full database resource name, or
                ``instances/<i>/databases/<d>`` together with ``project``.
            project: Project of the database.
            credentials: Credentials for the Spanner API. Ignored with an
                emulator.
            rpc: RPC client to use instead of a gapic ``SpannerClient``.
            emulator_host: ``host:port`` of a Spanner emulator. Defaults to
                ``SPANNER_EMULATOR_HOST``.
            pool_options: Options of the session pool.
            session_labels: Labels set on every created session.
            database_role: Fine-grained access control role of the sessions.
            enable_leader_aware_routing: Send route-to-leader headers.
                Defaults to ``SPANNER_ENABLE_LEADER_AWARE_ROUTING``, itself
                defaulting to enabled.
            multiplexed_sessions: Use one multiplexed session instead of a
                pool.
            retry_settings: Backoff of aborted transactions.
            process_id: Seed of the process id of request ids. Only the first
                value given in a process is used.
        """
        env = ClientConfig.from_env()
        if emulator_host is None:
            emulator_host = env.emulator_host
        if enable_leader_aware_routing is None:
            enable_leader_aware_routing = env.enable_leader_aware_routing
        database = _database_path(database, project)

        super().__init__()
        self._database = database
        self._retry_settings = retry_settings or RetrySettings()
        self._owns_rpc = rpc is None
        self._rpc = rpc or _create_rpc(credentials, emulator_host)

        self._client_id = ProcessState.NTH_CLIENT.increment()
        request_ids = RequestIdGenerator(
            client_id=self._client_id,
            channel_id=ProcessState.NTH_CHANNEL.increment(),
            process_id=ProcessState.process_id(process_id),
        )
        self._service = SpannerService(
            self._rpc,
            self._database,
            request_ids,
            routing_policy=LeaderRoutingPolicy(enable_leader_aware_routing),
        )

        creation_options = SessionCreationOptions(
            database_path=self._database,
            labels=dict(session_labels or {}),
            creator_role=database_role,
        )
        try:
            if multiplexed_sessions:
                self._sessions: Union[SessionPool, SessionCache] = (
                    SessionCache(self._service, creation_options)
                )
            else:
                self._sessions = SessionPool(
                    self._service, creation_options, pool_options
                )
        except Exception:
            self._is_disposed = True
            self._close_rpc()
            raise
        logger.debug(
            "Client %d created for %s", self._client_id, self._database
        )

    @property
    def database(self) -> str:
        return self._database

    @property
    def client_id(self) -> int:
        return self._client_id

    @property
    def service(self) -> SpannerService:
        return self._service

    @property
    def sessions(self) -> Union[SessionPool, SessionCache]:
        """The session pool, or the multiplexed session cache."""
        return self._sessions

    def _check_open(self) -> None:
        if self.closed:
            raise ClientClosedError()

    # -------------------------------------------------------------------------
    # Single-use reads and queries
    # -------------------------------------------------------------------------
    def execute_query(
        self,
        sql: str,
        params: Optional[Dict[str, Any]] = None,
        param_types: Optional[Dict[str, Type]] = None,
        single_use: Optional[TransactionOptions] = None,
    ) -> Results:
        """Runs a query in a single-use read-only transaction.

        Args:
            sql: The query.
            params: Values of the query parameters.
            param_types: Types of parameters that cannot be inferred.
            single_use: Read-only options from :func:`snapshot_selector`.
                Without them no selector is sent; the server runs a strong
                read and the query is routed to the leader.

        Returns:
            Results: All rows, read before the session went back to the pool.
        """
        self._check_open()
        selector = None
        if single_use is not None:
            selector = TransactionSelector(single_use=single_use)
        with self._sessions.with_session() as session:
            request = ExecuteSqlRequest(
                session=session.name,
                sql=sql,
                params=to_struct(params),
                param_types=param_types or {},
                transaction=selector,
            )
            return Results(
                self._service.execute_streaming_sql(request)
            ).materialize()

    def read(
        self,
        table: str,
        columns: Sequence[str],
        keys: Any = None,
        index: str = "",
        limit: int = 0,
        single_use: Optional[TransactionOptions] = None,
    ) -> Results:
        """Reads rows by key in a single-use read-only transaction.

        ``keys`` of None or an empty list reads the whole table.
        """
        self._check_open()
        selector = TransactionSelector(
            single_use=single_use or snapshot_selector()
        )
        with self._sessions.with_session() as session:
            request = ReadRequest(
                session=session.name,
                table=table,
                columns=list(columns),
                key_set=to_key_set(keys),
                index=index,
                limit=limit,
                transaction=selector,
            )
            return Results(self._service.streaming_read(request)).materialize()

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------
    def _runner(self) -> TransactionRunner:
        return TransactionRunner(
            self._sessions, self._service, self._retry_settings
        )

    def commit(
        self,
        mutations: Union[Commit, Iterable[Mutation], Callable[[Commit], Any]],
    ) -> datetime.datetime:
        """Applies mutations atomically in a single-use transaction.

        Args:
            mutations: A :class:`Commit`, a list of ``Mutation``, or a
                function that fills the :class:`Commit` it is given.

        Returns:
            datetime.datetime: The commit timestamp.
        """
        self._check_open()
        if callable(mutations):
            commit = Commit()
            mutations(commit)
            mutations = commit
        elif not isinstance(mutations, Commit):
            mutations = Commit().extend(mutations)

        def apply(transaction):
            transaction.mutations.extend(mutations)

        return self._runner().run(apply)

    def insert(self, table: str, rows: Rows) -> datetime.datetime:
        return self.commit(lambda c: c.insert(table, rows))

    def update(self, table: str, rows: Rows) -> datetime.datetime:
        return self.commit(lambda c: c.update(table, rows))

    def upsert(self, table: str, rows: Rows) -> datetime.datetime:
        return self.commit(lambda c: c.upsert(table, rows))

    save = upsert

    def replace(self, table: str, rows: Rows) -> datetime.datetime:
        return self.commit(lambda c: c.replace(table, rows))

    def delete(self, table: str, keys: Any = None) -> datetime.datetime:
        return self.commit(lambda c: c.delete(table, keys))

    def run_in_transaction(
        self, func: Callable[..., Any], *args, **kwargs
    ) -> datetime.datetime:
        """Runs ``func(transaction, *args, **kwargs)`` in a read-write
        transaction, retrying it when the transaction is aborted.

        Returns:
            datetime.datetime: The commit timestamp.
        """
        self._check_open()
        return self._runner().run(func, *args, **kwargs)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------
    def _close_rpc(self) -> None:
        if self._owns_rpc:
            self._rpc.transport.close()

    def _release_resources(self) -> None:
        try:
            logger.debug("Closing client %d", self._client_id)
            try:
                self._sessions.close()
            finally:
                self._close_rpc()
        except SpannerClientError:
            logger.exception("Error closing client %d", self._client_id)
            raise
        except Exception as e:
            logger.exception(
                "Unexpected error closing client %d", self._client_id
            )
            raise SpannerClientError(
                f"Unexpected error during close: {e}"
            ) from e
