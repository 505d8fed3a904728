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
"""Unit tests for the Client facade."""
import datetime
from unittest.mock import MagicMock, patch

from google.api_core import exceptions
import pytest

from google.cloud.spanner_v1 import (
    CommitRequest,
    ExecuteSqlRequest,
    Mutation,
    ReadRequest,
    TransactionOptions,
    TransactionSelector,
    TypeCode,
)

from google.cloud.spanner_client import Client, Commit, snapshot_selector
from google.cloud.spanner_client.config import (
    EMULATOR_HOST_ENV,
    LEADER_AWARE_ROUTING_ENV,
    RetrySettings,
    SessionPoolOptions,
)
from google.cloud.spanner_client.internal.errors import (
    ClientClosedError,
    SpannerClientError,
)
from google.cloud.spanner_client.pool import SessionPool
from google.cloud.spanner_client.request_id import REQUEST_ID_HEADER
from google.cloud.spanner_client.routing import ROUTE_TO_LEADER_HEADER
from google.cloud.spanner_client.session_cache import SessionCache

from ._helper import COMMIT_TIMESTAMP, DATABASE, single_column_result

POOL_OPTIONS = SessionPoolOptions(
    min_sessions=1, max_sessions=2, keepalive_interval=3600, threads=2
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv(EMULATOR_HOST_ENV, raising=False)
    monkeypatch.delenv(LEADER_AWARE_ROUTING_ENV, raising=False)


@pytest.fixture
def client(fake_spanner):
    with Client(
        DATABASE, rpc=fake_spanner, pool_options=POOL_OPTIONS, process_id=255
    ) as client:
        yield client


def selector_kind(request):
    return TransactionSelector.pb(request.transaction).WhichOneof("selector")


def read_only_kind(request) -> str:
    selector = TransactionSelector.pb(request.transaction)
    return selector.single_use.read_only.WhichOneof("timestamp_bound")


class TestConstruction:
    def test_pool_is_prewarmed(self, client, fake_spanner):
        assert isinstance(client.sessions, SessionPool)
        assert client.sessions.available_count == 1
        request = fake_spanner.requests_of("batch_create_sessions")[0]
        assert request.database == DATABASE

    def test_client_ids_increase(self, fake_spanner):
        with Client(DATABASE, rpc=fake_spanner, pool_options=POOL_OPTIONS) as a:
            with Client(
                DATABASE, rpc=fake_spanner, pool_options=POOL_OPTIONS
            ) as b:
                assert b.client_id == a.client_id + 1

    def test_request_ids_carry_client_and_process(self, client, fake_spanner):
        header = fake_spanner.metadata_of("batch_create_sessions")[0][
            REQUEST_ID_HEADER
        ]
        assert header == f"1.00000000000000ff.{client.client_id}.1.1.1"

    def test_project_and_short_database(self, fake_spanner):
        with Client(
            "instances/i/databases/d",
            project="p",
            rpc=fake_spanner,
            pool_options=POOL_OPTIONS,
        ) as client:
            assert client.database == DATABASE

    @pytest.mark.parametrize(
        "database", ["", "d", "projects/p/instances/i", "projects//i/d"]
    )
    def test_invalid_database(self, fake_spanner, database):
        with pytest.raises(ValueError):
            Client(database, rpc=fake_spanner)

    def test_labels_and_role(self, fake_spanner):
        with Client(
            DATABASE,
            rpc=fake_spanner,
            pool_options=POOL_OPTIONS,
            session_labels={"app": "x"},
            database_role="reader",
        ):
            (request,) = fake_spanner.requests_of("batch_create_sessions")
            template = request.session_template
            assert dict(template.labels) == {"app": "x"}
            assert template.creator_role == "reader"

    def test_failed_prewarm_leaves_nothing_open(self, fake_spanner):
        fake_spanner.add_error(
            "batch_create_sessions", exceptions.PermissionDenied("denied")
        )

        with pytest.raises(exceptions.PermissionDenied):
            Client(DATABASE, rpc=fake_spanner, pool_options=POOL_OPTIONS)

    def test_multiplexed_sessions(self, fake_spanner):
        with Client(
            DATABASE, rpc=fake_spanner, multiplexed_sessions=True
        ) as client:
            assert isinstance(client.sessions, SessionCache)
            client.execute_query("SELECT 1")
            client.execute_query("SELECT 1")

        (create,) = fake_spanner.requests_of("create_session")
        assert create.session.multiplexed is True
        assert fake_spanner.requests_of("batch_create_sessions") == []
        assert fake_spanner.requests_of("delete_session") == []


class TestEnvironment:
    def test_routing_can_be_disabled(self, fake_spanner, monkeypatch):
        monkeypatch.setenv(LEADER_AWARE_ROUTING_ENV, "false")

        with Client(DATABASE, rpc=fake_spanner, pool_options=POOL_OPTIONS):
            metadata = fake_spanner.metadata_of("batch_create_sessions")[0]

        assert ROUTE_TO_LEADER_HEADER not in metadata

    def test_argument_overrides_environment(self, fake_spanner, monkeypatch):
        monkeypatch.setenv(LEADER_AWARE_ROUTING_ENV, "false")

        with Client(
            DATABASE,
            rpc=fake_spanner,
            pool_options=POOL_OPTIONS,
            enable_leader_aware_routing=True,
        ):
            metadata = fake_spanner.metadata_of("batch_create_sessions")[0]

        assert metadata[ROUTE_TO_LEADER_HEADER] == "true"

    def test_emulator_host_builds_insecure_channel(self, monkeypatch):
        monkeypatch.setenv(EMULATOR_HOST_ENV, "localhost:9010")
        rpc = MagicMock()
        with patch(
            "google.cloud.spanner_client.client._create_rpc", return_value=rpc
        ) as create_rpc, patch(
            "google.cloud.spanner_client.client.SpannerService"
        ), patch(
            "google.cloud.spanner_client.client.SessionPool"
        ):
            client = Client(DATABASE)
            client.close()

        create_rpc.assert_called_once_with(None, "localhost:9010")
        rpc.transport.close.assert_called_once_with()


class TestReads:
    def test_execute_query_without_selector_routes_to_leader(
        self, client, fake_spanner
    ):
        fake_spanner.add_result(
            "SELECT Name FROM Singers",
            single_column_result("Name", TypeCode.STRING, ["Alice", "Bob"]),
        )

        results = client.execute_query("SELECT Name FROM Singers")

        assert list(results.rows()) == [["Alice"], ["Bob"]]
        request = fake_spanner.requests_of("execute_streaming_sql")[0]
        assert selector_kind(request) is None
        metadata = fake_spanner.metadata_of("execute_streaming_sql")[0]
        assert metadata[ROUTE_TO_LEADER_HEADER] == "true"
        assert client.sessions.in_use_count == 0

    def test_execute_query_with_strong_selector(self, client, fake_spanner):
        client.execute_query("SELECT 1", single_use=snapshot_selector())

        request = fake_spanner.requests_of("execute_streaming_sql")[0]
        assert read_only_kind(request) == "strong"
        metadata = fake_spanner.metadata_of("execute_streaming_sql")[0]
        assert metadata[ROUTE_TO_LEADER_HEADER] == "false"

    def test_execute_query_without_params(self, client, fake_spanner):
        assert client.execute_query("SELECT 1").one() == [1]

        request = fake_spanner.requests_of("execute_streaming_sql")[0]
        assert len(ExecuteSqlRequest.pb(request).params.fields) == 0

    def test_execute_query_with_params(self, client, fake_spanner):
        client.execute_query("SELECT 1", params={"id": 7})

        request = fake_spanner.requests_of("execute_streaming_sql")[0]
        params = ExecuteSqlRequest.pb(request).params
        assert params.fields["id"].string_value == "7"

    def test_read_is_strong_by_default(self, client, fake_spanner):
        client.read("Singers", ["Name"])

        request = fake_spanner.requests_of("streaming_read")[0]
        assert read_only_kind(request) == "strong"
        assert ReadRequest.pb(request).key_set.all is True
        metadata = fake_spanner.metadata_of("streaming_read")[0]
        assert metadata[ROUTE_TO_LEADER_HEADER] == "false"

    def test_stale_read(self, client, fake_spanner):
        client.read(
            "Singers",
            ["Name"],
            keys=[1, 2],
            single_use=snapshot_selector(exact_staleness=15),
        )

        request = fake_spanner.requests_of("streaming_read")[0]
        assert read_only_kind(request) == "exact_staleness"
        assert len(request.key_set.keys) == 2

    def test_results_survive_session_checkin(self, client):
        results = client.execute_query("SELECT 1")

        assert client.sessions.in_use_count == 0
        assert results.one() == [1]


class TestSnapshotSelector:
    def test_strong_by_default(self):
        options = snapshot_selector()
        pb = TransactionOptions.pb(options)
        assert pb.read_only.strong is True
        assert pb.read_only.return_read_timestamp is True

    def test_seconds_become_durations(self):
        options = snapshot_selector(max_staleness=2.5)
        assert options.read_only.max_staleness == datetime.timedelta(
            seconds=2.5
        )

    def test_read_timestamp(self):
        timestamp = datetime.datetime(2026, 1, 1, tzinfo=datetime.timezone.utc)
        pb = TransactionOptions.pb(snapshot_selector(read_timestamp=timestamp))
        assert pb.read_only.WhichOneof("timestamp_bound") == "read_timestamp"

    def test_only_one_bound(self):
        with pytest.raises(ValueError):
            snapshot_selector(strong=True, exact_staleness=10)


class TestWrites:
    def test_insert(self, client, fake_spanner):
        assert client.insert("Singers", {"SingerId": 1}) == COMMIT_TIMESTAMP

        request = fake_spanner.requests_of("commit")[0]
        assert CommitRequest.pb(request).WhichOneof("transaction") == (
            "single_use_transaction"
        )
        (mutation,) = request.mutations
        assert Mutation.pb(mutation).WhichOneof("operation") == "insert"
        metadata = fake_spanner.metadata_of("commit")[0]
        assert metadata[ROUTE_TO_LEADER_HEADER] == "true"

    @pytest.mark.parametrize(
        "method, operation",
        [
            ("update", "update"),
            ("upsert", "insert_or_update"),
            ("save", "insert_or_update"),
            ("replace", "replace"),
        ],
    )
    def test_write_shortcuts(self, client, fake_spanner, method, operation):
        getattr(client, method)("Singers", [{"SingerId": 1}, {"SingerId": 2}])

        mutations = fake_spanner.requests_of("commit")[0].mutations
        assert [Mutation.pb(m).WhichOneof("operation") for m in mutations] == [
            operation,
            operation,
        ]

    def test_delete(self, client, fake_spanner):
        client.delete("Singers", [1, 2])

        (mutation,) = fake_spanner.requests_of("commit")[0].mutations
        assert len(Mutation.pb(mutation).delete.key_set.keys) == 2

    def test_commit_accepts_commit_list_and_callable(
        self, client, fake_spanner
    ):
        commit = Commit().insert("A", {"id": 1})
        client.commit(commit)
        client.commit(commit.mutations)
        client.commit(lambda c: c.delete("A", 1))

        counts = [len(r.mutations) for r in fake_spanner.requests_of("commit")]
        assert counts == [1, 1, 1]

    def test_aborted_commit_is_retried_with_all_mutations(
        self, fake_spanner
    ):
        fake_spanner.add_error("commit", exceptions.Aborted("conflict"))
        with Client(
            DATABASE,
            rpc=fake_spanner,
            pool_options=POOL_OPTIONS,
            retry_settings=RetrySettings(initial_delay=0.001, max_delay=0.001),
        ) as client:
            client.commit(
                m for m in Commit().insert("A", {"id": 1}).mutations
            )

        commits = fake_spanner.requests_of("commit")
        assert [len(c.mutations) for c in commits] == [1, 1]

    def test_run_in_transaction(self, client, fake_spanner):
        def work(transaction, singer_id):
            row = transaction.execute_query("SELECT 1").one()
            transaction.update("Singers", {"SingerId": singer_id, "n": row[0]})

        assert client.run_in_transaction(work, 7) == COMMIT_TIMESTAMP

        request = fake_spanner.requests_of("commit")[0]
        assert CommitRequest.pb(request).WhichOneof("transaction") == (
            "transaction_id"
        )


class TestClose:
    def test_close_deletes_sessions(self, fake_spanner):
        client = Client(DATABASE, rpc=fake_spanner, pool_options=POOL_OPTIONS)

        client.close()
        client.close()

        assert len(fake_spanner.deleted_sessions) == 1
        assert client.closed is True

    def test_operations_after_close(self, fake_spanner):
        client = Client(DATABASE, rpc=fake_spanner, pool_options=POOL_OPTIONS)
        client.close()

        with pytest.raises(ClientClosedError):
            client.execute_query("SELECT 1")
        with pytest.raises(ClientClosedError):
            client.insert("Singers", {"SingerId": 1})

    def test_unexpected_close_errors_are_wrapped(self, fake_spanner):
        client = Client(DATABASE, rpc=fake_spanner, pool_options=POOL_OPTIONS)
        with patch.object(
            client.sessions, "close", side_effect=RuntimeError("boom")
        ):
            with pytest.raises(SpannerClientError, match="boom"):
                client.close()
        client.sessions.close()
