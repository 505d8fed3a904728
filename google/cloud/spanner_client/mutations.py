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
"""Buffered mutations applied atomically at commit."""
from typing import Any, Iterable, List, Mapping, Sequence, Union

from google.cloud.spanner_v1 import Mutation

from .internal.types import to_key_set, to_list_value

Row = Mapping[str, Any]
Rows = Union[Row, Sequence[Row]]


class Commit:
    """Accumulates mutations for one commit.

    Each row is a mapping of column name to value and becomes its own
    ``Mutation``, so rows in one call may use different columns.

    Example::

        commit = Commit()
        commit.insert("Users", {"id": 1, "name": "Charlie"})
        commit.delete("Users", [2, 3])
    """

    def __init__(self) -> None:
        self._mutations: List[Mutation] = []

    @property
    def mutations(self) -> List[Mutation]:
        """The buffered mutations, in the order they were added."""
        return list(self._mutations)

    def __len__(self) -> int:
        return len(self._mutations)

    def extend(self, mutations: Iterable[Mutation]) -> "Commit":
        """Appends already built mutations, or those of another Commit."""
        if isinstance(mutations, Commit):
            mutations = mutations.mutations
        self._mutations.extend(mutations)
        return self

    def insert(self, table: str, rows: Rows) -> "Commit":
        """Inserts rows. The commit fails if a row already exists."""
        return self._add_writes("insert", table, rows)

    def update(self, table: str, rows: Rows) -> "Commit":
        """Updates rows. The commit fails if a row does not exist."""
        return self._add_writes("update", table, rows)

    def upsert(self, table: str, rows: Rows) -> "Commit":
        """Inserts rows or updates the columns of existing rows."""
        return self._add_writes("insert_or_update", table, rows)

    save = upsert

    def replace(self, table: str, rows: Rows) -> "Commit":
        """Inserts rows, deleting existing ones first.

        Columns not given are set to NULL, unlike :meth:`upsert`.
        """
        return self._add_writes("replace", table, rows)

    def delete(self, table: str, keys: Any = None) -> "Commit":
        """Deletes rows by key.

        Args:
            table: Name of the table.
            keys: A key, a list of keys or ``KeyRange`` objects. None or an
                empty list deletes all rows of the table.
        """
        self._mutations.append(
            Mutation(
                delete=Mutation.Delete(table=table, key_set=to_key_set(keys))
            )
        )
        return self

    def _add_writes(self, operation: str, table: str, rows: Rows) -> "Commit":
        if isinstance(rows, Mapping):
            rows = [rows]
        for row in rows:
            if not row:
                continue
            write = Mutation.Write(
                table=table,
                columns=list(row.keys()),
                values=[to_list_value(row.values())],
            )
            self._mutations.append(Mutation(**{operation: write}))
        return self
