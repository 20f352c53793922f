from __future__ import annotations

import copy
import itertools
import re
from dataclasses import dataclass, field

import pytest
from typedb.driver import SessionType, TransactionType, TypeDBDriverException

_STR = r'"((?:[^"\\]|\\.)*)"'
_INSERT_USER = re.compile(rf"^insert \$p isa person, has full-name \$fn, has email \$e; \$fn == {_STR}; \$e == {_STR};$")
_USERS_BY_NAME = re.compile(rf"^match \$u isa user, has full-name {_STR}; get;$")
_FILES_BY_PATH = re.compile(rf"^match \$f isa file, has path {_STR}; get;$")
_DELETE_FILE = re.compile(rf"^match \$f isa file, has path {_STR}; delete \$f isa file;$")
_VIEWABLE_NAME = re.compile(rf"\$fn == {_STR};")
_UPDATE_OLD = re.compile(rf"\$fp == {_STR};")
_UPDATE_NEW = re.compile(rf"insert\s+\$f has path {_STR};")
_PROBE = "match $u isa user; get $u; count;"
_FETCH_USERS = "match $u isa user; fetch $u: full-name, email;"


def _unescape(value: str) -> str:
    return re.sub(r"\\(.)", r"\1", value)


@dataclass
class IamState:
    schema_defined: bool = False
    users: list[dict] = field(default_factory=list)
    files: dict[int, str] = field(default_factory=dict)
    # (user full-name, file id, action name)
    permissions: list[tuple[str, int, str]] = field(default_factory=list)


_file_ids = itertools.count(1)


def seed_iam(state: IamState, users: int = 3) -> int:
    people = [
        ("Kevin Morrison", "kevin.morrison@typedb.com"),
        ("Pearle Goodman", "pearle.goodman@typedb.com"),
        ("Masako Holley", "masako.holley@typedb.com"),
    ][:users]
    state.users.extend({"full-name": name, "email": email} for name, email in people)
    ids = {}
    for path in ["iopvu.java", "lzfkn.java", "octopus.py", "README.md"]:
        ids[path] = next(_file_ids)
        state.files[ids[path]] = path
    state.permissions.extend(
        [
            ("Kevin Morrison", ids["iopvu.java"], "modify_file"),
            ("Kevin Morrison", ids["lzfkn.java"], "modify_file"),
            ("Pearle Goodman", ids["octopus.py"], "modify_file"),
            ("Pearle Goodman", ids["README.md"], "view_file"),
            ("Masako Holley", ids["README.md"], "modify_file"),
        ]
    )
    return 1


class FakeValue:
    def __init__(self, value):
        self._value = value

    def as_long(self) -> int:
        return int(self._value)


class FakeAttribute:
    def __init__(self, value):
        self._value = value

    def as_attribute(self):
        return self

    def get_value(self):
        return self._value


class FakeConceptMap:
    def __init__(self, **values):
        self._values = values

    def get(self, variable: str):
        return FakeAttribute(self._values[variable])


class FakePromise:
    def __init__(self, value=None):
        self._value = value

    def resolve(self):
        return self._value


class FakeQueryManager:
    def __init__(self, transaction: FakeTransaction):
        self._tx = transaction

    @property
    def _state(self) -> IamState:
        return self._tx.working

    def _check(self, query: str, *, schema: bool = False, write: bool = False) -> None:
        self._tx.server.queries.append(query)
        for marker in self._tx.server.fail_on:
            if marker in query:
                raise TypeDBDriverException(f"[TQL] server rejected query containing {marker!r}")
        wants = SessionType.SCHEMA if schema else SessionType.DATA
        if self._tx.session.session_type != wants:
            raise TypeDBDriverException("[SSN] query not allowed in this session type")
        if write and self._tx.transaction_type != TransactionType.WRITE:
            raise TypeDBDriverException("[TXN] write query in a read transaction")

    def define(self, query: str) -> FakePromise:
        self._check(query, schema=True, write=True)
        self._state.schema_defined = True
        return FakePromise()

    def insert(self, query: str):
        self._check(query, write=True)
        match = _INSERT_USER.match(query)
        if match is None:
            return [FakeConceptMap() for _ in range(self._tx.server.seed(self._state))]
        name, email = _unescape(match.group(1)), _unescape(match.group(2))
        self._state.users.append({"full-name": name, "email": email})
        return iter([FakeConceptMap(fn=name, e=email)])

    def fetch(self, query: str):
        self._check(query)
        assert query == _FETCH_USERS
        return iter(
            {
                "u": {
                    "type": {"label": "person", "root": "entity"},
                    "full-name": [{"value": user["full-name"], "type": {"label": "full-name"}}],
                    "email": [{"value": user["email"], "type": {"label": "email"}}],
                }
            }
            for user in list(self._state.users)
        )

    def get(self, query: str):
        self._check(query)
        query = query.strip()
        if match := _USERS_BY_NAME.match(query):
            name = _unescape(match.group(1))
            return iter([FakeConceptMap(u=name) for user in self._state.users if user["full-name"] == name])
        if match := _FILES_BY_PATH.match(query):
            path = _unescape(match.group(1))
            return iter([FakeConceptMap(f=fid) for fid, p in self._state.files.items() if p == path])
        if 'has name "view_file"' in query:
            name = _unescape(_VIEWABLE_NAME.search(query).group(1))
            actions = {"view_file", "modify_file"} if self._tx.infer else {"view_file"}
            paths = {
                self._state.files[fid]
                for who, fid, action in self._state.permissions
                if who == name and action in actions and fid in self._state.files
            }
            return iter([FakeConceptMap(fp=path) for path in sorted(paths)])
        raise AssertionError(f"unexpected get query: {query}")

    def get_aggregate(self, query: str) -> FakePromise:
        self._check(query)
        assert query == _PROBE
        return FakePromise(FakeValue(len(self._state.users)))

    def update(self, query: str):
        self._check(query, write=True)
        old = _unescape(_UPDATE_OLD.search(query).group(1))
        new = _unescape(_UPDATE_NEW.search(query).group(1))
        changed = [fid for fid, path in self._state.files.items() if path == old]
        for fid in changed:
            self._state.files[fid] = new
        return iter([FakeConceptMap(f=fid) for fid in changed])

    def delete(self, query: str) -> FakePromise:
        self._check(query, write=True)
        path = _unescape(_DELETE_FILE.match(query).group(1))
        for fid in [fid for fid, p in self._state.files.items() if p == path]:
            del self._state.files[fid]
        return FakePromise()


class FakeTransaction:
    def __init__(self, session: FakeSession, transaction_type, options=None):
        self.session = session
        self.server = session.server
        self.transaction_type = transaction_type
        self.infer = bool(options.infer) if options is not None and options.infer is not None else False
        self.working = copy.deepcopy(session.database_state)
        self.committed = False
        self.open = True
        self.query = FakeQueryManager(self)
        self.server.transactions.append(self)

    def commit(self) -> None:
        if self.transaction_type != TransactionType.WRITE:
            raise TypeDBDriverException("[TXN] read transactions cannot be committed")
        self.session.server.databases[self.session.database] = self.working
        self.committed = True
        self.close()

    def close(self) -> None:
        self.open = False

    def is_open(self) -> bool:
        return self.open

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class FakeSession:
    def __init__(self, server: FakeTypeDB, database: str, session_type):
        self.server = server
        self.database = database
        self.session_type = session_type
        self.open = True

    @property
    def database_state(self) -> IamState:
        return self.server.databases[self.database]

    def transaction(self, transaction_type, options=None) -> FakeTransaction:
        if not self.open:
            raise TypeDBDriverException("[SSN] session is closed")
        return FakeTransaction(self, transaction_type, options)

    def close(self) -> None:
        self.open = False

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class FakeDatabase:
    def __init__(self, server: FakeTypeDB, name: str):
        self.server = server
        self.name = name

    def delete(self) -> None:
        del self.server.databases[self.name]
        self.server.deleted.append(self.name)


class FakeDatabaseManager:
    def __init__(self, server: FakeTypeDB):
        self._server = server

    def contains(self, name: str) -> bool:
        return name in self._server.databases

    def create(self, name: str) -> None:
        if name in self._server.databases:
            raise TypeDBDriverException(f"[DBS] database {name} already exists")
        self._server.databases[name] = IamState()
        self._server.created.append(name)

    def get(self, name: str) -> FakeDatabase:
        if name not in self._server.databases:
            raise TypeDBDriverException(f"[DBS] database {name} does not exist")
        return FakeDatabase(self._server, name)


class FakeTypeDB:
    """In-memory stand-in for a TypeDB driver holding IAM-shaped databases.

    Writes are staged per transaction and become visible only on commit.
    """

    def __init__(self):
        self.databases: dict[str, IamState] = {}
        self.databases_manager = FakeDatabaseManager(self)
        self.sessions: list[FakeSession] = []
        self.transactions: list[FakeTransaction] = []
        self.queries: list[str] = []
        self.created: list[str] = []
        self.deleted: list[str] = []
        self.fail_on: list[str] = []
        self.seed = seed_iam
        self.closed = False

    def session(self, database: str, session_type, options=None) -> FakeSession:
        if database not in self.databases:
            raise TypeDBDriverException(f"[DBS] database {database} does not exist")
        session = FakeSession(self, database, session_type)
        self.sessions.append(session)
        return session

    def is_open(self) -> bool:
        return not self.closed

    def close(self) -> None:
        self.closed = True

    def leaked(self) -> list:
        return [item for item in [*self.sessions, *self.transactions] if item.open]

    def empty_database(self, name: str = "sample_app_db") -> IamState:
        self.databases[name] = IamState()
        return self.databases[name]

    def seeded_database(self, name: str = "sample_app_db", users: int = 3) -> IamState:
        state = IamState(schema_defined=True)
        seed_iam(state, users=users)
        self.databases[name] = state
        return state


class FakeDriver:
    """Exposes `FakeTypeDB` with the driver's attribute names."""

    def __init__(self, server: FakeTypeDB):
        self.server = server
        self.databases = server.databases_manager

    def session(self, database: str, session_type, options=None) -> FakeSession:
        return self.server.session(database, session_type, options)

    def is_open(self) -> bool:
        return self.server.is_open()

    def close(self) -> None:
        self.server.close()


@pytest.fixture
def typedb() -> FakeTypeDB:
    return FakeTypeDB()


@pytest.fixture
def driver(typedb: FakeTypeDB) -> FakeDriver:
    return FakeDriver(typedb)


@pytest.fixture
def iam_files(tmp_path):
    schema_file = tmp_path / "iam-schema.tql"
    data_file = tmp_path / "iam-data-single-query.tql"
    schema_file.write_text("define\nperson sub entity;\n", encoding="utf-8")
    data_file.write_text("insert\n$kevin isa person;\n", encoding="utf-8")
    return {"schema_file": schema_file, "data_file": data_file}
