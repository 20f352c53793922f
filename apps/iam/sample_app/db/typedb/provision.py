from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum
from pathlib import Path

from typedb.driver import SessionType, TransactionType, TypeDBDriverException

from sample_app.core.errors import ConfigError, DataError, ProbeMismatch, SchemaError
from sample_app.db.typedb.driver import typedb_transaction
from sample_app.services.reporting.console import ask_yes_no, report

logger = logging.getLogger(__name__)

DEFAULT_SCHEMA_FILE = "iam-schema.tql"
DEFAULT_DATA_FILE = "iam-data-single-query.tql"
DEFAULT_EXPECTED_USER_COUNT = 3
PROBE_QUERY = "match $u isa user; get $u; count;"
REPLACE_PROMPT = "Found a pre-existing database. Do you want to replace it? (Y/N)"


class ResetPolicy(Enum):
    ALWAYS_REPLACE = "always"
    NEVER_REPLACE = "never"
    ASK_USER = "ask"

    @classmethod
    def parse(cls, value: ResetPolicy | str) -> ResetPolicy:
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ConfigError(f"Unknown reset policy: {value!r}") from None


def _read(path: str | Path) -> str:
    try:
        return Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read input file {path}: {exc}") from exc


def load_schema(driver, db_name: str, schema_file: str | Path = DEFAULT_SCHEMA_FILE) -> None:
    define_query = _read(schema_file)
    try:
        with typedb_transaction(driver, db_name, SessionType.SCHEMA, TransactionType.WRITE) as tx:
            report("Defining schema...")
            tx.query.define(define_query).resolve()
            tx.commit()
    except TypeDBDriverException as exc:
        logger.error("schema_define_failed", extra={"database": db_name, "schema_file": str(schema_file)})
        raise SchemaError(str(exc)) from exc
    report("OK")


def load_dataset(driver, db_name: str, data_file: str | Path = DEFAULT_DATA_FILE) -> int:
    insert_query = _read(data_file)
    try:
        with typedb_transaction(driver, db_name, SessionType.DATA, TransactionType.WRITE) as tx:
            report("Loading data...")
            inserted = len(list(tx.query.insert(insert_query)))
            tx.commit()
    except TypeDBDriverException as exc:
        logger.error("dataset_insert_failed", extra={"database": db_name, "data_file": str(data_file)})
        raise DataError(str(exc)) from exc
    report("OK")
    logger.info("dataset_loaded", extra={"database": db_name, "inserted_rows": inserted})
    return inserted


def _count_users(tx) -> int | None:
    value = tx.query.get_aggregate(PROBE_QUERY).resolve()
    if value is None:
        return None
    return value.as_long()


def verify_user_count(actual: int | None, expected: int) -> None:
    if actual != expected:
        raise ProbeMismatch(actual, expected)


def probe_database(driver, db_name: str, expected_user_count: int = DEFAULT_EXPECTED_USER_COUNT) -> bool:
    with typedb_transaction(driver, db_name, SessionType.DATA, TransactionType.READ) as tx:
        report("Testing the database...")
        actual = _count_users(tx)
    try:
        verify_user_count(actual, expected_user_count)
    except ProbeMismatch as exc:
        logger.warning("database_probe_mismatch", extra={"database": db_name, "actual": actual, "expected": expected_user_count})
        report(str(exc))
        return False
    report("Passed")
    return True


def create_database(
    driver,
    db_name: str,
    *,
    schema_file: str | Path = DEFAULT_SCHEMA_FILE,
    data_file: str | Path = DEFAULT_DATA_FILE,
    expected_user_count: int = DEFAULT_EXPECTED_USER_COUNT,
) -> bool:
    report("Creating a new database...")
    driver.databases.create(db_name)
    report("OK")
    logger.info("database_created", extra={"database": db_name})
    load_schema(driver, db_name, schema_file)
    load_dataset(driver, db_name, data_file)
    return probe_database(driver, db_name, expected_user_count)


def replace_database(driver, db_name: str, **create_kwargs) -> bool:
    report("Deleting an existing database...")
    driver.databases.get(db_name).delete()
    report("OK")
    logger.info("database_deleted", extra={"database": db_name})
    return create_database(driver, db_name, **create_kwargs)


def setup(
    driver,
    db_name: str,
    reset_policy: ResetPolicy | str = ResetPolicy.ASK_USER,
    *,
    schema_file: str | Path = DEFAULT_SCHEMA_FILE,
    data_file: str | Path = DEFAULT_DATA_FILE,
    expected_user_count: int = DEFAULT_EXPECTED_USER_COUNT,
    confirm: Callable[[str], bool] = ask_yes_no,
) -> bool:
    """Bring `db_name` into a known-good state and report whether the probe passed.

    A missing database is created, schema-loaded and seeded. An existing one is
    replaced when the policy says so (or the user confirms under ASK_USER),
    otherwise it is reused as is. Either way the result is the probe outcome.
    Provisioning errors propagate.
    """
    reset_policy = ResetPolicy.parse(reset_policy)
    create_kwargs = {
        "schema_file": schema_file,
        "data_file": data_file,
        "expected_user_count": expected_user_count,
    }
    report(f"Setting up the database: {db_name}")

    if not driver.databases.contains(db_name):
        return create_database(driver, db_name, **create_kwargs)

    if reset_policy is ResetPolicy.ALWAYS_REPLACE or (
        reset_policy is ResetPolicy.ASK_USER and confirm(REPLACE_PROMPT)
    ):
        return replace_database(driver, db_name, **create_kwargs)

    report("Reusing an existing database.")
    logger.info("database_reused", extra={"database": db_name})
    return probe_database(driver, db_name, expected_user_count)
