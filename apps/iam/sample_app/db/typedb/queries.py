from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from typedb.driver import SessionType, TransactionType, TypeDBDriverException

from sample_app.core.errors import PreconditionError, QueryError
from sample_app.db.typedb.driver import typedb_transaction
from sample_app.services.reporting.console import print_json, report

logger = logging.getLogger(__name__)

FETCH_USERS_QUERY = "match $u isa user; fetch $u: full-name, email;"


def typeql_string(value: str) -> str:
    """Quote `value` as a TypeQL string literal."""
    escaped = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def insert_user_query(name: str, email: str) -> str:
    return (
        "insert $p isa person, has full-name $fn, has email $e; "
        f"$fn == {typeql_string(name)}; $e == {typeql_string(email)};"
    )


def users_by_name_query(name: str) -> str:
    return f"match $u isa user, has full-name {typeql_string(name)}; get;"


def viewable_files_query(name: str) -> str:
    return f"""
        match
        $fn == {typeql_string(name)};
        $u isa user, has full-name $fn;
        $p($u, $pa) isa permission;
        $o isa object, has path $fp;
        $pa($o, $va) isa access;
        $va isa action, has name "view_file";
        get $fp; sort $fp asc;
    """


def update_path_query(old_path: str, new_path: str) -> str:
    return f"""
        match
        $f isa file, has path $fp;
        $fp == {typeql_string(old_path)};
        delete
        $f has $fp;
        insert
        $f has path {typeql_string(new_path)};
    """


def files_by_path_query(path: str) -> str:
    return f"match $f isa file, has path {typeql_string(path)}; get;"


def delete_file_query(path: str) -> str:
    return f"match $f isa file, has path {typeql_string(path)}; delete $f isa file;"


@contextmanager
def _query_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except TypeDBDriverException as exc:
        logger.error("typedb_query_failed", extra={"operation": operation})
        raise QueryError(f"{operation} failed: {exc}") from exc


def _require_single(matched: int, what: str) -> None:
    if matched != 1:
        raise PreconditionError(f"Expected exactly one {what}, matched {matched}", matched=matched)


def _attribute_value(concept_map, variable: str) -> Any:
    return concept_map.get(variable).as_attribute().get_value()


def fetch_all_users(driver, db_name: str) -> list[dict]:
    users: list[dict] = []
    with _query_errors("fetch_all_users"):
        with typedb_transaction(driver, db_name, SessionType.DATA, TransactionType.READ) as tx:
            for index, user in enumerate(tx.query.fetch(FETCH_USERS_QUERY), start=1):
                users.append(user)
                report(f"User #{index}")
                print_json(user)
                report()
    return users


def insert_new_user(driver, db_name: str, name: str, email: str) -> list:
    """Insert a person and return the concept maps produced by the insert."""
    if not name or not email:
        raise ValueError("name and email must be non-empty")
    query = insert_user_query(name, email)
    with _query_errors("insert_new_user"):
        with typedb_transaction(driver, db_name, SessionType.DATA, TransactionType.WRITE) as tx:
            inserted = list(tx.query.insert(query))
            for concept_map in inserted:
                report(
                    f"Added new user. Name: {_attribute_value(concept_map, 'fn')}, "
                    f"E-mail: {_attribute_value(concept_map, 'e')}"
                )
            tx.commit()
    logger.info("user_inserted", extra={"database": db_name, "rows": len(inserted)})
    return inserted


def get_files_by_user(driver, db_name: str, name: str, inference: bool = False) -> list[str]:
    """Paths the named user may view, sorted ascending.

    Both the user lookup and the file query run in one read transaction. With
    `inference` the server may return permissions derived by rules.
    """
    files: list[str] = []
    try:
        with _query_errors("get_files_by_user"):
            with typedb_transaction(
                driver, db_name, SessionType.DATA, TransactionType.READ, infer=inference
            ) as tx:
                _require_single(len(list(tx.query.get(users_by_name_query(name)))), "user")
                for index, concept_map in enumerate(tx.query.get(viewable_files_query(name)), start=1):
                    path = _attribute_value(concept_map, "fp")
                    files.append(path)
                    report(f"File #{index}: {path}")
    except PreconditionError as exc:
        if exc.matched > 1:
            report("Error: Found more than one user with that name.")
        else:
            report("Error: No users found with that name.")
        return []
    if not files:
        report("No files found. Try enabling inference.")
    return files


def update_file_path(driver, db_name: str, old_path: str, new_path: str) -> int:
    with _query_errors("update_file_path"):
        with typedb_transaction(driver, db_name, SessionType.DATA, TransactionType.WRITE) as tx:
            count = len(list(tx.query.update(update_path_query(old_path, new_path))))
            if count == 0:
                report("No matched paths: nothing to update.")
                return 0
            tx.commit()
    report(f"Total number of paths updated: {count}.")
    return count


def delete_file(driver, db_name: str, path: str) -> bool:
    try:
        with _query_errors("delete_file"):
            with typedb_transaction(driver, db_name, SessionType.DATA, TransactionType.WRITE) as tx:
                _require_single(len(list(tx.query.get(files_by_path_query(path)))), "file")
                tx.query.delete(delete_file_query(path)).resolve()
                tx.commit()
    except PreconditionError as exc:
        if exc.matched > 1:
            report("Matched more than one file with the same path.")
        else:
            report("No files matched in the database.")
        report("No files were deleted.")
        return False
    report("The file has been deleted.")
    return True
