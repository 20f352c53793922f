from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum

from typedb.driver import (
    SessionType,
    TransactionType,
    TypeDB,
    TypeDBCredential,
    TypeDBDriverException,
    TypeDBOptions,
)

from sample_app.core.config import Settings
from sample_app.core.errors import AuthError, ConfigError, DriverConnectionError

logger = logging.getLogger(__name__)

_AUTH_FAILURE_MARKERS = ("authenticat", "credential", "password", "unauthori")


class Edition(Enum):
    CORE = "core"
    CLOUD = "cloud"

    @classmethod
    def parse(cls, value: Edition | str) -> Edition:
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ConfigError(f"Invalid TypeDB edition specified: {value!r}") from None


@dataclass(frozen=True)
class Credential:
    username: str
    password: str
    tls_enabled: bool = True

    def to_driver(self) -> TypeDBCredential:
        return TypeDBCredential(self.username, self.password, tls_enabled=self.tls_enabled)


def _is_auth_failure(exc: Exception) -> bool:
    message = str(exc).lower()
    return any(marker in message for marker in _AUTH_FAILURE_MARKERS)


def connect(edition: Edition | str, address: str, credential: Credential | None = None):
    """Open a driver for the given edition.

    Raises `ConfigError` for an unknown edition (or a cloud edition without a
    credential), `AuthError` when the cloud server rejects the credential and
    `DriverConnectionError` for any other failure to open the driver.
    """
    edition = Edition.parse(edition)
    if edition is Edition.CLOUD and credential is None:
        raise ConfigError("TypeDB Cloud requires a credential")

    try:
        if edition is Edition.CORE:
            driver = TypeDB.core_driver(address)
        else:
            driver = TypeDB.cloud_driver(address, credential.to_driver())
    except TypeDBDriverException as exc:
        logger.error("typedb_connect_failed", extra={"edition": edition.value, "address": address})
        if edition is Edition.CLOUD and _is_auth_failure(exc):
            raise AuthError(str(exc)) from exc
        raise DriverConnectionError(str(exc)) from exc

    if not driver.is_open():
        driver.close()
        raise DriverConnectionError(f"Driver for {address} did not open")
    logger.info("typedb_connected", extra={"edition": edition.value, "address": address})
    return driver


def connect_from_settings(settings: Settings):
    credential = Credential(
        username=settings.typedb_username,
        password=settings.typedb_password,
        tls_enabled=settings.typedb_tls_enabled,
    )
    return connect(settings.typedb_edition, settings.typedb_address, credential)


@contextmanager
def typedb_session(driver, database: str, session_type: SessionType) -> Iterator:
    with driver.session(database, session_type) as session:
        yield session


@contextmanager
def typedb_transaction(
    driver,
    database: str,
    session_type: SessionType,
    transaction_type: TransactionType,
    *,
    infer: bool | None = None,
) -> Iterator:
    # Leaving the block closes the transaction (discarding uncommitted writes), then the session.
    options = TypeDBOptions(infer=infer) if infer is not None else None
    with typedb_session(driver, database, session_type) as session:
        if options is None:
            transaction = session.transaction(transaction_type)
        else:
            transaction = session.transaction(transaction_type, options)
        with transaction:
            yield transaction
