from __future__ import annotations

import argparse
import logging
import sys

from typedb.driver import TypeDBDriverException

from sample_app.core.config import Settings, get_settings
from sample_app.core.errors import (
    AuthError,
    ConfigError,
    DataError,
    DriverConnectionError,
    SchemaError,
)
from sample_app.core.logging import configure_logging
from sample_app.db.typedb.driver import connect_from_settings
from sample_app.db.typedb.provision import setup
from sample_app.services.demo.sequence import run_demo
from sample_app.services.reporting.console import report_error

logger = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Provision a TypeDB IAM database and run the sample requests.")
    parser.add_argument("--edition", choices=["core", "cloud"], help="TypeDB edition to connect to.")
    parser.add_argument("--address", help="Server address, host:port.")
    parser.add_argument("--database", help="Database name.")
    parser.add_argument(
        "--reset",
        choices=["always", "never", "ask"],
        help="What to do with a pre-existing database. Default asks on the console.",
    )
    return parser.parse_args(argv)


def _apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    overrides = {
        "typedb_edition": args.edition,
        "typedb_address": args.address,
        "database_name": args.database,
        "reset_policy": args.reset,
    }
    return settings.model_copy(update={key: value for key, value in overrides.items() if value is not None})


def main(argv: list[str] | None = None) -> int:
    settings = _apply_overrides(get_settings(), _parse_args(argv))
    configure_logging(settings.log_level)

    try:
        driver = connect_from_settings(settings)
    except (DriverConnectionError, AuthError, ConfigError):
        logger.exception("typedb_connection_unavailable", extra={"address": settings.typedb_address})
        report_error("Failed to connect to TypeDB server. Terminating...")
        return 1

    try:
        try:
            ready = setup(
                driver,
                settings.database_name,
                settings.reset_policy,
                schema_file=settings.schema_file,
                data_file=settings.data_file,
                expected_user_count=settings.expected_user_count,
            )
        except (ConfigError, SchemaError, DataError, TypeDBDriverException):
            logger.exception("database_setup_failed", extra={"database": settings.database_name})
            ready = False
        if not ready:
            report_error("Failed to set up the database. Terminating...")
            return 1

        outcome = run_demo(driver, settings.database_name)
        if outcome.failed:
            logger.warning("demo_finished_with_failures", extra={"failed_steps": len(outcome.failed)})
        return 0
    finally:
        driver.close()


if __name__ == "__main__":
    sys.exit(main())
