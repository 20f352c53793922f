from __future__ import annotations

import argparse
import sys

from typedb.driver import TypeDBDriverException

from sample_app.core.config import get_settings
from sample_app.core.errors import SampleAppError
from sample_app.core.logging import configure_logging
from sample_app.db.typedb.driver import connect_from_settings
from sample_app.db.typedb.provision import setup


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create, replace or verify the sample TypeDB database without running the requests.")
    parser.add_argument("--reset", action="store_true", help="Replace a pre-existing database. Default reuses it.")
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(settings.log_level)
    try:
        driver = connect_from_settings(settings)
    except SampleAppError as exc:
        print(f"TypeDB unavailable: {exc}", file=sys.stderr)
        return 1

    try:
        ready = setup(
            driver,
            settings.database_name,
            "always" if args.reset else "never",
            schema_file=settings.schema_file,
            data_file=settings.data_file,
            expected_user_count=settings.expected_user_count,
        )
    except (SampleAppError, TypeDBDriverException) as exc:
        print(f"Failed to set up the database: {exc}", file=sys.stderr)
        return 1
    finally:
        driver.close()
    print({"database": settings.database_name, "ready": ready})
    return 0 if ready else 1


if __name__ == "__main__":
    sys.exit(main())
