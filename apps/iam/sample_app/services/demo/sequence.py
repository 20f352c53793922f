from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from sample_app.core.errors import QueryError
from sample_app.db.typedb import queries
from sample_app.services.reporting.console import report

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DemoSamples:
    new_user_name: str = "Jack Keeper"
    new_user_email: str = "jk@typedb.com"
    queried_user_name: str = "Kevin Morrison"
    old_path: str = "lzfkn.java"
    new_path: str = "lzfkn2.java"
    deleted_path: str = "lzfkn2.java"


@dataclass
class StepOutcome:
    title: str
    result: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class DemoReport:
    steps: list[StepOutcome] = field(default_factory=list)

    @property
    def failed(self) -> list[StepOutcome]:
        return [step for step in self.steps if not step.ok]


def _build_steps(driver, db_name: str, samples: DemoSamples) -> list[tuple[str, Callable[[], Any]]]:
    return [
        (
            "Fetch all users as JSON objects with full names and emails",
            lambda: queries.fetch_all_users(driver, db_name),
        ),
        (
            f"Add a new user with the full-name {samples.new_user_name} and email {samples.new_user_email}",
            lambda: queries.insert_new_user(driver, db_name, samples.new_user_name, samples.new_user_email),
        ),
        (
            f"Find all files that the user {samples.queried_user_name} has access to view (no inference)",
            lambda: queries.get_files_by_user(driver, db_name, samples.queried_user_name, inference=False),
        ),
        (
            f"Find all files that the user {samples.queried_user_name} has access to view (with inference)",
            lambda: queries.get_files_by_user(driver, db_name, samples.queried_user_name, inference=True),
        ),
        (
            f"Update the path of a file from {samples.old_path} to {samples.new_path}",
            lambda: queries.update_file_path(driver, db_name, samples.old_path, samples.new_path),
        ),
        (
            f"Delete the file with path {samples.deleted_path}",
            lambda: queries.delete_file(driver, db_name, samples.deleted_path),
        ),
    ]


def run_demo(driver, db_name: str, samples: DemoSamples | None = None) -> DemoReport:
    """Run the six sample requests in order; each commits or discards on its own."""
    steps = _build_steps(driver, db_name, samples or DemoSamples())
    outcome = DemoReport()
    for index, (title, action) in enumerate(steps, start=1):
        report(f"\nRequest {index} of {len(steps)}: {title}")
        try:
            outcome.steps.append(StepOutcome(title=title, result=action()))
        except (QueryError, ValueError) as exc:
            logger.exception("demo_step_failed", extra={"step": index})
            report(f"Request {index} failed: {exc}")
            outcome.steps.append(StepOutcome(title=title, error=str(exc)))
    return outcome
