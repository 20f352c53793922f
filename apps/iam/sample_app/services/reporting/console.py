from __future__ import annotations

import sys
from collections.abc import Callable
from typing import Any


def report(message: str = "") -> None:
    print(message, file=sys.stdout)


def report_error(message: str) -> None:
    print(message, file=sys.stderr)


def ask_yes_no(prompt: str, input_func: Callable[[str], str] = input) -> bool:
    report(prompt)
    try:
        answer = input_func("")
    except EOFError:
        return False
    return answer[:1].lower() == "y"


def print_json(document: Any, emit: Callable[[str], None] = report) -> None:
    """Print a fetch result document one scalar or key per line."""
    if isinstance(document, str):
        emit(f"'{document}'")
    elif isinstance(document, dict):
        for key, value in document.items():
            emit(f"{key}:")
            print_json(value, emit)
    elif isinstance(document, (list, tuple)):
        for item in document:
            print_json(item, emit)
    elif document is not None:
        emit(str(document))
