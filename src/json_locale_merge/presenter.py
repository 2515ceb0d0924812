"""Terminal diff presenter."""

from __future__ import annotations

import difflib
import json
import sys


def render_diff(original: dict, updated: dict, label: str = "") -> list[str]:
    """Unified diff of two trees rendered as indented JSON."""
    before = json.dumps(original, ensure_ascii=False, indent=2).splitlines()
    after = json.dumps(updated, ensure_ascii=False, indent=2).splitlines()
    return list(
        difflib.unified_diff(before, after, fromfile="current", tofile=label or "translated", lineterm="")
    )


class ConsoleDiffPresenter:
    """
    Prints merge progress as unified diffs and asks before committing.

    Args:
        assume_yes: Confirm without prompting
        max_lines: Diff lines printed per progress update (0 for unlimited)
        stream: Where output is written
    """

    def __init__(self, assume_yes: bool = False, max_lines: int = 200, stream=None) -> None:
        self.assume_yes = assume_yes
        self.max_lines = max_lines
        self.stream = stream or sys.stdout

    def _print(self, text: str = "") -> None:
        print(text, file=self.stream)

    def present(self, original: dict, updated: dict, label: str) -> None:
        lines = render_diff(original, updated, label)
        self._print(f"=== {label} ({len(lines)} diff lines) ===")
        shown = lines if not self.max_lines else lines[: self.max_lines]
        for line in shown:
            self._print(line)
        if len(shown) < len(lines):
            self._print(f"... {len(lines) - len(shown)} more lines")

    def confirm(self, original: dict, updated: dict) -> bool:
        for line in render_diff(original, updated, "final"):
            self._print(line)
        if self.assume_yes:
            return True
        try:
            answer = input("Apply these changes? [y/N] ")
        except EOFError:
            return False
        return answer.strip().lower() in ("y", "yes")
