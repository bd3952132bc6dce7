#!/usr/bin/env python3
"""Run formatters, linters and the test suite in one go.

Steps, in order: black (check), isort (check), ruff, pylint, pytest. Output of
every step is collected and failing steps are repeated at the end.
"""

from pathlib import Path
import subprocess
import sys

ROOT = Path(__file__).parent

COMMANDS = [
    (["python", "-m", "black", ".", "--check"], "black"),
    (["python", "-m", "isort", ".", "--check-only"], "isort"),
    (["python", "-m", "ruff", "check", "."], "ruff"),
    (["python", "-m", "pylint", "photag"], "pylint"),
    (["python", "-m", "pytest", "-q"], "pytest"),
]


def run_command(cmd: list[str], description: str) -> tuple[bool, str]:
    """Run `cmd` from the repo root and return (success, combined output)."""
    print(f"\n{'=' * 60}\n{description}: {' '.join(cmd)}\n{'=' * 60}")
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, check=False, cwd=ROOT)
    except OSError as e:
        print(f"could not start: {e}")
        return False, str(e)
    output = result.stdout + result.stderr
    print("ok" if result.returncode == 0 else "FAILED")
    if output.strip():
        print(output)
    return result.returncode == 0, output


def main() -> None:
    results = [(desc, *run_command(cmd, desc)) for cmd, desc in COMMANDS]

    print(f"\n{'=' * 60}\nSummary\n{'=' * 60}")
    for description, success, _ in results:
        print(f"{description}: {'passed' if success else 'FAILED'}")

    failed = [(d, out) for d, ok, out in results if not ok]
    for description, output in failed:
        if output.strip():
            print(f"\n--- {description} ---\n{output}")
    sys.exit(1 if failed else 0)


if __name__ == "__main__":
    main()
