"""
Script: check.
Lint the project with ruff, `--fix` applies the safe fixes.
"""

import argparse
from subprocess import run as process_run

python_paths = ["pseudoidc", "scripts"]


def run():
    parser = argparse.ArgumentParser()
    parser.add_argument(
        "--fix",
        help="Fix the issues that can be fixed automatically",
        action=argparse.BooleanOptionalAction,
    )
    args = parser.parse_args()

    command = f"ruff check {' '.join(python_paths)}"
    if args.fix:
        command += " --fix"
    exit_code = process_run(command, shell=True).returncode
    if exit_code == 0:
        exit_code = process_run(
            f"ruff format --check {' '.join(python_paths)}", shell=True
        ).returncode
    exit(exit_code)
