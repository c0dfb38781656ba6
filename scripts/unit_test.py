"""
Script: test.
Run the unit tests with pytest, optionally under coverage.
"""

import argparse
from subprocess import run as process_run


def run():
    parser = argparse.ArgumentParser()
    parser.add_argument(
        "--coverage",
        help="Generate a coverage report",
        action=argparse.BooleanOptionalAction,
    )
    parser.add_argument(
        "--show-capture",
        help="Show stdout/stderr capture output on test failure",
        action=argparse.BooleanOptionalAction,
    )

    args = parser.parse_args()

    if args.coverage:
        command = " && ".join(["coverage run -m pytest", "coverage report"])
    else:
        command = "pytest" + (" -s" if args.show_capture else "")
    exit(process_run(command, shell=True).returncode)
