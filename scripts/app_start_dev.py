"""
Script: dev.
Start the app in development mode with auto reload.
"""

from subprocess import run as process_run


def run():
    command = "uvicorn pseudoidc.main:app --reload --port 8000"
    exit(process_run(command, shell=True).returncode)
