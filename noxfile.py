"""Nox sessions for Transcript Viewer development tasks."""

from __future__ import annotations

import sys

import nox

PACKAGE = "transcript_viewer"
SOURCE_DIR = f"src/{PACKAGE}"
COVERAGE_FLOOR = "80"
CI_ENV = {"TVIEW_CI": "1"}

nox.options.error_on_missing_interpreters = False
nox.options.sessions = ["lint", "typecheck", "tests"]


@nox.session
def lint(session: nox.Session) -> None:
    """Run ruff linting and formatting checks."""
    session.install("ruff")
    session.run("ruff", "check", ".")
    session.run("ruff", "format", "--check", ".")


@nox.session(name="lint-fix")
def lint_fix(session: nox.Session) -> None:
    """Apply ruff fixes and formatting."""
    session.install("ruff")
    session.run("ruff", "check", "--fix", ".")
    session.run("ruff", "format", ".")


@nox.session
def tests(session: nox.Session) -> None:
    """Run pytest with VLC-dependent tests skipped."""
    session.install("-e", ".[dev]")
    session.run("pytest", "-q", *session.posargs, env=CI_ENV)


@nox.session
def typecheck(session: nox.Session) -> None:
    """Run mypy against the package sources."""
    session.install("-e", ".[dev]")
    session.run("mypy", SOURCE_DIR)


@nox.session
def build(session: nox.Session) -> None:
    """Build sdist and wheel artifacts."""
    session.install("build")
    session.run("python", "-m", "build")


@nox.session
def coverage(session: nox.Session) -> None:
    """Run the test suite under coverage and enforce the floor."""
    session.install("-e", ".[dev]")
    session.run("coverage", "run", f"--source={PACKAGE}", "-m", "pytest", env=CI_ENV)
    session.run("coverage", "report", f"--fail-under={COVERAGE_FLOOR}", "-m")


# --------------------------------------------------
#        Active-environment variants (no venv)
# --------------------------------------------------


def _run_module(session: nox.Session, *args: str) -> None:
    session.run("python", "-m", *args, external=True)


@nox.session(name="lint-dev", venv_backend="none")
def lint_dev(session: nox.Session) -> None:
    _run_module(session, "ruff", "check", ".")
    _run_module(session, "ruff", "format", "--check", ".")


@nox.session(name="lint-fix-dev", venv_backend="none")
def lint_fix_dev(session: nox.Session) -> None:
    _run_module(session, "ruff", "check", "--fix", ".")
    _run_module(session, "ruff", "format", ".")


@nox.session(name="tests-dev", venv_backend="none")
def tests_dev(session: nox.Session) -> None:
    _run_module(session, "pytest", "-q", *session.posargs)


@nox.session(name="typecheck-dev", venv_backend="none")
def typecheck_dev(session: nox.Session) -> None:
    _run_module(session, "mypy", SOURCE_DIR)


@nox.session(name="coverage-dev", venv_backend="none")
def coverage_dev(session: nox.Session) -> None:
    _run_module(session, "coverage", "run", f"--source={PACKAGE}", "-m", "pytest")
    _run_module(session, "coverage", "report", f"--fail-under={COVERAGE_FLOOR}", "-m")


@nox.session(name="local-dev", venv_backend="none")
def local_dev(session: nox.Session) -> None:
    """Run the fast local checks in sequence."""
    session.run(
        sys.executable,
        "-m",
        "nox",
        "-s",
        "lint-fix-dev",
        "lint-dev",
        "typecheck-dev",
        "tests-dev",
        external=True,
    )
