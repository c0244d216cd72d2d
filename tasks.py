# type: ignore
import os

from invoke import task


@task
def venv(ctx):
    """Create .venv and install roombactl with dev extras."""
    ctx.run("uv venv")
    ctx.run('uv pip install -e ".[dev]"')


@task
def lint(ctx):
    """
    Check style and types of the package and tests.
    """
    ctx.run("ruff check src tests", pty=True)
    ctx.run("ruff format --check src tests", pty=True)
    ctx.run("mypy src", pty=True)


@task
def test(ctx):
    """
    Run tests with coverage information.
    """
    ctx.run("pytest --cov=roombactl --cov-report=term-missing", pty=True)


@task
def build_package(ctx):
    """
    Build sdist and wheel.
    """

    ctx.run("rm -rf dist")
    ctx.run("uv build")


@task
def release(ctx):
    """Build package and publish to PyPI using uv."""
    token = os.getenv("PYPI_TOKEN")
    if not token:
        raise ValueError("PYPI_TOKEN environment variable is not set")

    print("Building package...")
    ctx.run("invoke build-package")

    print("Publishing to PyPI...")
    ctx.run(f"uv publish --token {token}")
