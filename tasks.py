"""Developer tasks.

    invoke test                     # unit + integration (live tests skip themselves)
    invoke test.unit
    invoke test.live                # hits Docker Hub, GHCR, Quay, ...
    invoke test.one tests/unit/test_reference.py --select TestParse
    invoke test.coverage
    invoke lint.check               # flake8 + black --check
    invoke lint.format
"""

from invoke import Collection, task

PACKAGE = "docker_registry_client"
SOURCES = f"{PACKAGE} tests tasks.py"


def _pytest(ctx, args="", env=None, verbose=False):
    flags = " -v" if verbose else ""
    ctx.run(f"uv run pytest{flags} {args}".rstrip(), env=env or {}, pty=True)


@task(help={"verbose": "Verbose pytest output"})
def run_all(ctx, verbose=False):
    """Unit and integration tests."""
    _pytest(ctx, verbose=verbose)


@task(help={"verbose": "Verbose pytest output"})
def unit(ctx, verbose=False):
    """Unit tests, no network."""
    _pytest(ctx, "tests/unit", verbose=verbose)


@task
def live(ctx):
    """Tests against public registries."""
    _pytest(ctx, "-m e2e tests/integration", env={"DRC_LIVE_TESTS": "1"}, verbose=True)


@task(help={"path": "Test module", "select": "Class or test name inside the module"})
def one(ctx, path, select=None):
    """Single test module, optionally narrowed to one class or test."""
    _pytest(ctx, f"{path}::{select}" if select else path, verbose=True)


@task(help={"debug": "Show DEBUG records from the client loggers"})
def coverage(ctx, debug=False):
    """Coverage for the package, as terminal and HTML reports."""
    args = f"--cov={PACKAGE} --cov-report=term-missing --cov-report=html"
    if debug:
        _pytest(ctx, f"{args} --log-cli-level=DEBUG", env={"DRC_DEBUG": "1"})
    else:
        _pytest(ctx, args)


@task
def check(ctx):
    """flake8 and black in check mode."""
    ctx.run(f"uv run flake8 {PACKAGE}")
    ctx.run(f"uv run black --check {SOURCES}")


@task
def reformat(ctx):
    """Reformat with black."""
    ctx.run(f"uv run black {SOURCES}")


test_ns = Collection("test")
test_ns.add_task(run_all, name="all", default=True)
test_ns.add_task(unit)
test_ns.add_task(live)
test_ns.add_task(one)
test_ns.add_task(coverage)

lint_ns = Collection("lint")
lint_ns.add_task(check)
lint_ns.add_task(reformat, name="format")

ns = Collection(test_ns, lint_ns)
