from invoke import task, Context

from aio_cadastre._env import IS_CI


@task
def doc(c: Context):
    """Generate documentation"""
    c.run("pdoc -o ./doc aio_cadastre/", echo=True, pty=True)


@task
def fmt(c: Context):
    """Run code formatters"""
    c.run("isort aio_cadastre test", echo=True, pty=True)
    c.run("ruff format aio_cadastre test tasks.py", echo=True, pty=True)


@task
def install(c: Context):
    """Install the package with all extras"""
    c.run('pip install -e ".[test,dev]"', echo=True, pty=True)


@task
def lint(c: Context):
    """Run linter and type checker"""
    c.run("ruff check aio_cadastre/", echo=True, warn=True, pty=True)
    c.run("mypy aio_cadastre/", echo=True, warn=True, pty=True)


@task
def serve(c: Context, static_dir: str = ".", upstream: str = "http://localhost:8080"):
    """Serve a directory, and proxy the feature server"""
    c.run(
        f"python -m aio_cadastre -v serve --static-dir {static_dir} --upstream {upstream}",
        echo=True,
        pty=True,
    )


@task
def test(c: Context):
    """Run all tests in parallel"""
    _pytest(c, cov=not IS_CI, quick=False)


@task
def test_cov(c: Context):
    """Run all tests in parallel, with coverage report"""
    _pytest(c, cov=True, quick=False)


@task
def test_quick(c: Context):
    """Run tests without the slow ones"""
    _pytest(c, cov=not IS_CI, quick=True)


def _pytest(c: Context, *, cov: bool, quick: bool):
    cmd = ["pytest", "-vv"]

    if cov:
        cmd.append("--cov=aio_cadastre/")

    if cov and IS_CI:
        cmd.append("--cov-report=xml")

    if quick:
        cmd.append("--ignore=test/test_large_data.py")
    else:
        cmd.append("--numprocesses=auto")
        cmd.append("--dist=loadgroup")

    c.run(" ".join(cmd), echo=True, pty=True)

    if cov and not IS_CI:
        c.run("rm .coverage*", echo=True, pty=True)
