from __future__ import annotations

import sys
from pathlib import Path

import pytest

from julials.lsp.errors import CommandError, ServerStartError
from julials.lsp.server import run_command, spawn_server, subprocess_env, which


@pytest.mark.anyio
async def test_run_command_returns_stdout(tmp_path: Path) -> None:
    out = await run_command([sys.executable, "-c", "import os; print(os.getcwd())"], cwd=str(tmp_path))

    assert Path(out.strip()).resolve() == tmp_path.resolve()


@pytest.mark.anyio
async def test_run_command_layers_env() -> None:
    out = await run_command(
        [sys.executable, "-c", "import os; print(os.environ['JULIALS_PROBE'])"],
        env={"JULIALS_PROBE": "layered"},
    )

    assert out == "layered\n"


@pytest.mark.anyio
async def test_non_zero_exit_raises_with_stderr() -> None:
    script = "import sys; sys.stderr.write('ERROR: LoadError\\n'); sys.exit(3)"

    with pytest.raises(CommandError) as info:
        await run_command([sys.executable, "-c", script])

    assert info.value.returncode == 3
    assert "LoadError" in info.value.stderr
    assert "exited with status 3" in str(info.value)


@pytest.mark.anyio
async def test_missing_executable_raises_command_error(tmp_path: Path) -> None:
    with pytest.raises(CommandError) as info:
        await run_command([str(tmp_path / "no-such-julia"), "-e", "1"])

    assert info.value.returncode is None
    assert "could not be launched" in str(info.value)


def test_spawn_missing_executable(tmp_path: Path) -> None:
    with pytest.raises(ServerStartError):
        spawn_server([str(tmp_path / "JuliaLS")], env={})


def test_spawn_pipes_stdio() -> None:
    handle = spawn_server([sys.executable, "-c", "import sys; sys.stdout.write(sys.stdin.read())"], env=subprocess_env())
    try:
        out, _ = handle.process.communicate(b"ping", timeout=30)
    finally:
        if handle.running():
            handle.process.kill()

    assert out == b"ping"
    assert handle.command[0] == sys.executable
    assert handle.running() is False


def test_which_miss_is_none(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("PATH", str(tmp_path))

    assert which("julia") is None


def test_subprocess_env_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TMPDIR", "/tmp")

    env = subprocess_env({"TMPDIR": "/host/scratch"})

    assert env["TMPDIR"] == "/host/scratch"
    assert env["PATH"]


@pytest.mark.anyio
async def test_run_command_decodes_utf8_and_replaces_bad_bytes() -> None:
    out = await run_command([
        sys.executable,
        "-c",
        "import sys; sys.stdout.buffer.write('\\u2192 ok '.encode('utf-8') + b'\\xff\\n')",
    ])

    assert out == "\u2192 ok \ufffd\n"
