"""
Runs external resolver CLIs: argv in, stdout text out.

A run fails in exactly one of three ways (binary missing, timeout, non-zero
exit); an empty result is the caller's concern. Timed-out processes are killed
and reaped before the error is raised.
"""
from __future__ import annotations
import asyncio
import contextlib
import logging
import os
import signal
from dataclasses import dataclass

from ..core.errors import BinaryMissing, ResolverError, SubprocessNonZero, SubprocessTimeout

log = logging.getLogger("iptvweb.providers.cli")

PROBE_TIMEOUT = 3.0


@dataclass
class CommandResult:
    stdout: str
    stderr: str


def _kill_group(proc):
    # resolvers are shell scripts; their curl/ffmpeg children share the group
    with contextlib.suppress(ProcessLookupError, PermissionError):
        os.killpg(proc.pid, signal.SIGKILL)
    with contextlib.suppress(ProcessLookupError):
        proc.kill()


async def run(binary: str, args: list[str], env: dict | None = None, timeout: float = 60.0) -> CommandResult:
    merged_env = {**os.environ, **(env or {})}
    try:
        proc = await asyncio.create_subprocess_exec(
            binary, *args,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=merged_env,
            start_new_session=True,
        )
    except FileNotFoundError:
        raise BinaryMissing(f"'{binary}' is not installed", binary)
    except PermissionError:
        raise BinaryMissing(f"'{binary}' is not executable", binary)

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        _kill_group(proc)
        with contextlib.suppress(asyncio.TimeoutError, ProcessLookupError):
            await asyncio.wait_for(proc.communicate(), timeout=1.0)
        raise SubprocessTimeout(f"'{binary}' timed out after {timeout:g}s", binary)
    except asyncio.CancelledError:
        _kill_group(proc)
        raise

    out = stdout.decode(errors="replace")
    err = stderr.decode(errors="replace")
    if proc.returncode != 0:
        log.debug("[%s] exit=%s stderr=%s", binary, proc.returncode, err.strip()[:300])
        raise SubprocessNonZero(
            f"'{binary}' exited with code {proc.returncode}", binary,
            returncode=proc.returncode, stderr=err,
        )
    return CommandResult(stdout=out, stderr=err)


async def command_exists(name: str) -> bool:
    """Look `name` up on PATH with `command -v`; any failure counts as absent."""
    try:
        result = await run("sh", ["-c", 'command -v "$1"', "sh", name], timeout=PROBE_TIMEOUT)
    except ResolverError:
        return False
    except Exception as e:
        log.debug("probe for %s failed: %s", name, e)
        return False
    return bool(result.stdout.strip())
