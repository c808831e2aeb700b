"""
Invocation of the go tool.

Both commands an import needs print a stream of concatenated JSON objects.
The stream is decoded while the process is still writing it, so large module
graphs never have to be held as one string.
"""

import asyncio
import codecs
import json
import os
import subprocess
import sys
import time
from contextlib import aclosing
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

from .cli_config import ToolchainConfig
from .error_handling import ErrorCategory, fail
from .module import ModuleRecord
from .structured_logging import log_command_complete, log_command_start

_json_decoder = json.JSONDecoder()


def find_go_tool(go_binary: Optional[str] = None) -> str:
    """
    Locate the go executable.

    An explicitly configured binary wins. Otherwise GOROOT is preferred over
    PATH: when a build system runs us it sets GOROOT to the SDK it manages,
    and the host SDK must not be picked up in that case.
    """
    if go_binary:
        return go_binary

    path = "go"
    goroot = os.environ.get("GOROOT")
    if goroot:
        path = os.path.join(goroot, "bin", "go")
    if sys.platform == "win32":
        path += ".exe"
    return path


def decode_json_objects(buffer: str) -> Tuple[List[Any], str]:
    """
    Decode every complete JSON value at the start of buffer.

    Returns:
        (values, remainder) where remainder is the undecoded tail
    """
    values = []
    position = 0
    length = len(buffer)
    while True:
        while position < length and buffer[position].isspace():
            position += 1
        if position >= length:
            return values, ""
        try:
            value, position = _json_decoder.raw_decode(buffer, position)
        except json.JSONDecodeError:
            return values, buffer[position:]
        values.append(value)


async def iter_json_stream(
    stream: asyncio.StreamReader, chunk_size: int = 65536
) -> AsyncIterator[Any]:
    """
    Yield JSON values from a stream of concatenated values as they arrive.

    Raises:
        ValueError: If the stream ends in the middle of a value or holds
            something that is not JSON
    """
    utf8 = codecs.getincrementaldecoder("utf-8")()
    buffer = ""
    while True:
        chunk = await stream.read(chunk_size)
        if not chunk:
            break
        buffer += utf8.decode(chunk)
        values, buffer = decode_json_objects(buffer)
        for value in values:
            yield value

    buffer += utf8.decode(b"", final=True)
    if buffer.strip():
        # Surface the decoder's own message for the trailing garbage
        _json_decoder.raw_decode(buffer.lstrip())
        raise ValueError(f"Unexpected trailing data: {buffer.strip()[:80]!r}")


class GoToolchain:
    """Runs the go subcommands a module import needs."""

    def __init__(self, config: Optional[ToolchainConfig] = None):
        self.config = config or ToolchainConfig()
        self.go_tool = find_go_tool(self.config.go_binary)

    def _environment(self) -> Dict[str, str]:
        env = dict(os.environ)
        env.update({str(k): str(v) for k, v in self.config.env.items()})
        return env

    async def list_modules(self, module_dir: Path) -> AsyncIterator[ModuleRecord]:
        """Yield every module in the build list of the module in module_dir,
        the main module and indirect dependencies included."""
        argv = [self.go_tool, "list", "-m", "-json", "all"]
        async with aclosing(
            self._run_json_command(argv, module_dir, ErrorCategory.EXTRACTION)
        ) as records:
            async for record in records:
                yield record

    async def download_sums(
        self, work_dir: Path, identities: List[str]
    ) -> AsyncIterator[ModuleRecord]:
        """Yield download records, carrying sums, for path@version identities.

        Identities the go tool cannot resolve are absent from the output or
        come back with an empty Sum.
        """
        argv = [self.go_tool, "mod", "download", "-json", *identities]
        async with aclosing(
            self._run_json_command(argv, work_dir, ErrorCategory.BACKFILL)
        ) as records:
            async for record in records:
                yield record

    async def _run_json_command(
        self, argv: List[str], cwd: Path, category: ErrorCategory
    ) -> AsyncIterator[ModuleRecord]:
        log_command_start(argv, str(cwd))
        start_time = time.time()

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=subprocess.PIPE,
                stderr=None,
                cwd=str(cwd),
                env=self._environment(),
            )
        except OSError as e:
            raise fail(
                category,
                f"Could not run {' '.join(argv[:3])}",
                "toolchain",
                "_run_json_command",
                cause=e,
                details={"go_tool": argv[0], "cwd": str(cwd)},
                suggestions=[
                    "Install Go or set GOROOT",
                    "Point toolchain.go_binary at the go executable",
                ],
            ) from e

        record_count = 0
        try:
            try:
                async for value in iter_json_stream(
                    process.stdout, self.config.read_chunk_size
                ):
                    record = ModuleRecord.from_json(value)
                    record_count += 1
                    yield record
            except ValueError as e:
                raise fail(
                    category,
                    f"Could not decode output of {' '.join(argv[1:3])}",
                    "toolchain",
                    "_run_json_command",
                    cause=e,
                    details={"records_decoded": record_count},
                ) from e

            returncode = await process.wait()
            log_command_complete(
                argv, returncode, record_count, int((time.time() - start_time) * 1000)
            )
            if returncode != 0:
                raise fail(
                    category,
                    f"{' '.join(argv[1:3])} exited with status {returncode}",
                    "toolchain",
                    "_run_json_command",
                    details={"cwd": str(cwd), "returncode": returncode},
                )
        finally:
            if process.returncode is None:
                process.kill()
                await process.wait()
