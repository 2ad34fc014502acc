from __future__ import annotations

import asyncio

from ..ports.txt_record_port import TxtRecordError

DEFAULT_CLI_PATH = "/usr/local/bin/dns-proxy-cli"


class CliTxtRecordWriter:
    """TxtRecordWriter that shells out to ``dns-proxy-cli set-txt``."""

    def __init__(self, *, cli_path: str = DEFAULT_CLI_PATH, timeout_s: float = 30.0) -> None:
        self._cli_path = cli_path
        self._timeout_s = float(timeout_s)

    async def create_txt_record(self, domain: str, key: str, value: str) -> None:
        argv = [self._cli_path, "set-txt", "--domain", domain, "--key", key, "--value", value]
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as exc:
            raise TxtRecordError(f"cannot run {self._cli_path}: {exc}") from exc
        try:
            output, _ = await asyncio.wait_for(proc.communicate(), timeout=self._timeout_s)
        except asyncio.TimeoutError as exc:
            proc.kill()
            await proc.wait()
            raise TxtRecordError(f"{self._cli_path} timed out after {self._timeout_s}s") from exc
        if proc.returncode != 0:
            text = output.decode("utf-8", errors="replace").strip()
            raise TxtRecordError(f"dns-proxy-cli error: exit {proc.returncode}, output: {text}")
