"""External command execution for the PostgreSQL client tools."""

import asyncio
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from ._utils import logger
from .config import DatabaseConfig
from .exceptions import ExternalCommandError


@dataclass(frozen=True)
class CommandResult:
    returncode: int
    stdout: str
    stderr: str


class ProcessRunner:
    """Run one external command with an environment overlay.

    Commands are always argument lists; nothing is interpolated into a shell.
    Output is captured and only surfaced on failure.
    """

    async def run(
        self,
        args: Sequence[str],
        env: Optional[Dict[str, str]] = None
    ) -> CommandResult:
        """Run command and wait for it to exit.

        Args:
            args: Program followed by its arguments
            env: Variables layered over the current process environment

        Returns:
            CommandResult for a zero exit status

        Raises:
            ExternalCommandError: On non-zero exit or if the program cannot be started
        """
        full_env = {**os.environ, **(env or {})}
        logger.debug(f"Running command: {args[0]}")

        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=full_env,
            )
        except OSError as e:
            raise ExternalCommandError(args, 127, str(e)) from e

        stdout, stderr = await process.communicate()
        result = CommandResult(
            returncode=process.returncode,
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
        )

        if result.returncode != 0:
            raise ExternalCommandError(args, result.returncode, result.stderr)

        return result


class PostgresCommands:
    """Build pg_dump / psql / createdb invocations for the configured server.

    Connection parameters travel as arguments, the password only via PGPASSWORD.
    """

    def __init__(self, config: DatabaseConfig, runner: Optional[ProcessRunner] = None):
        self.config = config
        self.runner = runner or ProcessRunner()

    @property
    def env(self) -> Dict[str, str]:
        return {"PGPASSWORD": self.config.password}

    def _connection_args(self) -> List[str]:
        return [
            "-h", self.config.host,
            "-p", str(self.config.port),
            "-U", self.config.user,
        ]

    def dump_args(self, output_file: Path) -> List[str]:
        return [
            self.config.pg_dump_path,
            *self._connection_args(),
            "-d", self.config.name,
            "-f", str(output_file),
        ]

    def restore_args(self, input_file: Path, database: str) -> List[str]:
        args = [
            self.config.psql_path,
            *self._connection_args(),
            "-d", database,
        ]
        if self.config.restore_stop_on_error:
            args.extend(["-v", "ON_ERROR_STOP=1"])
        args.extend(["-f", str(input_file)])
        return args

    def createdb_args(self, database: str) -> List[str]:
        return [
            self.config.createdb_path,
            *self._connection_args(),
            database,
        ]

    async def dump(self, output_file: Path) -> CommandResult:
        """Dump the configured database to a plain SQL file."""
        return await self.runner.run(self.dump_args(output_file), env=self.env)

    async def restore(self, input_file: Path, database: Optional[str] = None) -> CommandResult:
        """Apply a SQL dump to a database (the configured one by default)."""
        target = database or self.config.name
        return await self.runner.run(self.restore_args(input_file, target), env=self.env)

    async def create_database(self, database: str) -> CommandResult:
        """Create a new, empty database."""
        return await self.runner.run(self.createdb_args(database), env=self.env)
