"""Terraform / Terragrunt executor.

Runs ``init``, selects the workspace (Terraform only), then ``plan`` or
``apply`` inside the project directory. Non-zero exits raise ExecutionError
carrying the combined output.
"""

import asyncio
import logging
import os
from pathlib import Path

from src.errors import ExecutionError
from src.executor.base import ExecutionContext, ExecutionResult
from src.models.project import DEFAULT_WORKSPACE

logger = logging.getLogger(__name__)


class TerraformExecutor:
    """Execute IaC commands with the terraform or terragrunt binaries."""

    def __init__(
        self,
        working_dir: str | Path = ".",
        *,
        timeout: float = 3600.0,
        terraform_bin: str = "terraform",
        terragrunt_bin: str = "terragrunt",
    ) -> None:
        self.working_dir = Path(working_dir)
        self.timeout = timeout
        self.terraform_bin = terraform_bin
        self.terragrunt_bin = terragrunt_bin

    def _binary(self, ctx: ExecutionContext) -> str:
        return self.terragrunt_bin if ctx.project.terragrunt else self.terraform_bin

    def _project_dir(self, ctx: ExecutionContext) -> Path:
        return self.working_dir / ctx.project.project_dir

    async def _exec(self, args: list[str], cwd: Path) -> str:
        logger.info("Running %s in %s", " ".join(args), cwd)
        env = {**os.environ, "TF_IN_AUTOMATION": "true", "TF_INPUT": "0"}
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                cwd=str(cwd),
                env=env,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as exc:
            raise ExecutionError(f"Cannot start {args[0]}: {exc}") from exc

        try:
            out, _ = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            proc.kill()
            await proc.wait()
            raise ExecutionError(f"{' '.join(args)} timed out after {self.timeout}s") from exc

        output = out.decode(errors="replace")
        if proc.returncode != 0:
            raise ExecutionError(
                f"{' '.join(args)} exited with {proc.returncode}", output=output,
            )
        return output

    async def _prepare(self, ctx: ExecutionContext) -> None:
        binary = self._binary(ctx)
        cwd = self._project_dir(ctx)
        await self._exec([binary, "init", "-input=false", "-no-color"], cwd)
        workspace = ctx.project.project_workspace
        if not ctx.project.terragrunt and workspace != DEFAULT_WORKSPACE:
            await self._exec(
                [binary, "workspace", "select", "-or-create", workspace], cwd,
            )

    async def plan(self, ctx: ExecutionContext) -> ExecutionResult:
        await self._prepare(ctx)
        output = await self._exec(
            [self._binary(ctx), "plan", "-input=false", "-no-color"],
            self._project_dir(ctx),
        )
        return ExecutionResult(success=True, output=output)

    async def apply(self, ctx: ExecutionContext) -> ExecutionResult:
        await self._prepare(ctx)
        output = await self._exec(
            [self._binary(ctx), "apply", "-input=false", "-no-color", "-auto-approve"],
            self._project_dir(ctx),
        )
        return ExecutionResult(success=True, output=output)
