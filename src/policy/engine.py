"""Policy engine abstraction.

Engines evaluate the ``data.digger.allow`` rule of a policy document against
a fact set and return the raw rule values. ``resolve_decision`` turns those
values into a decision: granted iff at least one value was produced and every
value is ``True``. Engine failures are errors, never a silent deny.
"""

import asyncio
import json
import logging
import os
import shutil
import tempfile
from abc import ABC, abstractmethod
from typing import Any

from src.errors import MalformedDecisionError, NoDecisionError, PolicyEvaluationError
from src.models.policy import PolicyDecision

logger = logging.getLogger(__name__)

POLICY_PACKAGE = "digger"
DECISION_QUERY = f"data.{POLICY_PACKAGE}.allow"


class PolicyEngine(ABC):
    """Evaluates a policy document against request facts."""

    @abstractmethod
    async def evaluate(self, document: str, facts: dict[str, Any]) -> list[Any]:
        """Return the values produced by the decision rule.

        Raises:
            PolicyEvaluationError: the document could not be prepared or evaluated.
        """
        ...


def resolve_decision(values: list[Any]) -> PolicyDecision:
    """Collapse decision rule values into a single allow/deny."""
    if len(values) == 0:
        raise NoDecisionError("no result found")

    for value in values:
        # bool only; 1 and 0 are not decisions
        if not isinstance(value, bool):
            raise MalformedDecisionError("decision is not a boolean")
        if not value:
            return PolicyDecision(allowed=False, reason="denied by policy")

    return PolicyDecision(allowed=True)


def parse_opa_output(raw: str) -> list[Any]:
    """Extract expression values from ``opa eval --format json`` output.

    Only the first result set is considered. An undefined rule produces no
    ``result`` key, which maps to an empty value list.
    """
    try:
        data = json.loads(raw) if raw.strip() else {}
    except json.JSONDecodeError as exc:
        raise PolicyEvaluationError(f"Invalid JSON from opa: {exc}") from exc

    if data.get("errors"):
        raise PolicyEvaluationError(f"opa evaluation failed: {data['errors']}")

    results = data.get("result") or []
    if not results:
        return []
    return [expr.get("value") for expr in results[0].get("expressions") or []]


class OpaPolicyEngine(PolicyEngine):
    """Evaluate Rego policies with the ``opa`` binary.

    The document is written to a temporary ``.rego`` file and the facts are
    passed on stdin, so nothing sensitive ends up on the command line.
    """

    def __init__(self, opa_path: str = "opa", timeout: float = 30.0) -> None:
        self.opa_path = opa_path
        self.timeout = timeout

    def is_available(self) -> bool:
        return shutil.which(self.opa_path) is not None

    async def evaluate(self, document: str, facts: dict[str, Any]) -> list[Any]:
        fd, policy_path = tempfile.mkstemp(prefix="digger-policy-", suffix=".rego")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(document)
            stdout = await self._run(policy_path, json.dumps(facts))
        finally:
            os.unlink(policy_path)
        return parse_opa_output(stdout)

    async def _run(self, policy_path: str, stdin: str) -> str:
        try:
            proc = await asyncio.create_subprocess_exec(
                self.opa_path, "eval",
                "--format", "json",
                "--stdin-input",
                "--data", policy_path,
                DECISION_QUERY,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise PolicyEvaluationError(f"Cannot start {self.opa_path}: {exc}") from exc

        try:
            out, err = await asyncio.wait_for(
                proc.communicate(stdin.encode()), timeout=self.timeout,
            )
        except asyncio.TimeoutError as exc:
            proc.kill()
            await proc.wait()
            raise PolicyEvaluationError("opa evaluation timed out") from exc

        if proc.returncode != 0:
            # opa reports compile errors on stdout as JSON and usage errors on stderr
            message = err.decode(errors="replace").strip() or out.decode(errors="replace").strip()
            raise PolicyEvaluationError(f"opa exited with {proc.returncode}: {message}")
        return out.decode()
