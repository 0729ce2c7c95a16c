"""Analysis passes — independent producers of findings over the same diff."""

from __future__ import annotations

import asyncio
import json
from abc import ABC, abstractmethod
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pinpoint.core.constants import severity_from_label
from pinpoint.core.exceptions import PipelineError
from pinpoint.core.logging import get_logger
from pinpoint.core.models import Comment, FileDiff, Finding

logger = get_logger(__name__)


class AnalysisPass(ABC):
    """Abstract base for one review concern (security, performance, ...).

    A pass only reads the diff and returns its own list of findings; passes
    share no state, so they can run concurrently.
    """

    def __init__(self, source_tag: str) -> None:
        self.source_tag = source_tag

    @abstractmethod
    async def analyze(self, files: Mapping[str, FileDiff]) -> list[Finding]:
        """Produce findings for the given indexed diff."""
        ...


def findings_from_data(data: Any, source_tag: str) -> list[Finding]:
    """Convert a reviewer's JSON output into findings.

    Accepts either a list of findings or ``{"findings": [...]}``.  Each entry
    needs ``severity`` (tier name or P-label), ``path``, ``position`` and
    ``body``; ``title`` is optional.

    Raises:
        PipelineError: If the data is not in the expected shape.
    """
    if isinstance(data, dict):
        data = data.get("findings", [])
    if not isinstance(data, list):
        raise PipelineError(f"{source_tag}: findings must be a JSON array")

    findings: list[Finding] = []
    for index, item in enumerate(data):
        try:
            findings.append(
                Finding(
                    severity=severity_from_label(str(item["severity"])),
                    source_tag=str(item.get("source") or source_tag),
                    title=str(item.get("title", "")),
                    comment=Comment(
                        path=item["path"],
                        position=item["position"],
                        body=item["body"],
                    ),
                )
            )
        except (KeyError, TypeError, ValueError) as e:
            raise PipelineError(f"{source_tag}: invalid finding at index {index}", detail=str(e)) from e

    return findings


class FindingsFilePass(AnalysisPass):
    """Reads the findings a reviewer agent wrote to a JSON file."""

    def __init__(self, path: str | Path, source_tag: str | None = None) -> None:
        self.path = Path(path)
        super().__init__(source_tag or self.path.stem)

    async def analyze(self, files: Mapping[str, FileDiff]) -> list[Finding]:
        try:
            raw = await asyncio.to_thread(self.path.read_text, encoding="utf-8")
        except OSError as e:
            raise PipelineError(f"Cannot read findings file {self.path}", detail=str(e)) from e

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise PipelineError(f"Findings file {self.path} is not valid JSON", detail=str(e)) from e

        findings = findings_from_data(data, self.source_tag)
        logger.debug("findings_loaded", source=self.source_tag, count=len(findings))
        return findings
