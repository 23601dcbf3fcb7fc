# orchestration/cli_runner.py
"""Command-line runner for the generation orchestrator."""

from __future__ import annotations

import asyncio
import json
import sys
from typing import Any

import structlog
from pydantic import ValidationError

from config import StudyForgeSettings, settings
from core.llm_interface import GenerationClient
from models import GenerationRequest
from orchestration.generation_orchestrator import GenerationOrchestrator
from orchestration.models import Outcome, ResultSet
from utils.logging import setup_logging

logger = structlog.get_logger(__name__)


async def _run(config: StudyForgeSettings, request: GenerationRequest) -> ResultSet:
    async with GenerationClient(config) as client:
        orchestrator = GenerationOrchestrator(config, client)
        return await orchestrator.agenerate(request)


def run(
    path: str,
    artifact_type: str,
    count: int | None = None,
    type_params: dict[str, Any] | None = None,
    config: StudyForgeSettings | None = None,
) -> int:
    """Generate artifacts for the text file at ``path`` and print them as JSON.

    Returns the process exit code: 0 when at least one item was produced.
    """
    config = config or settings
    setup_logging(config)
    try:
        with open(path, encoding="utf-8") as handle:
            source_text = handle.read()
    except OSError as e:
        logger.error(f"Could not read source file '{path}': {e}")
        return 1

    try:
        request = GenerationRequest(
            source_text=source_text,
            artifact_type=artifact_type,
            target_count=count,
            type_params=type_params or {},
        )
    except ValidationError as e:
        logger.error(f"Invalid generation request: {e}")
        return 1

    try:
        result = asyncio.run(_run(config, request))
    except KeyboardInterrupt:
        logger.info("Generation cancelled by user.")
        return 130

    sys.stdout.write(json.dumps(result.as_dict(), indent=2, ensure_ascii=False) + "\n")
    return 1 if result.outcome is Outcome.FAILURE else 0
