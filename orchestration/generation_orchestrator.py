# orchestration/generation_orchestrator.py
"""Drive one generation request from source text to a bounded ResultSet.

Flow: estimate the token cost, route to a single direct call or to chunked
generation, run each chunk's generate/sanitize/validate path independently,
then fold the per-chunk outcomes once, in chunk order, and dedupe and
truncate the records.
"""

from __future__ import annotations

import asyncio
import dataclasses
import math
import random

import structlog

from artifacts import ArtifactStrategy, get_strategy
from config import StudyForgeSettings
from core.errors import FailureKind, PipelineError
from core.llm_interface import GenerationClient
from core.usage import TokenUsage
from models import GenerationRequest, RecordModel
from orchestration.models import (
    Chunk,
    ChunkFailure,
    ChunkOutcome,
    Outcome,
    ResultSet,
)
from parsing import ResponseSanitizer
from processing.deduplicator import Deduplicator
from processing.schema_validator import SchemaValidator
from processing.text_chunker import TextChunker
from processing.token_estimator import TokenEstimator

logger = structlog.get_logger(__name__)


class GenerationOrchestrator:
    """Generic pipeline parameterized by an :class:`ArtifactStrategy`."""

    def __init__(
        self,
        config: StudyForgeSettings,
        client: GenerationClient,
        estimator: TokenEstimator | None = None,
        chunker: TextChunker | None = None,
        sanitizer: ResponseSanitizer | None = None,
        validator: SchemaValidator | None = None,
        deduplicator: Deduplicator | None = None,
    ) -> None:
        self.config = config
        self.client = client
        self.estimator = estimator or TokenEstimator(config)
        self.chunker = chunker or TextChunker()
        self.sanitizer = sanitizer or ResponseSanitizer()
        self.validator = validator or SchemaValidator.from_settings(config)
        self.deduplicator = deduplicator or Deduplicator()

    def generate(self, request: GenerationRequest) -> ResultSet:
        """Synchronous entry point; runs :meth:`agenerate` on a fresh event loop.

        The client's connection pool is opened and closed inside that loop, so
        the same orchestrator can be called repeatedly.
        """
        return asyncio.run(self._generate_in_session(request))

    async def _generate_in_session(self, request: GenerationRequest) -> ResultSet:
        async with self.client.session():
            return await self.agenerate(request)

    async def agenerate(self, request: GenerationRequest) -> ResultSet:
        strategy = get_strategy(request.artifact_type)
        artifact = strategy.artifact_type.value
        source = strategy.prepare_source(request.source_text)

        estimate = self.estimator.estimate(source, artifact)
        budget = self.config.MAX_TOKENS_PER_REQUEST
        direct = estimate <= budget or not strategy.chunkable
        logger.info(
            f"Routing '{artifact}' request to {'direct' if direct else 'chunked'} generation.",
            estimated_tokens=estimate,
            token_budget=budget,
        )

        if direct:
            outcomes = [
                await self._run_chunk(
                    strategy,
                    request,
                    Chunk(index=1, text=source, char_size=len(source)),
                    request.target_count,
                )
            ]
        else:
            max_chars = self.estimator.char_budget(budget, artifact)
            chunks = self.chunker.split(source, max_chars)
            outcomes = await self._run_chunks(strategy, request, chunks)

        return self._assemble(strategy, request, outcomes)

    async def _run_chunks(
        self,
        strategy: ArtifactStrategy,
        request: GenerationRequest,
        chunks: list[Chunk],
    ) -> list[ChunkOutcome]:
        if not chunks:
            return []
        per_chunk = (
            math.ceil(request.target_count / len(chunks))
            if request.target_count
            else None
        )
        workers = min(len(chunks), self.config.MAX_CONCURRENT_LLM_CALLS)
        semaphore = asyncio.Semaphore(workers)
        logger.info(
            f"Split source into {len(chunks)} chunks.",
            per_chunk_count=per_chunk,
            workers=workers,
        )

        async def bounded(chunk: Chunk) -> ChunkOutcome:
            async with semaphore:
                return await self._run_chunk(
                    strategy, request, chunk, per_chunk, total_parts=len(chunks)
                )

        return list(await asyncio.gather(*(bounded(chunk) for chunk in chunks)))

    async def _run_chunk(
        self,
        strategy: ArtifactStrategy,
        request: GenerationRequest,
        chunk: Chunk,
        count: int | None,
        total_parts: int | None = None,
    ) -> ChunkOutcome:
        """Run one chunk with optional retries; never raises except on cancel."""
        usage = TokenUsage()
        attempts = 0
        max_attempts = 1 + max(0, self.config.CHUNK_RETRY_ATTEMPTS)
        while True:
            attempts += 1
            try:
                records, failure, call_usage = await self._attempt(
                    strategy, request, chunk, count, total_parts
                )
            except asyncio.CancelledError:
                raise
            except PipelineError as exc:
                records, failure, call_usage = (), self._failure(chunk.index, exc), None
            except Exception as exc:
                logger.error(
                    f"Unexpected error while processing chunk {chunk.index}.",
                    exc_info=True,
                )
                records, failure, call_usage = (
                    (),
                    ChunkFailure(chunk.index, FailureKind.INTERNAL_ERROR, repr(exc)),
                    None,
                )
            usage.add(call_usage)
            if failure is None:
                return ChunkOutcome(chunk.index, records, None, usage)
            if not failure.kind.is_transient or attempts >= max_attempts:
                break
            await self._backoff_delay(attempts - 1)

        logger.warning(
            f"Chunk {chunk.index} failed: {failure.kind.value}.",
            detail=failure.message,
            attempts=attempts,
        )
        return ChunkOutcome(
            chunk.index, (), dataclasses.replace(failure, attempts=attempts), usage
        )

    async def _attempt(
        self,
        strategy: ArtifactStrategy,
        request: GenerationRequest,
        chunk: Chunk,
        count: int | None,
        total_parts: int | None,
    ) -> tuple[tuple[RecordModel, ...], ChunkFailure | None, TokenUsage | None]:
        prompt = strategy.build_prompt(
            chunk.text,
            count,
            request.type_params,
            self.config,
            part=chunk.index if total_parts else None,
            total_parts=total_parts,
        )
        raw = await self.client.call(prompt, strategy.profile(self.config), chunk.index)
        if not raw.ok:
            return (), self._failure(chunk.index, raw.failure), raw.usage

        value = self.sanitizer.extract(raw.text, strategy.expected_shape)
        if isinstance(value, PipelineError):
            return (), self._failure(chunk.index, value), raw.usage

        records = self.validator.validate(value, strategy, request.type_params)
        if isinstance(records, PipelineError):
            return (), self._failure(chunk.index, records), raw.usage
        return tuple(records), None, raw.usage

    @staticmethod
    def _failure(chunk_index: int, error: PipelineError | None) -> ChunkFailure:
        if error is None:
            return ChunkFailure(chunk_index, FailureKind.UPSTREAM_ERROR, "No reply text")
        return ChunkFailure(chunk_index, error.kind, error.message)

    async def _backoff_delay(self, attempt: int) -> None:
        """Sleep for an exponentially increasing delay with jitter."""
        delay = self.config.LLM_RETRY_DELAY_SECONDS * (2**attempt)
        jitter = random.uniform(0, delay / 2)
        await asyncio.sleep(delay + jitter)

    def _assemble(
        self,
        strategy: ArtifactStrategy,
        request: GenerationRequest,
        outcomes: list[ChunkOutcome],
    ) -> ResultSet:
        ordered = sorted(outcomes, key=lambda outcome: outcome.chunk_index)
        usage = TokenUsage()
        collected: list[RecordModel] = []
        failures: list[ChunkFailure] = []
        for outcome in ordered:
            usage.add(outcome.usage)
            if not outcome.succeeded:
                failures.append(outcome.failure)
            collected.extend(outcome.records)

        items = self.deduplicator.dedupe(
            strategy.combine(collected), strategy.primary_text_field
        )
        if request.target_count is not None:
            items = items[: request.target_count]

        failed = len(failures)
        succeeded = len(ordered) - failed
        result = ResultSet(
            items=items,
            succeeded_chunks=succeeded,
            failed_chunks=failed,
            outcome=Outcome.classify(len(items), failed),
            usage=usage,
            failures=failures,
        )
        log_method = logger.info if result.outcome is not Outcome.FAILURE else logger.warning
        log_method(
            f"Assembled {len(items)} '{strategy.artifact_type.value}' item(s): {result.outcome.value}.",
            succeeded_chunks=succeeded,
            failed_chunks=failed,
            total_tokens=usage.total_tokens,
        )
        return result
