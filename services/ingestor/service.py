"""
Ingestor Service - Store discovered lead candidates.

Dedup is by external_id only: within the batch first, then against the
lead store. A failed insert never aborts the batch; it is counted and the
next candidate is tried.
"""

from abc import ABC, abstractmethod
from typing import List, Sequence

import asyncpg
from loguru import logger
from pydantic import ValidationError

from services.discovery.errors import IngestionError
from services.ingestor import repo
from services.ingestor.models.candidate import DiscoveredCandidate, IngestResult


class IService(ABC):
    """Ingestor Service Interface - Store discovered leads."""

    @abstractmethod
    async def ingest_candidates(self, candidates: Sequence[DiscoveredCandidate]) -> IngestResult:
        """
        Insert candidates that are not already known.

        Args:
            candidates: Candidates in discovery order (first occurrence of an external_id wins)

        Returns:
            IngestResult with inserted / skipped / errors counts
        """
        pass


class Service(IService):
    """Lead ingestion backed by the lead store repo."""

    async def ingest_candidates(self, candidates: Sequence[DiscoveredCandidate]) -> IngestResult:
        result = IngestResult()
        seen: set = set()

        for candidate in candidates:
            if candidate.external_id in seen:
                result.skipped += 1
                continue
            seen.add(candidate.external_id)

            existing = await repo.find_lead_by_external_id(candidate.external_id)
            if existing:
                result.skipped += 1
                continue

            try:
                lead_id = await self._insert(candidate)
            except IngestionError as e:
                logger.warning(f"Skipping {e.external_id}: {e}")
                result.skipped += 1
                result.errors += 1
                continue

            if lead_id is None:
                # Lost the race to a concurrent writer
                result.skipped += 1
            else:
                result.inserted += 1

        logger.info(
            f"Ingested {len(candidates)} candidates: {result.inserted} inserted, "
            f"{result.skipped} skipped, {result.errors} errors"
        )
        return result

    async def _insert(self, candidate: DiscoveredCandidate):
        try:
            # Re-validate: candidates may have been mutated after construction
            DiscoveredCandidate.model_validate(candidate.model_dump())
            return await repo.insert_lead(candidate)
        except (asyncpg.PostgresError, ValidationError) as e:
            raise IngestionError(str(e), external_id=candidate.external_id) from e


async def ingest_candidates(candidates: List[DiscoveredCandidate]) -> IngestResult:
    """Module-level shortcut for Service().ingest_candidates."""
    return await Service().ingest_candidates(candidates)
