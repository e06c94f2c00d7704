"""Plan analysis orchestration: acquire, prompt, invoke, normalize, reconcile, store."""

import asyncio
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from plan_analysis.acquisition import ImageAcquirer
from plan_analysis.db import AnalysisStorage
from plan_analysis.invoker import ModelInvoker
from plan_analysis.locks import PropertyLockRegistry
from plan_analysis.logging import bound_request_context, get_logger
from plan_analysis.models import AnalysisRequest, AnalysisResult, AnalysisStatus
from plan_analysis.normalizer import normalize
from plan_analysis.prompts import build_prompts
from plan_analysis.reconciler import reconcile

logger = get_logger(__name__)


@dataclass(frozen=True)
class AnalysisOutcome:
    """What one analysis request produced."""

    record: dict[str, Any]
    result: AnalysisResult
    version: int

    @property
    def model_name(self) -> str | None:
        return self.result.model_name

    @property
    def status(self) -> AnalysisStatus:
        return self.result.status


class PlanAnalysisService:
    """Runs one analysis request as a linear pipeline.

    External I/O happens in this order: image fetch, model call, record load,
    record store. Only the load/reconcile/store cycle is serialized per
    property; the slow model call is not.
    """

    def __init__(
        self,
        acquirer: ImageAcquirer,
        invoker: ModelInvoker,
        storage: AnalysisStorage,
        locks: PropertyLockRegistry,
    ) -> None:
        self._acquirer = acquirer
        self._invoker = invoker
        self._storage = storage
        self._locks = locks

    async def analyze(self, request: AnalysisRequest) -> AnalysisOutcome:
        """Analyze the request's plan and merge the result into the property's record.

        Raises:
            AcquisitionError, UpstreamError, ConflictError, PersistenceError:
                See ``plan_analysis.errors``. Nothing is written on failure.
        """
        with bound_request_context(property_id=request.property_id, mode=request.mode.value):
            logger.info("plan_analysis_started", image_ref=request.image_ref)

            image = await self._acquirer.acquire(request.image_ref)
            system_instruction, user_instruction = build_prompts(
                request.mode, request.context_data, request.instruction_override
            )
            response = await self._invoker.invoke(system_instruction, user_instruction, image)
            result = normalize(response.text, request.mode, response.model_name)

            record, version = await self._reconcile_and_store(request.property_id, result)

            logger.info(
                "plan_analysis_saved",
                model=response.model_name,
                used_fallback=response.used_fallback,
                status=result.status.value,
                version=version,
            )
            return AnalysisOutcome(record=record, result=result, version=version)

    async def _reconcile_and_store(
        self, property_id: str, result: AnalysisResult
    ) -> tuple[dict[str, Any], int]:
        async with self._locks.hold(property_id):
            stored = await self._storage.load(property_id)
            existing = stored.record if stored else None
            merged = reconcile(existing, result)

            # The single write of the request: once started it runs to
            # completion even if the caller goes away.
            version = await asyncio.shield(
                self._storage.store(
                    property_id,
                    merged,
                    datetime.now(UTC),
                    expected_version=stored.version if stored else None,
                )
            )
        return merged, version

    async def get_record(self, property_id: str) -> tuple[dict[str, Any] | None, datetime | None]:
        """Current analysis record of a property and when it was last written."""
        stored = await self._storage.load(property_id)
        if stored is None:
            return None, None
        return stored.record, stored.updated_at

    async def close(self) -> None:
        """Close HTTP clients held by the pipeline."""
        await self._acquirer.close()
        await self._invoker.close()
