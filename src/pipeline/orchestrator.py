# src/pipeline/orchestrator.py - v2
"""Analysis orchestrator: the single-image pipeline and the approval flow.

Steps run in a fixed order, each only while no error has been recorded:

  validate_image -> build_context -> invoke_provider
  -> check_required_fields -> validate -> blend_score -> persist_job

After the job is written, the apply/draft policy decides whether generated
metadata goes live, into the draft slots, or stays on the job for review.
"""

from __future__ import annotations

import logging
import math
import time
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from mediaseo.context.aggregator import calculate_completeness_score
from mediaseo.core.errors import AllProvidersFailedError, InputError, PersistenceError
from mediaseo.core.models import (
    LIVE_FIELDS,
    AnalysisOptions,
    AnalysisOutcome,
    ApplyDecision,
    GeneratedFields,
    ImageContext,
    Job,
)
from mediaseo.events import bus as events
from mediaseo.events.bus import EventBus
from mediaseo.logging.context import (
    clear_context,
    set_image_context,
    set_outcome_context,
    set_step_context,
)
from mediaseo.pipeline.state import AnalysisRun
from mediaseo.prompts.templates import PROMPT_VERSION
from mediaseo.scoring.blender import ScoreBlender
from mediaseo.storage.audit import NullAuditSink
from mediaseo.validation.rules import QualityRules
from mediaseo.validation.validator import ResponseValidator

if TYPE_CHECKING:
    from mediaseo.config.settings import Settings
    from mediaseo.context.aggregator import ContextAggregator
    from mediaseo.images.source import BaseImageSource
    from mediaseo.llm.registry import ProviderRegistry
    from mediaseo.storage.audit import BaseAuditSink
    from mediaseo.storage.job_ledger import SqliteJobLedger
    from mediaseo.storage.metadata_store import BaseMetadataStore

logger = logging.getLogger(__name__)

Step = Callable[[AnalysisRun], Awaitable[None]]


def decide_application(auto_apply: bool, trigger: str, approved: bool) -> ApplyDecision:
    """Apply/draft policy for a successfully scored run.

    - auto-apply off: pending (metadata stays on the job).
    - score at or above threshold: apply.
    - below threshold on automatic ingestion: draft.
    - below threshold on a manual request: pending.
    """
    if not auto_apply:
        return "pending"
    if approved:
        return "apply"
    return "draft" if trigger == "auto" else "pending"


def parse_score(value: Any) -> float | None:
    """Model self-reported score as a float in [0, 1], or None when not numeric."""
    if isinstance(value, bool) or value is None:
        return None
    try:
        score = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(score) or math.isinf(score):
        return None
    return min(max(score, 0.0), 1.0)


class AnalysisOrchestrator:
    """Run the analysis pipeline for one image at a time.

    Args:
        settings: Application settings.
        aggregator: Context builder.
        registry: Provider registry with fallback.
        images: Image-bytes provider (existence and format check).
        ledger: Job ledger.
        store: Metadata store for applied and draft metadata.
        validator: Response validator (defaults to configured quality rules).
        blender: Score blender (defaults to configured weights and threshold).
        event_bus: Lifecycle event bus.
        audit: Audit sink.
    """

    def __init__(
        self,
        settings: Settings,
        aggregator: ContextAggregator,
        registry: ProviderRegistry,
        images: BaseImageSource,
        ledger: SqliteJobLedger,
        store: BaseMetadataStore,
        validator: ResponseValidator | None = None,
        blender: ScoreBlender | None = None,
        event_bus: EventBus | None = None,
        audit: BaseAuditSink | None = None,
    ) -> None:
        self._settings = settings
        self._aggregator = aggregator
        self._registry = registry
        self._images = images
        self._ledger = ledger
        self._store = store
        self._validator = validator or ResponseValidator(
            QualityRules.from_overrides(settings.quality_rules, settings.alt_max_length)
        )
        self._blender = blender or ScoreBlender(
            settings.score_weights, settings.auto_approve_threshold
        )
        self._events = event_bus or EventBus()
        self._audit = audit or NullAuditSink()

    @property
    def events(self) -> EventBus:
        return self._events

    @property
    def blender(self) -> ScoreBlender:
        return self._blender

    def steps(self) -> list[tuple[str, Step]]:
        """Pipeline steps in execution order."""
        return [
            ("validate_image", self._validate_image),
            ("build_context", self._build_context),
            ("invoke_provider", self._invoke_provider),
            ("check_required_fields", self._check_required_fields),
            ("validate", self._validate),
            ("blend_score", self._blend_score),
            ("persist_job", self._persist_job),
        ]

    async def analyze(
        self,
        image_id: str,
        language: str | None = None,
        options: AnalysisOptions | None = None,
        context: ImageContext | None = None,
    ) -> AnalysisOutcome:
        """Analyze one image. Never raises for pipeline errors.

        Args:
            image_id: Attachment id.
            language: Target language (defaults to the configured default).
            options: Trigger, auto-apply override, variant, context override.
            context: Prefetched context (batch); built on demand when None.
        """
        language = language or self._settings.default_language
        run = AnalysisRun(
            image_id=str(image_id),
            language=language,
            options=options or AnalysisOptions(),
            context=context,
        )
        set_image_context(run.image_id, language, run_id=run.run_id)
        try:
            await self._events.publish(events.BEFORE_ANALYZE, {
                "image_id": run.image_id,
                "language": language,
                "trigger": run.options.trigger,
            })
            await self._audit.record("analysis_started", run.image_id, {
                "language": language,
                "trigger": run.options.trigger,
                "retry_count": run.options.retry_count,
            })

            for name, step in self.steps():
                if run.failed:
                    break
                set_step_context(name)
                started = time.monotonic()
                await step(run)
                run.record_timing(name, time.monotonic() - started)

            if run.failed:
                return await self._fail(run)
            return await self._complete(run)
        finally:
            clear_context()

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _validate_image(self, run: AnalysisRun) -> None:
        try:
            await self._images.describe(run.image_id)
        except InputError as e:
            run.fail(str(e))

    async def _build_context(self, run: AnalysisRun) -> None:
        try:
            context = run.context or await self._aggregator.build(run.image_id, run.language)
            if run.options.context_override:
                context = context.with_overrides(run.options.context_override)
        except Exception as exc:
            logger.error("Context aggregation failed for image %s: %s", run.image_id, exc)
            run.fail(f"Context aggregation failed: {exc}")
            return
        run.context = context
        run.completeness = calculate_completeness_score(context)
        logger.debug("Context completeness %.2f", run.completeness)

    async def _invoke_provider(self, run: AnalysisRun) -> None:
        assert run.context is not None
        try:
            invocation = await self._registry.invoke_with_fallback(
                run.image_id, run.language, run.context, run.options.variant
            )
        except InputError as e:
            run.fail(str(e))
            return

        run.provider_errors = dict(invocation.errors)
        for provider, reason in invocation.errors.items():
            await self._audit.record("provider_error", run.image_id, {
                "provider": provider,
                "error": reason,
            })

        if not invocation.success or invocation.result is None:
            run.fail(str(AllProvidersFailedError(invocation.errors)))
            return
        run.result = invocation.result
        if invocation.errors:
            run.warnings.append(
                f"Fell back to {invocation.provider} after: "
                + ", ".join(sorted(invocation.errors))
            )

    async def _check_required_fields(self, run: AnalysisRun) -> None:
        assert run.result is not None
        fields = run.result.fields
        if not fields.alt or not fields.alt.strip():
            run.fail("Missing required field: alt")
        if fields.score is None or (isinstance(fields.score, str) and not fields.score.strip()):
            run.fail("Missing required field: score")
            return
        score = parse_score(fields.score)
        if score is None:
            run.fail(f"Score must be numeric, got {fields.score!r}")
            return
        run.ai_score = score

    async def _validate(self, run: AnalysisRun) -> None:
        assert run.result is not None
        outcome = self._validator.validate(run.result.fields)
        run.validation = outcome
        run.warnings.extend(outcome.warnings)
        if not outcome.valid:
            for error in outcome.errors:
                run.fail(error)

    async def _blend_score(self, run: AnalysisRun) -> None:
        assert run.ai_score is not None and run.validation is not None
        run.final_score = self._blender.blend(
            run.ai_score, run.validation.score, run.completeness
        )
        auto_apply = (
            run.options.auto_apply
            if run.options.auto_apply is not None
            else self._settings.auto_apply
        )
        run.decision = decide_application(
            auto_apply,
            run.options.trigger,
            self._blender.can_auto_approve(run.final_score),
        )
        set_outcome_context(decision=run.decision)
        logger.info(
            "Image %s scored %.2f (ai %.2f, validation %.2f, context %.2f) -> %s",
            run.image_id, run.final_score, run.ai_score, run.validation.score,
            run.completeness, run.decision,
            extra={"final_score": run.final_score},
        )

    async def _persist_job(self, run: AnalysisRun) -> None:
        # Approval is recorded only once the metadata has actually been applied.
        job = self._build_job(run, status="processed", processed_at=datetime.now(timezone.utc))
        try:
            run.job = self._ledger.record(job)
        except PersistenceError as e:
            run.fail(str(e))
        else:
            set_outcome_context(job_id=run.job.id)

    # ------------------------------------------------------------------
    # Outcomes
    # ------------------------------------------------------------------

    async def _complete(self, run: AnalysisRun) -> AnalysisOutcome:
        assert run.result is not None and run.job is not None
        fields = run.result.fields

        try:
            if run.decision == "apply":
                await self._apply_metadata(run.image_id, run.language, fields, run.job)
                run.job = self._ledger.approve(run.job.id)
            elif run.decision == "draft":
                await self._draft_metadata(run.image_id, run.language, fields, run.job)
        except PersistenceError as e:
            run.fail(f"Could not store metadata: {e}")
            return await self._fail(run)

        await self._audit.record("analysis_completed", run.image_id, {
            "language": run.language,
            "job_id": run.job.id,
            "provider": run.result.provider,
            "model": run.result.model,
            "score": run.final_score,
            "decision": run.decision,
            "cost": run.result.cost.total_cost,
        })
        await self._events.publish(events.AFTER_ANALYZE, {
            "image_id": run.image_id,
            "language": run.language,
            "job_id": run.job.id,
            "provider": run.result.provider,
            "score": run.final_score,
            "decision": run.decision,
        })
        return AnalysisOutcome(
            success=True,
            image_id=run.image_id,
            language=run.language,
            warnings=run.warnings,
            job=run.job,
            decision=run.decision,
            final_score=run.final_score,
            provider_errors=run.provider_errors,
            timings_ms=run.timings_ms,
        )

    async def _fail(self, run: AnalysisRun) -> AnalysisOutcome:
        # Once a provider answered, the attempt is kept in the ledger.
        if run.result is not None and run.job is None:
            job = self._build_job(
                run,
                status="failed",
                processed_at=datetime.now(timezone.utc),
                error_message="; ".join(run.errors),
            )
            try:
                run.job = self._ledger.record(job)
            except PersistenceError as e:
                logger.error("Could not record failed job for image %s: %s", run.image_id, e)
                run.errors.append(str(e))

        logger.warning("Analysis of image %s failed: %s", run.image_id, "; ".join(run.errors))
        await self._audit.record("analysis_failed", run.image_id, {
            "language": run.language,
            "errors": run.errors,
            "provider_errors": run.provider_errors,
            "context": run.context.signals() if run.context else {},
        })
        await self._events.publish(events.ANALYSIS_FAILED, {
            "image_id": run.image_id,
            "language": run.language,
            "errors": list(run.errors),
            "provider": run.result.provider if run.result else None,
        })
        return AnalysisOutcome(
            success=False,
            image_id=run.image_id,
            language=run.language,
            errors=run.errors,
            warnings=run.warnings,
            job=run.job,
            final_score=run.final_score,
            provider_errors=run.provider_errors,
            timings_ms=run.timings_ms,
        )

    def _build_job(self, run: AnalysisRun, **updates: Any) -> Job:
        result = run.result
        response: dict[str, Any] = {}
        data: dict[str, Any] = {
            "image_id": run.image_id,
            "language": run.language,
            "prompt_version": PROMPT_VERSION,
            "context": run.context.signals() if run.context else {},
            "retry_count": run.options.retry_count,
            "score": run.final_score,
        }
        if result is not None:
            response = {
                "fields": result.fields.model_dump(),
                "raw": result.raw_content,
                "latency_ms": result.latency_ms,
            }
            data.update(
                provider=result.provider,
                model=result.model,
                input_tokens=result.usage.input_tokens,
                output_tokens=result.usage.output_tokens,
                estimated_input_tokens=result.usage.estimated_input_tokens,
                input_cost=result.cost.input_cost,
                output_cost=result.cost.output_cost,
                total_cost=result.cost.total_cost,
            )
        if run.validation is not None:
            response["validation_score"] = run.validation.score
            response["context_score"] = run.completeness
            response["warnings"] = list(run.warnings)
        data["response"] = response
        data.update(updates)
        return Job(**data)

    # ------------------------------------------------------------------
    # Metadata application
    # ------------------------------------------------------------------

    async def _apply_metadata(
        self, image_id: str, language: str, fields: GeneratedFields, job: Job
    ) -> None:
        metadata = fields.metadata()
        payload = {"image_id": image_id, "language": language, "job_id": job.id, "metadata": metadata}
        await self._events.publish(events.BEFORE_APPLY_METADATA, payload)

        for name, value in metadata.items():
            await self._store.set(image_id, name, language, value)
        for name in LIVE_FIELDS:
            if name in metadata:
                await self._store.set_live(image_id, name, metadata[name])
        await self._store.clear_drafts(image_id)

        await self._audit.record("metadata_applied", image_id, {
            "language": language,
            "job_id": job.id,
            "fields": sorted(metadata),
        })
        await self._events.publish(events.AFTER_APPLY_METADATA, payload)
        logger.info("Applied %s metadata to image %s", language, image_id)

    async def _draft_metadata(
        self, image_id: str, language: str, fields: GeneratedFields, job: Job
    ) -> None:
        metadata = fields.metadata()
        for name, value in metadata.items():
            key = name if name in LIVE_FIELDS else f"{name}_{language}"
            await self._store.set_draft(image_id, key, value)
        await self._store.set_draft(image_id, "job_id", job.id)

        await self._audit.record("metadata_drafted", image_id, {
            "language": language,
            "job_id": job.id,
            "fields": sorted(metadata),
        })
        await self._events.publish(events.AFTER_DRAFT_METADATA, {
            "image_id": image_id,
            "language": language,
            "job_id": job.id,
            "metadata": metadata,
        })
        logger.info("Drafted %s metadata for image %s", language, image_id)

    # ------------------------------------------------------------------
    # Approval flow
    # ------------------------------------------------------------------

    async def approve(self, job_id: int, fields: dict[str, Any] | None = None) -> bool:
        """Apply a job's metadata (optionally edited) and mark it approved.

        Returns False when the job is unknown, failed, or carries no usable ALT.
        """
        job = self._ledger.get_job(job_id)
        if job is None:
            logger.warning("Cannot approve unknown job %s", job_id)
            return False
        if job.status in ("failed", "skipped"):
            logger.warning("Cannot approve job %s with status %s", job_id, job.status)
            return False

        generated = dict(job.response.get("fields") or {})
        generated.update({k: v for k, v in (fields or {}).items() if v is not None})
        merged = GeneratedFields.model_validate(generated)
        if not merged.alt or not merged.alt.strip():
            logger.warning("Job %s has no ALT text to approve", job_id)
            return False

        set_image_context(job.image_id, job.language)
        set_outcome_context(decision="apply", job_id=job_id)
        try:
            try:
                await self._apply_metadata(job.image_id, job.language, merged, job)
                if job.status != "approved":
                    self._ledger.approve(job_id)
            except PersistenceError as e:
                logger.error("Could not apply job %s: %s", job_id, e)
                return False
            await self._audit.record("metadata_approved", job.image_id, {
                "job_id": job_id,
                "language": job.language,
                "edited": sorted(fields or {}),
            })
        finally:
            clear_context()
        return True

    async def reject(self, job_id: int, reason: str = "") -> bool:
        """Discard a job's metadata. Live fields are left untouched."""
        job = self._ledger.get_job(job_id)
        if job is None:
            logger.warning("Cannot reject unknown job %s", job_id)
            return False
        self._ledger.reject(job_id, reason)
        drafts = await self._store.get_drafts(job.image_id)
        if drafts.get("job_id") == job_id:
            await self._store.clear_drafts(job.image_id)
        await self._audit.record("metadata_rejected", job.image_id, {
            "job_id": job_id,
            "language": job.language,
            "reason": reason,
        })
        return True
