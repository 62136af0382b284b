"""Mastering job orchestration: analysis, chain building and the two engine passes."""

from __future__ import annotations

import logging
import shutil
import time
from dataclasses import dataclass, field
from typing import Any
from uuid import uuid4

from tonemaster.analysis import SourceAnalysis, analyze_file, analyze_source
from tonemaster.application.event_publisher import EventPublisher, NullEventPublisher
from tonemaster.audio_contract import ensure_supported_path
from tonemaster.chain import (
    FilterDirective,
    build_chain,
    build_limiting_chain,
    build_reference_chain,
    render_filter_graph,
)
from tonemaster.domain.events import (
    ChainBuilt,
    JobStateChanged,
    LoudnessMeasurementDegraded,
    MasteringCompleted,
    MasteringFailed,
    PassCompleted,
    SourceAnalyzed,
)
from tonemaster.domain.models import (
    AudioAnalysis,
    Improvements,
    JobState,
    LoudnessMeasurement,
    MasteringJob,
    MasteringReport,
    MasteringSettings,
    MasteringSubmission,
)
from tonemaster.domain.policies import INTERMEDIATE_RENDER, render_policy_for
from tonemaster.errors import EmptyOutput, IngestError, InvalidJobTransition, MasteringError
from tonemaster.infrastructure.engine_locator import EngineLocator, EnginePaths
from tonemaster.infrastructure.workspace import clear_workspace, create_job_workspace, stage_file
from tonemaster.loudness import measure_loudness
from tonemaster.mastering_options import MasteringMode
from tonemaster.presets import resolve
from tonemaster.render import render_pass
from tonemaster.resolver import resolve_from_reference
from tonemaster.spectrum import estimate_spectrum
from tonemaster.utils.config import EngineSettings

logger = logging.getLogger(__name__)

REFERENCE_CEILING_DB = -1.0

# Share of overall job progress covered by each engine pass.
PROCESSING_PROGRESS = (10.0, 70.0)
LIMITING_PROGRESS = (70.0, 95.0)


@dataclass(frozen=True, slots=True)
class _ChainPlan:
    directives: tuple[FilterDirective, ...]
    settings: MasteringSettings | None
    target_lufs: float
    ceiling_db: float
    processing_applied: str


def _scaled_progress(window: tuple[float, float]):
    start, end = window

    def _apply(job: MasteringJob, pass_percent: float) -> None:
        job.update_progress(start + (end - start) * pass_percent / 100.0)

    return _apply


@dataclass(slots=True)
class MasteringEngine:
    """Runs mastering jobs start to finish on the calling thread."""

    locator: EngineLocator
    settings: EngineSettings = field(default_factory=EngineSettings)
    event_publisher: EventPublisher = NullEventPublisher()
    _paths: EnginePaths | None = field(default=None, init=False, repr=False)

    def engine_paths(self) -> EnginePaths:
        if self._paths is None:
            self._paths = self.locator.locate()
        return self._paths

    def pass_timeout(self, duration_seconds: float) -> float:
        return self.settings.pass_timeout_seconds(duration_seconds)

    def create_job(self, submission: MasteringSubmission) -> MasteringJob:
        """Validate inputs and stage them into a fresh job workspace."""

        ensure_supported_path(submission.source_file, self.settings.max_source_bytes)
        needs_reference = submission.mode in (MasteringMode.REFERENCE, MasteringMode.ADAPTIVE)
        if needs_reference:
            if submission.reference_file is None:
                raise IngestError(f"Mode '{submission.mode.value}' requires a reference file.")
            ensure_supported_path(submission.reference_file, self.settings.max_source_bytes)

        job_id = uuid4().hex
        workspace = create_job_workspace(self.settings.work_root, job_id)
        policy = render_policy_for(submission.output_format)
        try:
            source_path = stage_file(submission.source_file, workspace, "source")
            reference_path = (
                stage_file(submission.reference_file, workspace, "reference")
                if needs_reference and submission.reference_file is not None
                else None
            )
        except OSError:
            shutil.rmtree(workspace, ignore_errors=True)
            raise

        return MasteringJob(
            job_id=job_id,
            workspace=workspace,
            source_path=source_path,
            output_path=workspace / f"mastered_{job_id}.{policy.extension}",
            preset_name=submission.preset_name,
            mode=submission.mode,
            reference_path=reference_path,
            output_format=submission.output_format,
        )

    def submit(self, submission: MasteringSubmission) -> MasteringReport:
        return self.run(self.create_job(submission))

    def cancel(self, job: MasteringJob) -> None:
        job.cancel_event.set()

    def _transition(self, job: MasteringJob, new_state: JobState) -> None:
        previous = job.transition(new_state)
        self.event_publisher.publish(
            JobStateChanged(
                correlation_id=job.job_id,
                payload_summary={"from": previous.value, "to": new_state.value},
            )
        )

    def _publish_degraded(self, job: MasteringJob, subject: str, measurement: LoudnessMeasurement) -> None:
        self.event_publisher.publish(
            LoudnessMeasurementDegraded(
                correlation_id=job.job_id,
                payload_summary={"subject": subject, "fallback_lufs": measurement.integrated_lufs},
            )
        )

    def run(self, job: MasteringJob) -> MasteringReport:
        """Drive ``job`` through every state; raises the ``MasteringError`` that failed it."""

        if job.state is not JobState.QUEUED:
            raise InvalidJobTransition(f"Job {job.job_id} has already been run ({job.state.value}).")

        started = time.monotonic()
        try:
            return self._run(job, started)
        except Exception as error:  # noqa: BLE001
            if not job.is_terminal:
                self._fail(job, error)
            raise

    def _run(self, job: MasteringJob, started: float) -> MasteringReport:
        self._transition(job, JobState.ANALYZING)
        engine = self.engine_paths()

        source = analyze_source(
            job.source_path,
            engine=engine,
            probe_timeout_seconds=self.settings.probe_timeout_seconds,
            scan_timeout=self.pass_timeout,
            cancel_event=job.cancel_event,
        )
        loudness_degraded = source.loudness_degraded
        if source.loudness is not None and source.loudness.degraded:
            self._publish_degraded(job, "source", source.loudness)

        reference: SourceAnalysis | None = None
        if job.reference_path is not None:
            reference = analyze_source(
                job.reference_path,
                engine=engine,
                probe_timeout_seconds=self.settings.probe_timeout_seconds,
                scan_timeout=self.pass_timeout,
                cancel_event=job.cancel_event,
            )
            if reference.loudness is not None and reference.loudness.degraded:
                loudness_degraded = True
                self._publish_degraded(job, "reference", reference.loudness)

        self.event_publisher.publish(
            SourceAnalyzed(
                correlation_id=job.job_id,
                payload_summary={
                    "duration_seconds": source.analysis.duration_seconds,
                    "channel_count": source.analysis.channel_count,
                    "mean_volume_db": source.analysis.mean_volume_db,
                    "has_reference": reference is not None,
                },
            )
        )
        job.update_progress(5)

        self._transition(job, JobState.BUILDING_CHAIN)
        plan = self._plan_chain(job, source, reference)
        self.event_publisher.publish(
            ChainBuilt(
                correlation_id=job.job_id,
                payload_summary={
                    "mode": job.mode.value,
                    "directive_count": len(plan.directives),
                    "filter_graph": render_filter_graph(plan.directives),
                },
            )
        )
        job.update_progress(PROCESSING_PROGRESS[0])

        duration = source.analysis.duration_seconds
        pass_timeout = self.pass_timeout(duration)

        self._transition(job, JobState.PROCESSING)
        processing_progress = _scaled_progress(PROCESSING_PROGRESS)
        render_pass(
            engine,
            job.source_path,
            job.intermediate_path,
            plan.directives,
            INTERMEDIATE_RENDER,
            duration_seconds=duration,
            on_progress=lambda percent: processing_progress(job, percent),
            timeout_seconds=pass_timeout,
            cancel_event=job.cancel_event,
        )
        self.event_publisher.publish(
            PassCompleted(
                correlation_id=job.job_id,
                payload_summary={"pass": "processing", "artifact": job.intermediate_path.name},
            )
        )

        self._transition(job, JobState.LIMITING)
        intermediate_loudness = measure_loudness(
            job.intermediate_path,
            engine=engine,
            timeout_seconds=pass_timeout,
            cancel_event=job.cancel_event,
        )
        if intermediate_loudness.degraded:
            loudness_degraded = True
            self._publish_degraded(job, "intermediate", intermediate_loudness)

        limiting_directives = build_limiting_chain(
            plan.target_lufs,
            plan.ceiling_db,
            intermediate_loudness,
            lra=self.settings.limiting_lra,
        )
        limiting_progress = _scaled_progress(LIMITING_PROGRESS)
        render_pass(
            engine,
            job.intermediate_path,
            job.output_path,
            limiting_directives,
            render_policy_for(job.output_format),
            duration_seconds=duration,
            on_progress=lambda percent: limiting_progress(job, percent),
            timeout_seconds=pass_timeout,
            cancel_event=job.cancel_event,
        )
        job.intermediate_path.unlink(missing_ok=True)
        self.event_publisher.publish(
            PassCompleted(
                correlation_id=job.job_id,
                payload_summary={"pass": "limiting", "artifact": job.output_path.name},
            )
        )

        self._transition(job, JobState.VERIFYING)
        if not job.output_path.is_file() or job.output_path.stat().st_size == 0:
            raise EmptyOutput(f"Engine produced no output for job {job.job_id}.")

        processed: AudioAnalysis | None
        try:
            processed = analyze_file(
                job.output_path,
                engine=engine,
                include_loudness=False,
                probe_timeout_seconds=self.settings.probe_timeout_seconds,
                scan_timeout=self.pass_timeout,
                cancel_event=job.cancel_event,
            )
        except MasteringError as exc:
            if job.cancel_event.is_set():
                raise
            logger.warning(
                "output_analysis_degraded",
                extra={"job_id": job.job_id, "error_kind": exc.kind, "error": exc.message},
            )
            processed = None

        improvements = None
        if processed is not None:
            improvements = Improvements(
                loudness_change_db=processed.mean_volume_db - source.analysis.mean_volume_db,
                dynamic_range_change_db=processed.max_volume_db - source.analysis.max_volume_db,
                format_change=f"{source.analysis.codec_name} → {processed.codec_name}",
                processing_applied=plan.processing_applied,
            )

        self._transition(job, JobState.COMPLETED)
        job.update_progress(100)
        report = MasteringReport(
            session_id=job.job_id,
            download_handle=job.output_path,
            processing_time_seconds=time.monotonic() - started,
            original_analysis=source.analysis,
            processed_analysis=processed,
            improvements=improvements,
            settings=plan.settings,
            mode=job.mode,
            loudness_degraded=loudness_degraded,
            report_degraded=processed is None,
        )
        self.event_publisher.publish(
            MasteringCompleted(
                correlation_id=job.job_id,
                payload_summary={
                    "output": job.output_path.as_posix(),
                    "processing_time_seconds": round(report.processing_time_seconds, 3),
                    "loudness_degraded": loudness_degraded,
                    "report_degraded": report.report_degraded,
                },
            )
        )
        logger.info(
            "mastering_completed",
            extra={"job_id": job.job_id, "mode": job.mode.value, "output": str(job.output_path)},
        )
        return report

    def _plan_chain(
        self,
        job: MasteringJob,
        source: SourceAnalysis,
        reference: SourceAnalysis | None,
    ) -> _ChainPlan:
        if job.mode is MasteringMode.REFERENCE:
            if reference is None or reference.loudness is None:
                raise MasteringError("Reference mode requires an analysed reference track.")
            return _ChainPlan(
                directives=build_reference_chain(),
                settings=None,
                target_lufs=reference.loudness.integrated_lufs,
                ceiling_db=REFERENCE_CEILING_DB,
                processing_applied="Reference Matching",
            )

        settings = resolve(job.preset_name)
        applied = f"{job.preset_name} Preset"
        if job.mode is MasteringMode.ADAPTIVE:
            if reference is None or reference.loudness is None or job.reference_path is None:
                raise MasteringError("Adaptive mode requires an analysed reference track.")
            settings = resolve_from_reference(settings, reference.loudness, estimate_spectrum(job.reference_path))
            applied = f"{job.preset_name} Preset (Reference Adapted)"

        return _ChainPlan(
            directives=build_chain(settings, source.analysis),
            settings=settings,
            target_lufs=settings.target_loudness_lufs,
            ceiling_db=settings.limiting.threshold_db,
            processing_applied=applied,
        )

    def _fail(self, job: MasteringJob, error: Exception) -> None:
        failed_stage = job.state.value
        removed = clear_workspace(job.workspace)
        job.error = error if isinstance(error, MasteringError) else MasteringError(str(error))
        self._transition(job, JobState.FAILED)
        payload: dict[str, Any] = {"stage": failed_stage, "removed_files": removed, **job.error.as_dict()}
        self.event_publisher.publish(MasteringFailed(correlation_id=job.job_id, payload_summary=payload))
        logger.error(
            "mastering_failed",
            extra={"job_id": job.job_id, "stage": failed_stage, "error_kind": job.error.kind},
        )
