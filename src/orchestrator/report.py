"""Batch reporting over orchestration results."""

from __future__ import annotations

from pydantic import BaseModel, Field

from src.core.models import OrchestrationResult


class TaskReportLine(BaseModel):
    task_id: str
    status: str
    attempts: int
    retries: int
    duration_seconds: float


class CycleReport(BaseModel):
    total_tasks: int = 0
    successful: int = 0
    failed: int = 0
    escalated: int = 0
    total_retries: int = 0
    average_duration_seconds: float = 0.0
    details: list[TaskReportLine] = Field(default_factory=list)

    @property
    def success_rate(self) -> float:
        return self.successful / self.total_tasks if self.total_tasks else 0.0


def generate_cycle_report(results: list[OrchestrationResult]) -> CycleReport:
    """Summarize a batch of results. Status is success, failed or escalated[:<level>]."""
    if not results:
        return CycleReport()

    details = [
        TaskReportLine(
            task_id=r.task_id,
            status=r.outcome,
            attempts=len(r.retry_state.history),
            retries=r.cycle.retry_count,
            duration_seconds=r.total_duration_seconds,
        )
        for r in results
    ]
    successful = sum(1 for d in details if d.status == "success")
    escalated = sum(1 for d in details if d.status.startswith("escalated"))

    return CycleReport(
        total_tasks=len(results),
        successful=successful,
        failed=len(results) - successful - escalated,
        escalated=escalated,
        total_retries=sum(d.retries for d in details),
        average_duration_seconds=sum(d.duration_seconds for d in details) / len(details),
        details=details,
    )


def format_report_markdown(report: CycleReport) -> str:
    parts: list[str] = [
        "# Builder-Validator Orchestration Report",
        "",
        "## Summary",
        "",
        f"- **Total Tasks:** {report.total_tasks}",
        f"- **Successful:** {report.successful}",
        f"- **Failed:** {report.failed}",
        f"- **Escalated:** {report.escalated}",
        f"- **Total Retries:** {report.total_retries}",
        f"- **Average Cycle Time:** {report.average_duration_seconds:.1f}s",
        "",
    ]
    if report.total_tasks:
        parts += [f"**Success Rate:** {report.success_rate * 100:.1f}%", ""]

    if report.details:
        parts += [
            "## Task Details",
            "",
            "| Task ID | Status | Attempts | Retries | Duration |",
            "|---------|--------|----------|---------|----------|",
        ]
        parts += [
            f"| {d.task_id} | {d.status} | {d.attempts} | {d.retries} | {d.duration_seconds:.1f}s |"
            for d in report.details
        ]
        parts.append("")
    return "\n".join(parts)
