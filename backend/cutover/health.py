"""
Cutover health classification.

A cutover has issues whenever the v4 workflow failed at least once or the
failover workflow ran at all during the lookback window. Whether those
issues are bad enough to page someone is a separate question answered by
``is_breach`` against the cutover's failure threshold.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class HealthReport:
    total_runs: int
    failed_runs: int
    failover_runs: int
    has_issues: bool
    summary: str


def evaluate_health(total_runs: int, failed_runs: int, failover_runs: int) -> HealthReport:
    """Classify one lookback window of run counts. Pure function."""
    has_issues = failed_runs > 0 or failover_runs > 0
    return HealthReport(
        total_runs=total_runs,
        failed_runs=failed_runs,
        failover_runs=failover_runs,
        has_issues=has_issues,
        summary=f"Failures: {failed_runs}, Failovers: {failover_runs}",
    )


def is_breach(report: HealthReport, failure_threshold: int) -> bool:
    """Any failover run is a breach; failures only once they reach the threshold."""
    if not report.has_issues:
        return False
    return report.failed_runs >= failure_threshold or report.failover_runs > 0
