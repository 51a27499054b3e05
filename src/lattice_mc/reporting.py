"""Reporting utilities for completion checks and campaigns."""

from __future__ import annotations

from typing import Iterable

import numpy as np
from tabulate import tabulate

from .completion import CompletionCheckResult, CompletionStatus
from .runner import RunResults


def _fmt(value, spec: str = ".6g") -> str:
    return "-" if value is None else format(value, spec)


def summarize_completion(result: CompletionCheckResult) -> str:
    rows: list[tuple] = []
    for detail in result.per_criterion_detail:
        rows.append(
            (
                detail.label,
                _fmt(detail.mean),
                _fmt(detail.half_width, ".3g"),
                _fmt(detail.criterion.precision, ".3g"),
                f"{detail.criterion.confidence:.2f}",
                "yes" if detail.is_equilibrated else "no",
                "yes" if detail.is_converged else ("no" if detail.resolved else "n/a"),
            )
        )
    table = tabulate(
        rows,
        headers=["Quantity", "Mean", "Half-width", "Precision", "Confidence", "Equilibrated", "Converged"],
        tablefmt="github",
    )
    status = (
        f"Status: {result.reason.value} at count={result.count} "
        f"({result.n_samples} samples, equilibration index={result.equilibration_index})"
    )
    return table + "\n" + status


def summarize_campaign(results: Iterable[RunResults]) -> str:
    rows: list[tuple] = []
    results = list(results)
    for i, run in enumerate(results):
        conditions = ", ".join(
            f"{name}={np.array2string(np.asarray(value), precision=4)}"
            for name, value in run.initial_conditions.items()
        )
        rows.append(
            (
                i,
                conditions,
                run.completion.reason.value,
                run.count,
                run.samples.n_samples,
            )
        )
    table = tabulate(
        rows,
        headers=["State", "Conditions", "Result", "Count", "Samples"],
        tablefmt="github",
    )
    n_cutoff = sum(1 for run in results if run.completion.reason is CompletionStatus.CUTOFF_REACHED)
    overall = f"Runs: {len(results)}, stopped by cutoff: {n_cutoff}"
    return table + "\n" + overall
