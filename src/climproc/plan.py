from __future__ import annotations

__all__ = ["jobs_to_frame", "save_plan", "PLAN_COLUMNS"]

from pathlib import Path
from typing import Iterable

import pandas as pd

from climproc.models import Job

#: Columns of the job table, in order.
PLAN_COLUMNS = ["name", "variable", "stage", "script_path", "output_path", "dependencies"]


def jobs_to_frame(jobs: Iterable[Job]) -> pd.DataFrame:
    """Return one row per job, in the given order.

    Returns a DataFrame with columns:
        name, variable, stage, script_path, output_path, dependencies

    ``variable`` and ``stage`` are empty for the cleanup job, which produces
    no format. ``dependencies`` holds the comma-joined names of the job's
    direct dependencies.
    """
    rows = [
        {
            "name": job.name,
            "variable": str(job.output.variable) if job.output is not None else "",
            "stage": job.output.stage.value if job.output is not None else "",
            "script_path": str(job.script_path),
            "output_path": str(job.output_path),
            "dependencies": ",".join(dep.name for dep in job.dependencies),
        }
        for job in jobs
    ]
    if not rows:
        return pd.DataFrame(columns=PLAN_COLUMNS)
    return pd.DataFrame(rows, columns=PLAN_COLUMNS)


def save_plan(plan: pd.DataFrame, path: str | Path) -> None:
    """Write the job table to *path* as CSV, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    plan.to_csv(path, index=False)
