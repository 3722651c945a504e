from .deadline import RunHandle, run_with_deadline, start_run, wait
from .runner import Runner
from .steps import BRANCH_PREFIX, STEPS, RunParams, Step, StepContext, new_params, working_branch_name

__all__ = [
    "RunHandle",
    "run_with_deadline",
    "start_run",
    "wait",
    "Runner",
    "BRANCH_PREFIX",
    "STEPS",
    "RunParams",
    "Step",
    "StepContext",
    "new_params",
    "working_branch_name",
]
