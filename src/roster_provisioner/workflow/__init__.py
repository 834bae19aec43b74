from roster_provisioner.workflow.orchestrator import ProvisioningOrchestrator
from roster_provisioner.workflow.report import ProvisioningResult, ResultRecord, RunReport
from roster_provisioner.workflow.retry import RetryPolicy, call_with_retry, poll_until
from roster_provisioner.workflow.state_machine import Stage, TargetState

__all__ = [
    "ProvisioningOrchestrator",
    "ProvisioningResult",
    "ResultRecord",
    "RetryPolicy",
    "RunReport",
    "Stage",
    "TargetState",
    "call_with_retry",
    "poll_until",
]
