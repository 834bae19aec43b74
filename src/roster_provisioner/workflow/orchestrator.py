"""Provisioning orchestrator.

For every target the orchestrator runs, in order:

1. copy the template into a new repository
2. wait for the provider to finish the (asynchronous) copy
3. add the roster members
4. protect the default branch against force pushes

A failure at any step is recorded against that target and the run moves on.
Targets are dispatched to a bounded thread pool; each target's own steps stay
sequential, and results are reported in roster order whatever the completion
order.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable
from concurrent.futures import Future, ThreadPoolExecutor, wait
from functools import partial

from roster_provisioner.config import ProvisionerSettings
from roster_provisioner.errors import HostingError
from roster_provisioner.hosting.client import HostingClient, RepoHandle
from roster_provisioner.roster.naming import ProvisioningTarget
from roster_provisioner.workflow.report import ProvisioningResult, RunReport
from roster_provisioner.workflow.retry import (
    RetryPolicy,
    call_with_retry,
    is_retryable,
    poll_until,
)
from roster_provisioner.workflow.state_machine import (
    Stage,
    TargetState,
    failure_stage,
    transition,
)

logger = logging.getLogger(__name__)

CANCELLED_REASON = "cancelled"


class ProvisioningCancelled(Exception):
    """Raised between stages once a stop has been requested."""


class ProvisioningOrchestrator:
    """Drives a :class:`HostingClient` through the per-target provisioning sequence."""

    def __init__(
        self,
        client: HostingClient,
        *,
        group: str,
        template_ref: str,
        default_branch: str = "main",
        workers: int = 1,
        readiness_timeout: float = 120.0,
        readiness_policy: RetryPolicy | None = None,
        config_policy: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if workers < 1:
            raise ValueError("workers must be >= 1")

        self._client = client
        self._group = group
        self._template_ref = template_ref
        self._default_branch = default_branch
        self._workers = workers
        self._readiness_timeout = readiness_timeout
        self._readiness_policy = readiness_policy or RetryPolicy()
        self._config_policy = config_policy or RetryPolicy()
        self._sleep = sleep
        self._clock = clock
        self._stop = threading.Event()

    @classmethod
    def from_settings(
        cls,
        client: HostingClient,
        settings: ProvisionerSettings,
        *,
        group: str,
        template_ref: str,
    ) -> ProvisioningOrchestrator:
        backoff = {
            "initial_delay": settings.poll_initial_seconds,
            "backoff_factor": settings.backoff_factor,
            "max_delay": settings.poll_max_seconds,
        }
        return cls(
            client,
            group=group,
            template_ref=template_ref,
            default_branch=settings.default_branch,
            workers=settings.workers,
            readiness_timeout=settings.readiness_timeout_seconds,
            readiness_policy=RetryPolicy(**backoff),
            config_policy=RetryPolicy(max_attempts=settings.config_retry_attempts, **backoff),
        )

    def request_stop(self) -> None:
        """Ask in-flight targets to stop after their current stage."""

        self._stop.set()

    def _check_stop(self) -> None:
        if self._stop.is_set():
            raise ProvisioningCancelled()

    def _retry(self, fn: Callable[[], object], description: str) -> object:
        return call_with_retry(
            fn,
            policy=self._config_policy,
            should_retry=is_retryable,
            sleep=self._sleep,
            description=description,
        )

    def _copy_template(self, target: ProvisioningTarget) -> RepoHandle:
        logger.info(
            "Creating repository",
            extra={"repo_name": target.repo_name, "template": self._template_ref},
        )
        return self._client.create_repo_from_template(
            self._group, self._template_ref, target.repo_name
        )

    def _await_ready(self, repo: RepoHandle) -> None:
        def probe() -> bool:
            try:
                return self._client.repo_is_ready(repo)
            except HostingError as e:
                if e.retryable:
                    logger.debug(
                        "Readiness probe failed; will poll again",
                        extra={"repo_name": repo.name, "error": str(e)},
                    )
                    return False
                raise

        ready = poll_until(
            probe,
            timeout=self._readiness_timeout,
            policy=self._readiness_policy,
            sleep=self._sleep,
            clock=self._clock,
        )
        if ready:
            logger.info("Repository ready", extra={"repo_name": repo.name})
        else:
            # Configuration calls below are retried, so a slow copy can still succeed.
            logger.warning(
                "Repository not ready within timeout; continuing with retries",
                extra={"repo_name": repo.name, "timeout_seconds": self._readiness_timeout},
            )

    def _add_members(self, target: ProvisioningTarget, repo: RepoHandle) -> list[str]:
        """Add every member; return one error description per member that failed."""

        errors: list[str] = []
        for username in target.members:
            try:
                self._retry(
                    partial(self._client.add_member, repo, username, target.permission_level),
                    f"add member {username} to {repo.name}",
                )
            except HostingError as e:
                logger.warning(
                    "Failed to add member",
                    extra={
                        "repo_name": repo.name,
                        "username": username,
                        "stage": Stage.MEMBER_ADD.value,
                        "error": str(e),
                    },
                )
                errors.append(f"{username}: {e}")
        return errors

    def _branch_to_protect(self, repo: RepoHandle) -> str:
        try:
            branch = self._retry(
                partial(self._client.default_branch, repo),
                f"look up default branch of {repo.name}",
            )
        except HostingError as e:
            logger.warning(
                "Could not read default branch; using configured name",
                extra={"repo_name": repo.name, "branch": self._default_branch, "error": str(e)},
            )
            return self._default_branch
        if isinstance(branch, str) and branch:
            return branch
        return self._default_branch

    def _protect_branch(self, repo: RepoHandle) -> None:
        branch = self._branch_to_protect(repo)
        self._retry(
            partial(self._client.set_branch_protection, repo, branch, forbid_force_push=True),
            f"protect {branch} on {repo.name}",
        )

    def _failed(
        self,
        target: ProvisioningTarget,
        stage: Stage,
        reason: str,
        repo: RepoHandle | None,
    ) -> ProvisioningResult:
        logger.error(
            "Provisioning failed",
            extra={"repo_name": target.repo_name, "stage": stage.value, "reason": reason},
        )
        return ProvisioningResult(
            target=target,
            state=TargetState.FAILED,
            stage=stage,
            reason=reason,
            repo=repo,
        )

    def provision(self, target: ProvisioningTarget) -> ProvisioningResult:
        """Run every stage for one target; never raises for per-target failures."""

        state = TargetState.PENDING
        repo: RepoHandle | None = None
        try:
            self._check_stop()
            repo = self._copy_template(target)
            state = transition(current=state, to=TargetState.COPIED)

            self._check_stop()
            self._await_ready(repo)
            state = transition(current=state, to=TargetState.READY)

            self._check_stop()
            member_errors = self._add_members(target, repo)
            if member_errors:
                reason = "; ".join(member_errors)
                # Still lock the branch so the members that were added cannot
                # rewrite history.
                try:
                    self._protect_branch(repo)
                except HostingError as e:
                    reason += f"; branch protection also failed: {e}"
                return self._failed(target, Stage.MEMBER_ADD, reason, repo)
            state = transition(current=state, to=TargetState.MEMBERS_ADDED)

            self._check_stop()
            self._protect_branch(repo)
            state = transition(current=state, to=TargetState.DONE)
        except ProvisioningCancelled:
            return self._failed(target, failure_stage(state), CANCELLED_REASON, repo)
        except HostingError as e:
            return self._failed(target, failure_stage(state), str(e), repo)
        except Exception as e:
            logger.exception(
                "Unexpected error while provisioning", extra={"repo_name": target.repo_name}
            )
            return self._failed(target, failure_stage(state), f"unexpected error: {e}", repo)

        logger.info("Repository provisioned", extra={"repo_name": target.repo_name})
        return ProvisioningResult(target=target, state=state, repo=repo)

    def run(self, targets: Iterable[ProvisioningTarget]) -> RunReport:
        """Provision all targets and return results in input order.

        On KeyboardInterrupt, targets already in flight finish their current
        stage and record a cancelled result; targets not yet started are
        recorded as cancelled without any remote call.
        """

        targets = list(targets)
        self._stop.clear()
        interrupted = False
        logger.info(
            "Starting provisioning run",
            extra={"targets": len(targets), "workers": self._workers},
        )

        executor = ThreadPoolExecutor(max_workers=self._workers, thread_name_prefix="provision")
        with executor:
            futures: list[Future[ProvisioningResult]] = [
                executor.submit(self.provision, target) for target in targets
            ]
            try:
                wait(futures)
            except KeyboardInterrupt:
                interrupted = True
                logger.warning(
                    "Interrupted; waiting for in-flight targets to finish their current stage"
                )
                self.request_stop()
                for future in futures:
                    future.cancel()
                wait(futures)

        results: list[ProvisioningResult] = []
        for target, future in zip(targets, futures):
            if future.cancelled():
                results.append(
                    ProvisioningResult(
                        target=target,
                        state=TargetState.FAILED,
                        stage=Stage.REPO_CREATE,
                        reason=CANCELLED_REASON,
                    )
                )
            else:
                results.append(future.result())

        report = RunReport(results=results, interrupted=interrupted)
        logger.info("Provisioning run finished", extra={"summary": report.summary()})
        return report
