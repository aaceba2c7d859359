"""Instance state polling with a bounded retry budget."""

from __future__ import annotations

from tenacity import RetryError, Retrying, retry_if_result, stop_after_attempt, wait_fixed

from ec2agent.api.service import InstanceDescription, InstanceService
from ec2agent.config import RetryPolicy
from ec2agent.constants import IN_PROGRESS_STATES, InstanceState
from ec2agent.core.exceptions import (
    CloudServiceError,
    InstanceNotFoundError,
    RetriesExhaustedError,
    UnexpectedStateError,
)
from ec2agent.observability.session import SessionLog

from .cancel import CancelSignal


class InstanceStatePoller:
    """Waits for an instance to converge on a goal state.

    Pending and stopping are progress; any other state that is not the goal
    fails on first sight. A running instance only counts once it has a
    public address.
    """

    def __init__(self, service: InstanceService, policy: RetryPolicy) -> None:
        self._service = service
        self._policy = policy

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    def wait_for_state(
        self,
        instance_id: str,
        goal: InstanceState,
        *,
        cancel: CancelSignal,
        log: SessionLog,
        settle: bool = True,
    ) -> InstanceDescription:
        """Block until ``instance_id`` reports ``goal``.

        Args:
            instance_id: Instance to poll.
            goal: Target state.
            cancel: Signal interrupting the wait between attempts.
            log: Session stream receiving one line per attempt.
            settle: Hold the settle delay after reaching ``running``.

        Returns:
            The description that satisfied the goal.

        Raises:
            UnexpectedStateError: The instance reported a state that does not
                lead to ``goal``.
            RetriesExhaustedError: ``max_retries`` attempts were used up.
            InstanceNotFoundError: The instance does not exist.
            LaunchCancelledError: ``cancel`` fired during the wait.
        """
        policy = self._policy
        cancel.instance_id = instance_id
        log = log.bind(instance_id=instance_id)
        attempts = 0

        def attempt() -> InstanceDescription | None:
            nonlocal attempts
            cancel.raise_if_cancelled()
            attempts += 1
            attempt_log = log.bind(attempt=f"{attempts}/{policy.max_retries}")
            attempt_log.debug(f"checking state of instance [{instance_id}]")

            try:
                description = self._service.describe_instance(instance_id)
            except InstanceNotFoundError:
                raise
            except CloudServiceError as e:
                attempt_log.warning(
                    f"describe failed ({e.reason}), retrying in {policy.poll_interval:g}s"
                )
                return None

            return self._observe(description, goal, attempt_log.bind(state=description.state))

        retrying = Retrying(
            stop=stop_after_attempt(policy.max_retries),
            wait=wait_fixed(policy.poll_interval),
            retry=retry_if_result(lambda d: d is None),
            sleep=cancel.sleep,
        )

        try:
            description = retrying(attempt)
        except RetryError as e:
            err = RetriesExhaustedError(instance_id, goal, policy.max_retries)
            log.error(f"{err}. Aborting", attempt=f"{attempts}/{policy.max_retries}")
            raise err from e

        if goal is InstanceState.RUNNING and settle and policy.settle_delay > 0:
            log.info(
                f"waiting {policy.settle_delay:g}s for services on the instance to start",
                state=description.state,
            )
            cancel.sleep(policy.settle_delay)

        return description

    def _observe(
        self,
        description: InstanceDescription,
        goal: InstanceState,
        log: SessionLog,
    ) -> InstanceDescription | None:
        state = description.state
        interval = self._policy.poll_interval

        if state is goal:
            if goal is InstanceState.RUNNING and not description.has_address:
                log.info(f"instance has no public address yet, waiting {interval:g}s before retrying")
                return None
            log.info(f"instance is {state}")
            return description

        if state in IN_PROGRESS_STATES or (
            goal is InstanceState.TERMINATED and state is InstanceState.SHUTTING_DOWN
        ):
            log.info(f"instance is {state}, waiting {interval:g}s before retrying")
            return None

        err = UnexpectedStateError(description.instance_id, state, goal)
        log.error(f"{err}. Aborting")
        raise err
