from abc import ABC, abstractmethod
from logging import Logger
from time import sleep as time_sleep
from typing import Callable, Optional

from ephemeral_runner.models import InstanceStatus, PollSession


DEFAULT_READY_TIMEOUT = 6 * 60
DEFAULT_POLL_INTERVAL = 5


class InstanceTimeoutError(TimeoutError):
    def __init__(self, instance_id: str, timeout: int):
        super().__init__(f"Instance `{instance_id}` did not reach the running state within {timeout}s")
        self.instance_id = instance_id
        self.timeout = timeout


class PlatformBase(ABC):
    """
    Lifecycle of a single ephemeral runner instance: start it, wait until the provider
    reports it as running, and terminate it once the job is done. Instances are tracked
    only through the identifier returned by `start`; nothing is reconciled afterwards.

    """
    logger: Logger

    def __init__(
        self,
        ready_timeout: int = DEFAULT_READY_TIMEOUT,
        poll_interval: int = DEFAULT_POLL_INTERVAL,
        sleep: Callable[[float], None] = time_sleep,
    ):
        """
        :param ready_timeout: Seconds to wait for an instance to reach the running state
        :param poll_interval: Seconds between two status queries
        :param sleep: Suspends the caller between status queries; swapped out in tests

        """
        self.ready_timeout = ready_timeout
        self.poll_interval = poll_interval
        self.sleep = sleep

    @abstractmethod
    def start(self, label: str, registration_token: str) -> str:
        """
        Launch one instance that registers itself as a runner under `label`. Returns the
        provider's identifier for the new instance.

        """
        pass

    @abstractmethod
    def instance_status(self, instance_id: str) -> InstanceStatus:
        """
        Query the current lifecycle state of the instance
        """
        pass

    @abstractmethod
    def terminate(self, instance_id: str):
        pass

    def wait_until_running(
        self,
        instance_id: str,
        timeout: Optional[int] = None,
        poll_interval: Optional[int] = None,
    ) -> PollSession:
        """
        Block until `instance_id` is running. Any failed status query aborts the wait
        immediately, and running out of time raises `InstanceTimeoutError`. The instance
        is left as-is in both cases; cleaning it up is the caller's decision.

        """
        session = PollSession(
            timeout=self.ready_timeout if timeout is None else timeout,
            interval=self.poll_interval if poll_interval is None else poll_interval,
        )

        while not session.deadline_reached:
            try:
                status = self.instance_status(instance_id)
            except Exception:
                session.fail()
                self.logger.error(f"Instance {instance_id} initialization error")
                raise

            self.logger.debug(f"{instance_id} - {status.name}")
            session.observe(status)

            # Once running there is nothing left to wait for
            if session.finished:
                self.logger.info(f"Instance {instance_id} is up and running")
                return session

            self.sleep(session.interval)
            session.advance()

        session.expire()
        self.logger.error(
            f"Instance {instance_id} did not start within {session.timeout}s"
        )
        raise InstanceTimeoutError(instance_id, session.timeout)
