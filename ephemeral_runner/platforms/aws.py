from math import ceil
from time import sleep as time_sleep
from typing import Callable, Optional

from botocore.exceptions import WaiterError

from ephemeral_runner.bootstrap import build_boot_script, encode_user_data
from ephemeral_runner.logging import logger
from ephemeral_runner.models import InstanceStatus, LaunchRequest, PollSession
from ephemeral_runner.platforms.base import PlatformBase, InstanceTimeoutError
from ephemeral_runner.settings import Settings


WAITER_TIMEOUT_REASON = "Max attempts exceeded"


@logger
class AWSPlatform(PlatformBase):
    def __init__(
        self,
        client,
        settings: Settings,
        sleep: Callable[[float], None] = time_sleep,
    ):
        """
        :param client: boto3 EC2 client, already bound to the target region and credentials.
            Created once by the caller so tests can substitute their own.

        """
        super().__init__(
            ready_timeout=settings.ready_timeout_seconds,
            poll_interval=settings.poll_interval_seconds,
            sleep=sleep,
        )
        self.client = client
        self.settings = settings

    def launch_request(self, label: str, registration_token: str) -> LaunchRequest:
        commands = build_boot_script(
            registration_token,
            label,
            github_owner=self.settings.github_owner,
            runner_user=self.settings.runner_user,
            runner_home_dir=self.settings.runner_home_dir,
            runner_version=self.settings.runner_version,
            runner_group=self.settings.runner_group,
        )

        return LaunchRequest(
            image_id=self.settings.ec2_image_id,
            instance_type=self.settings.ec2_instance_type,
            subnet_id=self.settings.subnet_id,
            security_group_ids=[self.settings.security_group_id],
            user_data=encode_user_data(commands),
            iam_instance_profile=self.settings.iam_role_name,
            tag_specifications=self.settings.tag_specifications(),
        )

    def start(self, label: str, registration_token: str) -> str:
        request = self.launch_request(label, registration_token)

        # https://boto3.amazonaws.com/v1/documentation/api/latest/reference/services/ec2.html#EC2.Client.run_instances
        try:
            created_instance = self.client.run_instances(**request.to_params())
            instance_id = created_instance["Instances"][0]["InstanceId"]
        except Exception:
            self.logger.error("AWS EC2 instance starting error")
            raise

        self.logger.info(f"AWS EC2 instance {instance_id} is started")
        return instance_id

    def instance_status(self, instance_id: str) -> InstanceStatus:
        response = self.client.describe_instances(InstanceIds=[instance_id])
        instance = response["Reservations"][0]["Instances"][0]
        return InstanceStatus.from_code(instance["State"]["Code"])

    def wait_until_running(
        self,
        instance_id: str,
        timeout: Optional[int] = None,
        poll_interval: Optional[int] = None,
    ) -> PollSession:
        if not self.settings.use_waiter:
            return super().wait_until_running(instance_id, timeout, poll_interval)

        session = PollSession(
            timeout=self.ready_timeout if timeout is None else timeout,
            interval=self.poll_interval if poll_interval is None else poll_interval,
        )
        waiter = self.client.get_waiter("instance_running")

        try:
            waiter.wait(
                InstanceIds=[instance_id],
                WaiterConfig={
                    "Delay": session.interval,
                    "MaxAttempts": max(1, ceil(session.timeout / session.interval)),
                },
            )
        except Exception as e:
            if isinstance(e, WaiterError) and e.kwargs.get("reason") == WAITER_TIMEOUT_REASON:
                session.expire()
                self.logger.error(
                    f"AWS EC2 instance {instance_id} did not start within {session.timeout}s"
                )
                raise InstanceTimeoutError(instance_id, session.timeout) from e
            session.fail()
            self.logger.error(f"AWS EC2 instance {instance_id} initialization error")
            raise

        session.observe(InstanceStatus.RUNNING)
        self.logger.info(f"AWS EC2 instance {instance_id} is up and running")
        return session

    def terminate(self, instance_id: str):
        try:
            self.client.terminate_instances(InstanceIds=[instance_id])
        except Exception:
            self.logger.error(f"AWS EC2 instance {instance_id} termination error")
            raise

        self.logger.info(f"AWS EC2 instance {instance_id} is terminated")
