from typing import Any, Dict, List, Optional

from pydantic import PositiveInt, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ephemeral_runner.bootstrap import DEFAULT_RUNNER_GROUP, DEFAULT_RUNNER_VERSION, SUPERUSER
from ephemeral_runner.platforms.base import DEFAULT_POLL_INTERVAL, DEFAULT_READY_TIMEOUT


# Settings that have to be present before we can launch a runner instance
LAUNCH_SETTINGS = [
    "ec2_image_id",
    "ec2_instance_type",
    "subnet_id",
    "security_group_id",
    "github_owner",
]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="EC2_RUNNER__")

    # Falls back to the default boto3 resolution (AWS_DEFAULT_REGION, profile) when unset
    aws_region: Optional[str] = None

    ec2_image_id: Optional[str] = None
    ec2_instance_type: Optional[str] = None
    subnet_id: Optional[str] = None
    security_group_id: Optional[str] = None
    # Name of the IAM instance profile attached to the runner
    iam_role_name: Optional[str] = None

    # JSON encoded list of {"Key": ..., "Value": ...} pairs
    aws_resource_tags: List[Dict[str, str]] = []

    # Organization or user that runners register against
    github_owner: Optional[str] = None

    # Only used when stopping a previously started runner
    ec2_instance_id: Optional[str] = None

    runner_user: str = SUPERUSER
    # Points at an agent that is already installed on the image
    runner_home_dir: Optional[str] = None
    runner_version: str = DEFAULT_RUNNER_VERSION
    runner_group: str = DEFAULT_RUNNER_GROUP

    ready_timeout_seconds: PositiveInt = DEFAULT_READY_TIMEOUT
    poll_interval_seconds: PositiveInt = DEFAULT_POLL_INTERVAL
    # Delegate the readiness wait to the boto3 `instance_running` waiter
    use_waiter: bool = False

    @field_validator("runner_user", mode="before")
    @classmethod
    def default_runner_user(cls, value):
        return value or SUPERUSER

    @field_validator("runner_home_dir", mode="before")
    @classmethod
    def empty_home_dir(cls, value):
        return value or None

    def missing_launch_settings(self) -> List[str]:
        return [name for name in LAUNCH_SETTINGS if not getattr(self, name)]

    def tag_specifications(self) -> List[Dict[str, Any]]:
        if not self.aws_resource_tags:
            return []

        return [
            {
                "ResourceType": resource_type,
                "Tags": self.aws_resource_tags,
            }
            for resource_type in ["instance", "volume"]
        ]
