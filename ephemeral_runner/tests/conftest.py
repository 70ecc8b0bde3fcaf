from unittest.mock import MagicMock
from tempfile import TemporaryDirectory
from pathlib import Path
from ephemeral_runner.settings import Settings
import pytest


class SleepRecorder:
    """
    Stands in for `time.sleep` so polling tests never actually wait
    """
    def __init__(self):
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)


@pytest.fixture(scope="function")
def output_dir():
    with TemporaryDirectory() as directory:
        yield Path(directory)


@pytest.fixture()
def sleep_recorder():
    return SleepRecorder()


@pytest.fixture()
def settings():
    return Settings(
        aws_region="us-east-1",
        ec2_image_id="ami-123",
        ec2_instance_type="t3.medium",
        subnet_id="subnet-123",
        security_group_id="sg-123",
        iam_role_name="runner-role",
        aws_resource_tags=[{"Key": "Owner", "Value": "ci"}],
        github_owner="example-org",
        ready_timeout_seconds=30,
        poll_interval_seconds=5,
    )


@pytest.fixture()
def ec2_client():
    return MagicMock()
