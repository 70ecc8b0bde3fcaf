from enum import Enum, unique
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@unique
class InstanceStatus(Enum):
    """
    EC2 instance state codes. Only the low byte of the reported code is meaningful,
    the high byte is reserved for internal AWS use.

    """
    PENDING = 0
    RUNNING = 16
    SHUTTING_DOWN = 32
    TERMINATED = 48
    STOPPING = 64
    STOPPED = 80

    @classmethod
    def from_code(cls, code: int) -> "InstanceStatus":
        return cls(code & 0xFF)


@unique
class PollState(Enum):
    POLLING = "POLLING"
    SUCCEEDED = "SUCCEEDED"
    TIMED_OUT = "TIMED_OUT"
    FAILED = "FAILED"


TERMINAL_POLL_STATES = {PollState.SUCCEEDED, PollState.TIMED_OUT, PollState.FAILED}


@dataclass
class PollSession:
    """
    Bookkeeping for a single readiness wait. Elapsed time advances by one interval
    per sleep rather than by wall clock, so the real wait can overshoot the timeout
    by the latency of the status queries.

    """
    timeout: int
    interval: int

    elapsed: int = 0
    state: PollState = PollState.POLLING

    @property
    def deadline_reached(self) -> bool:
        return self.elapsed >= self.timeout

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL_POLL_STATES

    def observe(self, status: InstanceStatus):
        if status == InstanceStatus.RUNNING:
            self.state = PollState.SUCCEEDED

    def advance(self):
        self.elapsed += self.interval

    def fail(self):
        self.state = PollState.FAILED

    def expire(self):
        self.state = PollState.TIMED_OUT


@dataclass(frozen=True)
class LaunchRequest:
    """
    Everything needed to create a single runner instance. Built once before the
    launch call and never modified afterwards.

    """
    image_id: str
    instance_type: str
    subnet_id: str
    security_group_ids: List[str]
    # Base64 encoded boot script
    user_data: str

    iam_instance_profile: Optional[str] = None
    tag_specifications: List[Dict[str, Any]] = field(default_factory=list)

    def to_params(self) -> Dict[str, Any]:
        """
        Keyword arguments for `EC2.Client.run_instances`. Unset optional values are left
        out entirely since boto3 rejects explicit nulls.

        """
        params = {
            "ImageId": self.image_id,
            "InstanceType": self.instance_type,
            "MinCount": 1,
            "MaxCount": 1,
            "UserData": self.user_data,
            "SubnetId": self.subnet_id,
            "SecurityGroupIds": list(self.security_group_ids),
        }

        if self.iam_instance_profile:
            params["IamInstanceProfile"] = {"Name": self.iam_instance_profile}
        if self.tag_specifications:
            params["TagSpecifications"] = list(self.tag_specifications)

        return params
