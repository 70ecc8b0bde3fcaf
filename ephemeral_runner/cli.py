from click import group, option, secho, UsageError, ClickException
from boto3 import Session
from ephemeral_runner.platforms.aws import AWSPlatform
from ephemeral_runner.platforms.base import InstanceTimeoutError
from ephemeral_runner.settings import Settings
from ephemeral_runner.logging import get_logger
from random import choice
from string import ascii_lowercase, digits
from os import environ


LABEL_LENGTH = 5

LOGGER = get_logger("cli")


def generate_label() -> str:
    """
    Short random label so a workflow can route its jobs to exactly the runner it started
    """
    return "".join(choice(ascii_lowercase + digits) for _ in range(LABEL_LENGTH))


def set_output(name: str, value: str):
    """
    Publish a value as a step output when running inside GitHub Actions, and echo it
    either way so it also shows up in local runs.

    """
    secho(f"{name}={value}")

    output_path = environ.get("GITHUB_OUTPUT")
    if output_path:
        with open(output_path, "a") as file:
            file.write(f"{name}={value}\n")


def create_platform(settings: Settings) -> AWSPlatform:
    session = Session(region_name=settings.aws_region)
    return AWSPlatform(client=session.client("ec2"), settings=settings)


@group()
def cli():
    pass


@cli.command()
@option("--registration-token", envvar="EC2_RUNNER__REGISTRATION_TOKEN", type=str, required=True)
@option("--label", type=str, default=None, help="Runner label, generated when omitted")
def start(registration_token, label):
    settings = Settings()

    missing = settings.missing_launch_settings()
    if missing:
        raise UsageError(f"Missing required settings: {', '.join(missing)}")

    label = label or generate_label()
    platform = create_platform(settings)

    instance_id = platform.start(label, registration_token)
    set_output("label", label)
    set_output("ec2-instance-id", instance_id)

    try:
        platform.wait_until_running(instance_id)
    except InstanceTimeoutError as e:
        # The instance is left in place; stopping it is up to the calling workflow
        LOGGER.warning(f"Runner `{label}` left on `{instance_id}` after readiness timeout")
        raise ClickException(str(e))

    secho(f"Runner `{label}` is ready on `{instance_id}`", fg="green")


@cli.command()
@option("--instance-id", type=str, default=None, help="Defaults to EC2_RUNNER__EC2_INSTANCE_ID")
def stop(instance_id):
    settings = Settings()

    instance_id = instance_id or settings.ec2_instance_id
    if not instance_id:
        raise UsageError("No instance to stop, pass --instance-id or set EC2_RUNNER__EC2_INSTANCE_ID")

    platform = create_platform(settings)
    platform.terminate(instance_id)
    secho(f"Terminated `{instance_id}`", fg="yellow")


def main():
    cli()
