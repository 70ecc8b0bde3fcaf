"""
Boot script for new runner instances. EC2 runs user data as root on first boot, so the
script is responsible for installing the GitHub Actions runner agent, registering it
under the requested label, and handing control to the configured runner user.

Commands are kept as typed values until `render_script`, which is the only place
where shell text is produced and where every caller-supplied argument is quoted.

"""
from base64 import b64encode
from dataclasses import dataclass, field
from shlex import quote
from typing import List, Optional, Sequence, Tuple, Union


SUPERUSER = "root"
DEFAULT_RUNNER_VERSION = "2.305.0"
DEFAULT_RUNNER_GROUP = "aws_runners"
RUNNER_DIRECTORY = "actions-runner"

INTERPRETER_DIRECTIVE = "#!/bin/bash"

# Maps `uname -m` onto the architecture suffix used by the runner release artifacts
DETECT_ARCHITECTURE = (
    'case $(uname -m) in aarch64) ARCH="arm64" ;; amd64|x86_64) ARCH="x64" ;; esac'
    " && export RUNNER_ARCH=${ARCH}"
)


class Verbatim(str):
    """
    Shell text that we author ourselves and that has to reach the shell unquoted,
    typically because it relies on variable expansion. Never wrap user input in this.

    """


Argument = Union[str, Verbatim]


@dataclass(frozen=True)
class ShellCommand:
    program: Argument
    args: Tuple[Argument, ...] = field(default_factory=tuple)

    def as_user(self, user: str) -> "ShellCommand":
        """
        Re-invoke this command under `user`. The user flag is also appended to the wrapped
        command itself, which mirrors the script the runner images were built against.

        """
        return ShellCommand(
            "sudo",
            ("-u", user, self.program, *self.args, "-u", user),
        )


def render_argument(argument: Argument) -> str:
    if isinstance(argument, Verbatim):
        return str(argument)
    return quote(argument)


def render_command(command: ShellCommand) -> str:
    return " ".join(
        render_argument(argument)
        for argument in (command.program, *command.args)
    )


def render_script(commands: Sequence[ShellCommand]) -> str:
    return "\n".join(render_command(command) for command in commands)


def encode_user_data(commands: Sequence[ShellCommand]) -> str:
    """
    EC2 expects user data as a base64 string when it is passed through the low level client
    """
    return b64encode(render_script(commands).encode("utf-8")).decode("ascii")


def release_archive(runner_version: str) -> Verbatim:
    # The version comes from configuration; the architecture is resolved on the instance
    return Verbatim(f"actions-runner-linux-${{RUNNER_ARCH}}-{quote(runner_version)}.tar.gz")


def build_boot_script(
    registration_token: str,
    label: str,
    github_owner: str,
    runner_user: Optional[str] = SUPERUSER,
    runner_home_dir: Optional[str] = None,
    runner_version: str = DEFAULT_RUNNER_VERSION,
    runner_group: str = DEFAULT_RUNNER_GROUP,
) -> List[ShellCommand]:
    """
    Build the ordered commands that register a runner for `label` on a fresh instance.

    :param registration_token: One-time GitHub runner registration token
    :param runner_user: Account the agent should run as. Falls back to the superuser when
        empty, in which case no command is wrapped.
    :param runner_home_dir: Directory of an agent that is already installed on the image. When
        set we skip the download entirely and reuse that install.

    """
    runner_user = runner_user or SUPERUSER

    def run_as_user(command: ShellCommand) -> ShellCommand:
        return command if runner_user == SUPERUSER else command.as_user(runner_user)

    register = ShellCommand(
        "./config.sh",
        (
            "--url", f"https://github.com/{github_owner}",
            "--token", registration_token,
            "--labels", label,
            "--runnergroup", runner_group,
            "--unattended",
        ),
    )
    run = ShellCommand("./run.sh")

    if runner_home_dir:
        return [
            ShellCommand(Verbatim(INTERPRETER_DIRECTIVE)),
            ShellCommand("cd", (runner_home_dir,)),
            ShellCommand("export", ("RUNNER_ALLOW_RUNASROOT=1",)),
            run_as_user(register),
            run_as_user(run),
        ]

    archive = release_archive(runner_version)
    download_url = Verbatim(
        f"https://github.com/actions/runner/releases/download/v{quote(runner_version)}/{archive}"
    )

    return [
        ShellCommand(Verbatim(INTERPRETER_DIRECTIVE)),
        ShellCommand("mkdir", (RUNNER_DIRECTORY,)),
        ShellCommand("cd", (RUNNER_DIRECTORY,)),
        ShellCommand(Verbatim(DETECT_ARCHITECTURE)),
        ShellCommand("curl", ("-O", "-L", download_url)),
        ShellCommand("tar", ("xzf", Verbatim(f"./{archive}"))),
        ShellCommand("chown", ("-R", f"{runner_user}:{runner_user}", ".")),
        run_as_user(register),
        run_as_user(run),
    ]
