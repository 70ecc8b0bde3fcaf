from base64 import b64decode
from ephemeral_runner.bootstrap import (
    build_boot_script,
    encode_user_data,
    render_command,
    render_script,
    DETECT_ARCHITECTURE,
    INTERPRETER_DIRECTIVE,
)
import pytest

TOKEN = "AABBCCDDEE"
LABEL = "x7k2p"
OWNER = "example-org"


def rendered_lines(**kwargs):
    return [render_command(command) for command in build_boot_script(TOKEN, LABEL, OWNER, **kwargs)]


@pytest.mark.parametrize(
    "options",
    [
        {},
        {"runner_user": "ubuntu"},
        {"runner_home_dir": "/home/ubuntu/actions-runner"},
        {"runner_user": "ubuntu", "runner_home_dir": "/home/ubuntu/actions-runner"},
    ]
)
def test_script_shape(options):
    lines = rendered_lines(**options)

    assert lines[0] == INTERPRETER_DIRECTIVE
    assert any(TOKEN in line and LABEL in line for line in lines)
    assert lines[-1].endswith("./run.sh") or lines[-1].endswith("-u ubuntu")


def test_fresh_install():
    lines = rendered_lines()

    assert lines == [
        "#!/bin/bash",
        "mkdir actions-runner",
        "cd actions-runner",
        DETECT_ARCHITECTURE,
        "curl -O -L https://github.com/actions/runner/releases/download/v2.305.0/actions-runner-linux-${RUNNER_ARCH}-2.305.0.tar.gz",
        "tar xzf ./actions-runner-linux-${RUNNER_ARCH}-2.305.0.tar.gz",
        "chown -R root:root .",
        f"./config.sh --url https://github.com/{OWNER} --token {TOKEN} --labels {LABEL} --runnergroup aws_runners --unattended",
        "./run.sh",
    ]


def test_architecture_detected_once_before_download():
    lines = rendered_lines(runner_version="2.311.0")

    detection = [index for index, line in enumerate(lines) if "uname -m" in line]
    download = [index for index, line in enumerate(lines) if line.startswith("curl")]

    assert len(detection) == 1
    assert len(download) == 1
    assert detection[0] < download[0]
    assert "v2.311.0/actions-runner-linux-${RUNNER_ARCH}-2.311.0.tar.gz" in lines[download[0]]


def test_existing_install_skips_download():
    lines = rendered_lines(runner_home_dir="/opt/runner")

    assert lines[:3] == [
        "#!/bin/bash",
        "cd /opt/runner",
        "export RUNNER_ALLOW_RUNASROOT=1",
    ]
    assert not any("uname -m" in line for line in lines)
    assert not any(line.startswith(("curl", "tar")) for line in lines)


def test_superuser_is_never_wrapped():
    lines = rendered_lines(runner_user="root")
    assert not any(line.startswith("sudo") for line in lines)


def test_empty_user_falls_back_to_superuser():
    assert rendered_lines(runner_user="") == rendered_lines()
    assert rendered_lines(runner_user=None) == rendered_lines()


def test_non_root_user_wraps_register_and_run():
    lines = rendered_lines(runner_user="ubuntu")

    wrapped = [line for line in lines if line.startswith("sudo")]
    assert wrapped == [
        f"sudo -u ubuntu ./config.sh --url https://github.com/{OWNER} --token {TOKEN} "
        f"--labels {LABEL} --runnergroup aws_runners --unattended -u ubuntu",
        "sudo -u ubuntu ./run.sh -u ubuntu",
    ]
    assert "chown -R ubuntu:ubuntu ." in lines


def test_caller_values_are_quoted():
    lines = rendered_lines(runner_home_dir="/opt/my runner")
    register = next(
        command for command in build_boot_script("tok; rm -rf /", "a b", OWNER)
        if command.program == "./config.sh"
    )

    assert lines[1] == "cd '/opt/my runner'"
    assert render_command(register) == (
        f"./config.sh --url https://github.com/{OWNER} --token 'tok; rm -rf /' "
        "--labels 'a b' --runnergroup aws_runners --unattended"
    )


def test_encode_user_data():
    commands = build_boot_script(TOKEN, LABEL, OWNER)
    decoded = b64decode(encode_user_data(commands)).decode("utf-8")

    assert decoded == render_script(commands)
    assert decoded.splitlines()[0] == "#!/bin/bash"


def test_home_dir_is_not_expanded():
    lines = rendered_lines(runner_home_dir="$HOME/actions-runner")
    assert lines[1] == "cd '$HOME/actions-runner'"
