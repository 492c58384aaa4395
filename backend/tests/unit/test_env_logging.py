# backend/tests/unit/test_env_logging.py
import click

from tutorsched.core.enums import DeploymentEnvironment
from tutorsched.utils.env_logging import env_tag, log_error, log_info


def test_tags_are_upper_case_environment_names():
    assert click.unstyle(env_tag("staging")) == "[STAGING]"
    assert click.unstyle(env_tag(DeploymentEnvironment.PRODUCTION)) == "[PRODUCTION]"


def test_unknown_names_are_not_styled():
    assert env_tag("qa") == "[QA]"
    assert env_tag(None) == "[UNKNOWN]"


def test_errors_go_to_stderr(capsys):
    log_info("staging", "12 rules loaded")
    log_error("production", "refused")

    captured = capsys.readouterr()
    assert "12 rules loaded" in captured.out
    assert "ERROR: refused" in captured.err
    assert "refused" not in captured.out
