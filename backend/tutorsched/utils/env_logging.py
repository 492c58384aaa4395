"""Environment-tagged operator output for the term-setup CLI."""
from __future__ import annotations

from typing import Union

import click

from ..core.enums import DeploymentEnvironment

# Production output is bold red so a mis-targeted run stands out.
_TAG_STYLES = {
    DeploymentEnvironment.STAGING.value: {"fg": "green"},
    DeploymentEnvironment.PRODUCTION.value: {"fg": "red", "bold": True},
    "refused": {"fg": "yellow"},
}

__all__ = ["env_tag", "log_info", "log_warn", "log_error"]

EnvLike = Union[DeploymentEnvironment, str, None]


def _normalize(env: EnvLike) -> str:
    if isinstance(env, DeploymentEnvironment):
        return env.value
    return (env or "").strip().lower()


def env_tag(env: EnvLike) -> str:
    """``[STAGING]`` / ``[PRODUCTION]`` styled for the terminal; unknown names stay plain."""
    name = _normalize(env)
    tag = f"[{name.upper() or 'UNKNOWN'}]"
    style = _TAG_STYLES.get(name)
    return click.style(tag, **style) if style else tag


def log_info(env: EnvLike, message: str) -> None:
    click.echo(f"{env_tag(env)} {message}")


def log_warn(env: EnvLike, message: str) -> None:
    click.echo(f"{env_tag(env)} WARNING: {message}", err=True)


def log_error(env: EnvLike, message: str) -> None:
    click.echo(f"{env_tag(env)} ERROR: {message}", err=True)
