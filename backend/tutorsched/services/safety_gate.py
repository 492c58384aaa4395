# backend/tutorsched/services/safety_gate.py
"""
Safety gate for destructive scheduling capabilities.

Two states, staging and production, chosen by explicit operator input and
never read from settings or the process environment. Destructive
capabilities are staging-only; production additionally requires explicit
confirmation for every operation, dry runs included. The gate must run
before any generation, resolution or write.
"""

import logging
from typing import Iterable, Sequence, Union

from ..core.constants import FORBIDDEN_CLI_FLAGS
from ..core.enums import CapabilityFlag, DeploymentEnvironment
from ..core.exceptions import ForbiddenOperationException
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)


def resolve_environment(environment: Union[DeploymentEnvironment, str]) -> DeploymentEnvironment:
    if isinstance(environment, DeploymentEnvironment):
        return environment
    try:
        return DeploymentEnvironment.parse(environment)
    except ValueError as exc:
        prometheus_metrics.record_gate_denial(str(environment), "unknown_environment")
        raise ForbiddenOperationException(
            str(exc), code="UNKNOWN_ENVIRONMENT", details={"environment": environment}
        ) from exc


def _resolve_flag(flag: Union[CapabilityFlag, str], env: DeploymentEnvironment) -> CapabilityFlag:
    try:
        return CapabilityFlag(flag)
    except ValueError as exc:
        prometheus_metrics.record_gate_denial(env.value, "unknown_capability")
        raise ForbiddenOperationException(
            f"Unknown capability flag: {flag!r}",
            code="UNKNOWN_CAPABILITY",
            details={"environment": env.value, "flag": str(flag)},
        ) from exc


def authorize(
    requested_flags: Iterable[Union[CapabilityFlag, str]],
    environment: Union[DeploymentEnvironment, str],
    confirm_production: bool = False,
) -> DeploymentEnvironment:
    """
    Validate requested capabilities against the target environment.

    Returns the resolved environment so callers can thread it onward.

    Raises:
        ForbiddenOperationException: On any violation
    """
    env = resolve_environment(environment)
    flags = sorted({_resolve_flag(flag, env) for flag in requested_flags}, key=lambda flag: flag.value)

    if env is DeploymentEnvironment.PRODUCTION:
        destructive = [flag.value for flag in flags if flag.is_destructive]
        if destructive:
            prometheus_metrics.record_gate_denial(env.value, "destructive_capability")
            logger.warning(f"Safety gate denied {destructive} in production")
            raise ForbiddenOperationException(
                f"{', '.join(destructive)} is only permitted in staging",
                code="DESTRUCTIVE_CAPABILITY_IN_PRODUCTION",
                details={"environment": env.value, "flags": destructive},
            )
        if not confirm_production:
            prometheus_metrics.record_gate_denial(env.value, "missing_confirmation")
            raise ForbiddenOperationException(
                "Production requires explicit confirmation (confirm_production)",
                code="PRODUCTION_CONFIRMATION_REQUIRED",
                details={"environment": env.value, "flags": [flag.value for flag in flags]},
            )

    logger.info(f"Safety gate passed: environment={env.value} flags={[flag.value for flag in flags]}")
    return env


def reject_forbidden_arguments(argv: Sequence[str]) -> None:
    """
    Refuse raw destructive switches (``--reset``, ``--wipe`` ...) before argument parsing.

    Raises:
        ForbiddenOperationException: If any forbidden switch is present
    """
    for arg in argv:
        switch = arg.split("=", 1)[0].strip().lower()
        if switch in FORBIDDEN_CLI_FLAGS:
            raise ForbiddenOperationException(
                f"Forbidden destructive flag detected: {switch}",
                code="FORBIDDEN_FLAG",
                details={"flag": switch},
            )
