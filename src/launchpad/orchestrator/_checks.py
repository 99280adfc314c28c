"""Phase checks.

A phase is an ordered list of :class:`Check`. A check raises a
``LaunchpadError`` when its condition does not hold; its failure policy tells
the orchestrator what to do about it.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from enum import StrEnum
from functools import partial
from typing import TYPE_CHECKING

import orjson

from launchpad.config import build_command
from launchpad.enums import ErrorCode
from launchpad.exceptions import (
    CheckFailedError,
    DirectoryRemovalError,
    InstallStrategiesExhaustedError,
    RetriesExhaustedError,
    ServiceUnreachableError,
)

from ._health import HealthStatus, wait_until_reachable

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from pathlib import Path

    from launchpad.config import PortSpec, ServiceCommandConfig

    from ._context import OrchestrationContext

    type CheckFn = Callable[[OrchestrationContext], Awaitable[None]]

_VERSION_RE = re.compile(r"v?(\d+)(?:\.(\d+))?(?:\.(\d+))?")
_ENV_NAME_RE = re.compile(r"^(?:export\s+)?([A-Za-z_][A-Za-z0-9_]*)\s*=")


class FailurePolicy(StrEnum):
    """What a failing check does to the run.

    ABORT hands the error to the recovery handler and aborts unless it is
    recovered. DEGRADE records the error and continues. WARN turns the
    message into a warning.
    """

    ABORT = "abort"
    DEGRADE = "degrade"
    WARN = "warn"


@dataclass(frozen=True, slots=True)
class Check:
    """A named step of a phase.

    Attributes:
        name: Shown in logs, warnings and recovery context.
        run: Coroutine function performing the check.
        on_failure: Failure policy.
        service_name: Service passed to restart requests.
    """

    name: str
    run: CheckFn
    on_failure: FailurePolicy = FailurePolicy.ABORT
    service_name: str | None = None


# =============================================================================
# Parsing helpers
# =============================================================================


def parse_version(text: str) -> tuple[int, int, int] | None:
    """Extract the first ``major[.minor[.patch]]`` version from ``text``.

    Examples:
        >>> parse_version("v20.11.1")
        (20, 11, 1)
        >>> parse_version("18")
        (18, 0, 0)
    """
    match = _VERSION_RE.search(text)
    if match is None:
        return None
    major, minor, patch = match.groups()
    return int(major), int(minor or 0), int(patch or 0)


def env_names(text: str) -> list[str]:
    """Return the variable names assigned in dotenv-style ``text``, in order."""
    names: list[str] = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        match = _ENV_NAME_RE.match(stripped)
        if match is not None and match.group(1) not in names:
            names.append(match.group(1))
    return names


def _read_manifest(ctx: OrchestrationContext) -> dict[str, object]:
    path = ctx.path(ctx.config.validation.manifest)
    try:
        data = orjson.loads(path.read_bytes())
    except FileNotFoundError as e:
        msg = f"Manifest not found: {path.name}"
        raise CheckFailedError(
            msg, code=ErrorCode.DATA_VALIDATION_FAILED, details={"path": str(path)}
        ) from e
    except (OSError, orjson.JSONDecodeError) as e:
        msg = f"Manifest could not be read: {e}"
        raise CheckFailedError(
            msg, code=ErrorCode.DATA_VALIDATION_FAILED, details={"path": str(path)}
        ) from e
    if not isinstance(data, dict):
        msg = f"Manifest is not a JSON object: {path.name}"
        raise CheckFailedError(msg, code=ErrorCode.DATA_VALIDATION_FAILED)
    return data  # pyright: ignore[reportUnknownVariableType]


# =============================================================================
# Preflight
# =============================================================================


async def check_runtime_version(ctx: OrchestrationContext) -> None:
    settings = ctx.config.preflight
    if settings.runtime_command is None:
        return

    cmd = build_command(settings.runtime_command, ctx.platform, cwd=ctx.project_root)
    result = await ctx.runner.run_once(cmd)
    found = parse_version(result.stdout)
    required = parse_version(settings.minimum_runtime)
    if found is None or required is None:
        msg = f"Could not read a runtime version from {cmd.render()!r}: {result.stdout.strip()!r}"
        raise CheckFailedError(msg, code=ErrorCode.SYSTEM_CONFIG_INVALID)
    if found < required:
        version = ".".join(map(str, found))
        msg = f"Runtime {version} is older than the required {settings.minimum_runtime}"
        raise CheckFailedError(
            msg,
            code=ErrorCode.SYSTEM_CONFIG_INVALID,
            details={"found": version, "required": settings.minimum_runtime},
        )
    ctx.logger.info("runtime_version_ok", version=".".join(map(str, found)))


async def check_write_permission(ctx: OrchestrationContext) -> None:
    if not ctx.config.preflight.check_write:
        return

    probe = ctx.project_root / f".launchpad-write-test-{ctx.run_id}"
    try:
        _ = probe.write_text("ok", encoding="utf-8")
        probe.unlink()
    except OSError as e:
        msg = f"Project directory is not writable: {ctx.project_root}"
        raise CheckFailedError(
            msg,
            code=ErrorCode.COMMAND_PERMISSION_DENIED,
            details={"path": str(ctx.project_root), "error": str(e)},
        ) from e


async def check_required_paths(ctx: OrchestrationContext) -> None:
    missing = [p for p in ctx.config.preflight.required_paths if not ctx.path(p).exists()]
    if missing:
        msg = f"Required paths are missing: {', '.join(missing)}"
        raise CheckFailedError(
            msg, code=ErrorCode.SYSTEM_CONFIG_INVALID, details={"missing": missing}
        )


async def ensure_directories(ctx: OrchestrationContext) -> None:
    for name in ctx.config.preflight.ensure_directories:
        path = ctx.path(name)
        if path.is_dir():
            continue
        try:
            path.mkdir(parents=True)
        except OSError as e:
            msg = f"Could not create directory {name}: {e}"
            raise CheckFailedError(
                msg, code=ErrorCode.COMMAND_PERMISSION_DENIED, details={"path": str(path)}
            ) from e
        _ = ctx.recovery.register_rollback(
            f"remove created directory {name}", partial(ctx.platform.remove_directory, path)
        )
        ctx.fix(f"Created directory {name}")


async def reserve_service_port(ctx: OrchestrationContext, *, spec: PortSpec) -> None:
    settings = ctx.config.ports
    port = await ctx.ports.reserve_port(
        spec.service,
        spec.port,
        auto_kill=settings.auto_kill and spec.required,
        max_retries=settings.max_retries,
        retry_delay=settings.retry_delay,
        fallback=not spec.required,
    )
    _ = ctx.recovery.register_rollback(
        f"release port {port} for {spec.service}", partial(ctx.ports.release_port, spec.service)
    )
    if port != spec.port:
        ctx.warn(f"Port {spec.port} for {spec.service} is in use; using {port}")


def preflight_checks(ctx: OrchestrationContext) -> list[Check]:
    checks = [
        Check("runtime version", check_runtime_version),
        Check("write permission", check_write_permission),
        Check("required paths", check_required_paths),
        Check("directories", ensure_directories),
    ]
    checks.extend(
        Check(
            f"port {spec.service}",
            partial(reserve_service_port, spec=spec),
            on_failure=FailurePolicy.ABORT if spec.required else FailurePolicy.WARN,
            service_name=spec.service,
        )
        for spec in ctx.config.ports.reserve
    )
    return checks


# =============================================================================
# Cleanup
# =============================================================================


async def remove_caches(ctx: OrchestrationContext) -> None:
    for target in ctx.config.cleanup.targets:
        path = ctx.path(target)
        if not path.exists():
            continue
        try:
            ctx.platform.remove_directory(path)
        except DirectoryRemovalError as e:
            ctx.warn(f"Could not remove {target}: {e.message}")
        else:
            ctx.fix(f"Removed {target}")


def cleanup_checks(ctx: OrchestrationContext) -> list[Check]:
    if not ctx.config.cleanup.enabled:
        return []
    return [Check("remove caches", remove_caches, on_failure=FailurePolicy.WARN)]


# =============================================================================
# Dependencies
# =============================================================================


async def install_dependencies(ctx: OrchestrationContext) -> None:
    settings = ctx.config.install
    artifacts = ctx.path(settings.artifacts_dir)
    existed = artifacts.exists()
    policy = ctx.config.retry.to_policy()
    tried: list[str] = []

    for index, strategy in enumerate(settings.strategies):
        cmd = build_command(strategy.command, ctx.platform, cwd=ctx.project_root)
        tried.append(strategy.name)
        ctx.logger.info("install_strategy_started", strategy=strategy.name, command=cmd.render())
        try:
            _ = await ctx.runner.run_with_retry(cmd, policy, cwd=ctx.project_root)
        except RetriesExhaustedError as e:
            ctx.warn(f"Install strategy '{strategy.name}' failed: {e.last_error.message}")
            continue

        ctx.logger.info("install_strategy_succeeded", strategy=strategy.name)
        if index > 0:
            ctx.fix(f"Dependencies installed with {strategy.name}")
        if not existed and artifacts.exists():
            _ = ctx.recovery.register_rollback(
                f"remove {settings.artifacts_dir}",
                partial(ctx.platform.remove_directory, artifacts),
            )
        return

    msg = f"All {len(tried)} install strategies failed"
    raise InstallStrategiesExhaustedError(msg, details={"strategies": tried})


def dependency_checks(ctx: OrchestrationContext) -> list[Check]:
    if not ctx.config.install.enabled or not ctx.config.install.strategies:
        return []
    return [Check("install dependencies", install_dependencies)]


# =============================================================================
# Validation
# =============================================================================


async def check_artifacts(ctx: OrchestrationContext) -> None:
    missing = [p for p in ctx.config.validation.artifact_paths if not ctx.path(p).exists()]
    if missing:
        msg = f"Install artifacts are missing: {', '.join(missing)}"
        raise CheckFailedError(
            msg, code=ErrorCode.SYSTEM_CONFIG_INVALID, details={"missing": missing}
        )


async def check_scripts(ctx: OrchestrationContext) -> None:
    required = ctx.config.validation.required_scripts
    if not required:
        return
    scripts = _read_manifest(ctx).get("scripts")
    defined = scripts if isinstance(scripts, dict) else {}
    missing = [name for name in required if name not in defined]
    if missing:
        msg = f"Manifest scripts are missing: {', '.join(missing)}"
        raise CheckFailedError(
            msg, code=ErrorCode.DATA_VALIDATION_FAILED, details={"missing": missing}
        )


async def check_dependencies(ctx: OrchestrationContext) -> None:
    required = ctx.config.validation.critical_dependencies
    if not required:
        return
    manifest = _read_manifest(ctx)
    declared: set[str] = set()
    for section in ("dependencies", "devDependencies"):
        entries = manifest.get(section)
        if isinstance(entries, dict):
            declared.update(str(name) for name in entries)  # pyright: ignore[reportUnknownVariableType]
    missing = [name for name in required if name not in declared]
    if missing:
        msg = f"Critical dependencies are not declared: {', '.join(missing)}"
        raise CheckFailedError(
            msg, code=ErrorCode.DATA_VALIDATION_FAILED, details={"missing": missing}
        )


def _read_env_file(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        msg = f"Environment file could not be read: {path.name}: {e}"
        raise CheckFailedError(
            msg, code=ErrorCode.DATA_VALIDATION_FAILED, details={"path": str(path)}
        ) from e


def _defined_env_names(ctx: OrchestrationContext) -> set[str]:
    names = set(os.environ)
    for name in ctx.config.validation.env_files:
        path = ctx.path(name)
        if path.is_file():
            names.update(env_names(_read_env_file(path)))
    return names


async def check_env_template(ctx: OrchestrationContext) -> None:
    template: Path = ctx.path(ctx.config.validation.env_template)
    if not template.is_file():
        return
    expected = env_names(_read_env_file(template))
    defined = _defined_env_names(ctx)
    missing = [name for name in expected if name not in defined]
    if missing:
        msg = f"Environment variables are not set: {', '.join(missing)}"
        raise CheckFailedError(
            msg, code=ErrorCode.DATA_VALIDATION_FAILED, details={"missing": missing}
        )


async def check_env_files(ctx: OrchestrationContext) -> None:
    files = ctx.config.validation.env_files
    if files and not any(ctx.path(name).is_file() for name in files):
        msg = f"No environment file found (looked for {', '.join(files)})"
        raise CheckFailedError(msg, code=ErrorCode.DATA_VALIDATION_FAILED)


def validation_checks(_ctx: OrchestrationContext) -> list[Check]:
    return [
        Check("install artifacts", check_artifacts),
        Check("manifest scripts", check_scripts),
        Check("critical dependencies", check_dependencies),
        Check("environment template", check_env_template),
        Check("environment files", check_env_files, on_failure=FailurePolicy.WARN),
    ]


# =============================================================================
# Service start
# =============================================================================


async def run_service_command(
    ctx: OrchestrationContext,
    *,
    command: ServiceCommandConfig,
) -> None:
    cmd = build_command(command.command, ctx.platform, cwd=ctx.project_root)
    policy = ctx.config.retry.to_policy(timeout=command.timeout)
    _ = await ctx.runner.run_with_retry(cmd, policy, cwd=ctx.project_root)
    ctx.logger.info("service_command_completed", name=command.name)


async def start_dev_server(ctx: OrchestrationContext, *, command: ServiceCommandConfig) -> None:
    cmd = build_command(command.command, ctx.platform, cwd=ctx.project_root)
    handle = await ctx.runner.spawn_async(cmd, cwd=ctx.project_root)
    ctx.dev_server = handle

    def stop() -> None:
        if handle.running:
            _ = ctx.runner.terminate(handle.id)

    _ = ctx.recovery.register_rollback(f"stop {command.name}", stop)


async def check_service_health(ctx: OrchestrationContext) -> None:
    settings = ctx.config.services
    if settings.health_url is None:
        return

    status = await wait_until_reachable(
        settings.health_url,
        timeout=settings.health_timeout,
        interval=settings.health_interval,
        sleep=ctx.sleep,
    )
    match status:
        case HealthStatus.HEALTHY:
            ctx.logger.info("service_healthy", url=settings.health_url)
        case HealthStatus.DEGRADED:
            ctx.warn(f"Service at {settings.health_url} reports degraded health")
        case HealthStatus.NOT_READY:
            msg = (
                f"Service at {settings.health_url} did not become reachable "
                f"within {settings.health_timeout:g}s"
            )
            raise ServiceUnreachableError(msg, details={"url": settings.health_url})


def service_checks(ctx: OrchestrationContext) -> list[Check]:
    settings = ctx.config.services
    checks = [
        Check(
            command.name,
            partial(run_service_command, command=command),
            on_failure=FailurePolicy.DEGRADE,
            service_name=settings.service_name,
        )
        for command in settings.prepare
    ]
    if settings.build is not None:
        checks.append(
            Check(
                settings.build.name,
                partial(run_service_command, command=settings.build),
                on_failure=FailurePolicy.DEGRADE,
                service_name=settings.service_name,
            )
        )
    if settings.dev_server is not None:
        checks.append(
            Check(
                settings.dev_server.name,
                partial(start_dev_server, command=settings.dev_server),
                on_failure=FailurePolicy.DEGRADE,
                service_name=settings.service_name,
            )
        )
    if settings.health_url is not None:
        checks.append(
            Check(
                "service health",
                check_service_health,
                on_failure=FailurePolicy.DEGRADE,
                service_name=settings.service_name,
            )
        )
    return checks
