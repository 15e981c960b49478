"""Command line entry point for joblock."""

from __future__ import annotations

import asyncio
import contextlib
import json
import sys
from typing import Any, Awaitable, Callable, Optional, Tuple, TypeVar

import click

from joblock.config.config import LockConfig
from joblock.lock.models import LockOptions
from joblock.lock.service import DistributedLockService
from joblock.utils.logging import configure_logging, get_logger
from joblock.utils.signals import setup_signal_handlers

logger = get_logger(__name__)

# EX_TEMPFAIL from sysexits.h: the job is running elsewhere, try again later.
EXIT_LOCK_HELD = 75

T = TypeVar("T")


def _load_config(
    config_path: Optional[str], db_url: Optional[str], instance_id: Optional[str]
) -> LockConfig:
    config = LockConfig.from_yaml(config_path) if config_path else LockConfig.from_env()
    overrides: dict[str, Any] = {}
    if db_url:
        overrides["db_url"] = db_url
    if instance_id:
        overrides["instance_id"] = instance_id
    if overrides:
        config = config.model_copy(update=overrides)
    return config


def _run_with_service(
    config: LockConfig, func: Callable[[DistributedLockService], Awaitable[T]]
) -> T:
    async def _main() -> T:
        service = DistributedLockService.from_config(config)
        try:
            return await func(service)
        finally:
            service.cleanup()
            await service.store.db.dispose()

    return asyncio.run(_main())


def _echo_json(payload: Any) -> None:
    click.echo(json.dumps(payload, indent=2, sort_keys=True))


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    help="YAML config file (defaults to environment variables).",
)
@click.option("--db-url", envvar="JOBLOCK_DB_URL", help="SQLAlchemy async URL of the lock store.")
@click.option("--instance-id", help="Identifier of this instance (defaults to POD_NAME).")
@click.option("--log-level", default=None, help="Override LOG_LEVEL.")
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: Optional[str],
    db_url: Optional[str],
    instance_id: Optional[str],
    log_level: Optional[str],
) -> None:
    """Lease-based distributed locks for recurring jobs."""
    config = _load_config(config_path, db_url, instance_id)
    configure_logging(level=log_level or config.log_level, json_output=config.log_json)
    ctx.obj = config


@cli.command("init-db")
@click.pass_obj
def init_db(config: LockConfig) -> None:
    """Create the job_locks table if it does not exist."""

    async def _init(service: DistributedLockService) -> None:
        await service.store.init_models()

    _run_with_service(config, _init)
    click.echo("job_locks table ready")


@cli.command("status")
@click.argument("job_name")
@click.pass_obj
def status(config: LockConfig, job_name: str) -> None:
    """Show who holds JOB_NAME."""

    async def _status(service: DistributedLockService) -> dict[str, Any]:
        info = await service.get_lock_info(job_name)
        return {"job_name": job_name, **info.to_dict()}

    _echo_json(_run_with_service(config, _status))


@cli.command("list")
@click.pass_obj
def list_locks(config: LockConfig) -> None:
    """List every live lease."""

    async def _list(service: DistributedLockService) -> list[dict[str, Any]]:
        return [info.to_dict() for info in await service.list_active_locks()]

    _echo_json(_run_with_service(config, _list))


@cli.command("sweep")
@click.pass_obj
def sweep(config: LockConfig) -> None:
    """Delete expired leases."""

    async def _sweep(service: DistributedLockService) -> int:
        return await service.sweep_expired()

    removed = _run_with_service(config, _sweep)
    click.echo(f"removed {removed} expired lock(s)")


def _terminate(process: asyncio.subprocess.Process) -> None:
    with contextlib.suppress(ProcessLookupError):
        process.terminate()


async def run_locked_command(
    service: DistributedLockService,
    job_name: str,
    command: Tuple[str, ...],
    options: Optional[LockOptions] = None,
) -> int:
    """
    Run `command` while holding the lease on `job_name`.

    Returns:
        The child's exit code, or EXIT_LOCK_HELD when another instance
        holds the lease.
    """
    lock = await service.acquire_lock(job_name, options)
    if lock is None:
        logger.info("job_skipped_lock_held", job_name=job_name)
        return EXIT_LOCK_HELD

    async with lock:
        process = await asyncio.create_subprocess_exec(*command)
        setup_signal_handlers(lambda: _terminate(process), asyncio.get_running_loop())
        logger.info(
            "job_started",
            job_name=job_name,
            lock_id=lock.lock_id,
            pid=process.pid,
        )
        returncode = await process.wait()

    logger.info("job_finished", job_name=job_name, returncode=returncode)
    # Killed by a signal: report it the way a shell would.
    return 128 - returncode if returncode < 0 else returncode


@cli.command("run", context_settings={"ignore_unknown_options": True})
@click.argument("job_name")
@click.argument("command", nargs=-1, required=True, type=click.UNPROCESSED)
@click.option("--timeout", "timeout_seconds", type=float, help="Lease duration in seconds.")
@click.option(
    "--heartbeat-interval",
    "heartbeat_interval_seconds",
    type=float,
    help="Heartbeat cadence in seconds.",
)
@click.option(
    "--extend-on-heartbeat/--no-extend-on-heartbeat",
    default=None,
    help="Move the lease deadline forward on every heartbeat.",
)
@click.pass_obj
def run(
    config: LockConfig,
    job_name: str,
    command: Tuple[str, ...],
    timeout_seconds: Optional[float],
    heartbeat_interval_seconds: Optional[float],
    extend_on_heartbeat: Optional[bool],
) -> None:
    """Run COMMAND only if this instance wins the lease on JOB_NAME."""
    options = config.to_lock_options()
    try:
        options = LockOptions(
            timeout_seconds=timeout_seconds or options.timeout_seconds,
            heartbeat_interval_seconds=heartbeat_interval_seconds
            or options.heartbeat_interval_seconds,
            extend_on_heartbeat=(
                options.extend_on_heartbeat
                if extend_on_heartbeat is None
                else extend_on_heartbeat
            ),
        )
    except ValueError as exc:
        raise click.BadParameter(str(exc)) from exc

    async def _run(service: DistributedLockService) -> int:
        return await run_locked_command(service, job_name, command, options)

    sys.exit(_run_with_service(config, _run))


@cli.command("serve")
@click.option("--host", default=None, help="Bind host (defaults to JOBLOCK_API_HOST).")
@click.option("--port", type=int, default=None, help="Bind port (defaults to JOBLOCK_API_PORT).")
@click.pass_obj
def serve(config: LockConfig, host: Optional[str], port: Optional[int]) -> None:
    """Serve the HTTP status API."""
    import uvicorn

    from joblock.api.server import create_app

    uvicorn.run(
        create_app(config=config),
        host=host or config.api_host,
        port=port or config.api_port,
        log_config=None,
    )


def main() -> None:
    cli(prog_name="joblock")


if __name__ == "__main__":
    main()
