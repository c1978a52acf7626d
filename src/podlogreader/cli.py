"""Command line interface for podlogreader.

Example:
    $ podlogreader run --create-sa-and-rolebinding
    $ podlogreader run --namespace shop --console-logs
    $ podlogreader reconcile shop web-7d9f-abcde
"""

from __future__ import annotations

import signal
from typing import Any

import click
import structlog
from pydantic import ValidationError

from podlogreader import __version__
from podlogreader.app import build_handler, build_orchestrator
from podlogreader.client import API_ERRORS, error_reason, load_clients
from podlogreader.config import PodLogReaderSettings
from podlogreader.controller import PodWatchController
from podlogreader.errors import ClusterUnavailableError
from podlogreader.logging import configure_logging
from podlogreader.orchestrator import PassStatus

logger = structlog.get_logger(__name__)


def _build_settings(**overrides: Any) -> PodLogReaderSettings:
    """Build settings from the environment, letting CLI options win."""
    given = {key: value for key, value in overrides.items() if value is not None}
    try:
        return PodLogReaderSettings(**given)
    except ValidationError as e:
        raise click.BadParameter(str(e)) from e


_connection_options = [
    click.option(
        "--kubeconfig",
        "kubeconfig_path",
        type=click.Path(dir_okay=False),
        default=None,
        help="Path to kubeconfig file. Defaults to in-cluster config.",
    ),
    click.option("--context", default=None, help="Kubeconfig context to use."),
    click.option(
        "--create-sa-and-rolebinding/--no-create-sa-and-rolebinding",
        "create_sa_and_rolebinding",
        default=None,
        help="Also manage a ServiceAccount and RoleBinding per Deployment.",
    ),
    click.option(
        "--log-level",
        type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
        default=None,
        help="Minimum log level.",
    ),
    click.option(
        "--json-logs/--console-logs",
        "json_logs",
        default=None,
        help="Render logs as JSON lines or for the console.",
    ),
]


def connection_options(func: Any) -> Any:
    for option in reversed(_connection_options):
        func = option(func)
    return func


@click.group()
@click.version_option(version=__version__, prog_name="podlogreader")
def cli() -> None:
    """podlogreader - grant log access to the Pods of opted-in Deployments.

    Pods labelled podlogreader-affiliate=enable get a Role (and optionally a
    ServiceAccount and RoleBinding) named podlogreader-<deployment> that allows
    reading the logs of exactly that Deployment's Pods.
    """


@cli.command("run")
@click.option(
    "--namespace",
    "-n",
    default=None,
    help="Namespace to watch. Defaults to all namespaces.",
)
@connection_options
def run_command(**options: Any) -> None:
    """Watch Pods and reconcile log-reader RBAC until interrupted."""
    settings = _build_settings(**options)
    configure_logging(settings.log_level, json_output=settings.json_logs)

    try:
        clients = load_clients(settings)
    except ClusterUnavailableError as e:
        click.echo(f"Error: {e.message}", err=True)
        raise SystemExit(1) from e

    controller = PodWatchController(
        clients.watch,
        build_handler(settings, clients),
        namespace=settings.namespace,
        watch_timeout_seconds=settings.watch_timeout_seconds,
    )

    def _terminate(signum: int, frame: Any) -> None:  # noqa: ARG001
        logger.info("cli.signal_received", signal=signum)
        controller.stop()

    signal.signal(signal.SIGTERM, _terminate)

    logger.info(
        "cli.started",
        namespace=settings.namespace or "*",
        create_sa_and_rolebinding=settings.create_sa_and_rolebinding,
    )
    try:
        controller.run()
    except KeyboardInterrupt:
        controller.stop()


@cli.command("reconcile")
@click.argument("namespace")
@click.argument("pod_name")
@connection_options
def reconcile_command(namespace: str, pod_name: str, **options: Any) -> None:
    """Run a single reconciliation pass for one Pod.

    Exits with status 1 if the pass fails.

    Examples:
        $ podlogreader reconcile shop web-7d9f-abcde
        $ podlogreader reconcile shop web-7d9f-abcde --create-sa-and-rolebinding
    """
    settings = _build_settings(**options)
    configure_logging(settings.log_level, json_output=settings.json_logs)

    try:
        clients = load_clients(settings)
    except ClusterUnavailableError as e:
        click.echo(f"Error: {e.message}", err=True)
        raise SystemExit(1) from e

    try:
        pod = clients.core.read_namespaced_pod(name=pod_name, namespace=namespace)
    except API_ERRORS as e:
        click.echo(
            f"Error: cannot read Pod '{pod_name}' in '{namespace}': {error_reason(e)}",
            err=True,
        )
        raise SystemExit(1) from e

    outcome = build_orchestrator(settings, clients).reconcile(pod)

    if outcome.status is PassStatus.SKIPPED:
        click.echo(
            f"Pod '{pod_name}' does not carry {settings.label_key}={settings.label_value}; "
            "nothing to do."
        )
        return

    for result in outcome.results:
        click.echo(f"  {result.kind} {result.namespace}/{result.name} {result.action}")

    if outcome.status is PassStatus.FAILED:
        click.echo(f"Error: {outcome.error}", err=True)
        raise SystemExit(1)

    click.echo(
        f"Deployment '{outcome.deployment}': log access granted for "
        f"{len(outcome.pod_names)} pod(s)."
    )


__all__ = ["cli"]
