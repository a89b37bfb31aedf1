"""podmover CLI - Main entry point for pod relocation."""

import contextlib
import json
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import click

from podmover.config.loader import load_config
from podmover.config.validator import ValidationError
from podmover.inventory.cluster import (
    DEFAULT_NAMESPACE,
    ClusterConnectionError,
    ClusterInventory,
    connect,
)
from podmover.inventory.introspector import ContainerIntrospector
from podmover.output.generator import ReportGenerator
from podmover.relocation.engine import RelocationEngine, RelocationPolicy
from podmover.relocation.planner import PodTemplate, RelocationRequest


def _connect_or_exit(kubeconfig: Optional[str], context: Optional[str]):
    """Load cluster credentials; exit 1 if none are usable."""
    try:
        return connect(kubeconfig=kubeconfig, context=context)
    except ClusterConnectionError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


def _load_config_or_exit(config_path: Optional[str]) -> Dict[str, Any]:
    """Load the configuration file; exit 1 if it is missing or invalid."""
    try:
        return load_config(config_path)
    except ValidationError as e:
        click.echo(f"Error: invalid configuration: {e}", err=True)
        for err in e.errors:
            click.echo(f"  {err}", err=True)
        sys.exit(1)
    except (FileNotFoundError, ValueError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


def _build_engine(cfg: Dict[str, Any], core_api, introspect: bool) -> RelocationEngine:
    return RelocationEngine(
        namespace=DEFAULT_NAMESPACE,
        core_api=core_api,
        template=PodTemplate.from_dict(cfg["template"]),
        policy=RelocationPolicy.from_dict(cfg.get("policy", {})),
        marker=cfg["naming"]["marker"],
        fallback_name=cfg["naming"]["fallbackPodName"],
        introspect=introspect,
    )


def cluster_options(f):
    """Options shared by every command that talks to the cluster."""
    f = click.option(
        "--context", default=None, help="Kubeconfig context to use",
    )(f)
    f = click.option(
        "--kubeconfig", default=None, envvar="KUBECONFIG", type=click.Path(),
        help="Path to the kubeconfig file (default: $KUBECONFIG or ~/.kube/config)",
    )(f)
    return f


def relocation_options(f):
    """Options shared by 'relocate' and 'plan'."""
    f = click.option(
        "--no-introspect", is_flag=True,
        help="Don't list the containers of pods on the current node",
    )(f)
    f = click.option(
        "--config", "config_path", default=None, envvar="PODMOVER_CONFIG",
        type=click.Path(), help="YAML configuration file",
    )(f)
    f = click.option(
        "--target-node", "-t", required=True,
        help="Node to move the pod to",
    )(f)
    f = click.option(
        "--current-node", "-c", required=True,
        help="Node the pod currently runs on",
    )(f)
    return f


@click.group()
@click.version_option(package_name="podmover")
def main():
    """podmover - move a pod from one Kubernetes node to another.

    The pod is deleted where it runs and recreated on the target node with
    a required node-affinity term. The move is not atomic: if creation
    fails after the delete, the workload is left absent.
    """
    pass


@main.command()
@relocation_options
@cluster_options
@click.option("--dry-run", is_flag=True, help="Plan only; don't delete or create")
@click.option("--json", "json_output", is_flag=True, help="Print the report as JSON")
@click.option("--output", "-o", type=click.Path(), help="Save the report to a file")
@click.option(
    "--format", "output_format", type=click.Choice(["json", "yaml"]), default="json",
    help="Format of the saved report",
)
@click.option(
    "--fail-on-error", is_flag=True,
    help="Exit non-zero when the relocation did not succeed",
)
def relocate(
    current_node: str,
    target_node: str,
    config_path: Optional[str],
    no_introspect: bool,
    kubeconfig: Optional[str],
    context: Optional[str],
    dry_run: bool,
    json_output: bool,
    output: Optional[str],
    output_format: str,
    fail_on_error: bool,
):
    """Relocate the first pod on CURRENT-NODE to TARGET-NODE.

    Exits 0 whatever the outcome of the delete and create calls unless
    --fail-on-error is given; only a missing cluster configuration or an
    invalid config file is fatal.

    \b
    Examples:
      podmover relocate --current-node dell7580 --target-node node-b
      podmover relocate -c node-a -t node-b --config podmover.yaml -o report.json
    """
    cfg = _load_config_or_exit(config_path)
    core_api = _connect_or_exit(kubeconfig, context)
    engine = _build_engine(cfg, core_api, introspect=not no_introspect)
    request = RelocationRequest(source_node=current_node, target_node=target_node)

    # Keep stdout clean for the JSON document
    stream = sys.stderr if json_output else sys.stdout
    with contextlib.redirect_stdout(stream):
        report = engine.run(request, dry_run=dry_run)

    generator = ReportGenerator(report, engine.namespace, engine.policy)
    document = generator.generate()

    if json_output:
        click.echo(generator.render("json", document))
    else:
        summary = document["summary"]
        click.echo("\nRelocation summary:")
        click.echo(f"  Verdict: {summary['verdict']}")
        click.echo(f"  State: {summary['finalState']}")
        click.echo(f"  {summary['oldPod']} → {report.plan.new_pod_name} ({summary['targetNode']})")
        for err in summary["errors"]:
            click.echo(f"  ERROR: {err}", err=True)

    if output:
        try:
            Path(output).write_text(generator.render(output_format, document))
        except OSError as e:
            click.echo(f"Error: could not save report to {output}: {e}", err=True)
        else:
            click.echo(f"\n  Report saved to {output}", err=json_output)

    if fail_on_error and not dry_run and not report.succeeded:
        sys.exit(1)


@main.command()
@relocation_options
@cluster_options
def plan(
    current_node: str,
    target_node: str,
    config_path: Optional[str],
    no_introspect: bool,
    kubeconfig: Optional[str],
    context: Optional[str],
):
    """Show what 'relocate' would do without changing the cluster."""
    cfg = _load_config_or_exit(config_path)
    core_api = _connect_or_exit(kubeconfig, context)
    engine = _build_engine(cfg, core_api, introspect=not no_introspect)

    report = engine.run(
        RelocationRequest(source_node=current_node, target_node=target_node),
        dry_run=True,
    )
    plan_ = report.plan

    click.echo("\nPlanned relocation:")
    click.echo(f"  Delete: {plan_.pod_to_delete}")
    click.echo(f"  Create: {plan_.new_pod_name}")
    click.echo(f"  Pinned to: {plan_.target_node} ({plan_.template.hostname_label})")
    click.echo(f"  Image: {plan_.template.image}")
    if plan_.fallback:
        click.echo("  (fallback: no pods found on the current node)")


@main.command()
@cluster_options
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
def nodes(kubeconfig: Optional[str], context: Optional[str], json_output: bool):
    """List the cluster's nodes."""
    core_api = _connect_or_exit(kubeconfig, context)
    inventory = ClusterInventory(DEFAULT_NAMESPACE, core_api)
    node_list = inventory.list_nodes()

    if json_output:
        click.echo(json.dumps([{"name": n.name, "uid": n.uid} for n in node_list], indent=2))
        return

    click.echo(f"Cluster nodes ({len(node_list)}):")
    for node in node_list:
        click.echo(f"  {node.name:30s} {node.uid}")


@main.command()
@click.argument("node")
@cluster_options
@click.option("--no-introspect", is_flag=True, help="Don't list containers")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
def pods(
    node: str,
    kubeconfig: Optional[str],
    context: Optional[str],
    no_introspect: bool,
    json_output: bool,
):
    """List the pods scheduled on NODE."""
    core_api = _connect_or_exit(kubeconfig, context)
    inventory = ClusterInventory(DEFAULT_NAMESPACE, core_api)
    introspector = ContainerIntrospector(DEFAULT_NAMESPACE, core_api)

    stream = sys.stderr if json_output else sys.stdout
    with contextlib.redirect_stdout(stream):
        containers = {}

        def describe(pod):
            containers[pod.name] = introspector.describe_containers(pod.name)

        query = inventory.query_pods_on_node(node, on_pod=None if no_introspect else describe)

    if json_output:
        click.echo(json.dumps({
            "node": node,
            "queryFailed": query.failure is not None,
            "pods": [
                {
                    "name": p.name,
                    "uid": p.uid,
                    "containers": [c.to_dict() for c in containers.get(p.name, [])],
                }
                for p in query.pods
            ],
        }, indent=2))
        return

    if query.ambiguous_empty:
        click.echo(f"Could not list pods on '{node}'", err=True)
    else:
        click.echo(f"\n{len(query.pods)} pod(s) on '{node}' in namespace '{DEFAULT_NAMESPACE}'")


if __name__ == "__main__":
    main()
