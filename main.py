"""
chartops CLI Interface
Main entry point for managing helm chart releases
"""
import asyncio
import sys

import click
import yaml
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from config.logging import setup_logging
from config.settings import settings
from infrastructure.helm_charts import ChartManager, HelmError, build_chart_manager, with_insecure

console = Console()


def get_chart_manager() -> ChartManager:
    """Chart manager configured from the environment"""
    return build_chart_manager(settings)


def run(coro):
    """Run a chart manager coroutine, reporting helm failures"""
    try:
        return asyncio.run(coro)
    except HelmError as e:
        console.print(str(e), style="red", markup=False)
        sys.exit(1)


def kubeconfig_option(required: bool = True):
    def check(ctx, param, value):
        if required and not value:
            raise click.BadParameter("not given and $KUBECONFIG is not set", param=param)
        return value

    return click.option('--kubeconfig', default=lambda: settings.kubeconfig_path, callback=check,
                        help='Path to kubeconfig (defaults to $KUBECONFIG)')


@click.group()
@click.version_option(version="1.0.0")
@click.option('--log-level', default=None, help='Log level (defaults to $LOG_LEVEL)')
def cli(log_level):
    """chartops - Helm chart lifecycle management

    Templates, pulls, pushes, installs, upgrades and deletes chart releases,
    optionally through a registry mirror.
    """
    setup_logging(log_level or settings.log_level)


@cli.group()
def helm():
    """Helm chart commands"""
    pass


@helm.command()
@click.argument('chart')
@click.option('--version', 'chart_version', required=True, help='Chart version')
@click.option('--namespace', default='default', help='Namespace to render into')
@click.option('--kube-version', required=True, help='Kubernetes version to render for')
@click.option('--values', 'values_file', type=click.File('r'), help='YAML values file')
def template(chart, chart_version, namespace, kube_version, values_file):
    """Render a chart's manifests"""

    try:
        values = yaml.safe_load(values_file) if values_file else {}
    except yaml.YAMLError as e:
        raise click.BadParameter(f"not valid YAML: {e}", param_hint="--values")
    manifest = run(get_chart_manager().template(chart, chart_version, namespace, values or {}, kube_version))
    click.echo(manifest.decode("utf-8"), nl=False)


@helm.command()
@click.argument('chart')
@click.option('--version', 'chart_version', required=True, help='Chart version')
@click.option('--destination', default=None, help='Folder to save the chart archive to')
def pull(chart, chart_version, destination):
    """Pull a chart"""
    manager = get_chart_manager()
    if destination:
        run(manager.save_chart(chart, chart_version, destination))
        console.print(f"[green]Saved {chart}:{chart_version} to {destination}[/green]")
    else:
        run(manager.pull_chart(chart, chart_version))
        console.print(f"[green]Pulled {chart}:{chart_version}[/green]")


@helm.command()
@click.argument('chart')
@click.option('--version', 'chart_version', required=True, help='Chart version')
def show_values(chart, chart_version):
    """Show a chart's default values"""
    out = run(get_chart_manager().show_values(chart, chart_version))
    click.echo(out.decode("utf-8"), nl=False)


@helm.command()
@click.argument('chart')
@click.argument('registry')
def push(chart, registry):
    """Push a packaged chart to a registry"""
    run(get_chart_manager().push_chart(chart, registry))
    console.print(f"[green]Pushed {chart} to {registry}[/green]")


@helm.command()
@click.argument('registry')
@click.option('--username', required=True, help='Registry username')
@click.option('--password-stdin', is_flag=True, help='Read the password from stdin')
def login(registry, username, password_stdin):
    """Log in to an OCI registry"""
    if password_stdin:
        password = sys.stdin.read().rstrip("\n")
    else:
        password = click.prompt('Password', hide_input=True)

    run(get_chart_manager().registry_login(registry, username, password))
    console.print(f"[green]Logged in to {registry}[/green]")


@helm.command()
@click.argument('name')
@click.argument('chart')
@click.option('--version', 'chart_version', required=True, help='Chart version')
@kubeconfig_option(required=False)
@click.option('--namespace', default=None, help='Namespace (created if missing)')
@click.option('--values', 'values_file', default=None, help='Values file')
@click.option('--set', 'set_values', multiple=True, help='Inline value override key=value')
@click.option('--skip-crds', is_flag=True, help='Do not install CRDs')
@click.option('--wait', is_flag=True, help='Wait for the release to be ready (needs --values and --kubeconfig)')
def install(name, chart, chart_version, kubeconfig, namespace, values_file, set_values, skip_crds, wait):
    """Install or upgrade a chart release"""
    manager = get_chart_manager()

    if wait:
        if not (values_file and kubeconfig):
            raise click.UsageError("--wait needs both --values and --kubeconfig")
        if namespace or set_values or skip_crds:
            raise click.UsageError("--wait cannot be combined with --namespace, --set or --skip-crds")
        run(manager.install_chart_with_values_file(name, chart, chart_version, kubeconfig, values_file))
    else:
        run(manager.install_chart(
            name, chart, chart_version,
            kubeconfig=kubeconfig,
            namespace=namespace,
            values_file=values_file,
            skip_crds=skip_crds,
            values=list(set_values),
        ))

    console.print(Panel.fit(
        f"[green]Release '{name}' installed![/green]\n"
        f"Chart: {chart}\nVersion: {chart_version}",
        title="Helm Release"
    ))


@helm.command()
@click.argument('name')
@click.argument('chart')
@click.option('--version', 'chart_version', required=True, help='Chart version')
@kubeconfig_option()
@click.option('--values', 'values_file', required=True, help='Values file')
@click.option('--insecure', is_flag=True, help='Skip TLS verification')
def upgrade(name, chart, chart_version, kubeconfig, values_file, insecure):
    """Upgrade an existing release and wait for it"""

    options = [with_insecure()] if insecure else []
    run(get_chart_manager().upgrade_chart_with_values_file(
        name, chart, chart_version, kubeconfig, values_file, *options
    ))

    console.print(Panel.fit(
        f"[green]Release '{name}' upgraded![/green]\n"
        f"Chart: {chart}\nVersion: {chart_version}",
        title="Helm Release"
    ))


@helm.command()
@click.argument('name')
@kubeconfig_option()
@click.option('--namespace', default=None, help='Namespace of the release')
def delete(name, kubeconfig, namespace):
    """Delete a release"""
    run(get_chart_manager().delete(kubeconfig, name, namespace))
    console.print(f"[green]Release '{name}' deleted[/green]")


@helm.command(name='list')
@kubeconfig_option()
def list_releases(kubeconfig):
    """List releases on the cluster"""
    releases = run(get_chart_manager().list_charts(kubeconfig))

    if releases:
        table = Table(title="Helm Releases")
        table.add_column("Release", style="cyan")
        for release in releases:
            table.add_row(release)
        console.print(table)
    else:
        console.print("  No releases found")


def main():
    """Main entry point"""
    cli()


if __name__ == "__main__":
    main()
