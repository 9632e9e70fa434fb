"""vuln-pkg command line interface."""
from dataclasses import dataclass
from typing import Callable, Optional

import typer
from rich.prompt import Confirm

from .engine import Engine
from .errors import VulnPkgError
from .logger import set_verbose, setup_file_logging
from .manifest import ManifestLoader
from .output import Output
from .settings import AppSettings, get_settings
from .state import StateManager

app = typer.Typer(
    name="vuln-pkg",
    help="A package manager for deliberately-vulnerable applications.",
    add_completion=False,
    no_args_is_help=True,
)
manifest_app = typer.Typer(help="Inspect and manage trusted manifests.")
app.add_typer(manifest_app, name="manifest")


@dataclass
class CliContext:
    engine: Engine
    output: Output
    settings: AppSettings
    manifest_url: str
    domain: str
    https: bool


def _guard(output: Output, action: Callable[[], None]):
    try:
        action()
    except VulnPkgError as e:
        output.error(str(e))
        raise typer.Exit(1) from e


@app.callback()
def main(
    ctx: typer.Context,
    json_output: bool = typer.Option(False, "--json", help="Output in JSON format for automation."),
    manifest_url: Optional[str] = typer.Option(None, "--manifest-url", help="Manifest URL or path to fetch apps from."),
    resolve_address: Optional[str] = typer.Option(
        None, "--resolve-address", help="Address that generated sslip.io hostnames resolve to."
    ),
    domain: Optional[str] = typer.Option(None, "--domain", help="Domain suffix for app hostnames (app.<domain>)."),
    https: bool = typer.Option(False, "--https", help="Also route apps through a TLS entrypoint on :443."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Accept unknown manifests without prompting."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show progress and debug output."),
):
    overrides = {"HTTPS": https or get_settings().HTTPS}
    if resolve_address:
        overrides["RESOLVE_ADDRESS"] = resolve_address
    if domain:
        overrides["DOMAIN"] = domain
    settings = get_settings().model_copy(update=overrides)

    output = Output(json_mode=json_output, verbose=verbose)
    set_verbose(verbose)
    state = StateManager(settings.HOME_DIR)

    def bootstrap():
        state.init()
        setup_file_logging(settings.HOME_DIR / "vuln-pkg.log", verbose=verbose)

    _guard(output, bootstrap)

    loader = ManifestLoader(state, output, auto_accept=yes, confirm=lambda prompt: Confirm.ask(prompt, default=False))
    engine = Engine(settings, output, state, loader)
    _guard(output, engine.sync_state)

    ctx.obj = CliContext(
        engine=engine,
        output=output,
        settings=settings,
        manifest_url=manifest_url or settings.MANIFEST_URL,
        domain=settings.resolve_domain(),
        https=settings.HTTPS,
    )


@app.command("list")
def list_command(ctx: typer.Context):
    """List available vulnerable applications."""
    cli: CliContext = ctx.obj
    _guard(cli.output, lambda: cli.engine.list_apps(cli.manifest_url))


@app.command()
def search(ctx: typer.Context, query: str = typer.Argument(..., help="Text matched against name, description and tags.")):
    """Search applications in the manifest."""
    cli: CliContext = ctx.obj
    _guard(cli.output, lambda: cli.engine.search(query, cli.manifest_url))


@app.command()
def install(ctx: typer.Context, name: str = typer.Argument(..., help="Application to install.")):
    """Pull or build an application's image."""
    cli: CliContext = ctx.obj
    _guard(cli.output, lambda: cli.engine.install(name, cli.manifest_url))


@app.command()
def run(ctx: typer.Context, name: str = typer.Argument(..., help="Application to run.")):
    """Start an application behind the reverse proxy."""
    cli: CliContext = ctx.obj
    _guard(cli.output, lambda: cli.engine.run(name, cli.manifest_url, cli.domain, cli.https))


@app.command()
def stop(ctx: typer.Context, name: str = typer.Argument(..., help="Application to stop.")):
    """Stop a running application."""
    cli: CliContext = ctx.obj
    _guard(cli.output, lambda: cli.engine.stop(name))


@app.command()
def remove(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Application to remove."),
    purge: bool = typer.Option(False, "--purge", help="Also remove the Docker image."),
):
    """Stop and remove an application."""
    cli: CliContext = ctx.obj
    _guard(cli.output, lambda: cli.engine.remove(name, purge=purge))


@app.command()
def rebuild(ctx: typer.Context, name: str = typer.Argument(..., help="Dockerfile or git application to rebuild.")):
    """Rebuild a custom application's image."""
    cli: CliContext = ctx.obj
    _guard(cli.output, lambda: cli.engine.rebuild(name, cli.manifest_url))


@app.command()
def status(ctx: typer.Context):
    """Show the state of managed applications."""
    cli: CliContext = ctx.obj
    _guard(cli.output, cli.engine.status)


@manifest_app.command("show")
def manifest_show(ctx: typer.Context):
    """Show the manifest and whether it is trusted."""
    cli: CliContext = ctx.obj
    _guard(cli.output, lambda: cli.engine.manifest_show(cli.manifest_url))


@manifest_app.command("forget")
def manifest_forget(
    ctx: typer.Context,
    url: Optional[str] = typer.Argument(None, help="Manifest URL (defaults to --manifest-url)."),
):
    """Forget a previously accepted manifest."""
    cli: CliContext = ctx.obj
    _guard(cli.output, lambda: cli.engine.manifest_forget(url or cli.manifest_url))


@manifest_app.command("accepted")
def manifest_accepted(ctx: typer.Context):
    """List accepted manifests."""
    cli: CliContext = ctx.obj
    _guard(cli.output, cli.engine.manifest_accepted)


if __name__ == "__main__":
    app()
