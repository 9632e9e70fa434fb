"""User-facing output: Rich console text, or JSON documents with --json."""
from typing import Any, Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from .models import AcceptedManifests, AppState, BaseApp, Manifest
from .progress import Progress


class Output:
    def __init__(
        self,
        json_mode: bool = False,
        verbose: bool = False,
        console: Optional[Console] = None,
        err_console: Optional[Console] = None,
    ):
        self.json_mode = json_mode
        self.verbose = verbose
        self.console = console or Console()
        self.err_console = err_console or Console(stderr=True)

    def info(self, msg: str):
        if not self.json_mode:
            self.console.print(f"[blue][*][/blue] {escape(msg)}")

    def success(self, msg: str):
        if not self.json_mode:
            self.console.print(f"[green][+][/green] {escape(msg)}")

    def warning(self, msg: str):
        if not self.json_mode:
            self.console.print(f"[yellow][!][/yellow] {escape(msg)}")

    def error(self, msg: str):
        if self.json_mode:
            self.err_console.print_json(data={"error": msg})
        else:
            self.err_console.print(f"[bold red][-][/bold red] {escape(msg)}")

    def debug(self, msg: str):
        if self.verbose and not self.json_mode:
            self.console.print(f"[dim][D] {escape(msg)}[/dim]")

    def progress(self, event: Progress):
        self.debug(f"{event.stage}: {event.message}")

    def json(self, data: Any):
        if self.json_mode:
            self.console.print_json(data=data)

    # Renderers

    def list_apps(self, apps: list[BaseApp], states: dict[str, AppState], namespace: str = "vuln-pkg"):
        if self.json_mode:
            self.json([_app_info(app, states.get(app.name), namespace) for app in apps])
            return

        self.console.print("\n[bold underline]Available Vulnerable Applications[/bold underline]\n")
        for app in apps:
            self._print_app(app, states.get(app.name), namespace)

    def search_results(
        self, query: str, apps: list[BaseApp], states: dict[str, AppState], namespace: str = "vuln-pkg"
    ):
        if self.json_mode:
            self.json({"query": query, "results": [_app_info(app, states.get(app.name), namespace) for app in apps]})
            return

        if not apps:
            self.warning(f"No applications match '{query}'")
            return

        self.console.print(f"\n[bold underline]Search results for '{escape(query)}'[/bold underline]\n")
        for app in apps:
            self._print_app(app, states.get(app.name), namespace)

    def _print_app(self, app: BaseApp, state: Optional[AppState], namespace: str):
        if state and state.running:
            status = "[bold green]\\[RUNNING][/bold green]"
        elif state and state.installed:
            status = "[blue]\\[INSTALLED][/blue]"
        else:
            status = "[dim]\\[AVAILABLE][/dim]"

        self.console.print(f"  [bold]{escape(app.name)}[/bold] [dim]v{escape(app.version)}[/dim] {status}")
        if app.description:
            self.console.print(f"    {escape(app.description)}")
        self.console.print(f"    Image: [cyan]{escape(app.effective_image(namespace))}[/cyan] ({app.type})")
        self.console.print(f"    Ports: {', '.join(_port_text(p.port, p.protocol.value, p.label) for p in app.ports)}")
        if app.tags:
            self.console.print(f"    Tags:  [red]{escape(', '.join(app.tags))}[/red]")
        if state and state.running:
            for hostname in state.hostnames:
                self.console.print(f"    URL: [cyan]http://{hostname}[/cyan]")
        self.console.print()

    def status(self, rows: list[dict], resolve_address: str):
        if self.json_mode:
            self.json(rows)
            return

        if not rows:
            self.console.print("No vuln-pkg applications are currently managed.")
            return

        table = Table(title="Application Status")
        table.add_column("App", style="bold")
        table.add_column("Status")
        table.add_column("Container", style="dim")
        table.add_column("Endpoints", style="cyan")

        for row in rows:
            endpoints = [f"http://{h}" for h in row["hostnames"]]
            endpoints += [
                f"{p['protocol']}://{resolve_address}:{p['host_port']}"
                + (f" ({p['label']})" if p.get("label") else "")
                for p in row["ports"]
            ]
            table.add_row(
                row["name"],
                "[bold green]RUNNING[/bold green]" if row["running"] else "[red]STOPPED[/red]",
                (row["container_id"] or "-")[:12],
                "\n".join(endpoints) or "-",
            )
        self.console.print(table)

    def app_installed(self, app: BaseApp, image: str):
        if self.json_mode:
            self.json({"status": "installed", "app": app.name, "image": image})
        else:
            self.success(f"Installed {app.name} ({image})")

    def app_running(self, app: BaseApp, app_state: AppState, https: bool, resolve_address: str):
        if self.json_mode:
            self.json(
                {
                    "status": "running",
                    "app": app.name,
                    "container_id": app_state.container_id,
                    "hostnames": app_state.hostnames,
                    "ports": [p.model_dump(mode="json") for p in app_state.allocated_ports],
                }
            )
            return

        lines = [f"[bold green]{escape(app.name)} is running[/bold green]"]
        scheme = "https" if https else "http"
        for hostname in app_state.hostnames:
            lines.append(f"  [cyan]{scheme}://{hostname}[/cyan]")
        for allocation in app_state.allocated_ports:
            lines.append(
                f"  [cyan]{resolve_address}:{allocation.host_port}[/cyan] -> "
                f"{_port_text(allocation.container_port, allocation.protocol.value, allocation.label)}"
            )
        self.console.print(Panel.fit("\n".join(lines), title="Run"))

    def app_stopped(self, name: str):
        if self.json_mode:
            self.json({"status": "stopped", "app": name})
        else:
            self.success(f"Stopped {name}")

    def app_removed(self, name: str):
        if self.json_mode:
            self.json({"status": "removed", "app": name})
        else:
            self.success(f"Removed {name}")

    def app_rebuilt(self, name: str, image: str, git_commit: Optional[str]):
        if self.json_mode:
            self.json({"status": "rebuilt", "app": name, "image": image, "git_commit": git_commit})
        else:
            suffix = f" at {git_commit[:12]}" if git_commit else ""
            self.success(f"Rebuilt {name} ({image}){suffix}")

    # Manifests

    def manifest_info(self, url: str, manifest: Manifest):
        if self.json_mode:
            return
        meta = manifest.meta
        lines = [f"URL:         {escape(url)}"]
        for label, value in (
            ("Author", meta.author),
            ("Email", meta.email),
            ("Website", meta.url),
            ("Description", meta.description),
        ):
            lines.append(f"{label + ':':<13}{escape(value or 'unknown')}")
        lines.append(f"Apps:        {len(manifest.apps)}")
        lines.append(f"Signed:      {'yes' if manifest.signature else 'no'}")
        self.console.print(Panel.fit("\n".join(lines), title="Manifest"))

    def show_manifest_yaml(self, text: str):
        if self.json_mode:
            return
        self.console.print(Syntax(text, "yaml"))

    def list_accepted_manifests(self, accepted: AcceptedManifests):
        if self.json_mode:
            self.json(accepted.model_dump(mode="json"))
            return

        if not accepted.manifests:
            self.console.print("No manifests have been accepted yet.")
            return

        table = Table(title="Accepted Manifests")
        table.add_column("URL", style="cyan")
        table.add_column("Author")
        table.add_column("Accepted")
        for url, entry in accepted.manifests.items():
            table.add_row(url, entry.author or "-", entry.accepted_at)
        self.console.print(table)

    def manifest_forgotten(self, url: str):
        if self.json_mode:
            self.json({"status": "forgotten", "url": url})
        else:
            self.success(f"Forgot manifest {url}")

    def manifest_not_accepted(self, url: str):
        if self.json_mode:
            self.json({"status": "not_accepted", "url": url})
        else:
            self.warning(f"Manifest {url} was never accepted")


def _port_text(port: int, protocol: str, label: Optional[str]) -> str:
    text = f"{port}/{protocol}"
    return f"{text} ({label})" if label else text


def _app_info(app: BaseApp, state: Optional[AppState], namespace: str) -> dict:
    return {
        "name": app.name,
        "version": app.version,
        "type": app.type,
        "image": app.effective_image(namespace),
        "description": app.description,
        "tags": app.tags,
        "ports": [p.model_dump(mode="json") for p in app.ports],
        "installed": bool(state and state.installed),
        "running": bool(state and state.running),
    }
