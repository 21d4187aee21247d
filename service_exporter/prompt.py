"""Interactive prompts for the CLI."""
from rich.console import Console
from rich.prompt import Prompt
from rich.table import Table

from service_exporter.errors import ConfigError

console = Console()


def _select(label, items, render=str):
    table = Table(title=label, show_header=False)
    table.add_column("#", justify="right")
    table.add_column("Item")
    for index, item in enumerate(items, 1):
        table.add_row(str(index), render(item))
    console.print(table)

    choices = [str(i) for i in range(1, len(items) + 1)]
    answer = Prompt.ask("Select", choices=choices, console=console, show_choices=False)
    return items[int(answer) - 1]


def select_service(services):
    """Prompt the user to pick one of the listed service identifiers."""
    if not services:
        raise ConfigError("no services available")
    return _select("Select a Kubernetes service", services)


def select_port(ports):
    """Prompt the user to pick a service port; a single port is chosen automatically."""
    if not ports:
        raise ConfigError("no ports available")
    if len(ports) == 1:
        return ports[0]
    return _select(
        "Select a port to forward",
        ports,
        render=lambda p: f"{p.port} -> {p.target_port} ({p.display_name}, {p.protocol})",
    )


def prompt_ngrok_token():
    token = Prompt.ask("Ngrok Auth Token", password=True, console=console).strip()
    if not token:
        raise ConfigError("ngrok auth token cannot be empty")
    return token


def prompt_kubeconfig_path(default):
    return Prompt.ask("Kubeconfig path", default=default, console=console).strip() or default


def render_summary(rows):
    """Print a two-column summary table of (field, value) pairs."""
    table = Table(title="Setup complete", show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    for field, value in rows:
        table.add_row(field, str(value))
    console.print(table)
