import logging
from typing import Any, List

import httpx
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from news_digest.config import settings
from news_digest.main import LOG_FORMAT

app = typer.Typer(help="Control the news digest service over its HTTP API.")
recipients_app = typer.Typer(help="Manage digest recipients.")
app.add_typer(recipients_app, name="recipients")
console = Console()


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log HTTP calls.")):
    """
    News Digest - scheduled AI news summaries by email.
    """
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING, format=LOG_FORMAT)


def _client() -> httpx.Client:
    return httpx.Client(base_url=settings.API_URL, timeout=300.0)


def _request(method: str, path: str, **kwargs) -> Any:
    try:
        with _client() as client:
            response = client.request(method, path, **kwargs)
    except httpx.HTTPError as e:
        console.print(f"[bold red]Cannot reach the service at {settings.API_URL}: {e}[/bold red]")
        raise typer.Exit(code=1)

    if response.status_code >= 400:
        try:
            detail = response.json().get("detail", response.text)
        except ValueError:
            detail = response.text
        console.print(f"[bold red]Error {response.status_code}: {detail}[/bold red]")
        raise typer.Exit(code=1)
    return response.json()


@app.command()
def serve(
    host: str = typer.Option(None, "--host", help="Bind address (API_HOST)."),
    port: int = typer.Option(None, "--port", "-p", help="Port (API_PORT)."),
):
    """Runs the API and scheduler in the foreground."""
    from news_digest.main import run
    run(host=host, port=port)


@app.command()
def status():
    """Shows schedule state and delivery statistics."""
    stats = _request("GET", "/api/dashboard/stats")
    schedule = _request("GET", "/api/schedule")

    active = Text("active", style="bold green") if schedule["is_active"] else Text("inactive", style="bold red")
    body = Text()
    body.append("Schedule: ", style="bold")
    body.append(active)
    body.append(f"  every {schedule['interval']}h\n")
    body.append("Next run: ", style="bold")
    body.append(f"{schedule.get('next_run') or 'N/A'}\n")
    body.append("Last digest: ", style="bold")
    body.append(f"{stats.get('last_digest_time') or 'N/A'}\n")
    body.append("Digests: ", style="bold")
    body.append(f"{stats['total_digests']}   ")
    body.append("Email success rate: ", style="bold")
    body.append(f"{stats['success_rate']}%\n")
    body.append("Recipients: ", style="bold")
    body.append(", ".join(schedule.get("recipients", [])) or "none")
    console.print(Panel(body, title="[bold blue]News Digest[/bold blue]", border_style="blue"))


@app.command()
def interval(minutes: int = typer.Argument(..., help="Minutes between digests (whole hours, 60-1440).")):
    """Sets the digest interval."""
    if minutes % 60 != 0 or not 1 <= minutes // 60 <= 24:
        console.print("[bold red]Interval must be a whole number of hours between 60 and 1440 minutes.[/bold red]")
        raise typer.Exit(code=1)

    schedule = _request("POST", "/api/schedule/interval", json={"interval": minutes // 60})
    console.print(f"[bold green]Interval set to {schedule['interval']} hour(s).[/bold green]")


@app.command()
def schedule(state: str = typer.Argument(..., help="on or off")):
    """Turns the schedule on or off."""
    state = state.lower()
    if state not in ("on", "off"):
        console.print("[bold red]State must be 'on' or 'off'.[/bold red]")
        raise typer.Exit(code=1)

    current = _request("GET", "/api/schedule")
    if current["is_active"] == (state == "on"):
        console.print(f"[bold yellow]Schedule is already {state}.[/bold yellow]")
        return
    current = _request("POST", "/api/schedule/toggle")
    console.print(f"[bold green]Schedule {'enabled' if current['is_active'] else 'disabled'}.[/bold green]")


@app.command()
def trigger():
    """Generates and sends a digest now."""
    with console.status("[bold blue]Generating digest...[/bold blue]"):
        result = _request("POST", "/api/digest/trigger")
    style = "bold green" if result["success"] else "bold red"
    console.print(f"[{style}]{result['message']}[/{style}]")
    if not result["success"]:
        raise typer.Exit(code=1)


@app.command()
def logs(limit: int = typer.Option(20, "--limit", "-n", help="Number of entries.")):
    """Shows recent system logs."""
    entries = _request("GET", "/api/logs", params={"limit": limit})
    if not entries:
        console.print("[bold yellow]No logs yet.[/bold yellow]")
        return

    table = Table(title="[bold blue]System Logs[/bold blue]")
    table.add_column("Time", style="dim", no_wrap=True)
    table.add_column("Type")
    table.add_column("Message", style="magenta")
    styles = {"info": "green", "warning": "yellow", "error": "bold red"}
    for entry in entries:
        table.add_row(entry["created_at"][:19], Text(entry["type"], style=styles.get(entry["type"], "")),
                      entry["message"])
    console.print(table)


def _print_recipients(recipients: List[str]) -> None:
    if not recipients:
        console.print("[bold yellow]No recipients configured.[/bold yellow]")
        return
    for address in recipients:
        console.print(f"  [cyan]{address}[/cyan]")


@recipients_app.command("list")
def list_recipients():
    """Lists recipients."""
    _print_recipients(_request("GET", "/api/recipients")["recipients"])


@recipients_app.command("add")
def add_recipient(email: str = typer.Argument(..., help="Address to add.")):
    """Adds a recipient."""
    recipients = _request("GET", "/api/recipients")["recipients"]
    if email in recipients:
        console.print(f"[bold yellow]{email} is already a recipient.[/bold yellow]")
        return
    updated = _request("POST", "/api/recipients", json={"recipients": recipients + [email]})
    console.print(f"[bold green]Added {email}.[/bold green]")
    _print_recipients(updated["recipients"])


@recipients_app.command("remove")
def remove_recipient(email: str = typer.Argument(..., help="Address to remove.")):
    """Removes a recipient."""
    recipients = _request("GET", "/api/recipients")["recipients"]
    if email not in recipients:
        console.print(f"[bold red]{email} is not a recipient.[/bold red]")
        raise typer.Exit(code=1)
    updated = _request("POST", "/api/recipients", json={"recipients": [r for r in recipients if r != email]})
    console.print(f"[bold green]Removed {email}.[/bold green]")
    _print_recipients(updated["recipients"])


if __name__ == "__main__":
    app()
