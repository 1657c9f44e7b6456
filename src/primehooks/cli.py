"""Typer CLI for primehooks."""

import typer
from rich.console import Console

app = typer.Typer(name="primehooks", help="primehooks: page-position webhook registry and trigger engine")
console = Console()


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind host"),
    port: int = typer.Option(8080, help="Bind port"),
):
    """Start the primehooks API server."""
    import uvicorn
    from primehooks.app import create_app

    console.print(f"[bold green]Starting primehooks on {host}:{port}[/bold green]")
    uvicorn.run(create_app(), host=host, port=port)


@app.command()
def sign(
    body: str = typer.Argument(..., help="Exact request body to sign"),
    secret: str = typer.Option(..., "--secret", "-s", help="Webhook secret"),
):
    """Print the X-Signature header value for a request body."""
    from primehooks.webhooks.signing import signature_header

    console.print(signature_header(body, secret), highlight=False)


@app.command()
def verify(
    body: str = typer.Argument(..., help="Exact request body received"),
    signature: str = typer.Argument(..., help="X-Signature header value"),
    secret: str = typer.Option(..., "--secret", "-s", help="Webhook secret"),
):
    """Check a received body against its X-Signature header."""
    from primehooks.webhooks.signing import verify_signature

    if verify_signature(body, signature, secret):
        console.print("[bold green]VALID[/bold green]")
    else:
        console.print("[bold red]INVALID[/bold red] signature does not match")
        raise typer.Exit(1)


@app.command("test-webhook")
def test_webhook(
    webhook_id: str = typer.Argument(..., help="Webhook id"),
    api_key: str = typer.Option(..., "--api-key", envvar="PRIMEHOOKS_API_KEY", help="Organization API key"),
    url: str = typer.Option("http://localhost:8080", help="Server URL"),
):
    """Run a test call for a webhook through a running server."""
    import httpx

    try:
        resp = httpx.post(
            f"{url}/webhooks/{webhook_id}/test",
            headers={"X-PrimeHooks-Api-Key": api_key},
            timeout=330,
        )
    except httpx.HTTPError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)
    if resp.status_code != 200:
        console.print(f"[bold red]HTTP {resp.status_code}:[/bold red] {resp.text}")
        raise typer.Exit(1)

    data = resp.json()
    colour = "green" if data["success"] else "red"
    console.print(
        f"[bold {colour}]{data['status']}[/bold {colour}] in {data['response_time_ms']}ms"
    )
    if data.get("status_code") is not None:
        console.print(f"  Status code: {data['status_code']}")
    if data.get("error_message"):
        console.print(f"  Error: {data['error_message']}")
    if not data["success"]:
        raise typer.Exit(1)


@app.command()
def health(
    url: str = typer.Option("http://localhost:8080", help="Server URL"),
):
    """Check primehooks server health."""
    import httpx

    try:
        resp = httpx.get(f"{url}/health", timeout=5)
        data = resp.json()
        console.print(f"[bold green]{data['status']}[/bold green] v{data['version']}")
    except (httpx.HTTPError, ValueError, KeyError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
