from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, NoReturn

import typer
from rich.box import ROUNDED
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from novibe import repositories, services
from novibe.auth import CurrentUser, create_access_token
from novibe.config import get_settings
from novibe.credits import CreditLedger
from novibe.db import init_db, session_scope
from novibe.errors import NoVibeError
from novibe.llm import create_llm_client
from novibe.reports import export_document

app = typer.Typer(help="No Vibe No Code administration")
console = Console()


def _configure_logging(*, verbose: int, json_output: bool) -> None:
    if verbose <= 0:
        level = logging.WARNING
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    handlers: list[logging.Handler]
    if json_output:
        handlers = [logging.StreamHandler()]
        fmt = "%(levelname)s: %(message)s"
    else:
        handlers = [RichHandler(console=console, show_time=False, show_path=False, markup=True)]
        fmt = "%(message)s"

    logging.basicConfig(level=level, format=fmt, handlers=handlers, force=True)


@app.callback()
def app_callback(
    ctx: typer.Context,
    db_url: str | None = typer.Option(None, "--db-url", help="SQLAlchemy URL overriding DATABASE_URL."),
    json_output: bool = typer.Option(False, "--json", help="Output raw JSON for scripting."),
    verbose: int = typer.Option(0, "-v", "--verbose", count=True, help="Increase log verbosity."),
) -> None:
    ctx.obj = {"json_output": json_output, "db_url": db_url}
    _configure_logging(verbose=verbose, json_output=json_output)


def _wants_json(ctx: typer.Context) -> bool:
    return bool(ctx.obj and ctx.obj.get("json_output"))


def _open_db(ctx: typer.Context) -> None:
    init_db((ctx.obj or {}).get("db_url"))


def _format_scalar(value: Any) -> str:
    if isinstance(value, float):
        return f"{value:.1f}"
    if value is None:
        return "-"
    return str(value)


def _print(title: str, payload: dict[str, Any], ctx: typer.Context) -> None:
    if _wants_json(ctx):
        typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))
        return
    table = Table(show_header=True, header_style="bold cyan", box=ROUNDED)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    for key, value in payload.items():
        if isinstance(value, (dict, list)):
            value = json.dumps(value, ensure_ascii=False)
        table.add_row(key, _format_scalar(value))
    console.print(Panel(table, title=title, border_style="cyan"))


def _fail(exc: NoVibeError) -> NoReturn:
    console.print(f"[red]✗[/red] {exc.message} [dim]({exc.code})[/dim]")
    raise typer.Exit(code=1)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command("init-db")
def init_db_command(ctx: typer.Context) -> None:
    _open_db(ctx)
    _print("init-db", {"status": "ok", "database_url": (ctx.obj or {}).get("db_url") or get_settings().database_url}, ctx)


@app.command("serve")
def serve_command() -> None:
    """Run the HTTP API."""
    from novibe.app import main as run_api
    run_api()


@app.command("token")
def token_command(
    ctx: typer.Context,
    user_id: str = typer.Argument(..., help="Subject of the token."),
    tier: str = typer.Option("free", help="free, paid or admin"),
    expires_in: int = typer.Option(3600, help="Lifetime in seconds."),
) -> None:
    """Mint a development bearer token signed with AUTH_JWT_SECRET."""
    if not get_settings().auth_jwt_secret:
        console.print("[red]✗[/red] AUTH_JWT_SECRET is not set")
        raise typer.Exit(code=1)
    token = create_access_token(user_id, tier, expires_in)
    if _wants_json(ctx):
        typer.echo(json.dumps({"token": token}))
    else:
        typer.echo(token)


@app.command("balance")
def balance_command(ctx: typer.Context, user_id: str = typer.Argument(...)) -> None:
    _open_db(ctx)
    with session_scope() as session:
        ledger = CreditLedger(session)
        payload = {"user_id": user_id, **ledger.get_balance(user_id)}
        payload["recent"] = [
            f"{tx['amount']:+d} {tx['type']}" for tx in ledger.list_transactions(user_id, limit=5)
        ]
    _print("balance", payload, ctx)


@app.command("grant", context_settings={"ignore_unknown_options": True})
def grant_command(
    ctx: typer.Context,
    user_id: str = typer.Argument(...),
    amount: int = typer.Argument(..., help="Credits to add (negative to remove)."),
    description: str = typer.Option("", help="Reason recorded on the transaction."),
) -> None:
    _open_db(ctx)
    with session_scope() as session:
        try:
            balance = CreditLedger(session).add_credits(user_id, amount, description)
        except NoVibeError as exc:
            _fail(exc)
    _print("grant", {"user_id": user_id, "amount": amount, **balance}, ctx)


@app.command("ideas")
def ideas_command(
    ctx: typer.Context,
    user_id: str = typer.Argument(...),
    status: str | None = typer.Option(None, help="idea, in_progress, completed or archived"),
    source: str | None = typer.Option(None, help="manual or frankenstein"),
) -> None:
    _open_db(ctx)
    with session_scope() as session:
        ideas = repositories.list_ideas(session, user_id, status=status, source=source)
        counts = repositories.count_documents_by_idea(session, user_id)
        rows = [repositories.idea_summary(i, counts.get(i.id, 0)) for i in ideas]

    if _wants_json(ctx):
        typer.echo(json.dumps(rows, indent=2, ensure_ascii=False))
        return
    table = Table(show_header=True, header_style="bold yellow", box=ROUNDED)
    table.add_column("ID", style="dim")
    table.add_column("Idea")
    table.add_column("Source")
    table.add_column("Status")
    table.add_column("Docs", justify="right")
    for row in rows:
        text = row["idea_text"].splitlines()[0] if row["idea_text"] else ""
        table.add_row(row["id"][:8], text[:60], row["source"], row["project_status"], str(row["document_count"]))
    console.print(Panel(table, title=f"ideas · {user_id}", border_style="yellow"))


@app.command("analyze")
def analyze_command(
    ctx: typer.Context,
    user_id: str = typer.Argument(...),
    idea: str = typer.Argument(..., help="Idea text to analyze."),
    locale: str = typer.Option("en", help="en or es"),
    tier: str | None = typer.Option(None, help="Tier to apply to the user's profile."),
) -> None:
    """Run one startup analysis (charges one credit)."""
    _open_db(ctx)
    with session_scope() as session:
        try:
            pipeline = services.AnalysisPipeline(session, create_llm_client())
            if _wants_json(ctx):
                result = asyncio.run(pipeline.analyze_idea(CurrentUser(user_id, tier), idea, locale))
            else:
                with console.status("[bold cyan]Analyzing[/bold cyan]", spinner="dots"):
                    result = asyncio.run(pipeline.analyze_idea(CurrentUser(user_id, tier), idea, locale))
        except NoVibeError as exc:
            _fail(exc)

    if _wants_json(ctx):
        typer.echo(json.dumps(result, indent=2, ensure_ascii=False))
        return
    data, meta = result["data"], result["meta"]
    table = Table(show_header=True, header_style="bold green", box=ROUNDED)
    table.add_column("Criterion", style="bold")
    table.add_column("Score", justify="right")
    table.add_column("Justification")
    for criterion in data["scoringRubric"]:
        table.add_row(criterion["name"], f"{criterion['score']:.1f}", criterion["justification"])
    console.print(Panel(table, title=f"Final score {data['finalScore']:.1f}/5", border_style="green"))
    console.print(Panel(data["viabilitySummary"], title="Verdict", border_style="magenta"))
    _print("meta", {k: meta.get(k) for k in ("ideaId", "documentId", "creditsRemaining", "operationId")}, ctx)


@app.command("export")
def export_command(
    ctx: typer.Context,
    document_id: str = typer.Argument(...),
    user_id: str = typer.Option(..., "--user", help="Owner of the document."),
    fmt: str = typer.Option("md", "--format", help="md or txt"),
    out: Path | None = typer.Option(None, "--out", help="Write to this file instead of stdout."),
) -> None:
    _open_db(ctx)
    with session_scope() as session:
        try:
            doc = repositories.find_document(session, document_id, user_id)
            text = export_document(doc.document_type, repositories.document_summary(doc)["content"], fmt)
        except NoVibeError as exc:
            _fail(exc)
    if out is None:
        typer.echo(text)
        return
    out.write_text(text, encoding="utf-8")
    console.print(f"[green]✓[/green] wrote {out}")


if __name__ == "__main__":
    app()
