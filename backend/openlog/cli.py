"""openlog CLI — pick commits, stream a changelog, publish a release."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import click

from openlog.client.api import OpenLogClient
from openlog.client.drafts import JsonFileDraftStore
from openlog.client.session import GenerationSession
from openlog.errors import OpenLogError
from openlog.github.publish import derive_release_title
from openlog.models.stream import GenerationState

DEFAULT_DRAFTS = Path.home() / ".openlog" / "drafts.json"


def _api(ctx: click.Context) -> OpenLogClient:
    return OpenLogClient(ctx.obj["api_url"], user_id=ctx.obj["user"])


@click.group()
@click.version_option(version="1.0.0", prog_name="openlog")
@click.option("--api", "api_url", envvar="OPENLOG_API_URL", default="http://localhost:8000",
              help="OpenLog API base URL (or set OPENLOG_API_URL).")
@click.option("--user", envvar="OPENLOG_USER_ID", default=None,
              help="Signed-in user id forwarded to the API (or set OPENLOG_USER_ID).")
@click.pass_context
def main(ctx: click.Context, api_url: str, user: str | None):
    """openlog — AI changelogs from your GitHub commits."""
    ctx.ensure_object(dict)
    ctx.obj["api_url"] = api_url
    ctx.obj["user"] = user


@main.command()
@click.option("--host", envvar="APP_HOST", default="0.0.0.0")
@click.option("--port", envvar="APP_PORT", default=8000, type=int)
def serve(host: str, port: int):
    """Run the API server."""
    import uvicorn

    uvicorn.run("openlog.main:app", host=host, port=port)


@main.command()
@click.pass_context
def repos(ctx: click.Context):
    """List your most recently updated repositories."""
    try:
        items = asyncio.run(_api(ctx).list_repos())
    except OpenLogError as exc:
        raise click.ClickException(exc.message)
    for r in items:
        lock = "🔒" if r.private else "  "
        click.echo(f"{lock} {r.full_name:<40} {r.language or '':<12} {r.updated_at}")


@main.command()
@click.argument("repo")
@click.pass_context
def commits(ctx: click.Context, repo: str):
    """List recent commits of REPO (owner/name)."""
    try:
        items = asyncio.run(_api(ctx).list_commits(repo))
    except OpenLogError as exc:
        raise click.ClickException(exc.message)
    for c in items:
        click.echo(f"{c.hash[:7]}  {c.type:<5}  {c.subject}  — {c.author_name}")


def _progress_printer():
    last = {"line": ""}

    def on_change(session: GenerationSession) -> None:
        p = session.progress
        if not session.is_generating or not p.total_chunks:
            return
        current = "" if p.current_chunk is None else f" (writing chunk {p.current_chunk + 1})"
        line = f"  {p.completed_chunks}/{p.total_chunks} chunks done{current}"
        if line != last["line"]:
            last["line"] = line
            click.echo(line, err=True)

    return on_change


async def _run_generate(
    client: OpenLogClient,
    repo: str,
    hashes: tuple[str, ...],
    model: str | None,
    drafts: Path,
    tag: str | None,
) -> GenerationSession:
    session = GenerationSession(client, repo, drafts=JsonFileDraftStore(drafts), model=model)
    session.subscribe(_progress_printer())
    try:
        await session.load_commits()
        if session.error:
            raise click.ClickException(session.error)
        if hashes:
            for h in hashes:
                for c in session.commits:
                    if c.hash.startswith(h):
                        session.toggle(c.hash)
        else:
            session.select_all()
        click.echo(f"Generating from {len(session.selected)}/{len(session.commits)} commits…", err=True)

        await session.start_generation()

        if session.state == GenerationState.COMPLETE and tag:
            result = await session.publish(tag)
            if result.success:
                click.echo(f"🚀 Release published: {result.url}", err=True)
            else:
                click.echo(f"Error: {result.error}", err=True)
    finally:
        await session.close()
    return session


@main.command()
@click.argument("repo")
@click.option("-c", "--commit", "hashes", multiple=True,
              help="Commit hash (or prefix) to include. Repeatable; default: all.")
@click.option("--model", default=None, help="LLM model id.")
@click.option("--publish", "tag", default=None, help="Publish the result with this version tag.")
@click.option("--drafts", type=click.Path(path_type=Path), default=DEFAULT_DRAFTS,
              help="Draft autosave file.")
@click.option("-o", "--output", type=click.Path(path_type=Path), default=None,
              help="Write the changelog to this file instead of stdout.")
@click.pass_context
def generate(ctx, repo, hashes, model, tag, drafts, output):
    """Stream a changelog for REPO from selected commits."""
    try:
        session = asyncio.run(_run_generate(_api(ctx), repo, hashes, model, drafts, tag))
    except KeyboardInterrupt:
        click.echo("Cancelled.", err=True)
        sys.exit(130)
    except OpenLogError as exc:
        raise click.ClickException(exc.message)

    if session.state == GenerationState.ERRORED:
        click.echo(f"Error: {session.error}", err=True)
    if output:
        output.write_text(session.document, encoding="utf-8")
        click.echo(f"Saved: {output}", err=True)
    else:
        click.echo(session.document)
    if session.state != GenerationState.COMPLETE:
        sys.exit(1)


@main.command()
@click.argument("repo")
@click.argument("tag")
@click.argument("notes", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def publish(ctx, repo, tag, notes):
    """Publish NOTES (a Markdown file) as release TAG of REPO."""
    if not tag.strip():
        raise click.BadParameter("version tag must not be empty", param_hint="TAG")
    body = notes.read_text(encoding="utf-8")
    result = asyncio.run(_api(ctx).publish(repo, tag.strip(), derive_release_title(body), body))
    if not result.success:
        raise click.ClickException(result.error or "Publish failed")
    click.echo(result.url)


if __name__ == "__main__":
    main()
