import asyncio
import typer
import logging
import sys
if sys.platform == "win32":
    # asyncpg не работает с ProactorEventLoop по умолчанию в Windows
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
from secure_drive_client.config import get_settings
from secure_drive_client import create_drive_client
from secure_drive_client.crypto import CipherEngine
from secure_drive_client.exceptions import DriveClientError
from secure_drive_client.logging import configure_logging
from secure_drive_client.utils.cli_utils import get_rich_console, mask_secret

from secure_drive_client.db.base import Base
from sqlalchemy.ext.asyncio import create_async_engine


app = typer.Typer(help="CLI for secure-drive management.")
logger = logging.getLogger(__name__)
console = get_rich_console()


@app.callback()
def main(log_level: str = typer.Option(None, "--log-level", help="Overrides LOG_LEVEL.")):
    configure_logging(log_level)


@app.command()
def init():
    """
    Creates DB tables and ensures the MinIO bucket exists.
    """
    console.rule("[bold cyan]Service Initialization[/bold cyan]")

    with console.status("Creating database tables...", spinner="dots"):
        async def _create_tables():
            try:
                settings = get_settings()
                engine = create_async_engine(settings.postgres.get_pg_dsn())
                async with engine.begin() as conn:
                    await conn.run_sync(Base.metadata.create_all)
                await engine.dispose()
                console.log("[bold green]✔[/bold green] Database tables created successfully.")
            except Exception as e:
                console.log(f"[bold red]✖[/bold red] Database initialization FAILED: {e}")
                raise typer.Exit(code=1)

        asyncio.run(_create_tables())

    with console.status("Initializing MinIO storage bucket...", spinner="dots"):
        async def _init_storage():
            try:
                client = create_drive_client()
                await client.blobs.check_connection()
                console.log(f"[bold green]✔[/bold green] MinIO bucket '{client.blobs.bucket}' is ready.")
                await client.aclose()
            except DriveClientError as e:
                console.log(f"[bold red]✖[/bold red] MinIO storage initialization FAILED: {e}")
                raise typer.Exit(code=1)

        asyncio.run(_init_storage())

    console.print("\n[bold green]✅ All services initialized successfully![/bold green]")


@app.command()
def check():
    """Checks connectivity to all external services (PostgreSQL, MinIO)."""
    console.rule("[bold cyan]Connection Check[/bold cyan]")

    async def _check():
        try:
            client = create_drive_client()
        except DriveClientError as e:
            console.print(f"[bold red]✖[/bold red] Configuration error: {e}")
            raise typer.Exit(code=1)
        statuses = await client.check_connections()
        await client.aclose()
        return client, statuses

    client, statuses = asyncio.run(_check())
    minio_settings = get_settings().minio

    pg_status = statuses.get("postgres", "unknown error")
    if pg_status == "ok":
        console.print("[bold green]✔[/bold green] PostgreSQL connection: OK")
    else:
        console.print(f"[bold red]✖[/bold red] PostgreSQL connection: FAILED ({pg_status})")

    minio_status = statuses.get("minio", "unknown error")
    if minio_status == "ok":
        console.print(
            f"[bold green]✔[/bold green] MinIO connection: OK "
            f"(bucket: '{client.blobs.bucket}', key: {mask_secret(minio_settings.accesskey)})"
        )
    else:
        console.print(f"[bold red]✖[/bold red] MinIO connection: FAILED ({minio_status})")

    if pg_status != "ok" or minio_status != "ok":
        raise typer.Exit(code=1)


@app.command("gen-key")
def gen_key():
    """Prints a fresh AES-256 key (64 hex chars) for CRYPTO_ENCRYPTION_KEY."""
    # ключ в stdout, всё остальное в stderr
    typer.echo(CipherEngine.generate_key_hex())


@app.command("create-user")
def create_user(
    email: str = typer.Argument(..., help="User e-mail (unique)."),
    name: str = typer.Option(..., "--name", help="Display name."),
    password: str = typer.Option(..., "--password", prompt=True, hide_input=True, confirmation_prompt=True),
):
    """Creates a drive user."""
    async def _create():
        client = create_drive_client()
        try:
            return await client.create_user(email, password, name)
        finally:
            await client.aclose()

    try:
        user = asyncio.run(_create())
    except DriveClientError as e:
        console.print(f"[bold red]✖[/bold red] {e}")
        raise typer.Exit(code=1)
    console.print(f"[bold green]✔[/bold green] User created: {user.id}")


if __name__ == "__main__":
    app()
