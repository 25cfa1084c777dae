#!/usr/bin/env python3
"""Command-line access to the Debo API."""

import asyncio
import sys
from typing import Optional

import httpx
import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from debo_api.api.auth import AuthService
from debo_api.api.client import ApiClient, AsyncApiClient
from debo_api.api.errors import AuthenticationError
from debo_api.api.services import (
    async_project_service,
    project_service,
    public_client,
    user_service,
)
from debo_api.storage.config import load_settings

app = typer.Typer(help="Talk to the Debo backend from the terminal.")
console = Console()

client_options = {}


def configure_logging(debug: bool) -> None:
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if debug else "WARNING", format="{time} {level} {message}")


def get_client(authenticated: bool = True) -> ApiClient:
    settings = load_settings()
    if authenticated:
        return ApiClient(settings, **client_options)
    return public_client(settings, **client_options)


async def fetch_projects(params: Optional[dict] = None):
    async with AsyncApiClient(
        load_settings(), authenticated=False, **client_options
    ) as client:
        return await async_project_service(client).list_all(params=params)


def fail(exc: Exception) -> None:
    console.print(str(exc), style="red", markup=False)
    raise typer.Exit(code=1)


@app.callback()
def main(
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging"),
):
    configure_logging(debug)


@app.command()
def projects(
    page: Optional[int] = typer.Option(None, help="Page number to fetch"),
):
    """List projects."""
    params = {"page": page} if page else None
    try:
        result = asyncio.run(fetch_projects(params))
    except asyncio.CancelledError:
        return
    except httpx.HTTPError as exc:
        fail(exc)

    table = Table(title=f"Projects ({result.count})")
    table.add_column("ID", justify="right")
    table.add_column("Title")
    table.add_column("Description")
    for project in result.results:
        table.add_row(str(project.id), project.title, project.description)
    console.print(table)
    if result.next:
        console.print(f"[dim]More results: {result.next}[/dim]")


@app.command()
def project(project_id: int = typer.Argument(..., help="Project ID")):
    """Show a single project."""
    try:
        with get_client(authenticated=False) as client:
            item = project_service(client).get(project_id)
    except httpx.HTTPError as exc:
        fail(exc)
    console.print_json(item.model_dump_json())


@app.command()
def user(user_id: int = typer.Argument(..., help="User ID")):
    """Show a user (requires login)."""
    try:
        with get_client() as client:
            item = user_service(client).get(user_id)
    except (httpx.HTTPError, AuthenticationError) as exc:
        fail(exc)
    console.print_json(item.model_dump_json())


@app.command()
def login(
    email: str = typer.Argument(..., help="Account email"),
    password: str = typer.Option(..., prompt=True, hide_input=True),
):
    """Log in and store the access token."""
    try:
        with get_client() as client:
            AuthService(client).login(email, password)
    except httpx.HTTPError as exc:
        fail(exc)
    console.print("[green]Logged in[/green]")


@app.command()
def logout():
    """Log out and forget the access token."""
    with get_client() as client:
        AuthService(client).logout()
    console.print("Logged out")


@app.command()
def status():
    """Show whether an access token is stored."""
    with get_client() as client:
        authenticated = AuthService(client).is_authenticated()
    if authenticated:
        console.print("[green]Authenticated[/green]")
    else:
        console.print("Not authenticated")


if __name__ == "__main__":
    app()
