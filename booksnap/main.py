import asyncio
import logging
import mimetypes
from pathlib import Path
from typing import Optional

import typer
import uvicorn

from .book import Book
from .config import settings
from .covers import CoverResolver
from .exceptions import ExternalServiceError
from .services.http_client import HTTPClient
from .services.hugging_face_service import HuggingFaceService
from .services.open_library_service import OpenLibraryService
from .ui_helpers import print_cover_result, print_details_result, set_output_mode

logger = logging.getLogger(__name__)

app = typer.Typer(help="booksnap - personal book-library tracker")


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.callback()
def _global_options(
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output format: plain | json | rich (default: plain)",
    )
):
    """Global CLI options (output mode)."""
    setup_logging(settings.log_level)
    if output:
        set_output_mode(output)


@app.command("serve")
def cli_serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (default: API_HOST)"),
    port: Optional[int] = typer.Option(None, "--port", help="Port (default: API_PORT)"),
):
    """Start the HTTP API with uvicorn."""
    host = host or settings.api_host
    port = port or int(settings.api_port)
    print(f"Starting booksnap API on http://{host}:{port}/")
    uvicorn.run(
        "booksnap.api:create_app",
        factory=True,
        host=host,
        port=port,
        log_level=settings.log_level.lower(),
    )


async def _analyze(image: bytes, content_type: str) -> dict:
    async with HTTPClient(timeout=settings.hugging_face_timeout) as http_client:
        service = HuggingFaceService(http_client, settings)
        details = await service.extract_details(image, content_type)
        return details.to_dict()


async def _resolve_cover(title: str, author: Optional[str]) -> dict:
    async with HTTPClient(timeout=max(settings.hugging_face_timeout, settings.openlibrary_timeout)) as http_client:
        resolver = CoverResolver(
            OpenLibraryService(http_client, settings),
            HuggingFaceService(http_client, settings),
        )
        book = Book(id="", title=title, author=author)
        result = await resolver.resolve(book)
        return result.to_dict()


@app.command("analyze")
def cli_analyze(image_path: Path = typer.Argument(..., help="Photo of a book cover")):
    """Read title and author from a cover photo."""
    if not image_path.is_file():
        print(f"File not found: {image_path}")
        raise typer.Exit(code=1)

    content_type = mimetypes.guess_type(str(image_path))[0] or "image/jpeg"
    try:
        details = asyncio.run(_analyze(image_path.read_bytes(), content_type))
    except ExternalServiceError as e:
        print(f"Could not analyze image: {e}")
        raise typer.Exit(code=1)
    print_details_result(details)


@app.command("cover")
def cli_cover(
    title: str = typer.Argument(..., help="Book title"),
    author: Optional[str] = typer.Option(None, "--author", "-a", help="Book author"),
):
    """Look up a cover image (or a generated description) for a title."""
    if not title.strip():
        print("Title cannot be empty.")
        raise typer.Exit(code=1)
    print_cover_result(asyncio.run(_resolve_cover(title, author)))


if __name__ == "__main__":
    app()
