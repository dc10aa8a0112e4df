import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, FastAPI, File, Query, Request, Response, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, StrictBool

from .book import Book
from .config import Settings, settings as default_settings
from .covers import CoverResolver, DetailsExtractor
from .duplicates import check_duplicate
from .exceptions import (
    DuplicateBookError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)
from .library import Library
from .services.http_client import HTTPClient
from .services.hugging_face_service import HuggingFaceService
from .services.open_library_service import OpenLibraryService

logger = logging.getLogger(__name__)


# --- Models ---
class BookModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    author: Optional[str] = None
    is_read: bool = Field(alias="isRead")
    created_at: datetime = Field(alias="createdAt")

    @classmethod
    def from_book(cls, book: Book) -> "BookModel":
        return cls(
            id=book.id,
            title=book.title,
            author=book.author,
            is_read=book.is_read,
            created_at=book.created_at,
        )


class BookCreateModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(min_length=1)
    author: Optional[str] = None
    is_read: StrictBool = Field(default=False, alias="isRead")


class BookUpdateModel(BaseModel):
    """Partial update; only fields present in the request body are applied."""
    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = Field(default=None, min_length=1)
    author: Optional[str] = None
    is_read: Optional[StrictBool] = Field(default=None, alias="isRead")


class DuplicateCheckRequest(BaseModel):
    title: Optional[str] = None
    author: Optional[str] = None


class DuplicateCheckResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_duplicate: bool = Field(alias="isDuplicate")
    matches: List[BookModel]


class BookDetailsModel(BaseModel):
    title: str
    author: Optional[str] = None
    confidence: float


class StatsModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_books: int = Field(alias="totalBooks")
    read_books: int = Field(alias="readBooks")
    unread_books: int = Field(alias="unreadBooks")
    unique_authors: int = Field(alias="uniqueAuthors")


ReadStatus = Literal["all", "read", "unread"]


# --- Dependencies ---
def get_library(request: Request) -> Library:
    return request.app.state.library


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_extractor(request: Request) -> DetailsExtractor:
    return request.app.state.extractor


def get_cover_resolver(request: Request) -> CoverResolver:
    return request.app.state.cover_resolver


def _to_models(books: List[Book]) -> List[BookModel]:
    return [BookModel.from_book(b) for b in books]


def _format_size(size: int) -> str:
    mb = 1024 * 1024
    if size >= mb and size % mb == 0:
        return f"{size // mb}MB"
    return f"{size} bytes"


# --- Routes ---
router = APIRouter(prefix="/api", tags=["books"])


@router.get("/books", response_model=List[BookModel])
def list_books(
    q: Optional[str] = Query(None, description="Search title/author"),
    status: ReadStatus = Query("all", description="Filter by read status: all|read|unread"),
    library: Library = Depends(get_library),
):
    """List all books, newest first, optionally searched and filtered by read status."""
    books = library.search_books(q) if q is not None else library.list_books()
    if status != "all":
        wanted = status == "read"
        books = [b for b in books if b.is_read == wanted]
    return _to_models(books)


@router.get("/books/search/{query:path}", response_model=List[BookModel])
def search_books(query: str, library: Library = Depends(get_library)):
    """Case-insensitive substring search over title and author."""
    return _to_models(library.search_books(query))


@router.post("/books/check-duplicate", response_model=DuplicateCheckResponse)
def check_duplicate_book(payload: DuplicateCheckRequest, library: Library = Depends(get_library)):
    """Report whether a candidate title is already in the library."""
    if not payload.title:
        raise ValidationError("Title is required")
    result = check_duplicate(payload.title, payload.author, library.list_books())
    return DuplicateCheckResponse(is_duplicate=result.is_duplicate, matches=_to_models(result.matches))


@router.get("/books/{book_id}", response_model=BookModel)
def get_book(book_id: str, library: Library = Depends(get_library)):
    book = library.find_book(book_id)
    if book is None:
        raise NotFoundError("Book not found")
    return BookModel.from_book(book)


@router.post("/books", response_model=BookModel, status_code=201)
def create_book(
    payload: BookCreateModel,
    unique: bool = Query(False, description="Reject the book if the title is already in the library"),
    library: Library = Depends(get_library),
):
    """Add a book to the library."""
    if unique:
        book, result = library.create_book_if_new(payload.title, author=payload.author, is_read=payload.is_read)
        if book is None:
            raise DuplicateBookError("Book already exists", matches=result.matches)
    else:
        book = library.create_book(payload.title, author=payload.author, is_read=payload.is_read)
    return BookModel.from_book(book)


@router.put("/books/{book_id}", response_model=BookModel)
def update_book(book_id: str, update: BookUpdateModel, library: Library = Depends(get_library)):
    """Update only the supplied fields of a book."""
    changes = update.model_dump(exclude_unset=True)
    if "is_read" in changes and changes["is_read"] is None:
        raise ValidationError("isRead must be a boolean")
    book = library.update_book(book_id, changes)
    return BookModel.from_book(book)


@router.delete("/books/{book_id}", status_code=204)
def delete_book(book_id: str, library: Library = Depends(get_library)):
    library.remove_book(book_id)
    return Response(status_code=204)


@router.get("/books/{book_id}/cover")
async def get_book_cover(
    book_id: str,
    library: Library = Depends(get_library),
    resolver: CoverResolver = Depends(get_cover_resolver),
):
    """Look up a cover image, falling back to a generated description."""
    book = library.find_book(book_id)
    if book is None:
        raise NotFoundError("Book not found")
    result = await resolver.resolve(book)
    return result.to_dict()


@router.post("/ocr/analyze", response_model=BookDetailsModel)
async def analyze_cover_image(
    image: Optional[UploadFile] = File(None),
    extractor: DetailsExtractor = Depends(get_extractor),
    config: Settings = Depends(get_settings),
):
    """Extract title and author from an uploaded cover photo."""
    if image is None:
        raise ValidationError("No image file provided")
    data = await image.read(config.max_upload_size + 1)
    if not data:
        raise ValidationError("No image file provided")
    if len(data) > config.max_upload_size:
        raise ValidationError(f"Image exceeds the upload limit of {_format_size(config.max_upload_size)}")
    content_type = image.content_type or "image/jpeg"
    if not content_type.startswith("image/"):
        raise ValidationError("Uploaded file is not an image")

    try:
        details = await extractor.extract_details(data, content_type)
    except ExternalServiceError as exc:
        logger.error("OCR analysis failed: %s", exc)
        raise ExternalServiceError("Failed to analyze image") from exc
    return BookDetailsModel(**details.to_dict())


@router.get("/stats", response_model=StatsModel)
def get_library_stats(library: Library = Depends(get_library)):
    """Get basic statistics about the library."""
    return StatsModel(**library.get_statistics())


# --- Error handling ---
def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationError)
    async def _validation_error(request: Request, exc: ValidationError):
        return _error(400, str(exc))

    @app.exception_handler(RequestValidationError)
    async def _request_validation_error(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        detail = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
        return _error(400, "Invalid request data", detail=detail)

    @app.exception_handler(NotFoundError)
    async def _not_found(request: Request, exc: NotFoundError):
        return _error(404, str(exc))

    @app.exception_handler(DuplicateBookError)
    async def _duplicate(request: Request, exc: DuplicateBookError):
        matches = [BookModel.from_book(b).model_dump(mode="json", by_alias=True) for b in exc.matches]
        return _error(409, str(exc), matches=matches)

    @app.exception_handler(ExternalServiceError)
    async def _external_service(request: Request, exc: ExternalServiceError):
        return _error(500, str(exc))

    @app.exception_handler(Exception)
    async def _internal(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error(500, "Internal server error")


# --- Application factory ---
def create_app(
    library: Optional[Library] = None,
    config: Optional[Settings] = None,
    extractor: Optional[DetailsExtractor] = None,
    cover_resolver: Optional[CoverResolver] = None,
    http_client: Optional[HTTPClient] = None,
) -> FastAPI:
    """Build the API around an explicitly constructed store and services.

    Anything not supplied is created from ``config``. The HTTP client is
    closed when the application shuts down.
    """
    config = config or default_settings

    if extractor is None or cover_resolver is None:
        http_client = http_client or HTTPClient(
            timeout=max(config.hugging_face_timeout, config.openlibrary_timeout)
        )
        hugging_face = HuggingFaceService(http_client, config)
        extractor = extractor or hugging_face
        cover_resolver = cover_resolver or CoverResolver(OpenLibraryService(http_client, config), hugging_face)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("%s %s starting", config.app_name, config.app_version)
        try:
            yield
        finally:
            if http_client is not None and not http_client.is_closed:
                await http_client.close()

    app = FastAPI(title=config.app_name, version=config.app_version, debug=config.debug, lifespan=lifespan)
    app.state.library = library if library is not None else Library()
    app.state.settings = config
    app.state.extractor = extractor
    app.state.cover_resolver = cover_resolver

    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        return response

    @app.get("/health")
    def health(request: Request):
        """Lightweight liveness endpoint."""
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "totalBooks": len(request.app.state.library.list_books()),
        }

    _register_exception_handlers(app)
    app.include_router(router)
    return app
