import logging
import os
import uuid
from contextlib import asynccontextmanager
from typing import List

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from opentelemetry import metrics, trace
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from .allocator import IdAllocator
from .config import get_settings
from .db import close_db, get_allocator, get_collection, init_db
from .errors import BadRequest, DuplicateRecord, NotFound, StoreUnavailable
from .models import BookRequest, BookResponse, CreatedResponse, MessageResponse
from .otel import configure_otel
from .repository import BookRepository

settings = get_settings()

request_logger = logging.getLogger("bookstore.requests")


def get_book_repository(
    collection: Collection = Depends(get_collection),
    allocator: IdAllocator = Depends(get_allocator),
) -> BookRepository:
    return BookRepository(collection, allocator)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield
    close_db()


app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    description="A small bookstore catalog backed by MongoDB.",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)
if settings.otel_enabled:
    configure_otel(app, service_name=settings.app_name.lower(), service_version=settings.version)

allowed_origins = os.getenv("APP_CORS_ORIGINS", "").split(",") if os.getenv("APP_CORS_ORIGINS") else []
if allowed_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[origin.strip() for origin in allowed_origins if origin.strip()],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

templates = Jinja2Templates(directory=str(settings.templates_dir))
app.mount("/static", StaticFiles(directory=str(settings.static_dir)), name="static")

api = APIRouter(prefix="/api", tags=["books"])


@app.exception_handler(PyMongoError)
@app.exception_handler(StoreUnavailable)
async def store_error_handler(request: Request, exc: Exception) -> JSONResponse:
    request_logger.error(
        "store.error",
        exc_info=exc,
        extra={"path": request.url.path, "method": request.method},
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal store error"},
    )


@app.get("/", response_class=HTMLResponse, include_in_schema=False)
def index(request: Request):
    return templates.TemplateResponse(request, "index.html")


@app.get("/books", response_class=HTMLResponse, include_in_schema=False)
def books_page(request: Request, repository: BookRepository = Depends(get_book_repository)):
    books = [BookResponse.from_record(record) for record in repository.list_all()]
    return templates.TemplateResponse(request, "book-table.html", {"books": books})


@app.get("/authors", response_class=HTMLResponse, include_in_schema=False)
def authors_page(request: Request, repository: BookRepository = Depends(get_book_repository)):
    return templates.TemplateResponse(request, "author-table.html", {"authors": repository.group_by_author()})


@app.get("/years", response_class=HTMLResponse, include_in_schema=False)
def years_page(request: Request, repository: BookRepository = Depends(get_book_repository)):
    return templates.TemplateResponse(request, "year-table.html", {"years": repository.group_by_year()})


@app.get("/search", response_class=HTMLResponse, include_in_schema=False)
def search_page(request: Request, q: str = "", repository: BookRepository = Depends(get_book_repository)):
    books = [BookResponse.from_record(record) for record in repository.search(q)] if q else None
    return templates.TemplateResponse(request, "search.html", {"query": q, "books": books})


@app.get("/create", response_class=HTMLResponse, include_in_schema=False)
def create_page(request: Request):
    return templates.TemplateResponse(request, "create.html")


@api.get("/health", tags=["health"])
def health() -> dict:
    return {"status": "ok"}


@api.get("/books", response_model=List[BookResponse])
def list_books(repository: BookRepository = Depends(get_book_repository)) -> List[BookResponse]:
    return [BookResponse.from_record(record) for record in repository.list_all()]


@api.get("/books/{book_id}", response_model=BookResponse)
def get_book(book_id: str, repository: BookRepository = Depends(get_book_repository)) -> BookResponse:
    try:
        return BookResponse.from_record(repository.get_by_id(book_id))
    except NotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Book not found") from exc


@api.get("/search", response_model=List[BookResponse])
def search_books(q: str = "", repository: BookRepository = Depends(get_book_repository)) -> List[BookResponse]:
    if not q:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing search query")
    return [BookResponse.from_record(record) for record in repository.search(q)]


@api.post("/books", response_model=CreatedResponse, status_code=status.HTTP_201_CREATED)
def create_book(payload: BookRequest, repository: BookRepository = Depends(get_book_repository)) -> CreatedResponse:
    try:
        record = repository.insert(payload.to_fields(), book_id=payload.requested_id())
    except BadRequest as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except DuplicateRecord as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Book already exists") from exc
    return CreatedResponse(message="Book created successfully", id=record.id)


@api.put("/books/{book_id}", response_model=MessageResponse)
def update_book(
    book_id: str,
    payload: BookRequest,
    repository: BookRepository = Depends(get_book_repository),
) -> MessageResponse:
    try:
        repository.update_by_id(book_id, payload.to_fields())
    except BadRequest as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except NotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Book not found") from exc
    except DuplicateRecord as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Book already exists") from exc
    return MessageResponse(message="Book updated successfully")


@api.delete("/books/{book_id}", response_model=MessageResponse)
def delete_book(book_id: str, repository: BookRepository = Depends(get_book_repository)) -> MessageResponse:
    try:
        repository.delete_by_id(book_id)
    except NotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Book not found") from exc
    return MessageResponse(message="Book deleted successfully")


app.include_router(api)


@app.middleware("http")
async def security_headers(request, call_next):
    if settings.require_https:
        forwarded_proto = request.headers.get("x-forwarded-proto", "")
        if forwarded_proto and forwarded_proto.lower() != "https":
            return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": "HTTPS required"})
        if request.url.scheme != "https" and not forwarded_proto:
            return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": "HTTPS required"})

    response = await call_next(request)
    response.headers.setdefault("Strict-Transport-Security", "max-age=63072000; includeSubDomains; preload")
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("Referrer-Policy", "no-referrer")
    response.headers.setdefault("Permissions-Policy", "geolocation=(), microphone=(), camera=()")
    # The UI loads its stylesheet and script from /static only.
    response.headers.setdefault("Content-Security-Policy", "default-src 'self'; frame-ancestors 'none'; base-uri 'none'")
    response.headers.setdefault("Cross-Origin-Resource-Policy", "same-origin")
    return response


@app.middleware("http")
async def request_logging_middleware(request, call_next):
    request_logger.info("request.start", extra={"path": request.url.path, "method": request.method})
    response = await call_next(request)
    request_logger.info(
        "request.end",
        extra={"path": request.url.path, "method": request.method, "status": response.status_code},
    )
    return response


@app.middleware("http")
async def request_id_middleware(request, call_next):
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


if settings.otel_enabled:
    FastAPIInstrumentor.instrument_app(
        app,
        tracer_provider=trace.get_tracer_provider(),
        meter_provider=metrics.get_meter_provider(),
    )
