import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional, Protocol

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse, Response

from catalog.config import settings
from catalog.database import EntityStore, StoreError, initialize_database
from catalog.library import Catalog, NotFoundError
from catalog.workflow import Outcome, Redirect

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


# --- Rendering ---
class TemplateRenderer(Protocol):
    def render(self, view: str, payload: Dict[str, Any], status_code: int = 200) -> Response:
        ...


class JSONRenderer:
    """Renders a view as its JSON payload, tagged with the view name."""

    def render(self, view: str, payload: Dict[str, Any], status_code: int = 200) -> Response:
        return JSONResponse({"view": view, **payload}, status_code=status_code)


def get_catalog(request: Request) -> Catalog:
    return request.app.state.catalog


def respond(request: Request, outcome: Outcome) -> Response:
    """Turn a handler outcome into an HTTP response."""
    if isinstance(outcome, Redirect):
        return RedirectResponse(outcome.location, status_code=302)
    return request.app.state.renderer.render(outcome.view, outcome.payload, outcome.status_code)


async def read_form(request: Request) -> Dict[str, Any]:
    """Form body as a dict; keys submitted more than once map to a list."""
    form = await request.form()
    data: Dict[str, Any] = {}
    for key in form.keys():
        values = form.getlist(key)
        data[key] = values if len(values) > 1 else values[0]
    return data


router = APIRouter(prefix="/catalog")


# --- Home ---
@router.get("")
async def index(request: Request, catalog: Catalog = Depends(get_catalog)):
    return respond(request, await catalog.index())


# --- Authors ---
@router.get("/authors")
async def author_list(request: Request, catalog: Catalog = Depends(get_catalog)):
    return respond(request, await catalog.author_list())


@router.get("/author/create")
async def author_create_get(request: Request, catalog: Catalog = Depends(get_catalog)):
    return respond(request, await catalog.author_create_form())


@router.post("/author/create")
async def author_create_post(request: Request, catalog: Catalog = Depends(get_catalog)):
    return respond(request, await catalog.author_create(await read_form(request)))


@router.get("/author/{author_id}")
async def author_detail(author_id: str, request: Request, catalog: Catalog = Depends(get_catalog)):
    return respond(request, await catalog.author_detail(author_id))


@router.get("/author/{author_id}/update")
async def author_update_get(author_id: str, request: Request, catalog: Catalog = Depends(get_catalog)):
    return respond(request, await catalog.author_update_form(author_id))


@router.post("/author/{author_id}/update")
async def author_update_post(author_id: str, request: Request, catalog: Catalog = Depends(get_catalog)):
    return respond(request, await catalog.author_update(author_id, await read_form(request)))


@router.get("/author/{author_id}/delete")
async def author_delete_get(author_id: str, request: Request, catalog: Catalog = Depends(get_catalog)):
    return respond(request, await catalog.author_delete_form(author_id))


@router.post("/author/{author_id}/delete")
async def author_delete_post(author_id: str, request: Request, catalog: Catalog = Depends(get_catalog)):
    return respond(request, await catalog.author_delete(author_id))


# --- Books ---
@router.get("/books")
async def book_list(request: Request, catalog: Catalog = Depends(get_catalog)):
    return respond(request, await catalog.book_list())


@router.get("/book/create")
async def book_create_get(request: Request, catalog: Catalog = Depends(get_catalog)):
    return respond(request, await catalog.book_create_form())


@router.post("/book/create")
async def book_create_post(request: Request, catalog: Catalog = Depends(get_catalog)):
    return respond(request, await catalog.book_create(await read_form(request)))


@router.get("/book/{book_id}")
async def book_detail(book_id: str, request: Request, catalog: Catalog = Depends(get_catalog)):
    return respond(request, await catalog.book_detail(book_id))


@router.get("/book/{book_id}/update")
async def book_update_get(book_id: str, request: Request, catalog: Catalog = Depends(get_catalog)):
    return respond(request, await catalog.book_update_form(book_id))


@router.post("/book/{book_id}/update")
async def book_update_post(book_id: str, request: Request, catalog: Catalog = Depends(get_catalog)):
    return respond(request, await catalog.book_update(book_id, await read_form(request)))


@router.get("/book/{book_id}/delete")
async def book_delete_get(book_id: str, request: Request, catalog: Catalog = Depends(get_catalog)):
    return respond(request, await catalog.book_delete_form(book_id))


@router.post("/book/{book_id}/delete")
async def book_delete_post(book_id: str, request: Request, catalog: Catalog = Depends(get_catalog)):
    return respond(request, await catalog.book_delete(book_id))


# --- Genres ---
@router.get("/genres")
async def genre_list(request: Request, catalog: Catalog = Depends(get_catalog)):
    return respond(request, await catalog.genre_list())


@router.get("/genre/create")
async def genre_create_get(request: Request, catalog: Catalog = Depends(get_catalog)):
    return respond(request, await catalog.genre_create_form())


@router.post("/genre/create")
async def genre_create_post(request: Request, catalog: Catalog = Depends(get_catalog)):
    return respond(request, await catalog.genre_create(await read_form(request)))


@router.get("/genre/{genre_id}")
async def genre_detail(genre_id: str, request: Request, catalog: Catalog = Depends(get_catalog)):
    return respond(request, await catalog.genre_detail(genre_id))


@router.get("/genre/{genre_id}/update")
async def genre_update_get(genre_id: str, request: Request, catalog: Catalog = Depends(get_catalog)):
    return respond(request, await catalog.genre_update_form(genre_id))


@router.post("/genre/{genre_id}/update")
async def genre_update_post(genre_id: str, request: Request, catalog: Catalog = Depends(get_catalog)):
    return respond(request, await catalog.genre_update(genre_id, await read_form(request)))


@router.get("/genre/{genre_id}/delete")
async def genre_delete_get(genre_id: str, request: Request, catalog: Catalog = Depends(get_catalog)):
    return respond(request, await catalog.genre_delete_form(genre_id))


@router.post("/genre/{genre_id}/delete")
async def genre_delete_post(genre_id: str, request: Request, catalog: Catalog = Depends(get_catalog)):
    return respond(request, await catalog.genre_delete(genre_id))


# --- Book instances ---
@router.get("/bookinstances")
async def book_instance_list(request: Request, catalog: Catalog = Depends(get_catalog)):
    return respond(request, await catalog.book_instance_list())


@router.get("/bookInstance/create")
async def book_instance_create_get(request: Request, catalog: Catalog = Depends(get_catalog)):
    return respond(request, await catalog.book_instance_create_form())


@router.post("/bookInstance/create")
async def book_instance_create_post(request: Request, catalog: Catalog = Depends(get_catalog)):
    return respond(request, await catalog.book_instance_create(await read_form(request)))


@router.get("/bookInstance/{instance_id}")
async def book_instance_detail(instance_id: str, request: Request, catalog: Catalog = Depends(get_catalog)):
    return respond(request, await catalog.book_instance_detail(instance_id))


@router.get("/bookInstance/{instance_id}/update")
async def book_instance_update_get(instance_id: str, request: Request, catalog: Catalog = Depends(get_catalog)):
    return respond(request, await catalog.book_instance_update_form(instance_id))


@router.post("/bookInstance/{instance_id}/update")
async def book_instance_update_post(instance_id: str, request: Request, catalog: Catalog = Depends(get_catalog)):
    return respond(request, await catalog.book_instance_update(instance_id, await read_form(request)))


@router.get("/bookInstance/{instance_id}/delete")
async def book_instance_delete_get(instance_id: str, request: Request, catalog: Catalog = Depends(get_catalog)):
    return respond(request, await catalog.book_instance_delete_form(instance_id))


@router.post("/bookInstance/{instance_id}/delete")
async def book_instance_delete_post(instance_id: str, request: Request, catalog: Catalog = Depends(get_catalog)):
    return respond(request, await catalog.book_instance_delete(instance_id))


# --- Errors ---
async def not_found_handler(request: Request, exc: NotFoundError) -> Response:
    return request.app.state.renderer.render(
        "error", {"title": "Not Found", "message": str(exc), "status": 404}, status_code=404
    )


async def store_error_handler(request: Request, exc: StoreError) -> Response:
    logger.exception(f"Store failure while handling {request.method} {request.url.path}", exc_info=exc)
    return request.app.state.renderer.render(
        "error", {"title": "Server Error", "message": "The catalog database is unavailable.", "status": 500},
        status_code=500,
    )


def create_app(db_file: Optional[str] = None, renderer: Optional[TemplateRenderer] = None) -> FastAPI:
    """Build the catalog application on top of ``db_file``.

    The schema is created when the application starts, not when it is built.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        initialize_database(db_file)
        yield

    app = FastAPI(title=settings.app_name, version=settings.app_version, debug=settings.debug, lifespan=lifespan)
    app.state.catalog = Catalog(EntityStore(db_file))
    app.state.renderer = renderer or JSONRenderer()
    app.include_router(router)
    app.add_exception_handler(NotFoundError, not_found_handler)
    app.add_exception_handler(StoreError, store_error_handler)

    @app.get("/")
    async def read_root():
        return RedirectResponse("/catalog", status_code=302)

    return app


app = create_app()
