from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse, RedirectResponse

from app.core.config import get_settings
from app.core.errors import register_exception_handlers
from app.core.logging import setup_logging
from app.db.database import create_session_factory
from app.routers import books, functions, system


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="API backend for the school-book dashboard (upload, metadata, questions, CSV export)",
    )

    # tables are created on first start
    app.state.session_factory = create_session_factory(settings.DATABASE_URL)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Routers
    app.include_router(system.router)
    app.include_router(functions.router)
    app.include_router(books.router)

    # root redirects to the API docs
    @app.get("/", include_in_schema=False)
    async def root():
        return RedirectResponse(url="/docs")

    # the CORS middleware only answers OPTIONS that carry Access-Control-Request-Method
    @app.options("/{full_path:path}", include_in_schema=False)
    async def options_ok(full_path: str):
        return PlainTextResponse("ok")

    return app


app = create_app()
