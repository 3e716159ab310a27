import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from authport.api import router, status_for
from authport.core.errors import AuthportError

logger = logging.getLogger(__name__)

# Local desktop front-end only; run.py binds to loopback by default
LOCAL_ORIGINS = ["http://localhost", "http://127.0.0.1", "tauri://localhost"]


async def authport_error_handler(request: Request, exc: AuthportError) -> JSONResponse:
    status = status_for(exc)
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        logger.info("%s %s rejected (%d): %s", request.method, request.url.path, status, exc)
    return JSONResponse(status_code=status, content={"detail": str(exc)})


def create_app() -> FastAPI:
    app = FastAPI(title="authport", description="Encrypted export and import of auth profiles")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=LOCAL_ORIGINS,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type"],
    )
    app.add_exception_handler(AuthportError, authport_error_handler)
    app.include_router(router, prefix="/api")

    @app.get("/")
    def health_check():
        return {"status": "authport running"}

    return app


app = create_app()
