from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import logging

from domain.errors import InvalidTransition, NotFound

logger = logging.getLogger(__name__)

def attach_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(NotFound)
    async def _not_found(request: Request, exc: NotFound):
        return JSONResponse(status_code=404, content={"detail": f"{exc.kind} not found", "id": exc.ident})

    @app.exception_handler(InvalidTransition)
    async def _invalid_transition(request: Request, exc: InvalidTransition):
        return JSONResponse(status_code=409, content={
            "detail": f"Cannot move job in status {exc.current} to {exc.target}",
            "id": exc.job_id,
            "status": exc.current,
        })

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception):
        logger.exception("Unhandled: %s", exc)
        return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})
