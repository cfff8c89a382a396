import logging
import sys

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from certexam import config
from certexam.database import Base, engine
from certexam import models
from certexam.models.certification import Certification
from certexam.routers import (
    attempt as attempt_router,
    auth as auth_router,
    certificate as certificate_router,
    certification as certification_router,
    stats as stats_router,
)
from certexam.utils.catalog_loader import import_all
from certexam.utils.errors import ExamError

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Certification Exam Engine")
Base.metadata.create_all(bind=engine)

if config.CATALOG_AUTOLOAD:
    with Session(engine) as db:
        # seed the question bank on an empty database only
        if db.query(Certification).count() == 0:
            summary = import_all(db)
            logger.info(f"Catalog autoload: imported {summary['count']}, errors {len(summary['errors'])}")


@app.exception_handler(ExamError)
async def exam_error_handler(request: Request, exc: ExamError):
    logger.info(f"{request.method} {request.url.path} -> {type(exc).__name__}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": type(exc).__name__},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "An internal server error occurred."},
    )


app.include_router(auth_router.router)
app.include_router(certification_router.router)
app.include_router(attempt_router.router)
app.include_router(certificate_router.router)
app.include_router(stats_router.router)


@app.get("/")
def root():
    return {"message": "Certification Exam Engine"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("certexam.main:app", host="127.0.0.1", port=8000, reload=True)
