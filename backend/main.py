import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import IntegrityError

import config
from db import Base, engine
from errors import integrity_error_handler
from logging_setup import setup_logging
import routes_account
import routes_admin
import routes_auth
import routes_public
import routes_responses
import routes_surveys

setup_logging()
log = logging.getLogger(__name__)

app = FastAPI(title="SurveyHub API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_exception_handler(IntegrityError, integrity_error_handler)

Base.metadata.create_all(bind=engine)

app.include_router(routes_auth.router)
app.include_router(routes_account.router)
app.include_router(routes_surveys.router)
app.include_router(routes_responses.router)
app.include_router(routes_public.router)
app.include_router(routes_admin.router)


@app.get("/health")
def health():
    """Basic readiness probe.

    Returns:
        dict: {"ok": True}
    """
    return {"ok": True}


log.info("SurveyHub API ready (database: %s)", engine.url.render_as_string(hide_password=True))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
