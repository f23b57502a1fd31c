import logging

import uvicorn
from fastapi import FastAPI
from starlette.middleware.sessions import SessionMiddleware

from lmslocal.api.endpoints import auth as auth_endpoints
from lmslocal.api.endpoints import competitions as competition_endpoints
from lmslocal.core.config import settings

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="LMS Local API")

app.add_middleware(SessionMiddleware, secret_key=settings.SECRET_KEY)

app.include_router(auth_endpoints.router, prefix="/auth", tags=["Authentication"])
app.include_router(competition_endpoints.router, prefix="/competitions", tags=["Competitions"])


@app.get("/health")
def health():
    return {"status": "ok"}


if __name__ == "__main__":
    logger.info("Starting LMS Local API against %s", settings.API_BASE_URL)
    uvicorn.run(app, host="0.0.0.0", port=8000)
