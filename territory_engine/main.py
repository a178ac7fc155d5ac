# path: territory-engine/territory_engine/main.py

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from territory_engine.api.routes.claims import router as claims_router
from territory_engine.config import get_settings
from territory_engine.models.claim_models import ClaimResponse
from territory_engine.services.errors import ClaimError

logging.basicConfig(
    level=get_settings().log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="territory-engine")

app.include_router(claims_router)


@app.exception_handler(ClaimError)
async def claim_error_handler(request: Request, exc: ClaimError) -> JSONResponse:
    body = ClaimResponse(success=False, error=exc.message, errors=exc.errors)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(exclude_none=True))


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}
