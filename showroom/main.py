from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import sentry_sdk
from showroom.core.config import settings
from showroom.core.database import init_db, AsyncSessionLocal
from showroom.core.exceptions import ShowroomError
from showroom.core.log import setup_logging
from showroom.services.auth_service import AuthService
from loguru import logger
from showroom.api import admin, assistant, auth, catalog, content, deposits, giveaway, installments, orders, uploads, wallet

# Initialize Sentry
if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        traces_sample_rate=1.0,
        profiles_sample_rate=1.0,
    )

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    setup_logging()
    logger.info("Starting up...")

    await init_db()

    async with AsyncSessionLocal() as session:
        await AuthService(session).ensure_admin_user_exists()

    yield

    # Shutdown
    logger.info("Shutting down...")

app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)

@app.exception_handler(ShowroomError)
async def showroom_error_handler(request: Request, exc: ShowroomError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.detail}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected ({exc.status_code}): {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

app.include_router(auth.router, prefix="/auth", tags=["Auth"])
app.include_router(catalog.router, prefix="/vehicles", tags=["Catalog"])
app.include_router(content.router, prefix="/content", tags=["Content"])
app.include_router(orders.router, prefix="/orders", tags=["Orders"])
app.include_router(deposits.router, prefix="/deposits", tags=["Deposits"])
app.include_router(giveaway.router, prefix="/giveaway", tags=["Giveaway"])
app.include_router(wallet.router, prefix="/wallet", tags=["Wallet"])
app.include_router(installments.router, prefix="/installments", tags=["Installments"])
app.include_router(assistant.router, prefix="/assistant", tags=["Assistant"])
app.include_router(uploads.router, prefix="/uploads", tags=["Uploads"])
app.include_router(admin.router, prefix="/admin", tags=["Admin"])

@app.get("/")
async def root():
    return {"message": f"{settings.BRAND_NAME} Storefront API Running"}
