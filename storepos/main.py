import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from storepos.core.config import CORS_ORIGINS, LOG_LEVEL
from storepos.database import engine
from storepos.models.auth_models import Base
from storepos.routers import auth, users, promos, notifications, products, sales, labels, analytics

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ready")
    yield


app = FastAPI(title="StorePOS Backend", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


# every error leaves as {"success": false, "message": ...}
@app.exception_handler(StarletteHTTPException)
async def http_error(request: Request, exc: StarletteHTTPException):
    body = {"success": False}
    if isinstance(exc.detail, dict):
        body.update(exc.detail)
    else:
        body["message"] = exc.detail
    return JSONResponse(status_code=exc.status_code, content=body, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_error(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(p) for p in e["loc"] if p != "body"), "message": e["msg"]}
        for e in exc.errors()
    ]
    message = errors[0]["message"] if errors else "Invalid request"
    return JSONResponse(status_code=422, content={"success": False, "message": message, "errors": errors})


@app.exception_handler(Exception)
async def unhandled_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"success": False, "message": "Internal server error"})


@app.get("/")
def home():
    return {"status": "ok", "message": "StorePOS Backend is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}


app.include_router(auth.router, prefix="/auth")
app.include_router(users.router, prefix="/users")
app.include_router(promos.router, prefix="/promos")
app.include_router(notifications.router, prefix="/notifications")
app.include_router(products.router, prefix="/products")
app.include_router(sales.router, prefix="/sales")
app.include_router(labels.brands, prefix="/brands")
app.include_router(labels.categories, prefix="/categories")
app.include_router(analytics.router, prefix="/analytics")
