# storefront/main.py
import logging
import uvicorn
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from storefront.config import settings
from storefront.database import create_engine, create_session_factory, create_tables
from storefront.infrastructure.cache import CacheRegistry
from storefront.infrastructure.http_clients import HTTPPaymentGatewayClient
from storefront.presentation import api, cart_api, products_api

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Управление жизненным циклом приложения"""
    # 1. База и таблицы
    engine = create_engine(settings.DATABASE_URL, pool_pre_ping=True)
    await create_tables(engine)
    app.state.session_factory = create_session_factory(engine)

    # 2. Кэши с фоновой очисткой
    app.state.caches = CacheRegistry(
        order_ttl=settings.ORDER_CACHE_TTL,
        cart_ttl=settings.CART_CACHE_TTL,
        product_ttl=settings.PRODUCT_CACHE_TTL,
        max_size=settings.CACHE_MAX_SIZE
    )
    app.state.caches.start_sweeper(settings.CACHE_SWEEP_INTERVAL)

    # 3. Платежный шлюз
    app.state.payment_gateway = HTTPPaymentGatewayClient(
        settings.PAYMENT_BASE_URL,
        settings.PAYMENT_CLIENT_ID,
        settings.PAYMENT_CLIENT_SECRET,
        currency=settings.PAYMENT_CURRENCY,
        timeout=settings.PAYMENT_TIMEOUT
    )
    logger.info("Приложение запущено")

    yield

    logger.info("Приложение останавливается...")
    await app.state.caches.stop()
    await engine.dispose()


async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={"success": False, "message": exc.detail})


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
    )
    return JSONResponse(status_code=400, content={"success": False, "message": f"Некорректные данные: {errors}"})


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Необработанная ошибка {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(status_code=500, content={"success": False, "message": "Что-то пошло не так"})


def create_app() -> FastAPI:
    app = FastAPI(
        title="Storefront Service",
        description="Корзина, оформление и оплата заказов",
        version="1.0.0",
        lifespan=lifespan
    )
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(api.router, prefix="/api")
    app.include_router(cart_api.router, prefix="/api")
    app.include_router(products_api.router, prefix="/api")

    @app.get("/")
    async def root():
        return {"success": True, "message": "Storefront Service работает"}

    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    return app


app = create_app()


def run():
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    run()
