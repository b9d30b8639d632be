"""
Точка входа API.

Запуск: uvicorn flowershop.main:create_app --factory
"""
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from flowershop import config
from flowershop.context import AppContext
from flowershop.errors import AppError
from flowershop.logger import logger, setup_logging
from flowershop.middleware.request_log import RequestLoggingMiddleware
from flowershop.routers import admin_dashboard, auth, categories, flowers, orders, users
from flowershop.utils.responses import fail, ok


# ==== Обработчики ошибок: всё превращаем в {data, error} ====
async def app_error_handler(request: Request, exc: AppError):
    log = logger.error if exc.status_code >= 500 else logger.info
    log("request_failed", path=request.url.path, status=exc.status_code, error=exc.message)
    return fail(exc.message, exc.status_code, exc.data)


async def validation_error_handler(request: Request, exc: RequestValidationError):
    logger.info("request_invalid", path=request.url.path, errors=len(exc.errors()))
    return fail("Некорректные данные запроса", 400, jsonable_encoder(exc.errors()))


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    message = "Маршрут не найден" if exc.status_code == 404 else str(exc.detail)
    return fail(message, exc.status_code)


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("unhandled_error", path=request.url.path)
    return fail("Внутренняя ошибка сервера", 500)


def create_app(database_url: Optional[str] = None) -> FastAPI:
    setup_logging()
    ctx = AppContext.create(database_url)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # создаём таблицы на старте, закрываем пул на остановке
        ctx.init_schema()
        logger.info("app_started", app=config.APP_NAME, env=config.ENV)
        yield
        ctx.dispose()

    app = FastAPI(title=config.APP_NAME, lifespan=lifespan)
    app.state.ctx = ctx

    # ==== Middleware ====
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in config.CORS_ORIGIN.split(",")],
        allow_credentials=config.CORS_ORIGIN != "*",
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    # ==== Routers ====
    for module in (auth, categories, flowers, orders, users, admin_dashboard):
        app.include_router(module.router, prefix="/api")

    @app.get("/health")
    def health():
        return ok({"status": "ok", "service": config.APP_NAME})

    return app


def run() -> None:
    import uvicorn

    uvicorn.run(
        create_app(),
        host=os.getenv("API_HOST", "0.0.0.0"),
        port=int(os.getenv("API_PORT", "8000")),
    )


if __name__ == "__main__":
    run()
