from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from records.core.config import settings
from records.core.logger import logger
from contextlib import asynccontextmanager
from records.core.database import engine, Base
from records.api.v1.api import api_router
from records import models  # noqa: F401  регистрация таблиц в Base.metadata


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.PROJECT_NAME} in {settings.ENVIRONMENT} environment")
    logger.debug(f"Database URL: {settings.DATABASE_URL}")

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.success("База данных успешно инициализирована!")
    except Exception as e:
        logger.critical(f"Ошибка инициализации базы данных: {e}")
        raise

    yield

    logger.info(f"Shutting down {settings.PROJECT_NAME}")
    await engine.dispose()
    logger.debug("База данных ликвидирована")

app = FastAPI(title=settings.PROJECT_NAME, version="1.0.0", lifespan=lifespan)

origins = [
    "http://localhost",
    "http://localhost:3000",
    "http://localhost:3001",
    "http://127.0.0.1:8000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix=settings.API_V1_STR)
