from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.gzip import GZipMiddleware

from . import __version__
from .db.core import init_and_migrate_db
from .routers import categories, expenses, trips, users
from .utils.utils import setup_logging, silence_http_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    await init_and_migrate_db()
    silence_http_logging()
    yield


app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(GZipMiddleware, minimum_size=1000)

app.include_router(categories.router)
app.include_router(trips.router)
app.include_router(expenses.router)
app.include_router(users.router)


@app.get("/api/info")
def info():
    return {"version": __version__}
