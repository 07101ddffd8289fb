# cuehall/main.py
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cuehall.config import settings
from cuehall.middleware import RequestIdMiddleware
from cuehall.logging import setup_logging
from cuehall.db import Base, engine
from cuehall import models  # noqa: F401  (registers tables)

from cuehall.routers import auth, admin, tables, products, customers, sessions, orders, inventory


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    yield


setup_logging()
app = FastAPI(title="Cuehall API", version="0.1.0", lifespan=lifespan)

# Middlewares
app.add_middleware(RequestIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(admin.router)
app.include_router(tables.router)
app.include_router(products.router)
app.include_router(customers.router)
app.include_router(sessions.router)
app.include_router(orders.router)
app.include_router(inventory.router)

@app.get("/healthz")
def healthz():
    return {"ok": True}
