import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .db import db_ok, pool
from .settings import settings
from .routes.sales_invoices import router as sales_invoices_router

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    pool.open()
    try:
        yield
    finally:
        pool.close()


app = FastAPI(
    title="Stockbook Invoicing API",
    version="0.1.0",
    description="Sales invoice editing with stock kept in step.",
    lifespan=lifespan,
)

app.include_router(sales_invoices_router)


@app.get("/health")
def health():
    ok_db = db_ok()
    return {"ok": ok_db, "db": ok_db}
