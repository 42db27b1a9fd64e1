import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import CORS_ORIGINS, LOG_LEVEL
from app.database.db import Base, engine
from app.models import books, events, payments, tickets, users  # noqa: F401
from app.routes import admin, bookings
from app.routes import events as event_routes
from app.routes import payments as payment_routes


def configure_logging() -> None:
    logging.basicConfig(
        level=LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="ticket_hold")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Create all tables (in production, use migrations such as Alembic)
Base.metadata.create_all(bind=engine)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    # missing or malformed fields are a plain 400 for API clients
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


@app.get("/health")
def health_check():
    return {"status": "ok"}


# Include the routers
app.include_router(event_routes.router)
app.include_router(bookings.router)
app.include_router(payment_routes.router)
app.include_router(admin.router)
