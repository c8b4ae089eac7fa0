from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1 import admin, checkout, orders, risk
from app.core.config import settings
from app.core.database import Base, SessionLocal, engine
from app.core.logging import configure_logging
from app.models import cart, order, product, user  # noqa: F401  register tables
from app.models import risk as risk_models  # noqa: F401
from app.services.risk_config import seed_default_rules


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        seed_default_rules(db)
    finally:
        db.close()
    yield


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Cash-on-delivery storefront backend with order risk scoring",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Health check
    @app.get("/health", tags=["Health"])
    async def health_check():
        return {"status": "ok"}

    # API Routers
    app.include_router(checkout.router, prefix=settings.API_V1_PREFIX, tags=["Checkout"])
    app.include_router(orders.router, prefix=settings.API_V1_PREFIX, tags=["Orders"])
    app.include_router(risk.router, prefix=settings.API_V1_PREFIX, tags=["Risk"])
    app.include_router(admin.router, prefix=settings.API_V1_PREFIX, tags=["Admin"])

    return app


app = create_app()
