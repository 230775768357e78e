"""
Telegram Store Bot - Catalog, Invoices & Payment Proofs
FastAPI + Supabase + Telegram Bot API webhook, with an admin API for the web panel
"""

import json
import logging
import secrets
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Union

import httpx
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from pydantic import AliasChoices, BaseModel, Field

from storebot import __version__
from storebot.catalog import CatalogIndexer
from storebot.config import Config
from storebot.database import Database, create_supabase
from storebot.errors import InvalidTransition, NotFound, StoreBotError
from storebot.flows import BotFlows
from storebot.models import Product, Variant
from storebot.orders import OrderService
from storebot.payments import ImageHost, ProofIngestion
from storebot.telegram import TelegramAPI
from storebot.updates import parse_update

logger = logging.getLogger("storebot")


# ============================================================
# SERVICES
# ============================================================
@dataclass
class Services:
    """Explicitly wired collaborators shared by the webhook and the admin API."""

    config: Config
    db: Optional[Database] = None
    telegram: Optional[TelegramAPI] = None
    orders: Optional[OrderService] = None
    flows: Optional[BotFlows] = None
    http_client: Optional[httpx.AsyncClient] = None

    async def aclose(self):
        if self.http_client:
            await self.http_client.aclose()


def build_services(config: Config) -> Services:
    http_client = httpx.AsyncClient(
        timeout=config.HTTP_TIMEOUT_SECONDS,
        limits=httpx.Limits(max_keepalive_connections=20, max_connections=100),
    )
    services = Services(config=config, http_client=http_client)

    if config.bot_enabled:
        services.telegram = TelegramAPI(config.TELEGRAM_BOT_TOKEN, http_client)

    if not config.supabase_configured:
        return services

    services.db = Database(create_supabase(config), max_display=config.MAX_BUTTONS_DISPLAY)
    services.orders = OrderService(services.db, services.telegram)

    if services.telegram:
        indexer = CatalogIndexer(config.MAX_BUTTONS_DISPLAY, config.PAGE_SIZE)
        ingestion = ProofIngestion(
            services.orders,
            ImageHost(http_client, config.IMAGE_HOST_URL),
            services.telegram,
            config.ADMIN_CHAT_ID or None,
        )
        services.flows = BotFlows(config, services.db, services.telegram, services.orders, ingestion, indexer)

    return services


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_db(services: Services = Depends(get_services)) -> Database:
    if services.db is None:
        raise HTTPException(status_code=503, detail="Database not configured")
    return services.db


# ============================================================
# ADMIN AUTH
# ============================================================
security = HTTPBasic(realm="Secure Admin Area")


def require_admin(
    credentials: HTTPBasicCredentials = Depends(security),
    services: Services = Depends(get_services),
) -> str:
    """Single static credential gate for the admin panel."""
    config = services.config
    user_ok = secrets.compare_digest(credentials.username.encode(), config.ADMIN_USERNAME.encode())
    pass_ok = secrets.compare_digest(credentials.password.encode(), config.ADMIN_PASSWORD.encode())
    if not (user_ok and pass_ok):
        logger.warning("Admin authentication failed")
        raise HTTPException(
            status_code=401,
            detail="Authentication required",
            headers={"WWW-Authenticate": 'Basic realm="Secure Admin Area"'},
        )
    return credentials.username


# ============================================================
# REQUEST MODELS
# ============================================================
class CompleteOrderRequest(BaseModel):
    order_id: Union[int, str] = Field(validation_alias=AliasChoices("orderId", "order_id"))
    external_user_id: Optional[Union[int, str]] = Field(
        default=None, validation_alias=AliasChoices("externalUserId", "telegramId")
    )
    credentials_text: str = Field(
        min_length=1, validation_alias=AliasChoices("credentialsText", "accountCredentials")
    )


class VariantIn(BaseModel):
    name: str = Field(min_length=1)
    price: int = Field(ge=0)


class ProductIn(BaseModel):
    name: str = Field(min_length=1)
    price: int = Field(default=0, ge=0)
    unit: str = ""
    software_type: str = ""
    description: str = ""
    is_active: bool = True
    variants: list[VariantIn] = Field(default_factory=list)

    def to_product(self) -> Product:
        return Product(
            id=None,
            name=self.name,
            price=self.price,
            unit=self.unit,
            category=self.software_type,
            description=self.description,
            is_active=self.is_active,
            variants=[Variant(v.name, v.price) for v in self.variants],
        )


def error_response(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"success": False, "error": message}, status_code=status_code)


def product_to_dict(product: Product) -> dict:
    return {
        "id": product.id,
        **product.to_row(),
        "variants": [{"name": v.name, "price": v.price} for v in product.variants],
    }


# ============================================================
# FASTAPI APP
# ============================================================
def create_app(services: Optional[Services] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """App lifespan events."""
        logger.info("Starting Telegram Store Bot...")
        if app.state.services is None:
            config = Config()
            missing = config.validate()
            if missing:
                logger.warning(f"⚠️ Missing configuration: {', '.join(missing)}")
            app.state.services = build_services(config)

        svc = app.state.services
        if svc.db is not None:
            try:
                await svc.db.ping()
                logger.info("✅ Supabase connection established")
            except StoreBotError as e:
                logger.warning(f"⚠️ Supabase connection test failed: {e}")
        if svc.flows is None:
            logger.warning("⚠️ Bot inactive: webhook updates will be ignored")

        logger.info(f"🚀 Store Bot started in {svc.config.ENVIRONMENT} mode")

        yield

        logger.info("Store Bot shutting down")
        await svc.aclose()

    app = FastAPI(
        title="Telegram Store Bot",
        description="Telegram storefront bot with invoices, payment proofs and an admin API",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        return error_response(f"Invalid request: {exc.errors()[0].get('msg', 'validation error')}", 422)

    register_routes(app)
    return app


# ============================================================
# ENDPOINTS
# ============================================================
def register_routes(app: FastAPI) -> None:

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "name": "Telegram Store Bot",
            "version": __version__,
            "status": "running",
            "features": ["catalog", "variants", "invoices", "payment_proofs", "admin_api"],
        }

    @app.get("/health")
    async def health(services: Services = Depends(get_services)):
        """Health check endpoint."""
        health_status = {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "environment": services.config.ENVIRONMENT,
            "version": __version__,
            "checks": {},
        }

        if services.db is None:
            health_status["checks"]["database"] = "not configured"
            health_status["status"] = "degraded"
        else:
            try:
                await services.db.ping()
                health_status["checks"]["database"] = "ok"
            except StoreBotError as e:
                health_status["checks"]["database"] = f"error: {type(e.__cause__ or e).__name__}"
                health_status["status"] = "degraded"

        if services.config.bot_enabled:
            health_status["checks"]["telegram_config"] = "ok"
        else:
            health_status["checks"]["telegram_config"] = "missing credentials"
            health_status["status"] = "degraded"

        return JSONResponse(health_status, status_code=200)

    # --------------------------------------------------------
    # Telegram webhook
    # --------------------------------------------------------
    @app.get("/api/telegram")
    async def webhook_status():
        return {"status": "Active"}

    @app.post("/api/telegram")
    async def webhook(request: Request, services: Services = Depends(get_services)):
        """Handle Telegram updates. Always answers 200 so Telegram does not retry."""
        start_time = datetime.now()

        if services.flows is None:
            return JSONResponse({"error": "Bot inactive"}, status_code=200)

        secret = request.headers.get("X-Telegram-Bot-Api-Secret-Token")
        if not TelegramAPI.verify_secret(services.config.TELEGRAM_WEBHOOK_SECRET, secret):
            logger.warning("Invalid webhook secret token")
            return JSONResponse({"status": "invalid_secret"}, status_code=200)

        try:
            data = json.loads(await request.body())
        except (json.JSONDecodeError, UnicodeDecodeError):
            return JSONResponse({"status": "invalid_json"}, status_code=200)

        update = parse_update(data)
        if update is None:
            return JSONResponse({"status": "ignored"}, status_code=200)

        try:
            await services.flows.handle(update)
        except Exception as e:
            logger.exception(f"Error handling {update.kind} update from {update.chat_id}: {e}")
            processing_time = (datetime.now() - start_time).total_seconds()
            logger.error(f"Error webhook processed in {processing_time:.3f}s")
            return JSONResponse({"status": "error"}, status_code=200)

        processing_time = (datetime.now() - start_time).total_seconds()
        logger.info(f"{update.kind.title()} webhook processed in {processing_time:.3f}s")
        return JSONResponse({"status": "ok"}, status_code=200)

    # --------------------------------------------------------
    # Admin API
    # --------------------------------------------------------
    @app.post("/api/admin/complete-order", dependencies=[Depends(require_admin)])
    async def complete_order(body: CompleteOrderRequest, services: Services = Depends(get_services)):
        """Mark an order completed and deliver the credentials to the buyer."""
        if services.orders is None:
            return error_response("Database not configured", 503)

        try:
            order = await services.orders.get_order(body.order_id)
            if body.external_user_id is not None and str(order.user_id) != str(body.external_user_id):
                return error_response("Order does not belong to that user", 400)
            result = await services.orders.complete(order.id, body.credentials_text)
        except NotFound:
            return error_response(f"Order {body.order_id} not found", 404)
        except InvalidTransition as e:
            return error_response(f"Order is '{e.current_status}', it cannot be completed yet", 409)
        except StoreBotError as e:
            logger.error(f"Completing order {body.order_id} failed: {e}")
            return error_response("Failed to process order", 500)

        return {
            "success": True,
            "order": result.order.to_dict(),
            "alreadyCompleted": not result.changed,
            "notified": result.notified,
        }

    @app.get("/api/admin/orders", dependencies=[Depends(require_admin)])
    async def list_orders(services: Services = Depends(get_services)):
        if services.orders is None:
            return error_response("Database not configured", 503)
        try:
            orders = await services.orders.list_orders()
        except StoreBotError:
            return error_response("Failed to fetch orders", 500)
        return {"success": True, "orders": [o.to_dict() for o in orders]}

    @app.get("/api/admin/products", dependencies=[Depends(require_admin)])
    async def list_products(db: Database = Depends(get_db)):
        try:
            products = await db.list_products()
        except StoreBotError:
            return error_response("Failed to fetch products", 500)
        return {"success": True, "products": [product_to_dict(p) for p in products]}

    @app.post("/api/admin/products", dependencies=[Depends(require_admin)])
    async def create_product(body: ProductIn, db: Database = Depends(get_db)):
        try:
            product = await db.insert_product(body.to_product())
        except StoreBotError:
            return error_response("Failed to add product", 500)
        logger.info(f"Product {product.id} added: {product.name}")
        return JSONResponse({"success": True, "product": product_to_dict(product)}, status_code=201)

    @app.delete("/api/admin/products/{product_id}", dependencies=[Depends(require_admin)])
    async def delete_product(product_id: str, db: Database = Depends(get_db)):
        try:
            deleted = await db.delete_product(product_id)
        except StoreBotError:
            return error_response("Failed to delete product", 500)
        if not deleted:
            return error_response(f"Product {product_id} not found", 404)
        logger.info(f"Product {product_id} deleted")
        return {"success": True}

    @app.get("/api/admin/chat/{user_id}", dependencies=[Depends(require_admin)])
    async def chat_history(user_id: str, db: Database = Depends(get_db)):
        """Logged chat of one user, oldest message first."""
        try:
            chat = await db.list_chat_messages(user_id)
        except StoreBotError:
            return error_response("Failed to fetch chat", 500)
        return {"success": True, "userId": user_id, "messages": chat}

    @app.get("/api/admin/stats", dependencies=[Depends(require_admin)])
    async def get_stats(db: Database = Depends(get_db)):
        """Get basic statistics."""
        try:
            stats = await db.get_stats()
        except StoreBotError as e:
            logger.error(f"Error getting stats: {e}")
            raise HTTPException(status_code=500, detail="Failed to fetch statistics")
        return {**stats, "timestamp": datetime.now(timezone.utc).isoformat()}


app = create_app()


if __name__ == "__main__":
    import uvicorn

    _config = Config()
    uvicorn.run(
        "storebot.main:app",
        host="0.0.0.0",
        port=_config.PORT,
        reload=_config.DEBUG,
    )
