"""
Bot conversation flows: one handler per inbound update kind.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Optional

from storebot import keyboards, messages
from storebot.catalog import CatalogIndexer, product_fingerprint, resolve_variant
from storebot.config import Config
from storebot.database import Database
from storebot.errors import InvalidTransition, NoPendingOrder, NotFound, StoreBotError
from storebot.models import Product, User
from storebot.orders import OrderService
from storebot.payments import ProofIngestion
from storebot.telegram import TelegramAPI
from storebot.updates import CallbackUpdate, PhotoUpdate, TextUpdate, Update

logger = logging.getLogger("storebot.flows")

SELECTOR_PATTERN = re.compile(r"^\d{1,3}$")


class BotFlows:
    """Routes parsed updates to the catalog, order and payment services."""

    def __init__(
        self,
        config: Config,
        db: Database,
        telegram: TelegramAPI,
        orders: OrderService,
        ingestion: ProofIngestion,
        indexer: CatalogIndexer,
    ):
        self.config = config
        self.db = db
        self.telegram = telegram
        self.orders = orders
        self.ingestion = ingestion
        self.indexer = indexer

    async def handle(self, update: Update) -> None:
        try:
            if isinstance(update, CallbackUpdate):
                await self.handle_callback(update)
            elif isinstance(update, PhotoUpdate):
                await self.handle_photo(update)
            elif isinstance(update, TextUpdate):
                await self.handle_text(update)
        except StoreBotError as e:
            logger.error(f"{type(e).__name__} while handling {update.kind} from {update.chat_id}: {e}")
            await self.reply_error(update.chat_id, e)

    # ============================================================
    # KEYBOARDS
    # ============================================================
    def main_keyboard(self, total_active: int) -> dict:
        return keyboards.build_main_keyboard(self.indexer, total_active, self.config.BUTTONS_PER_ROW)

    async def current_keyboard(self) -> dict:
        try:
            products = await self.db.list_active_products()
        except StoreBotError:
            products = []
        return self.main_keyboard(len(products))

    async def reply_error(self, chat_id: Any, error: StoreBotError) -> None:
        """Tell the user what went wrong and give the navigation keyboard back."""
        try:
            await self.telegram.send_message(chat_id, error.user_message, reply_markup=await self.current_keyboard())
        except StoreBotError as e:
            logger.error(f"Could not deliver error reply to {chat_id}: {e}")

    # ============================================================
    # TEXT
    # ============================================================
    async def handle_text(self, update: TextUpdate) -> None:
        chat_id = update.chat_id
        sender = update.sender
        text = update.text.strip()

        try:
            await self.db.upsert_user(User(chat_id, sender.username, sender.full_name))
        except StoreBotError as e:
            logger.error(f"Upsert user {chat_id} failed: {e}")

        if self.config.ENABLE_CHAT_LOG:
            try:
                await self.db.log_chat_message(chat_id, update.text)
            except StoreBotError as e:
                logger.error(f"Chat log for {chat_id} failed: {e}")

        products = await self.db.list_active_products()
        total_active = len(products)
        kb = self.main_keyboard(total_active)

        if SELECTOR_PATTERN.match(text):
            await self.show_product_detail(chat_id, products, text, kb)
            return

        handlers = {
            "/start": lambda: self.show_welcome(chat_id, sender.first_name, kb),
            "/list": lambda: self.send_product_list(chat_id, products, kb),
            keyboards.BTN_PRODUCT_LIST: lambda: self.send_product_list(chat_id, products, kb),
            keyboards.BTN_VOUCHER: lambda: self.telegram.send_message(
                chat_id, "🔐 Vouchers are not available yet.", reply_markup=kb),
            keyboards.BTN_STOCK: lambda: self.telegram.send_message(
                chat_id, messages.stock_text(total_active), reply_markup=kb),
            keyboards.BTN_DEPOSIT: lambda: self.telegram.send_message(
                chat_id, "Please contact the admin for deposits.", reply_markup=kb),
            keyboards.BTN_HOW_TO: lambda: self.telegram.send_message(
                chat_id, messages.HOW_TO_BUY_TEXT, reply_markup=kb),
            keyboards.BTN_INFO: lambda: self.telegram.send_message(
                chat_id, "Bot Status: Online.", reply_markup=kb),
        }

        handler = handlers.get(text)
        if handler:
            await handler()
        else:
            await self.telegram.send_message(chat_id, "Please choose a menu.", reply_markup=kb)

    async def show_welcome(self, chat_id: Any, first_name: str, kb: dict) -> None:
        if self.config.WELCOME_PHOTO_URL:
            await self.telegram.send_photo(
                chat_id,
                self.config.WELCOME_PHOTO_URL,
                caption=messages.welcome_text(first_name),
                reply_markup=kb,
            )
        else:
            await self.telegram.send_message(chat_id, messages.welcome_text(first_name), reply_markup=kb)

    async def send_product_list(self, chat_id: Any, products: list[Product], kb: dict) -> None:
        if not products:
            await self.telegram.send_message(chat_id, "⚠️ No products available yet.", reply_markup=kb)
            return

        page = 0 if self.indexer.page_count(len(products)) > 1 else None
        entries = self.indexer.render_list(products, page)
        text = messages.product_list_text(entries, 0, self.indexer.page_count(len(products)))
        pager = keyboards.build_list_pager(
            self.indexer, len(products), 0, self.indexer.catalog_fingerprint(products))
        await self.telegram.send_message(chat_id, text, reply_markup=pager or kb)

    async def show_product_detail(self, chat_id: Any, products: list[Product], selected: str, kb: dict) -> None:
        try:
            product = self.indexer.resolve_selection(products, selected)
        except NotFound:
            await self.telegram.send_message(
                chat_id, f"⚠️ Product number {selected} not found.", reply_markup=kb)
            return

        await self.telegram.send_message(
            chat_id,
            messages.product_detail_text(product),
            reply_markup=keyboards.build_product_keyboard(product),
        )

    # ============================================================
    # CALLBACKS
    # ============================================================
    async def handle_callback(self, update: CallbackUpdate) -> None:
        try:
            await self.telegram.answer_callback_query(update.callback_id)
        except StoreBotError as e:
            logger.warning(f"answerCallbackQuery failed: {e}")

        if update.data == keyboards.CB_CANCEL:
            await self.telegram.delete_message(update.chat_id, update.message_id)
            return

        page_request = keyboards.parse_page_data(update.data)
        if page_request is not None:
            await self.show_list_page(update, page_request)
            return

        checkout = keyboards.parse_checkout_data(update.data)
        if checkout is None:
            logger.debug(f"Ignoring callback data {update.data!r}")
            return

        await self.checkout(update, checkout)

    async def show_list_page(self, update: CallbackUpdate, request: keyboards.PageRequest) -> None:
        products = await self.db.list_active_products()
        if not products:
            raise NotFound("Catalog is empty")
        total = len(products)
        fingerprint = self.indexer.catalog_fingerprint(products)

        page = request.page
        if request.fingerprint is not None and request.fingerprint != fingerprint:
            logger.info(f"Catalog changed under the list of {update.chat_id}, back to page 1")
            page = 0
        page = self.indexer.clamp_page(total, page)

        entries = self.indexer.render_list(products, page)
        await self.telegram.edit_message_text(
            update.chat_id,
            update.message_id,
            messages.product_list_text(entries, page, self.indexer.page_count(total)),
            reply_markup=keyboards.build_list_pager(self.indexer, total, page, fingerprint),
        )

    async def checkout(self, update: CallbackUpdate, request: keyboards.CheckoutRequest) -> None:
        product = await self.db.get_product(request.product_id)
        if product is None or not product.is_active:
            raise NotFound(f"Product {request.product_id} is gone")
        if product_fingerprint(product) != request.fingerprint:
            raise NotFound(f"Product {request.product_id} changed since it was shown")

        quote = resolve_variant(product, request.variant_index)
        order = await self.orders.create_order(update.chat_id, product.id, quote.price, quote.variant_name)

        bank = {
            "name": self.config.BANK_NAME,
            "number": self.config.BANK_ACCOUNT_NUMBER,
            "holder": self.config.BANK_ACCOUNT_NAME,
        }
        await self.telegram.edit_message_text(
            update.chat_id,
            update.message_id,
            messages.invoice_text(order, product, quote, bank),
        )

    # ============================================================
    # PHOTO (PAYMENT PROOF)
    # ============================================================
    async def handle_photo(self, update: PhotoUpdate) -> None:
        chat_id = update.chat_id
        if await self.orders.find_active_pending(chat_id) is None:
            raise NoPendingOrder(f"No pending order for {chat_id}")

        loading = await self.telegram.send_message(chat_id, "⏳ <i>Uploading receipt...</i>")

        try:
            image = await self.telegram.download_file(update.file_id)
            order = await self.ingestion.ingest_proof(chat_id, image, update.sender.username)
        except InvalidTransition as e:
            # Another upload for the same order got there first
            logger.info(f"Duplicate proof for order #{e.order_id} from {chat_id} ignored")
            await self._drop_loading(chat_id, loading)
            await self.telegram.send_message(
                chat_id,
                "ℹ️ A receipt for this order was already received and is being verified.",
                reply_markup=await self.current_keyboard(),
            )
            return
        except StoreBotError:
            await self._drop_loading(chat_id, loading)
            raise

        await self._drop_loading(chat_id, loading)
        await self.telegram.send_message(
            chat_id,
            messages.proof_received_text(order),
            reply_markup=await self.current_keyboard(),
        )

    async def _drop_loading(self, chat_id: Any, loading: Optional[dict]) -> None:
        if not loading:
            return
        try:
            await self.telegram.delete_message(chat_id, loading["message_id"])
        except StoreBotError as e:
            logger.warning(f"Could not delete loading message for {chat_id}: {e}")
