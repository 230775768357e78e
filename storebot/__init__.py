"""Telegram storefront bot with an admin API, backed by Supabase."""

__version__ = "1.0.0"
