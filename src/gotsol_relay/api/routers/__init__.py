"""API routers."""
from . import health, merchants, payments, prices, transactions

__all__ = ["health", "merchants", "payments", "prices", "transactions"]
