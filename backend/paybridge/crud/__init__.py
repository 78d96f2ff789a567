"""CRUD 操作模块"""
from . import jobs, notifications, orders, webhook_logs

__all__ = ["jobs", "notifications", "orders", "webhook_logs"]
