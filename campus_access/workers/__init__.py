# =======================================================================================
# campus_access/workers/__init__.py - Background Workers
# =======================================================================================
from .expiry_worker import ExpiryWorker

__all__ = ["ExpiryWorker"]
