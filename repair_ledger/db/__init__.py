"""
Storage Module
==============
SQLAlchemy tables and repository for products and repairs.
"""

from .tables import Base, Product, Repair
from .database import LedgerDatabase, LedgerRepository, build_engine

__all__ = ["Base", "Product", "Repair", "LedgerDatabase", "LedgerRepository", "build_engine"]
