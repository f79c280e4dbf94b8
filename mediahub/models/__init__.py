"""
Database models.
"""
from mediahub.models.service_config import ServiceConfig

__all__ = ["ServiceConfig"]
