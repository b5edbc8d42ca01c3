# db/base.py

from typing import Any
from sqlalchemy import JSON
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, MappedAsDataclass

# Define the common base class for all models
class Base(AsyncAttrs, DeclarativeBase, MappedAsDataclass):
    __abstract__ = True

    # JSON payloads (trigger settings, round-up metadata, linked rule ids)
    type_annotation_map = {
        dict[str, Any]: JSON,
        list[str]: JSON,
    }
