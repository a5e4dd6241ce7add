"""API dependencies"""

from fastapi import Depends
from sqlalchemy.orm import Session

from token_catalog.core.db import get_db
from token_catalog.services.family_service import FamilyResolutionEngine
from token_catalog.services.query_service import QueryService

__all__ = ["get_db", "get_engine", "get_query_service"]


def get_engine(db: Session = Depends(get_db)) -> FamilyResolutionEngine:
    return FamilyResolutionEngine(db)


def get_query_service(db: Session = Depends(get_db)) -> QueryService:
    return QueryService(db)
