# api/v1/__init__.py

from fastapi import APIRouter

from .analytics import router as analytics_router
from .auto_save_rules import router as auto_save_rules_router
from .goals import router as goals_router
from .round_ups import router as round_ups_router
from .savings_accounts import router as savings_accounts_router
from .transactions import router as transactions_router

router = APIRouter(prefix="/v1")

router.include_router(transactions_router)
router.include_router(auto_save_rules_router)
router.include_router(round_ups_router)
router.include_router(savings_accounts_router)
router.include_router(goals_router)
router.include_router(analytics_router)
