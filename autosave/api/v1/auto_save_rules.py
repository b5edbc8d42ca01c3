# api/v1/auto_save_rules.py

from typing import List

from fastapi import APIRouter, status

from ...schemas.auto_save_rule import AutoSaveRuleCreate, AutoSaveRuleOut, AutoSaveRuleUpdate
from ..dependencies import ServiceDependency, UserDependency

router = APIRouter(
    prefix="/auto-save-rules",
    tags=["Auto-Save Rules"],
)


# --- CREATE Rule ---
@router.post(
    "",
    response_model=AutoSaveRuleOut,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new auto-save rule",
)
async def create_auto_save_rule(
    rule_data: AutoSaveRuleCreate,
    service: ServiceDependency,
    user_id: UserDependency,
):
    return await service.create_auto_save_rule(user_id, rule_data)


# --- READ Active Rules ---
@router.get(
    "",
    response_model=List[AutoSaveRuleOut],
    summary="Active rules for the user, highest priority first",
)
async def get_auto_save_rules(service: ServiceDependency, user_id: UserDependency):
    return await service.get_auto_save_rules(user_id)


# --- READ Single Rule ---
@router.get("/{rule_id}", response_model=AutoSaveRuleOut, summary="Get a specific rule by ID")
async def get_auto_save_rule(rule_id: str, service: ServiceDependency, user_id: UserDependency):
    return await service.get_auto_save_rule(user_id, rule_id)


# --- UPDATE Rule ---
@router.patch(
    "/{rule_id}",
    response_model=AutoSaveRuleOut,
    summary="Update an existing rule (settings, destination, priority or activation)",
)
async def update_auto_save_rule(
    rule_id: str,
    rule_data: AutoSaveRuleUpdate,
    service: ServiceDependency,
    user_id: UserDependency,
):
    return await service.update_auto_save_rule(user_id, rule_id, rule_data)


# --- DELETE Rule ---
@router.delete(
    "/{rule_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Deactivate a rule; its round-up history is kept",
)
async def delete_auto_save_rule(rule_id: str, service: ServiceDependency, user_id: UserDependency):
    await service.delete_auto_save_rule(user_id, rule_id)
