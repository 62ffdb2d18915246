"""Governance endpoints: rule listing, default rule seeding and user permissions."""

from typing import Annotated

from fastapi import APIRouter, Depends

from trustgate.api.deps import get_governance_engine
from trustgate.schemas.governance import GovernanceRuleRead, SeedRulesResponse, UserPermissions
from trustgate.services.governance import GovernanceEngine

router = APIRouter()


@router.get("/rules", response_model=list[GovernanceRuleRead])
def get_rules(
    engine: Annotated[GovernanceEngine, Depends(get_governance_engine)],
) -> list[GovernanceRuleRead]:
    return [GovernanceRuleRead.model_validate(r) for r in engine.list_rules()]


@router.post("/rules/seed", response_model=SeedRulesResponse)
def post_seed_rules(
    engine: Annotated[GovernanceEngine, Depends(get_governance_engine)],
) -> SeedRulesResponse:
    """Install the default rules. Safe to call repeatedly."""
    inserted = engine.seed_default_rules()
    return SeedRulesResponse(inserted=inserted, message=f"Inserted {inserted} default rule(s)")


@router.get("/permissions/{user_id}", response_model=UserPermissions)
def get_permissions(
    user_id: str,
    engine: Annotated[GovernanceEngine, Depends(get_governance_engine)],
) -> UserPermissions:
    """Permissions derived from the user's current radar axes."""
    return engine.get_permissions(user_id)
