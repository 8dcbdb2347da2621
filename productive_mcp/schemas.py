from pydantic import BaseModel
from typing import Optional


class Credentials(BaseModel):
    """Productive API credentials for a single caller."""
    api_token: str
    organization_id: str
    user_id: Optional[str] = None


class ResolvedInfo(BaseModel):
    """
    Record of one identifier substitution.

    Surfaced to callers under `_resolved` so they can audit what was
    looked up on their behalf.
    """
    field: str
    input: str
    resolved_id: str
    matched_label: str
    confidence: str = "exact"


class ResolveCandidate(BaseModel):
    id: str
    label: str
    type: str


class BatchSummary(BaseModel):
    total: int
    succeeded: int
    failed: int
