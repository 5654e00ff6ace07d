from pydantic import BaseModel, computed_field

from .models import Outcome


class Bet(BaseModel):
    id: int
    chosen_outcome: int
    is_claimable: bool

    model_config = {"from_attributes": True}


class EventRecord(BaseModel):
    address: str
    is_active: bool
    outcome: int | None = None
    bets: list[Bet] = []

    model_config = {"from_attributes": True}

    @computed_field
    @property
    def outcome_label(self) -> str | None:
        if self.outcome is None:
            return None
        try:
            return Outcome(self.outcome).name
        except ValueError:
            return None


class SyncStatus(BaseModel):
    last_processed_block: int | None
    active_contracts: int
