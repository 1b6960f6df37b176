"""
Decision-service response schema: propositions and their items.

Only the DOM-action item schema drives page changes; other schemas pass through
untouched. Unknown fields are kept so the payload can be handed back to the
decisioning client as-is.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

DOM_ACTION_SCHEMA = "https://ns.adobe.com/personalization/dom-action"


class PropositionItemData(BaseModel):
    """Targeting and action payload of one item."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    selector: Optional[str] = Field(None, description="Logical selector, may use :eq(N)")
    prehiding_selector: Optional[str] = Field(
        None, alias="prehidingSelector", description="Literal CSS selector; preferred when present"
    )
    type: Optional[str] = Field(None, description="DOM action kind, e.g. setHtml")
    content: Any = Field(None, description="Action payload")


class PropositionItem(BaseModel):
    """A single targeted action within a proposition."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: Optional[str] = None
    schema_: str = Field("", alias="schema")
    data: PropositionItemData = Field(default_factory=PropositionItemData)

    @property
    def is_dom_action(self) -> bool:
        return self.schema_ == DOM_ACTION_SCHEMA


class Proposition(BaseModel):
    """A personalization decision bundle."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    scope: Optional[str] = None
    scope_details: Dict[str, Any] = Field(default_factory=dict, alias="scopeDetails")
    items: List[PropositionItem] = Field(default_factory=list)

    def to_payload(self) -> Dict[str, Any]:
        """Wire form (camelCase aliases) for handing back to the decisioning client."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def item_key(proposition_id: str, index: int, item: PropositionItem) -> str:
    """Key of an item within its proposition: the item id, else its position."""
    return f"{proposition_id}:{item.id if item.id is not None else index}"


def parse_propositions(raw: Any) -> List[Proposition]:
    """Coerce a list of dicts or Proposition models into Proposition models."""
    if not raw:
        return []
    return [p if isinstance(p, Proposition) else Proposition.model_validate(p) for p in raw]
