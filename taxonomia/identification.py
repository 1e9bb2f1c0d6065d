"""
Identification wizard state, independent of any web framework.

The session keeps two parallel lists: answered character ids and the state
chosen for each. A skipped character is answered with an empty state id.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional

from .model import Character, Taxon
from .registry import DatasetRegistry

@dataclass
class IdentificationView:
    unanswered: List[Character]
    answered: List[Character]
    taxa: List[Taxon]
    picked: Optional[Character] = None

@dataclass
class IdentificationSession:
    answered_character_ids: List[str] = field(default_factory=list)
    answered_state_ids: List[str] = field(default_factory=list)

    def answer(self, character_id: str, state_id: str) -> None:
        self.answered_character_ids.append(character_id)
        self.answered_state_ids.append(state_id)

    def skip(self, character_id: str) -> None:
        self.answer(character_id, "")

    def cancel(self) -> None:
        if self.answered_character_ids:
            self.answered_character_ids.pop()
            self.answered_state_ids.pop()

    def reset(self) -> None:
        self.answered_character_ids.clear()
        self.answered_state_ids.clear()

    def selected_states(self) -> List[str]:
        return [sid for sid in self.answered_state_ids if sid]

    def view(self, registry: DatasetRegistry, open_character: Optional[str] = None,
             pick: Optional[str] = None) -> IdentificationView:
        selected = self.selected_states()
        # no answer yet means no candidates, not every taxon
        taxa = registry.get_taxa_having_states(selected) if selected else []
        answered = registry.get_characters_from_ids(self.answered_character_ids, selected)
        unanswered, by_id = registry.get_all_characters_except(self.answered_character_ids)

        if open_character and open_character in by_id:
            unanswered = [by_id[c.id] for c in by_id[open_character].children if c.id in by_id]

        picked = None
        if pick is not None:
            picked = by_id.get(pick) or (unanswered[0] if unanswered else None)
        return IdentificationView(unanswered=unanswered, answered=answered, taxa=taxa, picked=picked)
