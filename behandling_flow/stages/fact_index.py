"""
Fact Index

Assembles the extracted class and processor facts into lookup tables:
class name -> ClassFact and processed activity -> ProcessorFact.

Conflicting facts are resolved by declaration order (the later fact wins).
Each overwrite is recorded so the caller can surface it as a warning; this
module never logs.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from behandling_flow.models.facts import ClassFact, ProcessorFact


@dataclass(frozen=True)
class DuplicateFact:
    """A key claimed by more than one fact."""

    key: str
    replaced: str
    kept: str

    def describe(self, kind: str) -> str:
        return f"{kind} '{self.key}' claimed by both {self.replaced} and {self.kept}; using {self.kept}"


@dataclass
class FactIndex:
    """Read-only lookup structures over one scan root's facts."""

    classes: Dict[str, ClassFact] = field(default_factory=dict)
    processors: Dict[str, ProcessorFact] = field(default_factory=dict)
    duplicate_classes: List[DuplicateFact] = field(default_factory=list)
    duplicate_processors: List[DuplicateFact] = field(default_factory=list)

    def get_processor(self, activity_name: str) -> Optional[ProcessorFact]:
        return self.processors.get(activity_name)

    def get_class(self, name: str) -> Optional[ClassFact]:
        return self.classes.get(name)

    def creates_manual_task(self, activity_name: str) -> bool:
        processor = self.processors.get(activity_name)
        return processor is not None and processor.creates_manual_task

    def supertype_chain(self, name: str) -> List[str]:
        """All supertype names of a class, resolved transitively.

        Supertypes that do not resolve to a known class end their branch of the
        chain but are still listed.
        """
        chain: List[str] = []
        seen = {name}
        pending = list(self._supertypes_of(name))
        while pending:
            supertype = pending.pop(0)
            if supertype in seen:
                continue
            seen.add(supertype)
            chain.append(supertype)
            pending.extend(self._supertypes_of(supertype))
        return chain

    def _supertypes_of(self, name: str) -> List[str]:
        fact = self.classes.get(name)
        if fact is None:
            return []
        # Qualified supertypes (a.b.Foo) resolve by simple name
        return [s.rsplit(".", 1)[-1] if s not in self.classes else s for s in fact.supertype_names]

    def entry_points(self, required_supertype: Optional[str] = None) -> List[ClassFact]:
        """Classes with an initial activity, sorted by name.

        Args:
            required_supertype: Only keep classes whose supertype chain has a
                name containing this text (e.g. ``"Behandling"``)
        """
        entries = [fact for fact in self.classes.values() if fact.is_entry_point]
        if required_supertype:
            entries = [
                fact
                for fact in entries
                if any(required_supertype in s for s in self.supertype_chain(fact.name))
            ]
        return sorted(entries, key=lambda fact: fact.name)


def build_fact_index(
    class_facts: Iterable[ClassFact], processor_facts: Iterable[ProcessorFact]
) -> FactIndex:
    """Build the class and processor lookup tables.

    Args:
        class_facts: Class facts in declaration order
        processor_facts: Processor facts in declaration order

    Returns:
        FactIndex with last-wins resolution of conflicting keys
    """
    index = FactIndex()

    for fact in class_facts:
        previous = index.classes.get(fact.name)
        if previous is not None:
            index.duplicate_classes.append(
                DuplicateFact(
                    key=fact.name,
                    replaced=previous.source_location or previous.name,
                    kept=fact.source_location or fact.name,
                )
            )
        index.classes[fact.name] = fact

    for fact in processor_facts:
        previous = index.processors.get(fact.processed_activity_name)
        if previous is not None:
            index.duplicate_processors.append(
                DuplicateFact(
                    key=fact.processed_activity_name,
                    replaced=previous.processor_name,
                    kept=fact.processor_name,
                )
            )
        index.processors[fact.processed_activity_name] = fact

    return index


__all__ = ["DuplicateFact", "FactIndex", "build_fact_index"]
