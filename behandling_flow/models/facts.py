"""
Extracted Source Facts

Defines the read-only fact records produced by a source extractor for one
scan root. The flow engine never parses source text itself; it consumes
these records only.

Fact files may use camelCase (as written by the extractor) or snake_case keys.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class _FactModel(BaseModel):
    """Base for immutable fact records."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        extra="ignore",
    )


class ClassFact(_FactModel):
    """One class discovered by the source extractor."""

    name: str = Field(..., min_length=1, description="Simple class name")
    source_location: Optional[str] = Field(
        None, description="Opaque location of the declaration (file, line, ...)"
    )
    supertype_names: List[str] = Field(
        default_factory=list, description="Declared supertypes in source order"
    )
    initial_activity_name: Optional[str] = Field(
        None,
        description="Activity returned by the initial activity factory, if the class has one",
    )

    @property
    def is_entry_point(self) -> bool:
        """Whether this class starts a flow."""
        return bool(self.initial_activity_name)


class Transition(_FactModel):
    """Outbound transition declared by a processor.

    A transition is either a single transition (``target_activity_name``) or a
    fan-out producing several simultaneous next activities
    (``fan_out_targets``).
    """

    target_activity_name: Optional[str] = Field(None, description="Next activity")
    condition: Optional[str] = Field(
        None, description="Guarding condition text; None means unconditional"
    )
    is_feature_flagged: bool = Field(False, description="Guarded by a feature toggle")
    feature_flag_name: Optional[str] = Field(None, description="Feature toggle name")
    fan_out_targets: List[str] = Field(
        default_factory=list, description="Resolved targets of a fan-out step"
    )

    @model_validator(mode="after")
    def _check_targets(self) -> "Transition":
        if self.target_activity_name and self.fan_out_targets:
            raise ValueError("transition cannot be both single and fan-out")
        if not self.target_activity_name and not self.fan_out_targets:
            raise ValueError("transition needs a target activity or fan-out targets")
        return self

    @property
    def is_fan_out(self) -> bool:
        return bool(self.fan_out_targets)

    @property
    def targets(self) -> List[str]:
        """Resolved target names in declaration order."""
        if self.fan_out_targets:
            return list(self.fan_out_targets)
        return [self.target_activity_name]


class ProcessorFact(_FactModel):
    """Flow logic owned by one processor class."""

    processed_activity_name: str = Field(
        ..., min_length=1, description="Activity this processor transitions from"
    )
    processor_name: str = Field(..., min_length=1, description="Processor class name")
    transitions: List[Transition] = Field(
        default_factory=list, description="Outbound transitions in source order"
    )
    creates_manual_task: bool = Field(
        False, description="Processor creates a manual task for the activity"
    )
    completes_flow: bool = Field(
        False, description="Processor contains an explicit flow-complete call"
    )

    @property
    def has_conditions(self) -> bool:
        return any(t.condition is not None for t in self.transitions)

    @property
    def signals_completion(self) -> bool:
        """Explicit completion, or no next activity at all."""
        return self.completes_flow or not self.transitions


__all__ = [
    "ClassFact",
    "Transition",
    "ProcessorFact",
]
