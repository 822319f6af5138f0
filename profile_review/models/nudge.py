"""Nudges — follow-up questions for missing or low-confidence fields."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class NudgeQuestion(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    field_key: str
    field_label: Optional[str] = None
    section: Optional[str] = None
    question: str
    why: Optional[str] = None               # Why the field matters to the RM
    required: bool = False


class NudgeSet(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    nudges: List[NudgeQuestion] = []
    extraction_context: str = ""

    def is_empty(self) -> bool:
        return not self.nudges


class NudgeAnswer(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    question_id: str
    field_key: str
    answer: Optional[str] = None            # None when skipped
    skipped: bool = False
