"""Review decision — the outcome of one RM decision on one artifact."""

from typing import Optional

from pydantic import BaseModel

from profile_review.models.artifact import Artifact
from profile_review.models.customer import CustomerNote
from profile_review.models.interest import Interest


class ReviewDecision(BaseModel):
    artifact: Artifact
    interest: Optional[Interest] = None     # Set when an interest proposal is accepted
    note: Optional[CustomerNote] = None     # Set when a note is accepted
