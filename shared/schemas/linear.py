"""
Linear Agent - Linear API projections

Every GraphQL response is normalized into one of these records before it
reaches the Ticket model, so response-shape drift stays at the boundary.
"""

from datetime import datetime
from typing import Optional

from pydantic import AliasPath, BaseModel, ConfigDict, Field

from .ticket import Comment, RelatedTicket, Ticket


class _LinearRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class LabelRecord(_LinearRecord):
    name: str


class CommentRecord(_LinearRecord):
    id: str
    body: str = ""
    created_at: datetime = Field(alias="createdAt")
    user_name: Optional[str] = Field(None, validation_alias=AliasPath("user", "name"))

    def to_comment(self) -> Comment:
        return Comment(
            id=self.id,
            body=self.body,
            created_at=self.created_at,
            user=self.user_name,
        )


class RelatedRecord(_LinearRecord):
    """Parent, child or related issue as returned by Linear"""
    identifier: str
    title: str
    state_name: str = Field(validation_alias=AliasPath("state", "name"))
    assignee_name: Optional[str] = Field(None, validation_alias=AliasPath("assignee", "name"))

    def to_related(self) -> RelatedTicket:
        # Linear's human identifier (ENG-123) is used as the ticket id
        return RelatedTicket(
            id=self.identifier,
            title=self.title,
            state=self.state_name,
            assignee=self.assignee_name,
        )


class IssueRecord(_LinearRecord):
    """Base issue fields; relational fields are fetched separately"""
    identifier: str
    title: str
    description: Optional[str] = None
    priority: Optional[int] = None
    estimate: Optional[float] = None
    url: str
    state_name: str = Field(validation_alias=AliasPath("state", "name"))
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")
    assignee_name: Optional[str] = Field(None, validation_alias=AliasPath("assignee", "name"))

    def to_ticket(self, assignee: Optional[str] = None) -> Ticket:
        return Ticket(
            id=self.identifier,
            title=self.title,
            description=self.description or "",
            priority=self.priority or 0,
            estimate=self.estimate,
            url=self.url,
            state=self.state_name,
            created_at=self.created_at,
            updated_at=self.updated_at,
            assignee=assignee if assignee is not None else self.assignee_name,
        )
