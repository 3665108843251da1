"""GitHub ``workflow_job`` webhook event models.

Only the fields the sync pipeline needs are modelled; GitHub sends many
more and they are ignored. The models use Pydantic for validation,
consistent with the settings in config.py.

Payload structure (abridged):
{
  "action": "completed",
  "workflow_job": {
    "id": 29679449,
    "run_id": 5428416393,
    "head_branch": "main",
    "head_sha": "3f786850e387550fdab836ed7e6dc881de23001b",
    "status": "completed"
  },
  "repository": {"id": 1296269, "name": "app", "owner": {"id": 1, "login": "acme"}},
  "sender": {"id": 1, "login": "octocat"}
}
"""

from pydantic import BaseModel, ConfigDict, Field

COMPLETED_STATUS = "completed"


class WorkflowJob(BaseModel):
    """The job whose state change triggered the delivery."""

    model_config = ConfigDict(frozen=True, strict=True)

    id: int
    run_id: int
    head_branch: str
    # Commit hashes are interpolated into filesystem paths, so only
    # hex is accepted.
    head_sha: str = Field(..., pattern=r"^[0-9a-fA-F]{7,64}$")
    status: str


class RepositoryOwner(BaseModel):
    model_config = ConfigDict(frozen=True, strict=True)

    id: int
    login: str = Field(..., min_length=1)


class Repository(BaseModel):
    model_config = ConfigDict(frozen=True, strict=True)

    id: int
    name: str = Field(..., min_length=1)
    owner: RepositoryOwner


class Sender(BaseModel):
    model_config = ConfigDict(frozen=True, strict=True)

    id: int
    login: str


class WorkflowJobEvent(BaseModel):
    """Parsed GitHub ``workflow_job`` webhook event.

    Constructed once per request from the raw body, after the signature
    and the event type header have been checked.

    Attributes:
        workflow_job: Job identity and state.
        repository: Repository the job ran in.
        sender: Account that triggered the event.
    """

    model_config = ConfigDict(frozen=True, strict=True)

    workflow_job: WorkflowJob
    repository: Repository
    sender: Sender

    @property
    def full_repository(self) -> str:
        """Repository path in format "{owner}/{name}"."""
        return f"{self.repository.owner.login}/{self.repository.name}"

    @property
    def is_completed(self) -> bool:
        return self.workflow_job.status == COMPLETED_STATUS
