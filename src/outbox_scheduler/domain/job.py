import inspect
import uuid
from datetime import datetime
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field

from .cadence import Cadence

JobHandler = Callable[[], Any]


class RegisteredJob(BaseModel):
    """
    A recurring job held by the JobRegistry.

    Only ``next_run_at`` changes after registration, and only moves forward.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True, validate_assignment=True)

    id: str = Field(default_factory=lambda: f"rjob_{uuid.uuid4().hex[:8]}", description="Unique registration identifier")
    name: Optional[str] = Field(None, description="Optional unique key; re-registering a name replaces the job")
    handler: JobHandler = Field(..., description="No-argument callable, sync or async")
    cadence: Cadence = Field(..., description="Rule deciding when the job runs next")
    next_run_at: datetime = Field(..., description="Instant at which the job is next due")
    registered_at: datetime = Field(default_factory=datetime.now, description="When the job was (re)registered")

    @property
    def display_name(self) -> str:
        return self.name or "unnamed"

    def is_due(self, now: datetime) -> bool:
        return self.next_run_at <= now

    async def run(self) -> Any:
        """
        Invoke the handler, awaiting its result when it returns an awaitable.
        """
        result = self.handler()
        if inspect.isawaitable(result):
            result = await result
        return result
