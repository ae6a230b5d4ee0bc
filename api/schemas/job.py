"""
Pydantic schemas for the /jobs endpoints.

These are NOT database models — they define the HTTP API contract:
- JobCreate: what the user sends when submitting a job (request body)
- JobResponse: what we send back for a single job (response body)
- JobListResponse: paginated list of job summaries
- JobStats: job counts per status
- CancelResponse: acknowledgement for POST /jobs/{id}/cancel
- JobDiffResponse / JobRetryResponse: GET /jobs/{id}/diff, POST /jobs/{id}/retry

FastAPI validates incoming data against these automatically.
If someone sends temperature=5, FastAPI returns a 422 error before our code even runs.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator

TEMPLATE_PLACEHOLDER = "{{input}}"


class MetricSelectionIn(BaseModel):
    id: str = Field(..., min_length=1, examples=["keywords"])
    input: Optional[str] = Field(default=None, examples=["latency, throughput"])


class JobCreate(BaseModel):
    """
    Request body for POST /jobs/.

    Either `prompt`, or `template` (+ optional `input_data`) must be given.
    `metrics` omitted means "the registry's default metrics".
    """

    prompt: Optional[str] = Field(default=None, examples=["Summarize the French Revolution"])
    template: Optional[str] = Field(default=None, examples=["Translate to French: {{input}}"])
    input_data: Optional[str] = None
    provider: str = Field(..., min_length=1, examples=["openai"])
    model: str = Field(..., min_length=1, examples=["gpt-4.1-mini"])
    temperature: Optional[float] = Field(default=None, ge=0, le=2)
    top_p: Optional[float] = Field(default=None, ge=0, le=1)
    max_tokens: Optional[int] = Field(default=None, gt=0)
    metrics: Optional[list[MetricSelectionIn]] = None
    disabled_metrics: list[str] = Field(default_factory=list)
    reference_text: Optional[str] = None

    @model_validator(mode="after")
    def _prompt_or_template(self):
        if not (self.prompt and self.prompt.strip()) and not self.template:
            raise ValueError("Either prompt or template is required")
        return self

    def rendered_prompt(self) -> str:
        """
        The prompt actually sent to the provider.

        A template gets input_data substituted for {{input}}; a template
        without the placeholder gets input_data appended on its own line.
        """
        if not self.template:
            return self.prompt
        if self.input_data is None:
            return self.template
        if TEMPLATE_PLACEHOLDER in self.template:
            return self.template.replace(TEMPLATE_PLACEHOLDER, self.input_data)
        return f"{self.template}\n{self.input_data}"


class JobResponse(BaseModel):
    """Response body for a single job — returned by GET /jobs/{id} and POST /jobs/."""

    id: str
    prompt: str
    template: Optional[str] = None
    input_data: Optional[str] = None
    provider: str
    model: str
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    max_tokens: Optional[int] = None
    selected_metrics: Optional[list[dict]] = None
    disabled_metrics: list[str] = Field(default_factory=list)
    reference_text: Optional[str] = None
    status: str
    result: Optional[str] = None
    metrics: Optional[dict] = None
    error_message: Optional[str] = None
    error_type: Optional[str] = None
    tokens_used: Optional[int] = None
    cost_usd: Optional[float] = None
    cancel_requested: bool = False
    attempt_count: int
    max_attempts: int
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    # from_attributes=True tells Pydantic to read from SQLAlchemy model attributes
    # (e.g., job.provider) instead of requiring a dict (e.g., {"provider": "..."})
    model_config = {"from_attributes": True}


class JobSummaryResponse(BaseModel):
    id: str
    status: str
    created_at: datetime
    provider: str
    model: str
    cost_usd: Optional[float] = None
    avg_score: Optional[float] = None
    result_snippet: Optional[str] = None

    model_config = {"from_attributes": True}


class JobListResponse(BaseModel):
    """Paginated list of jobs — returned by GET /jobs/."""

    jobs: list[JobSummaryResponse]
    total: int       # total matching jobs (ignoring pagination)
    page: int        # current page number
    page_size: int   # jobs per page


class JobStats(BaseModel):
    """Job counts — returned by GET /jobs/stats."""

    total_jobs: int
    pending: int
    running: int
    evaluating: int
    completed: int
    failed: int
    cancelled: int


class CancelResponse(BaseModel):
    job_id: str
    status: str
    cancel_requested: bool = True


class JobDiffResponse(BaseModel):
    """Two jobs side by side — returned by GET /jobs/{id}/diff."""

    base_job: JobResponse
    compare_job: JobResponse


class JobRetryResponse(BaseModel):
    message: str = "Job retry created successfully"
    original_job_id: str
    new_job: JobResponse
