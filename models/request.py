"""API request models.

Bodies are read after authentication (see ``api.request_utils``) and then
validated against these models, so a missing token is always reported
before a malformed body.
"""

from __future__ import annotations

from typing import Any

from pydantic import AliasGenerator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class FrontendBody(BaseModel):
    """Body posted by the web app with camelCase keys (``studentId``).

    The snake_case field names are accepted too. Aliases apply to parsing only.
    """

    model_config = ConfigDict(
        alias_generator=AliasGenerator(validation_alias=to_camel),
        populate_by_name=True,
    )


class AdminUserUpdateRequest(BaseModel):
    """PATCH /admin/users — request body."""

    id: str | None = None
    full_name: str | None = None
    role: str | None = None
    grade: str | None = None
    subject: str | None = None


class PublishModuleRequest(FrontendBody):
    """POST /teacher/publish — request body."""

    module_id: str | None = None
    published: bool | None = None


class ReminderRequest(FrontendBody):
    """POST /teacher/reminders — request body."""

    student_id: str | None = None
    module_id: str | None = None
    module_title: str | None = None
    subject: str | None = None


class FootfallRequest(BaseModel):
    """POST /footfall — request body."""

    page: str | None = None


class AssistantRequest(BaseModel):
    """POST /openai-proxy and POST /chat — request body.

    Fields are loosely typed: a non-string ``message`` is reported as
    missing rather than as a type error.
    """

    message: Any = None
    context: Any = None
    model: Any = None


class DataPoint(BaseModel):
    """One uploaded sample. Values are kept as sent; non-numeric ones are skipped later."""

    x: Any = None
    y: Any = None


class ReportRequest(FrontendBody):
    """POST /report — lab activity evaluation payload."""

    title: str | None = None
    subject: str | None = None
    grade: str | None = None
    description: str | None = None
    code_text: str | None = None
    sop_url: str | None = None
    log_text: str | None = None
    plot_type: str | None = None
    plot_image_data_url: str | None = None
    accuracy_hint: float | None = None
    parsed_points: list[DataPoint] = Field(default_factory=list)
