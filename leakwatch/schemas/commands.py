from typing import Annotated, Literal

from pydantic import BaseModel, Field, TypeAdapter

from leakwatch.schemas.findings import CheckKind, Finding


class CheckOrigin(BaseModel):
    type: Literal["check_origin"] = "check_origin"
    url: str


class ListFindings(BaseModel):
    type: Literal["list_findings"] = "list_findings"


class RemoveFinding(BaseModel):
    type: Literal["remove_finding"] = "remove_finding"
    finding_id: str


class ClearFindings(BaseModel):
    type: Literal["clear_findings"] = "clear_findings"


class SetPipelineEnabled(BaseModel):
    type: Literal["set_pipeline_enabled"] = "set_pipeline_enabled"
    enabled: bool


class SetCheckEnabled(BaseModel):
    type: Literal["set_check_enabled"] = "set_check_enabled"
    kind: CheckKind
    enabled: bool


class RefreshBadge(BaseModel):
    type: Literal["refresh_badge"] = "refresh_badge"


Command = Annotated[
    CheckOrigin | ListFindings | RemoveFinding | ClearFindings | SetPipelineEnabled | SetCheckEnabled | RefreshBadge,
    Field(discriminator="type"),
]

COMMAND_ADAPTER: TypeAdapter[Command] = TypeAdapter(Command)


class CommandResult(BaseModel):
    ok: bool
    findings: list[Finding] = Field(default_factory=list)
    error: str | None = None
