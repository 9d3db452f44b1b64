"""Error Envelope — the wire-format body of every classified failure response.

Invariants:
    - Field order and names are fixed: title, detail, status, traceId, category
    - status equals the transport status code of the response carrying it
    - No optional fields: the shape never varies with environment

Design Decisions:
    - trace_id aliased to traceId: Python naming in code, camelCase on the wire
"""

from pydantic import BaseModel, ConfigDict, Field


class ErrorEnvelope(BaseModel):
    """Structured error response body."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    title: str
    detail: str
    status: int = Field(ge=400, le=599)
    trace_id: str = Field(alias="traceId")
    category: str

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)
