from typing import Any

from pydantic import BaseModel


class ImportTriggerResponse(BaseModel):
    body: str
    report: dict[str, Any] | None = None
