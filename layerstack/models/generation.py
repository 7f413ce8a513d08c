import os
from pathlib import Path
from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_SAVE_WORKERS = min(8, (os.cpu_count() or 4) * 2)
DEFAULT_MAX_PENDING = 64


class GenerationConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    sources: List[Path] = Field(min_length=1)
    count: int = Field(ge=1)
    output_dir: str = Field(min_length=1)
    workers: int = Field(default=DEFAULT_SAVE_WORKERS, ge=1)
    max_pending: int = Field(default=DEFAULT_MAX_PENDING, ge=1)
    vips_threads: int = Field(default=0, ge=0)
    storage_backend: Literal["local", "r2"] = "local"
    continue_on_error: bool = False

    @field_validator("sources")
    @classmethod
    def _no_blank_sources(cls, value: List[Path]) -> List[Path]:
        for source in value:
            if not str(source).strip() or str(source) == ".":
                raise ValueError("source directory must not be blank")
        return value


class UnitFailure(BaseModel):
    index: int
    stage: Literal["select", "save"]
    error: str


class GenerationReport(BaseModel):
    requested: int
    rendered: int = 0
    duplicates: List[str] = Field(default_factory=list)
    saved: List[int] = Field(default_factory=list)
    failures: List[UnitFailure] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures
