"""Document block and retrieval result contracts."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

TABLE_ROW_BLOCK_TYPE = "TableRow"


class DocumentBlock(BaseModel):
    """A contiguous, typed span of a document with an optional embedding."""

    id: str
    document_id: str
    block_type: str = Field(description="Paragraph, Heading, TableRow, Image, ...")
    start_line: int = Field(ge=0, description="First line of the block (0-based).")
    end_line: int = Field(ge=0, description="Last line of the block (inclusive).")
    raw_text: str = ""
    normalized_text: str = ""
    embedding: Optional[List[float]] = None
    deleted_at: Optional[datetime] = None

    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)

    @model_validator(mode="after")
    def _check_line_range(self) -> "DocumentBlock":
        if self.start_line > self.end_line:
            raise ValueError("start_line must be <= end_line")
        return self

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class RetrievalResult(BaseModel):
    """A block-derived search hit."""

    block_id: str
    block_type: str
    start_line: int
    end_line: int
    raw_text: str
    normalized_text: str
    score: float

    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)

    @classmethod
    def from_block(cls, block: DocumentBlock, score: float) -> "RetrievalResult":
        return cls(
            block_id=block.id,
            block_type=block.block_type,
            start_line=block.start_line,
            end_line=block.end_line,
            raw_text=block.raw_text,
            normalized_text=block.normalized_text,
            score=score,
        )


__all__ = ["DocumentBlock", "RetrievalResult", "TABLE_ROW_BLOCK_TYPE"]
