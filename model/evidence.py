# model/evidence.py
import base64
import binascii
from pydantic import BaseModel, Field, model_validator

FLOAT32_BYTES = 4


class Source(BaseModel):
    id: str
    url: str
    title: str
    snippet: str = ""
    fromQuery: str = ""


class Passage(BaseModel):
    text: str
    sourceId: str
    sourceIndex: int  # 1-based, matches [n] citations
    sourceTitle: str


class EmbeddingTransport(BaseModel):
    """Base64 float32 matrix, row-major; decodable from these three fields alone."""

    payload: str = ""
    rows: int = Field(default=0, ge=0)
    cols: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _payload_matches_shape(self) -> "EmbeddingTransport":
        if self.rows == 0:
            return self
        if self.cols == 0 or not self.payload:
            raise ValueError(f"{self.rows} embedding rows need a payload and cols > 0")
        try:
            size = len(base64.b64decode(self.payload, validate=True))
        except binascii.Error as e:
            raise ValueError(f"embedding payload is not base64: {e}") from e
        expected = self.rows * self.cols * FLOAT32_BYTES
        if size != expected:
            raise ValueError(
                f"payload holds {size} bytes, expected {expected} for {self.rows}x{self.cols}"
            )
        return self


class PreparedEvidence(BaseModel):
    passages: list[Passage] = Field(default_factory=list)
    embeddings: EmbeddingTransport = Field(default_factory=EmbeddingTransport)

    @model_validator(mode="after")
    def _rows_match_passages(self) -> "PreparedEvidence":
        if self.embeddings.rows != len(self.passages):
            raise ValueError(
                f"embedding rows ({self.embeddings.rows}) != passages ({len(self.passages)})"
            )
        return self
