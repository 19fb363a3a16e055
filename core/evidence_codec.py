# core/evidence_codec.py
import base64
from typing import List, Sequence
import numpy as np
from model.evidence import EmbeddingTransport

# Little-endian float32 so the payload reads the same on any host
_DTYPE = np.dtype("<f4")


def encode(rows: Sequence[Sequence[float]]) -> EmbeddingTransport:
    """
    Pack equal-length float rows into base64 float32, row-major.
    Empty input gives an empty payload with rows=0, cols=0.
    """
    if len(rows) == 0:
        return EmbeddingTransport(payload="", rows=0, cols=0)

    cols = len(rows[0])
    if any(len(r) != cols for r in rows):
        raise ValueError("all embedding rows must have the same length")

    matrix = np.asarray(rows, dtype=_DTYPE).reshape(len(rows), cols)
    payload = base64.b64encode(matrix.tobytes(order="C")).decode("ascii")
    return EmbeddingTransport(payload=payload, rows=matrix.shape[0], cols=cols)


def decode_matrix(payload: str, rows: int, cols: int) -> np.ndarray:
    """Inverse of encode() as a (rows, cols) float32 array."""
    if not payload or rows == 0 or cols == 0:
        return np.zeros((0, max(cols, 0)), dtype=np.float32)

    raw = base64.b64decode(payload, validate=True)
    expected = rows * cols * _DTYPE.itemsize
    if len(raw) != expected:
        raise ValueError(
            f"payload holds {len(raw)} bytes, expected {expected} for {rows}x{cols}"
        )
    flat = np.frombuffer(raw, dtype=_DTYPE)
    return flat.reshape(rows, cols).astype(np.float32, copy=False)


def decode(payload: str, rows: int, cols: int) -> List[List[float]]:
    """Exactly `rows` vectors of `cols` floats; [] for an empty payload or rows=0."""
    if not payload or rows == 0 or cols == 0:
        return []
    return decode_matrix(payload, rows, cols).tolist()


def decode_transport(transport: EmbeddingTransport) -> np.ndarray:
    return decode_matrix(transport.payload, transport.rows, transport.cols)
