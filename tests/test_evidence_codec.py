# tests/test_evidence_codec.py
import base64
import numpy as np
import pytest
from pydantic import ValidationError
from core.evidence_codec import decode, decode_matrix, decode_transport, encode
from model.evidence import EmbeddingTransport


def test_single_row_round_trip():
    t = encode([[1.0, 2.0, 3.0, 4.0]])
    assert (t.rows, t.cols) == (1, 4)
    assert len(base64.b64decode(t.payload)) == 16
    assert decode(t.payload, t.rows, t.cols) == [[1.0, 2.0, 3.0, 4.0]]


def test_empty_input():
    t = encode([])
    assert (t.payload, t.rows, t.cols) == ("", 0, 0)
    assert decode("", 0, 0) == []
    assert decode_transport(t).shape == (0, 0)


def test_rows_zero_with_payload_decodes_empty():
    t = encode([[0.5, 0.25]])
    assert decode(t.payload, 0, 2) == []


def test_wide_matrix_survives_within_float32_precision():
    rng = np.random.default_rng(7)
    rows = rng.standard_normal((5, 3072)).astype(np.float64)
    t = encode(rows.tolist())
    out = decode_matrix(t.payload, t.rows, t.cols)
    assert out.shape == (5, 3072)
    assert out.dtype == np.float32
    np.testing.assert_allclose(out, rows, rtol=1e-6, atol=1e-6)


def test_payload_is_little_endian_float32():
    t = encode([[1.0]])
    assert base64.b64decode(t.payload) == b"\x00\x00\x80\x3f"


def test_ragged_rows_rejected():
    with pytest.raises(ValueError):
        encode([[1.0, 2.0], [3.0]])


def test_wrong_shape_rejected():
    t = encode([[1.0, 2.0, 3.0, 4.0]])
    with pytest.raises(ValueError):
        decode(t.payload, 2, 4)


@pytest.mark.parametrize(
    "payload, rows, cols",
    [
        ("", 1, 1024),
        (None, 1, 0),
        (None, 2, 4),
        ("not base64!", 1, 1),
    ],
)
def test_transport_must_agree_with_its_shape(payload, rows, cols):
    if payload is None:
        payload = encode([[1.0, 2.0, 3.0, 4.0]]).payload
    with pytest.raises(ValidationError):
        EmbeddingTransport(payload=payload, rows=rows, cols=cols)


def test_consistent_transport_is_accepted():
    t = encode([[1.0, 2.0], [3.0, 4.0]])
    assert EmbeddingTransport(**t.model_dump()) == t
    assert EmbeddingTransport(payload="", rows=0, cols=0).rows == 0
