import logging

import numpy as np
import pytest

from sentence_embedder.client import Client, ClientSession, find_model_file
from sentence_embedder.config import SETTINGS_ENV_VAR
from sentence_embedder.embeddings.tokenizer import TokenizerAdapter
from sentence_embedder.errors import InferenceError, TokenizationError
from sentence_embedder.openvino.engine import InferenceEngine

from conftest import (
    HIDDEN_DIM,
    VOCAB,
    FakeCompiledModel,
    FakeCore,
    FakeEngine,
    FakeHFTokenizer,
    build_word_level_tokenizer,
)


def test_embedding_has_unit_norm(session):
    vector = session.embedding("hello world")

    assert vector.dtype == np.float32
    assert abs(np.linalg.norm(vector) - 1.0) < 1e-5


def test_embedding_is_deterministic(session):
    first = session.embedding("the same text")
    second = session.embedding("the same text")

    np.testing.assert_array_equal(first, second)


def test_output_length_independent_of_input_length(session):
    short = session.embedding("hi")
    long = session.embedding(" ".join(["word"] * 200))

    assert short.shape == long.shape == (HIDDEN_DIM,)


def test_empty_string_embeds_special_tokens(session, fake_engine):
    vector = session.embedding("")

    input_ids, attention_mask, token_type_ids = fake_engine.calls[-1]
    assert input_ids.tolist() == [[101, 102]]
    assert attention_mask.tolist() == [[1, 1]]
    assert token_type_ids.dtype == np.int64
    assert vector.shape == (HIDDEN_DIM,)
    assert abs(np.linalg.norm(vector) - 1.0) < 1e-5


def test_inputs_are_int64_rank_two(session, fake_engine):
    session.embedding("hello world")

    for tensor in fake_engine.calls[-1]:
        assert tensor.dtype == np.int64
        assert tensor.shape == (1, 4)


def test_whitespace_equivalence_depends_on_tokenizer(session):
    # The fake tokenizer splits on any run of whitespace, so both inputs
    # produce the same tokens and therefore the same vector.
    np.testing.assert_array_equal(
        session.embedding("hello world"), session.embedding("hello   world")
    )


def test_dimension_learned_on_first_call():
    session = ClientSession(None, FakeEngine(known_dim=False), TokenizerAdapter(FakeHFTokenizer()))

    assert session.dimension is None
    session.embedding("hello")
    assert session.dimension == HIDDEN_DIM


def test_embeddings_stacks_in_order(session):
    texts = ["first text", "second text", "third"]

    matrix = session.embeddings(texts, show_progress=True)

    assert matrix.shape == (3, HIDDEN_DIM)
    np.testing.assert_array_equal(matrix[1], session.embedding("second text"))


def test_embeddings_of_empty_list(session):
    assert session.embeddings([]).shape == (0, HIDDEN_DIM)


def test_tokenization_error_propagates(session, fake_engine):
    with pytest.raises(TokenizationError):
        session.embedding(None)
    assert fake_engine.calls == []


def test_inference_error_propagates(fake_tokenizer):
    engine = InferenceEngine(FakeCompiledModel(["input_ids", "attention_mask"], fail=True))
    session = ClientSession(None, engine, fake_tokenizer)

    with pytest.raises(InferenceError) as excinfo:
        session.embedding("hello")
    assert isinstance(excinfo.value.__cause__, RuntimeError)


def test_describe_delegates_to_engine(session):
    info = session.describe()

    assert info.outputs[0].name == "last_hidden_state"


def test_benchmark_reports_timings(session):
    stats = session.benchmark(["a b", "c d e"], n_runs=2)

    assert stats["n_texts"] == 2
    assert stats["n_runs"] == 2
    assert stats["min_ms"] <= stats["mean_ms"] <= stats["max_ms"]
    assert stats["device"] == "CPU"


def test_client_selects_device_from_settings():
    client = Client(settings={"openvino": {"device": "GPU"}}, core=FakeCore(["CPU", "GPU"]))

    assert client.device == "GPU"


def test_client_device_argument_overrides_settings():
    client = Client(settings={"openvino": {"device": "GPU"}}, device="NPU", core=FakeCore())

    assert client.device == "CPU"


def test_init_with_path_requires_model_file(tmp_path):
    client = Client(settings={}, core=FakeCore())

    with pytest.raises(FileNotFoundError):
        client.init_with_path(tmp_path)


def test_find_model_file_prefers_onnx(tmp_path):
    (tmp_path / "model.xml").write_text("<net/>")
    (tmp_path / "model.onnx").write_bytes(b"onnx")

    assert find_model_file(tmp_path).name == "model.onnx"


def test_init_defaults_requires_model_dir():
    client = Client(settings={"embedding": {}}, core=FakeCore())

    with pytest.raises(ValueError):
        client.init_defaults()


def test_client_logs_device_properties_at_debug(caplog):
    with caplog.at_level(logging.DEBUG, logger="sentence_embedder.client"):
        Client(settings={"openvino": {"device": "GPU"}}, core=FakeCore(["CPU", "GPU"]))

    assert "Fake GPU" in caplog.text


@pytest.fixture
def model_dir(tmp_path, monkeypatch):
    (tmp_path / "model.onnx").write_bytes(b"onnx")
    build_word_level_tokenizer().save(str(tmp_path / "tokenizer.json"))
    engine = FakeEngine()
    monkeypatch.setattr(InferenceEngine, "from_file", lambda *args, **kwargs: engine)
    return tmp_path


def test_init_from_settings_applies_truncation_with_local_tokenizer(model_dir):
    client = Client(settings={"embedding": {"truncation": False}}, core=FakeCore())
    settings = {"embedding": {"model_dir": str(model_dir), "max_length": 3, "truncation": True}}

    session = client.init_from_settings(settings)
    session.embedding("hello world invoice total")

    input_ids = session.engine.calls[-1][0]
    assert input_ids.tolist() == [[VOCAB["[CLS]"], VOCAB["hello"], VOCAB["[SEP]"]]]


def test_init_with_path_uses_client_settings(model_dir):
    client = Client(
        settings={"embedding": {"max_length": 4, "truncation": True}}, core=FakeCore()
    )

    session = client.init_with_path(model_dir)

    assert len(session.tokenizer.encode("hello world invoice total")) == 4


def test_client_reads_settings_from_env_var(tmp_path, monkeypatch):
    path = tmp_path / "settings.yaml"
    path.write_text("openvino:\n  device: GPU\n")
    monkeypatch.setenv(SETTINGS_ENV_VAR, str(path))

    client = Client(core=FakeCore(["CPU", "GPU"]))

    assert client.device == "GPU"
