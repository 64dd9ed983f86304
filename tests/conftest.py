"""Shared fakes: a whitespace tokenizer, a deterministic encoder model, a compiled model and an OpenVINO core."""

import numpy as np
import openvino as ov
import pytest
from tokenizers import Tokenizer
from tokenizers.models import WordLevel
from tokenizers.pre_tokenizers import Whitespace
from tokenizers.processors import TemplateProcessing

from sentence_embedder.client import ClientSession
from sentence_embedder.embeddings.tokenizer import TokenizerAdapter
from sentence_embedder.openvino.engine import ModelInfo, PortInfo

HIDDEN_DIM = 8
CLS_ID = 101
SEP_ID = 102

VOCAB = {
    "[UNK]": 0,
    "[CLS]": 1,
    "[SEP]": 2,
    "hello": 3,
    "world": 4,
    "invoice": 5,
    "total": 6,
}


class FakeHFTokenizer:
    """Callable with the HuggingFace tokenizer signature; splits on whitespace."""

    def __init__(self):
        self.calls = []

    def __call__(self, text, **options):
        self.calls.append(options)
        words = text.split()
        ids = [1000 + sum(ord(c) for c in w) for w in words]
        if options.get("add_special_tokens", True):
            ids = [CLS_ID] + ids + [SEP_ID]
        if options.get("truncation"):
            ids = ids[: options["max_length"]]
        return {
            "input_ids": ids,
            "attention_mask": [1] * len(ids),
            "token_type_ids": [0] * len(ids),
        }


class FakeEngine:
    """Stands in for InferenceEngine: hidden state is a fixed function of the token id."""

    def __init__(self, hidden_dim=HIDDEN_DIM, known_dim=True):
        self.device = "CPU"
        self._hidden_dim = hidden_dim
        self.hidden_dim = hidden_dim if known_dim else None
        self.calls = []

    def run(self, inputs):
        self.calls.append(inputs)
        input_ids = inputs[0]
        k = np.arange(1, self._hidden_dim + 1, dtype=np.float32)
        hidden = np.sin(input_ids[..., np.newaxis].astype(np.float32) * 0.01 * k)
        return [hidden.astype(np.float32)]

    def describe(self):
        return ModelInfo(
            device=self.device,
            inputs=[PortInfo("input_ids", "i64", "[1,?]")],
            outputs=[PortInfo("last_hidden_state", "f32", f"[1,?,{self._hidden_dim}]")],
        )


class FakePort:
    def __init__(self, name, shape=(1, -1, 2)):
        self.name = name
        self.shape = shape

    def get_any_name(self):
        if self.name is None:
            raise RuntimeError("Attempt to get a name for a Tensor without names")
        return self.name

    def get_partial_shape(self):
        return ov.PartialShape(list(self.shape))


class FakeCompiledModel:
    """Records the feed dict and returns one (1, N, 2) output."""

    def __init__(self, input_names, fail=False):
        self.inputs = [FakePort(n) for n in input_names]
        self.outputs = [FakePort("last_hidden_state")]
        self.fail = fail
        self.feeds = []

    def __call__(self, feed):
        if self.fail:
            raise RuntimeError("Exception from src/inference: shape mismatch")
        self.feeds.append(feed)
        seq_len = next(iter(feed.values())).shape[1]
        return {self.outputs[0]: np.ones((1, seq_len, 2), dtype=np.float32)}


class FakeCore:
    def __init__(self, devices=("CPU",)):
        self.available_devices = list(devices)

    def get_property(self, device, key):
        if key == "FULL_DEVICE_NAME":
            return f"Fake {device}"
        raise RuntimeError(f"unsupported property {key}")


def build_word_level_tokenizer() -> Tokenizer:
    tokenizer = Tokenizer(WordLevel(VOCAB, unk_token="[UNK]"))
    tokenizer.pre_tokenizer = Whitespace()
    tokenizer.post_processor = TemplateProcessing(
        single="[CLS] $A [SEP]",
        special_tokens=[("[CLS]", VOCAB["[CLS]"]), ("[SEP]", VOCAB["[SEP]"])],
    )
    return tokenizer


@pytest.fixture
def fake_engine():
    return FakeEngine()


@pytest.fixture
def fake_tokenizer():
    return TokenizerAdapter(FakeHFTokenizer())


@pytest.fixture
def session(fake_engine, fake_tokenizer):
    return ClientSession(client=None, engine=fake_engine, tokenizer=fake_tokenizer)


@pytest.fixture
def tokenizer_json() -> str:
    return build_word_level_tokenizer().to_str()
