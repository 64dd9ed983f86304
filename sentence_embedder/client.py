"""
Embedding Client and Sessions
===============================
``Client`` owns the OpenVINO environment (one ``ov.Core`` plus device
selection).  Every loaded (model, tokenizer) pair is a ``ClientSession``
derived from it.

Usage::

    client = Client()
    session = client.init_with_path("models/onnx/all-MiniLM-L6-v2")
    vector = session.embedding("Hello world")
    # vector.shape == (384,), dtype == float32, L2-normalised

Lifetime:
    A session keeps a reference to the client it came from, so the
    environment stays alive for as long as any session does.  There is no
    module-level singleton; create the client explicitly and pass it
    around.

Concurrency:
    ``embedding`` is synchronous and does no locking.  A session must not
    be called from several threads at once; give each thread its own
    session or guard it with a lock.
"""

import logging
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import numpy as np
import openvino as ov
from tqdm import tqdm

from sentence_embedder.config import load_settings, section
from sentence_embedder.embeddings.pooling import pool_and_normalize
from sentence_embedder.embeddings.tokenizer import TokenizerAdapter
from sentence_embedder.openvino.device_manager import DeviceManager
from sentence_embedder.openvino.engine import InferenceEngine, ModelInfo

logger = logging.getLogger(__name__)

MODEL_FILES = ("model.onnx", "model.xml")
TOKENIZER_FILE = "tokenizer.json"


def find_model_file(model_dir: Path) -> Path:
    """First of ``MODEL_FILES`` present in ``model_dir``."""
    for name in MODEL_FILES:
        candidate = model_dir / name
        if candidate.exists():
            return candidate
    raise FileNotFoundError(f"No {' or '.join(MODEL_FILES)} found in {model_dir}")


class ClientSession:
    """
    One model bound to one tokenizer.

    Produces a sentence embedding per input text: tokenize, run the model,
    mean-pool over real tokens, L2-normalise.
    """

    def __init__(self, client: "Client", engine: InferenceEngine, tokenizer: TokenizerAdapter):
        self.client = client
        self.engine = engine
        self.tokenizer = tokenizer
        self._dim: Optional[int] = engine.hidden_dim

    @property
    def dimension(self) -> Optional[int]:
        """Embedding size; None until known from the model or a first call."""
        return self._dim

    def embedding(self, text: str) -> np.ndarray:
        """
        Encode one string into a unit-length vector.

        Returns:
            np.ndarray of shape (hidden_dim,), dtype float32.

        Raises:
            TokenizationError : the tokenizer rejected the input
            InferenceError    : the engine rejected the tensors or faulted
        """
        encoding = self.tokenizer.encode(text, add_special_tokens=True)

        # Convert the encoding to the (1, N) int64 tensors the model expects
        seq_len = len(encoding)
        input_ids = np.asarray(encoding.get_ids(), dtype=np.int64).reshape(1, seq_len)
        attention_mask = np.asarray(encoding.get_attention_mask(), dtype=np.int64).reshape(1, seq_len)
        token_type_ids = np.asarray(encoding.get_type_ids(), dtype=np.int64).reshape(1, seq_len)

        outputs = self.engine.run([input_ids, attention_mask, token_type_ids])
        token_embeddings = outputs[0]

        vector = pool_and_normalize(token_embeddings, attention_mask)
        if self._dim is None:
            self._dim = int(vector.shape[0])
        logger.debug("Embedded %d tokens -> %d dims", seq_len, vector.shape[0])
        return vector

    def embeddings(self, texts: List[str], show_progress: bool = False) -> np.ndarray:
        """
        Encode several strings, one after another.

        Returns:
            np.ndarray of shape (len(texts), hidden_dim), dtype float32.
        """
        if not texts:
            return np.empty((0, self._dim or 0), dtype=np.float32)

        iterator = tqdm(texts, desc="Encoding", unit="text") if show_progress else texts
        vectors = [self.embedding(text) for text in iterator]
        embeddings = np.stack(vectors).astype(np.float32, copy=False)
        logger.info("Encoded %d texts -> shape %s", len(texts), embeddings.shape)
        return embeddings

    def describe(self) -> ModelInfo:
        """Input and output structure of the loaded model."""
        return self.engine.describe()

    def benchmark(self, texts: List[str], n_runs: int = 5) -> Dict[str, Any]:
        """
        Time ``embeddings(texts)`` over several runs (first run is warmup).

        Returns:
            Dict with timing stats in milliseconds and throughput.
        """
        self.embeddings(texts)

        times = []
        for _ in range(n_runs):
            start = time.perf_counter()
            self.embeddings(texts)
            times.append(time.perf_counter() - start)

        times_arr = np.array(times)
        mean = float(times_arr.mean())
        return {
            "device": self.engine.device,
            "n_texts": len(texts),
            "n_runs": n_runs,
            "mean_ms": mean * 1000,
            "std_ms": float(times_arr.std() * 1000),
            "min_ms": float(times_arr.min() * 1000),
            "max_ms": float(times_arr.max() * 1000),
            "texts_per_sec": float(len(texts) / mean) if mean > 0 else 0.0,
        }


class Client:
    """
    The OpenVINO compute environment shared by all sessions.

    Args:
        settings : parsed settings; defaults to ``configs/settings.yaml``
        device   : overrides ``openvino.device`` from the settings
        core     : an existing ``ov.Core`` to reuse
    """

    def __init__(
        self,
        settings: Optional[Dict[str, Any]] = None,
        device: Optional[str] = None,
        core: Optional[ov.Core] = None,
    ):
        self.settings = settings if settings is not None else load_settings()
        self.device_manager = DeviceManager(core=core, settings=self.settings)
        self.device = (
            self.device_manager.select(device) if device
            else self.device_manager.select_from_settings()
        )
        self._compile_config = self.device_manager.compile_config()
        if logger.isEnabledFor(logging.DEBUG):
            props = self.device_manager.device_properties(self.device)
            logger.debug("Device %s properties: %s", self.device, props)

    @property
    def core(self) -> ov.Core:
        return self.device_manager.core

    def _tokenizer_options(self, settings: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        emb = section(self.settings if settings is None else settings, "embedding")
        return {
            "max_length": emb.get("max_length"),
            "truncation": None if emb.get("truncation") is None else bool(emb["truncation"]),
        }

    def init_with_path(
        self,
        model_path: Union[str, Path],
        settings: Optional[Dict[str, Any]] = None,
    ) -> ClientSession:
        """
        Load ``model.onnx`` (or ``model.xml``) and ``tokenizer.json`` from
        a directory.  Tokenizer truncation comes from ``settings`` when
        given, otherwise from the client's own settings.
        """
        model_dir = Path(model_path)
        model_file = find_model_file(model_dir)
        engine = InferenceEngine.from_file(
            self.core, model_file, device=self.device, config=self._compile_config
        )
        tokenizer = TokenizerAdapter.from_file(
            model_dir / TOKENIZER_FILE, **self._tokenizer_options(settings)
        )
        return ClientSession(self, engine, tokenizer)

    def init_with_bytes(
        self,
        model_bytes: bytes,
        tokenizer_bytes: Union[bytes, str],
    ) -> ClientSession:
        """Build a session from an in-memory ONNX model and tokenizer JSON."""
        engine = InferenceEngine.from_bytes(
            self.core, model_bytes, device=self.device, config=self._compile_config
        )
        tokenizer = TokenizerAdapter.from_bytes(tokenizer_bytes, **self._tokenizer_options())
        return ClientSession(self, engine, tokenizer)

    def init_from_settings(self, settings: Dict[str, Any]) -> ClientSession:
        """
        Build a session from the ``embedding`` section of a settings dict.

        ``model_dir`` must hold the model file.  When it has no
        ``tokenizer.json``, ``tokenizer_name`` is loaded from the
        HuggingFace hub instead.
        """
        emb = section(settings, "embedding")
        model_dir = emb.get("model_dir")
        if not model_dir:
            raise ValueError("Settings have no embedding.model_dir")

        model_dir = Path(model_dir)
        tokenizer_name = emb.get("tokenizer_name")
        if (model_dir / TOKENIZER_FILE).exists() or not tokenizer_name:
            return self.init_with_path(model_dir, settings)

        engine = InferenceEngine.from_file(
            self.core, find_model_file(model_dir), device=self.device, config=self._compile_config
        )
        tokenizer = TokenizerAdapter.from_pretrained(tokenizer_name, **self._tokenizer_options(settings))
        return ClientSession(self, engine, tokenizer)

    def init_defaults(self) -> ClientSession:
        """Build a session from the client's own settings."""
        return self.init_from_settings(self.settings)
