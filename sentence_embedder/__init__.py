"""
Sentence Embedder -- root package.

Turns text into a fixed-length, L2-normalised sentence vector:
    embeddings -> tokenizer adapter and the mean-pooling / normalisation core
    openvino   -> device selection and the OpenVINO inference engine
    client     -> Client (compute environment) and ClientSession (embedding())
    config     -> settings.yaml loading and logging setup
    errors     -> TokenizationError, InferenceError, ShapeContractViolation
"""

__version__ = "0.1.0"

from sentence_embedder.client import Client, ClientSession
from sentence_embedder.errors import (
    EmbeddingError,
    InferenceError,
    ShapeContractViolation,
    TokenizationError,
)
