"""
Error taxonomy
================
Every failure surfaced by ``ClientSession.embedding`` is one of the
classes below.  Collaborator exceptions (tokenizer, OpenVINO) are chained
with ``raise ... from exc`` so the original traceback stays available.
"""


class EmbeddingError(Exception):
    """Base class for all sentence-embedder errors."""


class TokenizationError(EmbeddingError):
    """The tokenizer could not encode the input text."""


class InferenceError(EmbeddingError):
    """The inference engine rejected the input tensors or faulted."""


class ShapeContractViolation(EmbeddingError, ValueError):
    """
    An internal shape precondition was broken (e.g. mask length differs
    from the sequence length).  This is a programming error, not a
    recoverable runtime condition.
    """
