"""
Mean Pooling and L2 Normalisation
===================================
Reduces token-level model output to one sentence vector.

The transformer returns one hidden-state vector per token:

    hidden_states   : (1, seq_len, hidden_dim)   float32
    attention_mask  : (1, seq_len)               0 / 1

To get a single embedding per sentence we:
    1. Broadcast the mask over the hidden dimension.
    2. Zero out padding tokens and sum over the sequence axis.
    3. Divide by the number of real tokens (clamped to ``1e-9`` so an
       all-padding input does not divide by zero).
    4. L2-normalise the mean so that dot product == cosine similarity.

This is the standard sentence-transformers recipe ("mean pooling with
attention mask, then normalise").  The clamp constant and the formula must
not change, otherwise vectors drift from those produced by reference
implementations of the same model.

All arithmetic stays in float32, the native output precision of the
inference engine.
"""

import logging

import numpy as np

from sentence_embedder.errors import ShapeContractViolation

logger = logging.getLogger(__name__)

MASK_COUNT_MIN = 1e-9
DTYPE = np.float32


def _check_shapes(hidden_states: np.ndarray, attention_mask: np.ndarray) -> None:
    if hidden_states.ndim != 3:
        raise ShapeContractViolation(
            f"hidden_states must be rank 3 (batch, seq_len, hidden_dim), "
            f"got shape {hidden_states.shape}"
        )
    if attention_mask.ndim != 2:
        raise ShapeContractViolation(
            f"attention_mask must be rank 2 (batch, seq_len), "
            f"got shape {attention_mask.shape}"
        )
    if hidden_states.shape[0] != 1 or attention_mask.shape[0] != 1:
        raise ShapeContractViolation(
            f"batch size must be 1, got hidden_states {hidden_states.shape} "
            f"and attention_mask {attention_mask.shape}"
        )
    if hidden_states.shape[1] != attention_mask.shape[1]:
        raise ShapeContractViolation(
            f"attention_mask length {attention_mask.shape[1]} does not match "
            f"sequence length {hidden_states.shape[1]}"
        )


def expand_attention_mask(attention_mask: np.ndarray, hidden_dim: int) -> np.ndarray:
    """
    Broadcast a ``(1, seq_len)`` mask to ``(1, seq_len, hidden_dim)`` float32.

    Each mask value is repeated across the hidden dimension.
    """
    mask = np.asarray(attention_mask)
    if mask.ndim != 2:
        raise ShapeContractViolation(
            f"attention_mask must be rank 2, got shape {mask.shape}"
        )
    if hidden_dim < 0:
        raise ShapeContractViolation(f"hidden_dim must be >= 0, got {hidden_dim}")
    expanded = np.broadcast_to(
        mask[:, :, np.newaxis], (mask.shape[0], mask.shape[1], hidden_dim)
    )
    return expanded.astype(DTYPE)


def masked_sum(hidden_states: np.ndarray, mask_expanded: np.ndarray) -> np.ndarray:
    """Sum of ``hidden * mask`` over the sequence axis -> ``(1, hidden_dim)``."""
    if hidden_states.shape != mask_expanded.shape:
        raise ShapeContractViolation(
            f"expanded mask {mask_expanded.shape} does not match "
            f"hidden_states {hidden_states.shape}"
        )
    return np.sum(hidden_states.astype(DTYPE, copy=False) * mask_expanded, axis=1, dtype=DTYPE)


def mask_count(mask_expanded: np.ndarray) -> np.ndarray:
    """
    Number of real tokens per hidden component -> ``(1, hidden_dim)``.

    Every entry is clamped to ``MASK_COUNT_MIN`` so that a fully masked
    sequence yields a zero mean instead of a division by zero.
    """
    counts = np.sum(mask_expanded, axis=1, dtype=DTYPE)
    return np.clip(counts, a_min=DTYPE(MASK_COUNT_MIN), a_max=None)


def mean_pooling(hidden_states: np.ndarray, attention_mask: np.ndarray) -> np.ndarray:
    """
    Attention-masked mean over the sequence axis.

    Args:
        hidden_states  : (1, seq_len, hidden_dim) token embeddings
        attention_mask : (1, seq_len), 1 for real tokens, 0 for padding

    Returns:
        np.ndarray of shape (1, hidden_dim), dtype float32.
    """
    hidden_states = np.asarray(hidden_states)
    attention_mask = np.asarray(attention_mask)
    _check_shapes(hidden_states, attention_mask)

    mask_expanded = expand_attention_mask(attention_mask, hidden_states.shape[2])
    summed = masked_sum(hidden_states, mask_expanded)
    counts = mask_count(mask_expanded)
    return (summed / counts).astype(DTYPE, copy=False)


def l2_normalize(pooled: np.ndarray) -> np.ndarray:
    """
    Divide every component by the Euclidean norm of the whole array.

    A zero vector has no direction; it is returned unchanged rather than
    turned into NaN.
    """
    pooled = np.asarray(pooled, dtype=DTYPE)
    norm = np.sqrt(np.sum(np.square(pooled), dtype=DTYPE))
    if norm == 0:
        logger.warning(
            "Pooled embedding is the zero vector; returning it unnormalised"
        )
        return pooled.copy()
    return (pooled / norm).astype(DTYPE, copy=False)


def pool_and_normalize(hidden_states: np.ndarray, attention_mask: np.ndarray) -> np.ndarray:
    """
    Full post-processing: mean pooling, L2 normalisation, flatten.

    Returns:
        1-D float32 array of length ``hidden_dim``.
    """
    pooled = mean_pooling(hidden_states, attention_mask)
    normalized = l2_normalize(pooled)
    return normalized.reshape(-1)
