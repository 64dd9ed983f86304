"""
Embeddings subpackage -- text in, unit vector out.

    TokenizerAdapter    -- text -> Encoding (ids, attention mask, type ids)
    pool_and_normalize  -- token hidden states -> mean-pooled, L2-normalised vector
"""

from sentence_embedder.embeddings.pooling import pool_and_normalize
from sentence_embedder.embeddings.tokenizer import Encoding, TokenizerAdapter
