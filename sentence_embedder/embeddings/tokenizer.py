"""
Tokenizer Adapter
==================
Wraps a HuggingFace tokenizer and returns the three parallel integer
sequences the embedding model expects.

Why a fast tokenizer built from ``tokenizer.json``?
    The ONNX / IR model was exported from a HuggingFace model, so it
    expects the exact same tokenization (WordPiece vocabulary, special
    tokens like [CLS] and [SEP]).  ``tokenizer.json`` carries the complete
    pipeline including the post-processor that inserts special tokens, so
    token IDs match the original model exactly.

Three ways to build one:
    TokenizerAdapter.from_file("models/onnx/all-MiniLM-L6-v2/tokenizer.json")
    TokenizerAdapter.from_bytes(raw_json_bytes)
    TokenizerAdapter.from_pretrained("sentence-transformers/all-MiniLM-L6-v2")
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from tokenizers import Tokenizer
from transformers import AutoTokenizer

from sentence_embedder.errors import ShapeContractViolation, TokenizationError

logger = logging.getLogger(__name__)

DEFAULT_MAX_LENGTH = 512


@dataclass
class Encoding:
    """
    Token ids, attention mask and token-type ids for one input text.

    Attributes:
        ids            : vocabulary ids, special tokens included
        attention_mask : 1 for real tokens, 0 for padding
        type_ids       : segment ids (all 0 for single-sentence input)
    """
    ids: List[int]
    attention_mask: List[int]
    type_ids: List[int] = field(default_factory=list)

    def __post_init__(self):
        if not self.type_ids and self.ids:
            self.type_ids = [0] * len(self.ids)
        if not (len(self.ids) == len(self.attention_mask) == len(self.type_ids)):
            raise ShapeContractViolation(
                f"Encoding sequences differ in length: ids={len(self.ids)} "
                f"attention_mask={len(self.attention_mask)} "
                f"type_ids={len(self.type_ids)}"
            )

    def __len__(self) -> int:
        return len(self.ids)

    def get_ids(self) -> List[int]:
        return self.ids

    def get_attention_mask(self) -> List[int]:
        return self.attention_mask

    def get_type_ids(self) -> List[int]:
        return self.type_ids


class TokenizerAdapter:
    """
    Turns a text string into an ``Encoding``.

    Wraps either a ``tokenizers.Tokenizer`` (loaded from ``tokenizer.json``)
    or a callable HuggingFace tokenizer (loaded from the hub).  A raw
    ``Tokenizer`` keeps the truncation configured in its JSON unless
    ``truncation`` is set explicitly.

    Usage::

        tok = TokenizerAdapter.from_file("models/onnx/all-MiniLM-L6-v2/tokenizer.json")
        enc = tok.encode("Hello world")
        enc.get_ids()   # [101, 7592, 2088, 102]
    """

    def __init__(
        self,
        tokenizer,
        max_length: Optional[int] = None,
        truncation: Optional[bool] = None,
    ):
        """
        Args:
            tokenizer  : a ``tokenizers.Tokenizer`` or a callable
                         HuggingFace tokenizer
            max_length : truncate to this many tokens when ``truncation``
            truncation : True enables truncation at ``max_length`` (special
                         tokens are kept), False disables it, None leaves
                         the tokenizer's own setting alone
        """
        self._tokenizer = tokenizer
        self.truncation = truncation
        self.max_length = max_length or DEFAULT_MAX_LENGTH

        if isinstance(tokenizer, Tokenizer):
            if truncation:
                tokenizer.enable_truncation(max_length=self.max_length)
            elif truncation is not None:
                tokenizer.no_truncation()

    @classmethod
    def from_file(cls, path: Union[str, Path], **kwargs) -> "TokenizerAdapter":
        """Load from a ``tokenizer.json`` file."""
        tokenizer_path = Path(path)
        if not tokenizer_path.exists():
            raise FileNotFoundError(f"Tokenizer file not found: {tokenizer_path}")
        tokenizer = Tokenizer.from_file(str(tokenizer_path))
        logger.info("Loaded tokenizer: %s", tokenizer_path)
        return cls(tokenizer, **kwargs)

    @classmethod
    def from_bytes(cls, data: Union[bytes, str], **kwargs) -> "TokenizerAdapter":
        """Load from the raw contents of a ``tokenizer.json`` file."""
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        tokenizer = Tokenizer.from_str(data)
        logger.info("Loaded tokenizer from %d bytes of JSON", len(data))
        return cls(tokenizer, **kwargs)

    @classmethod
    def from_pretrained(cls, name: str, **kwargs) -> "TokenizerAdapter":
        """Load by HuggingFace hub name or local directory."""
        tokenizer = AutoTokenizer.from_pretrained(name)
        logger.info("Loaded tokenizer: %s", name)
        return cls(tokenizer, **kwargs)

    def encode(self, text: str, add_special_tokens: bool = True) -> Encoding:
        """
        Tokenize one string.

        Raises:
            TokenizationError : if the input is not a string or the
                                tokenizer cannot encode it
        """
        if not isinstance(text, str):
            raise TokenizationError(
                f"Expected str input, got {type(text).__name__}"
            )

        try:
            if isinstance(self._tokenizer, Tokenizer):
                encoded = self._tokenizer.encode(text, add_special_tokens=add_special_tokens)
                ids, attention_mask, type_ids = encoded.ids, encoded.attention_mask, encoded.type_ids
            else:
                encoded = self._tokenizer(text, **self._call_options(add_special_tokens))
                ids = encoded["input_ids"]
                attention_mask = encoded["attention_mask"]
                type_ids = encoded.get("token_type_ids") or []
        except Exception as exc:
            logger.error("Tokenization failed: %s", exc)
            raise TokenizationError(f"Failed to tokenize input: {exc}") from exc

        return Encoding(
            ids=list(ids),
            attention_mask=list(attention_mask),
            type_ids=list(type_ids),
        )

    def _call_options(self, add_special_tokens: bool) -> Dict[str, Any]:
        options: Dict[str, Any] = {
            "add_special_tokens": add_special_tokens,
            "return_attention_mask": True,
            "return_token_type_ids": True,
        }
        if self.truncation:
            options["truncation"] = True
            options["max_length"] = self.max_length
        return options
