"""
OpenVINO Inference Engine
==========================
Runs the exported transformer and returns its raw outputs.

OpenVINO Runtime reads ONNX models directly, so the file produced by

    optimum-cli export onnx \
        --model sentence-transformers/all-MiniLM-L6-v2 \
        models/onnx/all-MiniLM-L6-v2/

can be used as-is.  An OpenVINO IR pair (model.xml + model.bin) works the
same way.

Compilation steps:
    1. Core.read_model() (or openvino.convert_model() for in-memory ONNX)
       parses the graph and loads the weights.
    2. Core.compile_model() optimises the graph for the target device
       (operator fusion, memory planning) and prepares it for inference.

Inputs are bound to model ports by name.  BERT-style exports usually take
``input_ids``, ``attention_mask`` and ``token_type_ids``; models without a
``token_type_ids`` port simply do not receive it.  Ports with other names
are bound positionally in that same order.
"""

import io
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import numpy as np
import openvino as ov

from sentence_embedder.errors import InferenceError

logger = logging.getLogger(__name__)

# Order in which ClientSession passes its three tensors.
INPUT_NAMES = ("input_ids", "attention_mask", "token_type_ids")


@dataclass
class PortInfo:
    """Name, element type and (partial) shape of one model input or output."""
    name: str
    element_type: str
    shape: str


@dataclass
class ModelInfo:
    """Input and output structure of a compiled model."""
    device: str
    inputs: List[PortInfo] = field(default_factory=list)
    outputs: List[PortInfo] = field(default_factory=list)

    def format(self) -> str:
        lines = [f"Device: {self.device}", "Inputs:"]
        for i, port in enumerate(self.inputs):
            lines.append(f"  {i} {port.name}: {port.element_type} {port.shape}")
        lines.append("Outputs:")
        for i, port in enumerate(self.outputs):
            lines.append(f"  {i} {port.name}: {port.element_type} {port.shape}")
        return "\n".join(lines)


def _port_name(port, index: int, prefix: str) -> str:
    try:
        return port.get_any_name()
    except RuntimeError:
        # Port without tensor names
        return f"{prefix}_{index}"


def _port_info(port, index: int, prefix: str) -> PortInfo:
    return PortInfo(
        name=_port_name(port, index, prefix),
        element_type=port.get_element_type().get_type_name(),
        shape=str(port.get_partial_shape()),
    )


class InferenceEngine:
    """
    A compiled OpenVINO model plus the input binding logic.

    Usage::

        core = ov.Core()
        engine = InferenceEngine.from_file(core, "models/onnx/all-MiniLM-L6-v2/model.onnx")
        outputs = engine.run([input_ids, attention_mask, token_type_ids])
        hidden_states = outputs[0]     # (1, seq_len, hidden_dim)
    """

    def __init__(self, compiled_model, device: str = "CPU"):
        self._compiled_model = compiled_model
        self.device = device
        self._input_names = [
            _port_name(port, i, "input") for i, port in enumerate(compiled_model.inputs)
        ]
        self._output_ports = list(compiled_model.outputs)
        logger.info(
            "Compiled embedding model on %s  inputs=%s  outputs=%d",
            device,
            self._input_names,
            len(self._output_ports),
        )

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_model(
        cls,
        core: ov.Core,
        model: ov.Model,
        device: str = "CPU",
        config: Optional[Dict[str, str]] = None,
    ) -> "InferenceEngine":
        """Compile an already-parsed ``ov.Model``."""
        try:
            compiled = core.compile_model(model, device, config or {})
        except RuntimeError as exc:
            raise InferenceError(f"Failed to compile model on {device}: {exc}") from exc
        return cls(compiled, device=device)

    @classmethod
    def from_file(
        cls,
        core: ov.Core,
        model_path: Union[str, Path],
        device: str = "CPU",
        config: Optional[Dict[str, str]] = None,
    ) -> "InferenceEngine":
        """Read and compile an ``.onnx`` or ``.xml`` model file."""
        path = Path(model_path)
        if not path.exists():
            raise FileNotFoundError(f"Model file not found: {path}")
        logger.info("Reading model %s", path)
        try:
            model = core.read_model(model=str(path))
        except RuntimeError as exc:
            raise InferenceError(f"Failed to read model {path}: {exc}") from exc
        return cls.from_model(core, model, device=device, config=config)

    @classmethod
    def from_bytes(
        cls,
        core: ov.Core,
        model_bytes: bytes,
        device: str = "CPU",
        config: Optional[Dict[str, str]] = None,
    ) -> "InferenceEngine":
        """Convert and compile an ONNX model held in memory."""
        logger.info("Converting in-memory ONNX model (%d bytes)", len(model_bytes))
        try:
            model = ov.convert_model(io.BytesIO(bytes(model_bytes)))
        except Exception as exc:
            raise InferenceError(f"Failed to convert in-memory model: {exc}") from exc
        return cls.from_model(core, model, device=device, config=config)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def input_names(self) -> List[str]:
        return list(self._input_names)

    @property
    def hidden_dim(self) -> Optional[int]:
        """Static last dimension of the first output, if the model declares one."""
        shape = self._output_ports[0].get_partial_shape()
        if shape.rank.is_dynamic or len(shape) != 3:
            return None
        dim = shape[2]
        return dim.get_length() if dim.is_static else None

    def describe(self) -> ModelInfo:
        """Input/output structure of the compiled model."""
        return ModelInfo(
            device=self.device,
            inputs=[_port_info(p, i, "input") for i, p in enumerate(self._compiled_model.inputs)],
            outputs=[_port_info(p, i, "output") for i, p in enumerate(self._output_ports)],
        )

    # ------------------------------------------------------------------
    # Inference
    # ------------------------------------------------------------------

    def _bind(self, inputs: Sequence[np.ndarray]) -> Dict[int, np.ndarray]:
        if len(inputs) != len(INPUT_NAMES):
            raise InferenceError(
                f"Expected {len(INPUT_NAMES)} input tensors "
                f"({', '.join(INPUT_NAMES)}), got {len(inputs)}"
            )
        by_name = dict(zip(INPUT_NAMES, inputs))
        feed: Dict[int, np.ndarray] = {}
        for index, name in enumerate(self._input_names):
            if name in by_name:
                feed[index] = by_name[name]
            elif index < len(inputs):
                feed[index] = inputs[index]
            else:
                raise InferenceError(f"No tensor available for model input '{name}'")
        return feed

    def run(self, inputs: Sequence[np.ndarray]) -> List[np.ndarray]:
        """
        Run one synchronous inference.

        Args:
            inputs : [input_ids, attention_mask, token_type_ids], each an
                     int64 array of shape (1, N)

        Returns:
            All model outputs in port order; the first one is the
            token-level hidden state (1, N, hidden_dim).

        Raises:
            InferenceError : if the engine rejects the tensors or faults
        """
        feed = self._bind(inputs)
        try:
            result = self._compiled_model(feed)
        except Exception as exc:
            logger.error("Inference failed on %s: %s", self.device, exc)
            raise InferenceError(f"Inference failed: {exc}") from exc
        return [np.asarray(result[port]) for port in self._output_ports]
