"""
OpenVINO subpackage -- inference runtime helpers.

Modules:
    device_manager -- detect and select inference devices
    engine         -- compile a model and run it on three int64 tensors
"""

from sentence_embedder.openvino.device_manager import DeviceManager
from sentence_embedder.openvino.engine import InferenceEngine, ModelInfo
