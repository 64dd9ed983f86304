"""
OpenVINO Device Manager
========================
Picks the device an embedding model is compiled for.

Devices:
    CPU   -- always available, baseline
    GPU   -- Intel integrated GPU
    NPU   -- Neural Processing Unit on Meteor Lake+
    AUTO  -- OpenVINO chooses; starts on CPU while compiling for the
             accelerator in the background
    MULTI -- e.g. MULTI:CPU,GPU splits requests across devices

The preferred device comes from ``configs/settings.yaml``::

    openvino:
      device: "CPU"

and falls back to CPU when it is not present.
"""

import logging
from typing import Any, Dict, List, Optional

import openvino as ov

from sentence_embedder.config import load_settings, section

logger = logging.getLogger(__name__)

DEFAULT_DEVICE = "CPU"


class DeviceManager:
    """
    OpenVINO device detection and selection.

    Usage::

        dm = DeviceManager()
        dm.list_devices()             # ['CPU', 'GPU']
        dm.select(preferred="NPU")    # falls back to 'CPU'
    """

    def __init__(self, core: Optional[ov.Core] = None, settings: Optional[Dict[str, Any]] = None):
        self._core = core if core is not None else ov.Core()
        self._settings = settings if settings is not None else load_settings()
        self._devices: List[str] = list(self._core.available_devices)
        logger.info("OpenVINO devices: %s", self._devices)

    @property
    def core(self) -> ov.Core:
        """The OpenVINO Core the devices were queried from."""
        return self._core

    def list_devices(self) -> List[str]:
        """Return available device strings (e.g. ['CPU', 'GPU'])."""
        return list(self._devices)

    def select(self, preferred: str = DEFAULT_DEVICE) -> str:
        """
        Select an inference device.

        Args:
            preferred : device string to try first; "AUTO" and
                        "MULTI:DEV1,DEV2" are understood.

        Returns:
            The device string to pass to ``core.compile_model``.
        """
        devices = self.list_devices()

        if preferred.upper() == "AUTO":
            logger.info("Selected device: AUTO (available devices: %s)", devices)
            return "AUTO"

        if preferred.upper().startswith("MULTI:"):
            sub_devices = preferred.split(":", 1)[1].split(",")
            valid_subs = [d for d in sub_devices if d in devices]
            if len(valid_subs) >= 2:
                multi_str = "MULTI:" + ",".join(valid_subs)
                logger.info("Selected device: %s", multi_str)
                return multi_str
            if valid_subs:
                logger.warning(
                    "MULTI requested but only '%s' available, using single device",
                    valid_subs[0],
                )
                return valid_subs[0]
            logger.warning("No MULTI sub-devices available, falling back to CPU")
            return DEFAULT_DEVICE

        if preferred in devices:
            logger.info("Selected device: %s", preferred)
            return preferred

        logger.warning(
            "Preferred device '%s' not available (have: %s). Falling back to CPU.",
            preferred,
            devices,
        )
        return DEFAULT_DEVICE

    def select_from_settings(self) -> str:
        """Select the device named by ``openvino.device`` in the settings."""
        preferred = section(self._settings, "openvino").get("device", DEFAULT_DEVICE)
        selected = self.select(str(preferred))
        if selected != preferred:
            logger.info("Device fallback: '%s' -> '%s'", preferred, selected)
        return selected

    def compile_config(self) -> Dict[str, str]:
        """
        Compile-time properties from the settings.

        ``openvino.performance_hint`` maps to OpenVINO's PERFORMANCE_HINT
        (LATENCY suits one-text-at-a-time embedding).
        """
        hint = section(self._settings, "openvino").get("performance_hint")
        return {"PERFORMANCE_HINT": str(hint)} if hint else {}

    def device_properties(self, device: str) -> Dict[str, str]:
        """Human-readable properties for a device, for debug logging."""
        props: Dict[str, str] = {}
        for key in ("FULL_DEVICE_NAME", "DEVICE_ARCHITECTURE"):
            try:
                props[key] = str(self._core.get_property(device, key))
            except RuntimeError as exc:
                logger.debug("Property %s unavailable on %s: %s", key, device, exc)
        return props
