"""Public package exports for tonemaster with lazy imports."""

from __future__ import annotations

from importlib import import_module
from typing import Any

__all__ = [
    "AudioAnalysis",
    "MasteringSettings",
    "MasteringSubmission",
    "MasteringReport",
    "MasteringEngine",
    "MasteringError",
    "EngineLocator",
    "EngineSettings",
    "PRESET_CATALOG",
    "preset_names",
    "resolve",
    "resolve_from_reference",
    "build_chain",
    "analyze_file",
    "probe",
    "measure_loudness",
    "load_engine_settings",
]

_EXPORT_MODULES: dict[str, str] = {
    "AudioAnalysis": "tonemaster.domain.models",
    "MasteringSettings": "tonemaster.domain.models",
    "MasteringSubmission": "tonemaster.domain.models",
    "MasteringReport": "tonemaster.domain.models",
    "MasteringEngine": "tonemaster.application.mastering_service",
    "MasteringError": "tonemaster.errors",
    "EngineLocator": "tonemaster.infrastructure.engine_locator",
    "EngineSettings": "tonemaster.utils.config",
    "PRESET_CATALOG": "tonemaster.presets",
    "preset_names": "tonemaster.presets",
    "resolve": "tonemaster.presets",
    "resolve_from_reference": "tonemaster.resolver",
    "build_chain": "tonemaster.chain",
    "analyze_file": "tonemaster.analysis",
    "probe": "tonemaster.probe",
    "measure_loudness": "tonemaster.loudness",
    "load_engine_settings": "tonemaster.utils.config",
}


def __getattr__(name: str) -> Any:
    if name not in _EXPORT_MODULES:
        raise AttributeError(f"module 'tonemaster' has no attribute {name!r}")

    module = import_module(_EXPORT_MODULES[name])
    value = getattr(module, name)
    globals()[name] = value
    return value
