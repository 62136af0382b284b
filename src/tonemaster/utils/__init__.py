from .config import EngineSettings, load_engine_settings

__all__ = ["EngineSettings", "load_engine_settings"]
