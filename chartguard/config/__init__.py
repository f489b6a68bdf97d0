from .settings import ValidationSettings, settings

__all__ = ["ValidationSettings", "settings"]
