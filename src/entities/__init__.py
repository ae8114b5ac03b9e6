from . import jumpcloud
from .model import APIModel, BaseModel, json_default

__all__ = ["APIModel", "BaseModel", "json_default", "jumpcloud"]
