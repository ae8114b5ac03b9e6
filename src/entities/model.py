import dataclasses
import enum

from pydantic import BaseModel as PydanticBaseModel
from pydantic import ConfigDict


def _to_plain(obj):  # noqa: ANN001, ANN202, PLR0911
    """Recursively convert models and containers into JSON-compatible values."""
    if isinstance(obj, PydanticBaseModel):
        return {name: _to_plain(getattr(obj, name)) for name in obj.__class__.model_fields}
    if isinstance(obj, (frozenset, set)):
        return sorted(_to_plain(item) for item in obj)
    if isinstance(obj, dict):
        return {key: _to_plain(value) for key, value in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_to_plain(item) for item in obj]
    if isinstance(obj, enum.Enum):
        return obj.value
    return obj


class BaseModel(PydanticBaseModel):
    model_config = ConfigDict(frozen=True)

    def to_dict(self) -> dict:  # noqa: ANN101
        """Plain dict with sets flattened to sorted lists, suitable for persisting as resource state."""
        return _to_plain(self)


class APIModel(BaseModel):
    """Remote payloads: camelCase / underscore-prefixed keys are mapped through field aliases."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    def to_payload(self) -> dict:  # noqa: ANN101
        return self.model_dump(by_alias=True, exclude_none=True)


def json_default(o: object) -> object:
    if isinstance(o, BaseModel):
        return o.to_dict()
    elif isinstance(o, PydanticBaseModel):
        return o.model_dump()
    elif dataclasses.is_dataclass(o) and not isinstance(o, type):
        return dataclasses.asdict(o)
    elif isinstance(o, enum.Enum):
        return o.value
    elif isinstance(o, (set, frozenset)):
        return sorted(str(i) for i in o)  # type: ignore # noqa: PGH003
    return str(o)
