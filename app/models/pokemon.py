import re
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


ColumnType = Literal["text", "number", "boolean"]
MappingType = Literal["string", "number", "boolean"]
CellValue = Union[bool, int, float, str]

# CSV/wire name -> model attribute. Snake-case attribute names are accepted too.
FIELD_ATTRS: Dict[str, str] = {
    "id": "id",
    "name": "name",
    "sprite": "sprite",
    "types": "types",
    "hp": "hp",
    "attack": "attack",
    "defense": "defense",
    "specialAttack": "special_attack",
    "special_attack": "special_attack",
    "specialDefense": "special_defense",
    "special_defense": "special_defense",
    "speed": "speed",
    "height": "height",
    "weight": "weight",
}

EXPORT_COLUMNS: List[str] = [
    "id",
    "name",
    "sprite",
    "types",
    "hp",
    "attack",
    "defense",
    "specialAttack",
    "specialDefense",
    "speed",
    "height",
    "weight",
]

NUMERIC_FIELDS = {
    "id",
    "hp",
    "attack",
    "defense",
    "special_attack",
    "special_defense",
    "speed",
    "height",
    "weight",
}

# Base fields a CSV column can be mapped to, with the suggested coercion type.
POKEMON_FIELDS: List[Dict[str, str]] = [
    {"value": "id", "label": "ID", "type": "number"},
    {"value": "name", "label": "Name", "type": "string"},
    {"value": "sprite", "label": "Sprite URL", "type": "string"},
    {"value": "types", "label": "Type(s)", "type": "string"},
    {"value": "hp", "label": "HP", "type": "number"},
    {"value": "attack", "label": "Attack", "type": "number"},
    {"value": "defense", "label": "Defense", "type": "number"},
    {"value": "specialAttack", "label": "Special Attack", "type": "number"},
    {"value": "specialDefense", "label": "Special Defense", "type": "number"},
    {"value": "speed", "label": "Speed", "type": "number"},
    {"value": "height", "label": "Height", "type": "number"},
    {"value": "weight", "label": "Weight", "type": "number"},
]


def is_base_field(name: str) -> bool:
    return name in FIELD_ATTRS


class Pokemon(BaseModel):
    """One table row: fixed Pokemon attributes plus custom-column values.

    Custom values live in `extra`, keyed by column id, so schema operations
    never have to reflect over the fixed fields.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: int
    name: str = "Unknown"
    sprite: Optional[str] = None
    types: List[str] = Field(default_factory=list)
    hp: int = 0
    attack: int = 0
    defense: int = 0
    special_attack: int = Field(0, alias="specialAttack")
    special_defense: int = Field(0, alias="specialDefense")
    speed: int = 0
    height: int = 0
    weight: int = 0
    extra: Dict[str, CellValue] = Field(default_factory=dict)

    def get_field(self, name: str) -> Any:
        attr = FIELD_ATTRS.get(name)
        if attr is not None:
            return getattr(self, attr)
        return self.extra.get(name)

    def set_field(self, name: str, value: Any) -> None:
        attr = FIELD_ATTRS.get(name)
        if attr is not None:
            setattr(self, attr, value)
        else:
            self.extra[name] = value

    def has_field(self, name: str) -> bool:
        return is_base_field(name) or name in self.extra

    def merge(self, fields: Dict[str, Any]) -> None:
        for key, value in fields.items():
            self.set_field(key, value)

    def to_row(self) -> Dict[str, Any]:
        """Flat dict with wire names and custom values side by side."""
        row = {col: self.get_field(col) for col in EXPORT_COLUMNS}
        row.update(self.extra)
        return row


def column_id_from_name(name: str) -> str:
    s = (name or "").lower()
    s = re.sub(r"\s+", "_", s)
    return re.sub(r"[^a-z0-9_]", "", s)


def default_for_type(type_: str) -> CellValue:
    if type_ == "number":
        return 0
    if type_ == "boolean":
        return False
    return ""


class CustomColumn(BaseModel):
    """User-defined column appended to every record."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    type: ColumnType = "text"
    default_value: CellValue = Field("", alias="defaultValue")

    @classmethod
    def from_name(cls, name: str, type_: ColumnType = "text") -> "CustomColumn":
        column_id = column_id_from_name(name)
        if not column_id:
            raise ValueError(f"Column name does not yield a usable id: {name!r}")
        return cls(id=column_id, name=name.strip(), type=type_, default_value=default_for_type(type_))


class ColumnMapping(BaseModel):
    """Pairs a CSV header with a target field and a coercion type."""

    model_config = ConfigDict(populate_by_name=True)

    csv_header: str = Field(..., alias="csvHeader")
    pokemon_field: str = Field("", alias="pokemonField", description="Target field; empty means unmapped")
    data_type: MappingType = Field("string", alias="dataType")


MAPPING_TO_COLUMN_TYPE: Dict[str, ColumnType] = {
    "string": "text",
    "number": "number",
    "boolean": "boolean",
}
