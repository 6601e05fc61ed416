# -*- coding: utf-8 -*-
import json
from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterable, List, Literal, Optional

from pydantic import BaseModel, ConfigDict

from applicant_portal.config import settings
from applicant_portal.errors import UnknownField

FieldKind = Literal["text", "textarea", "select", "radio", "checkbox"]
CHOICE_KINDS = ("select", "radio")


class FieldDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    kind: FieldKind = "text"
    required: bool = False
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    choices: Optional[List[str]] = None
    message: Optional[str] = None
    section: Optional[str] = None


class FieldCatalog:
    """Ordered set of field descriptors; the only place field names are known."""

    def __init__(self, descriptors: Iterable[FieldDescriptor]):
        self.descriptors: List[FieldDescriptor] = list(descriptors)
        self._by_name: Dict[str, FieldDescriptor] = {}
        for d in self.descriptors:
            if d.name in self._by_name:
                raise ValueError(f"Duplicate field in catalog: {d.name}")
            self._by_name[d.name] = d

    def __contains__(self, name: str) -> bool:
        return name in self._by_name

    def __iter__(self):
        return iter(self.descriptors)

    def __len__(self) -> int:
        return len(self.descriptors)

    def get(self, name: str) -> Optional[FieldDescriptor]:
        return self._by_name.get(name)

    @property
    def names(self) -> List[str]:
        return [d.name for d in self.descriptors]

    def required(self) -> List[FieldDescriptor]:
        return [d for d in self.descriptors if d.required]

    def sections(self) -> Dict[str, List[FieldDescriptor]]:
        out: Dict[str, List[FieldDescriptor]] = {}
        for d in self.descriptors:
            out.setdefault(d.section or "", []).append(d)
        return out

    def check_names(self, names: Iterable[str]) -> None:
        unknown = [n for n in names if n not in self._by_name]
        if unknown:
            raise UnknownField(unknown)

    @classmethod
    def from_dict(cls, raw: dict) -> "FieldCatalog":
        # accepts {"sections": [{"name", "fields": [...]}]} or {"fields": [...]}
        descriptors = []
        for section in raw.get("sections", []):
            for f in section.get("fields", []):
                descriptors.append(FieldDescriptor(section=section.get("name"), **f))
        for f in raw.get("fields", []):
            descriptors.append(FieldDescriptor(**f))
        return cls(descriptors)


def load_catalog(path: str | Path) -> FieldCatalog:
    with Path(path).open("r", encoding="utf-8") as f:
        return FieldCatalog.from_dict(json.load(f))


@lru_cache(maxsize=1)
def get_catalog() -> FieldCatalog:
    return load_catalog(settings.FIELD_CATALOG_PATH)
