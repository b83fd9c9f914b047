from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _RegistryModel(BaseModel):
    # Registry payloads grow fields over time; keep unknown keys for raw snapshots.
    model_config = ConfigDict(populate_by_name=True, extra="allow")


class DocumentWithHit(_RegistryModel):
    guid: str = ""
    name: str = ""


class ListingRecord(_RegistryModel):
    """One item of the listing endpoint's `pageData`."""

    main_info: str = Field(default="", alias="mainInfo")
    number: str = ""
    guid: str = ""
    publish_date: str = Field(default="", alias="publishDate")
    is_annuled: bool = Field(default=False, alias="isAnnuled")
    type: str = ""
    body_highlights: List[str] = Field(default_factory=list, alias="bodyHighlights")
    documents_with_hits: List[DocumentWithHit] = Field(default_factory=list, alias="documentsWithHits")

    @field_validator("main_info", "number", "guid", "publish_date", "type", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("body_highlights", "documents_with_hits", mode="before")
    @classmethod
    def none_to_list(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("is_annuled", mode="before")
    @classmethod
    def none_to_false(cls, v: Any) -> Any:
        return False if v is None else v

    def raw_json(self) -> str:
        return json.dumps(self.model_dump(by_alias=True), ensure_ascii=False)


class ListingPage(_RegistryModel):
    records: List[ListingRecord] = Field(default_factory=list, alias="pageData")
    found: int = 0


class Company(_RegistryModel):
    name: str = ""
    inn: str = ""
    ogrn: str = ""

    @field_validator("name", "inn", "ogrn", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v


class DetailContent(_RegistryModel):
    stop_reason: str = Field(default="", alias="stopReason")
    comment: str = Field(default="", alias="text")
    contract_number: Optional[str] = Field(default=None, alias="contractNumber")
    publish_date: Optional[str] = Field(default=None, alias="publishDate")
    lessors: List[Company] = Field(default_factory=list)
    lessees: List[Company] = Field(default_factory=list)

    @field_validator("stop_reason", "comment", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("lessors", "lessees", mode="before")
    @classmethod
    def none_to_list(cls, v: Any) -> Any:
        return [] if v is None else v

    def has_update(self) -> bool:
        return bool(self.comment or self.stop_reason)

    def first_lessor(self) -> Company | None:
        return self.lessors[0] if self.lessors else None

    def first_lessee(self) -> Company | None:
        return self.lessees[0] if self.lessees else None

    def raw_json(self) -> str:
        return json.dumps(self.model_dump(by_alias=True), ensure_ascii=False)


class DetailedContract(_RegistryModel):
    content: DetailContent = Field(default_factory=DetailContent)


@dataclass
class ContractRow:
    """Persisted filing row (table `contract`)."""

    guid: str
    type: str
    date: Optional[str]  # "YYYY-MM-DD HH:MM:SS", UTC
    number: str = ""
    contract: str = ""
    lessor: str = ""
    lessee: str = ""
    ogrn: str = ""
    inn: str = ""
    stop_reason: str = ""
    user_comment: str = ""
    list_item_raw: str = "{}"
    item_raw: str = "{}"
    enriched: bool = False
    id: Optional[int] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
