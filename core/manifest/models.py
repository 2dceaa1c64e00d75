"""Data models for the pipeline manifest: artifacts, categories and paths."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Annotated, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

Shape = Literal["map", "records", "keyed_records"]


class Region(BaseModel):
    """Literal start/end anchors that scope a category's search window."""

    model_config = ConfigDict(extra="forbid")

    start: str | None = None
    end: str | None = None


class _CategoryBase(BaseModel):
    model_config = ConfigDict(extra="forbid")

    shape: ClassVar[Shape] = "map"
    ordinal: ClassVar[bool] = False
    whole_block: ClassVar[bool] = False

    name: str = Field(min_length=1)
    region: Region | None = None


class PairField(BaseModel):
    """One localized field of a ``pair`` record."""

    model_config = ConfigDict(extra="forbid")

    name: str
    label: str | None = None
    followed_by: str | None = None

    @property
    def artifact_label(self) -> str:
        return self.label or self.name


class PairCategory(_CategoryBase):
    """Ordered records, each field patched at its own ordinal occurrence."""

    shape: ClassVar[Shape] = "records"
    ordinal: ClassVar[bool] = True

    kind: Literal["pair"]
    fields: list[PairField] = Field(min_length=1)
    defaults: list[dict[str, str]] = Field(default_factory=list)


class KeyedPairCategory(_CategoryBase):
    """Flat map keyed by a literal key field that precedes the locale pair."""

    kind: Literal["keyed_pair"]
    key_field: str
    label: str
    defaults: dict[str, str] = Field(default_factory=dict)


class TernaryCategory(_CategoryBase):
    """Flat map of inline ternaries, keyed by the primary literal itself."""

    kind: Literal["ternary"]
    condition: str = "language === '{locale}'"
    defaults: dict[str, str] = Field(default_factory=dict)


class DocumentCategory(_CategoryBase):
    """Long-form template-literal bodies keyed by a slug field."""

    kind: Literal["document"]
    key_field: str = "slug"
    body_field: str = "content"
    defaults: dict[str, str] = Field(default_factory=dict)


class ScalarField(BaseModel):
    """One named literal of a ``scalar_fields`` category."""

    model_config = ConfigDict(extra="forbid")

    name: str
    label: str | None = None
    locale_labels: dict[str, str] = Field(default_factory=dict)

    def label_for(self, locale: str) -> str:
        return self.locale_labels.get(locale) or self.label or self.name


class ScalarFieldsCategory(_CategoryBase):
    """Named literals inside the object that holds the last anchor."""

    kind: Literal["scalar_fields"]
    anchors: list[str] = Field(min_length=1)
    fields: list[ScalarField] = Field(min_length=1)
    defaults: dict[str, str] = Field(default_factory=dict)


class _BlockCategoryBase(_CategoryBase):
    whole_block: ClassVar[bool] = True

    anchors: list[str] = Field(default_factory=list)
    opener: str
    locale_openers: dict[str, str] = Field(default_factory=dict)

    def opener_for(self, locale: str) -> str:
        return self.locale_openers.get(locale, self.opener)


class DictBlockCategory(_BlockCategoryBase):
    """Flat map regenerated as a whole ``'key': 'value'`` block."""

    kind: Literal["dict_block"]
    opener: str = "{locale}: {"
    merge: list[str] = Field(default_factory=list)
    defaults: dict[str, str] = Field(default_factory=dict)


class RecordBlockCategory(_BlockCategoryBase):
    """Ordered single-line records regenerated as a whole block."""

    shape: ClassVar[Shape] = "records"
    ordinal: ClassVar[bool] = True

    kind: Literal["record_block"]
    opener: str = "{locale}: ["
    fields: list[str] = Field(min_length=1)
    defaults: list[dict[str, str]] = Field(default_factory=list)


class ListBlockCategory(_BlockCategoryBase):
    """Ordered bare literals regenerated as a whole block."""

    shape: ClassVar[Shape] = "records"
    ordinal: ClassVar[bool] = True

    kind: Literal["list_block"]
    opener: str
    field: str = "value"
    defaults: list[dict[str, str]] = Field(default_factory=list)


class KeyedRecordBlockCategory(_BlockCategoryBase):
    """Records keyed by a literal key, regenerated as a whole block."""

    shape: ClassVar[Shape] = "keyed_records"

    kind: Literal["keyed_record_block"]
    opener: str = "{locale}: {"
    fields: list[str] = Field(min_length=1)
    defaults: dict[str, dict[str, str]] = Field(default_factory=dict)


class ReferenceCategory(_CategoryBase):
    """Flat map that only exists in the bilingual reference document."""

    kind: Literal["reference"] = "reference"
    defaults: dict[str, str] = Field(default_factory=dict)


ArtifactCategory = Annotated[
    PairCategory
    | KeyedPairCategory
    | TernaryCategory
    | DocumentCategory
    | ScalarFieldsCategory
    | DictBlockCategory
    | RecordBlockCategory
    | ListBlockCategory
    | KeyedRecordBlockCategory,
    Field(discriminator="kind"),
]
AnyCategory = (
    PairCategory
    | KeyedPairCategory
    | TernaryCategory
    | DocumentCategory
    | ScalarFieldsCategory
    | DictBlockCategory
    | RecordBlockCategory
    | ListBlockCategory
    | KeyedRecordBlockCategory
    | ReferenceCategory
)
BlockCategory = (
    DictBlockCategory | RecordBlockCategory | ListBlockCategory | KeyedRecordBlockCategory
)


class ArtifactSpec(BaseModel):
    """One artifact file and the categories it carries, in patch order."""

    model_config = ConfigDict(extra="forbid")

    path: str
    categories: list[ArtifactCategory] = Field(min_length=1)


class ManifestPaths(BaseModel):
    """Snapshot document locations relative to the project root."""

    model_config = ConfigDict(extra="forbid")

    snapshot: str = "content-snapshot.json"
    translated: str = "translated-snapshot.json"
    reference: str = "bilingual-reference.json"


class Manifest(BaseModel):
    """Shared contract between the extractor and the patch engine."""

    model_config = ConfigDict(extra="forbid")

    version: int = 1
    primary_locale: str = "en"
    secondary_locale: str = "ar"
    paths: ManifestPaths = Field(default_factory=ManifestPaths)
    artifacts: list[ArtifactSpec] = Field(min_length=1)
    references: list[ReferenceCategory] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_category_names(self) -> Manifest:
        seen: set[str] = set()
        for category in self.iter_categories():
            if category.name in seen:
                raise ValueError(f"Duplicate category name: {category.name}")
            seen.add(category.name)

        flat_maps = {
            category.name for category in self.iter_categories() if category.shape == "map"
        }
        for artifact in self.artifacts:
            for category in artifact.categories:
                if not isinstance(category, DictBlockCategory):
                    continue
                unknown = [name for name in category.merge if name not in flat_maps]
                if unknown:
                    raise ValueError(
                        f"Category {category.name} merges unknown flat-map categories: {unknown}"
                    )
        return self

    def iter_categories(self) -> Iterator[AnyCategory]:
        for artifact in self.artifacts:
            yield from artifact.categories
        yield from self.references

    def get_category(self, name: str) -> AnyCategory | None:
        for category in self.iter_categories():
            if category.name == name:
                return category
        return None
