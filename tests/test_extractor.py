from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import pytest

from core.extract.extractor import build_bilingual_reference, extract_snapshot
from core.manifest.models import Manifest

CAREERS = """const benefits = [
  {
    title: { en: 'Remote', ar: 'عن بعد' },
    description: { en: 'Work anywhere', ar: 'اعمل من أي مكان' },
  },
  {
    title: { en: 'Learning', ar: 'تعلم' },
    description: { en: 'Budget', ar: 'ميزانية' },
  },
];

const openings = [
  { title: { en: 'Engineer', ar: 'مهندس' } },
];

<h1>{language === 'ar' ? 'انضم إلينا' : 'Join Our Team'}</h1>
"""

FEATURES = """const plans = {
  en: [
    {
      id: 'free',
      features: [
        'One roadmap', // first
        'It\\'s free',
      ],
    },
  ],
  ar: [
    {
      id: 'free',
      features: [
        'خريطة واحدة',
      ],
    },
  ],
};
"""


def _manifest(categories: list[dict[str, Any]], **extra: Any) -> Manifest:
    return Manifest.model_validate(
        {"artifacts": [{"path": "Page.tsx", "categories": categories}], **extra}
    )


def _write(root: Path, text: str) -> None:
    (root / "Page.tsx").write_text(text, encoding="utf-8")


BENEFITS = {
    "name": "careersBenefits",
    "kind": "pair",
    "region": {"start": "const benefits = [", "end": "];"},
    "fields": [{"name": "title"}, {"name": "description"}],
}


def test_pair_records_are_scoped_by_region(tmp_path: Path) -> None:
    _write(tmp_path, CAREERS)
    manifest = _manifest([BENEFITS])

    result = extract_snapshot(manifest, tmp_path)

    assert result.snapshot.categories["careersBenefits"] == [
        {"title": "Remote", "description": "Work anywhere"},
        {"title": "Learning", "description": "Budget"},
    ]
    assert result.snapshot.meta is not None
    assert result.snapshot.meta.locale == "en"
    assert result.snapshot.meta.occurrences == {
        "careersBenefits.title": 2,
        "careersBenefits.description": 2,
    }
    entry = result.entry("careersBenefits")
    assert entry is not None
    assert (entry.source, entry.count, entry.artifact) == ("artifact", 2, "Page.tsx")


def test_secondary_locale_reads_current_translations(tmp_path: Path) -> None:
    _write(tmp_path, CAREERS)
    manifest = _manifest([BENEFITS, {"name": "careersHero", "kind": "ternary"}])

    result = extract_snapshot(manifest, tmp_path, locale="ar")

    assert result.snapshot.categories["careersBenefits"][0] == {
        "title": "عن بعد",
        "description": "اعمل من أي مكان",
    }
    assert result.snapshot.categories["careersHero"] == {"Join Our Team": "انضم إلينا"}


def test_unknown_locale_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="Unknown locale"):
        extract_snapshot(_manifest([BENEFITS]), tmp_path, locale="fr")


def test_missing_pattern_falls_back_to_defaults(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    caplog.set_level(logging.INFO, logger="bisync.extract")
    _write(tmp_path, "export const nothing = [];\n")
    manifest = _manifest(
        [
            {
                "name": "aboutTimeline",
                "kind": "pair",
                "fields": [{"name": "event"}],
                "defaults": [{"event": "Idea conceived"}, {"event": "Product built"}],
            }
        ]
    )

    result = extract_snapshot(manifest, tmp_path)

    assert result.snapshot.categories["aboutTimeline"] == [
        {"event": "Idea conceived"},
        {"event": "Product built"},
    ]
    entry = result.entry("aboutTimeline")
    assert entry is not None
    assert entry.source == "defaults"
    assert "category_not_found" in caplog.text


def test_defaults_are_not_used_for_secondary_locale(tmp_path: Path) -> None:
    _write(tmp_path, "export const nothing = [];\n")
    manifest = _manifest(
        [{"name": "hero", "kind": "ternary", "defaults": {"Back to Home": "Back to Home"}}]
    )

    result = extract_snapshot(manifest, tmp_path, locale="ar")

    assert result.snapshot.categories["hero"] == {}
    entry = result.entry("hero")
    assert entry is not None
    assert entry.source == "empty"


def test_reference_document_wins_over_defaults(tmp_path: Path) -> None:
    _write(tmp_path, "export const nothing = [];\n")
    manifest = _manifest(
        [
            {
                "name": "aboutValues",
                "kind": "pair",
                "fields": [{"name": "title"}],
                "defaults": [{"title": "Default"}],
            }
        ],
        references=[{"name": "inlineStrings", "defaults": {"cta": "Start"}}],
    )
    reference = {
        "aboutValues": [{"title": {"en": "From reference", "ar": "من المرجع"}}],
        "inlineStrings": {"cta": {"en": "Start now", "ar": "ابدأ الآن"}},
    }

    primary = extract_snapshot(manifest, tmp_path, reference=reference)
    secondary = extract_snapshot(manifest, tmp_path, locale="ar", reference=reference)

    assert primary.snapshot.categories["aboutValues"] == [{"title": "From reference"}]
    assert primary.snapshot.categories["inlineStrings"] == {"cta": "Start now"}
    assert secondary.snapshot.categories["inlineStrings"] == {"cta": "ابدأ الآن"}
    entry = primary.entry("inlineStrings")
    assert entry is not None
    assert (entry.source, entry.artifact) == ("reference", None)


def test_reference_only_category_uses_defaults_without_reference(tmp_path: Path) -> None:
    _write(tmp_path, CAREERS)
    manifest = _manifest([BENEFITS], references=[{"name": "inlineStrings", "defaults": {"a": "b"}}])

    result = extract_snapshot(manifest, tmp_path)

    assert result.snapshot.categories["inlineStrings"] == {"a": "b"}


def test_list_block_extraction_decodes_literals(tmp_path: Path) -> None:
    _write(tmp_path, FEATURES)
    manifest = _manifest(
        [
            {
                "name": "planFeaturesFree",
                "kind": "list_block",
                "anchors": ["const plans = {", "{locale}: [", "id: 'free'"],
                "opener": "features: [",
            }
        ]
    )

    result = extract_snapshot(manifest, tmp_path)

    assert result.snapshot.categories["planFeaturesFree"] == [
        {"value": "One roadmap"},
        {"value": "It's free"},
    ]
    assert result.snapshot.meta is not None
    assert result.snapshot.meta.occurrences == {"planFeaturesFree": 2}


def test_unterminated_document_falls_back(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    caplog.set_level(logging.WARNING, logger="bisync.extract")
    _write(tmp_path, "const posts = [\n  { slug: 'a', content: { en: `never closed } },\n];\n")
    manifest = _manifest(
        [{"name": "blogPosts", "kind": "document", "defaults": {"a": "Fallback body"}}]
    )

    result = extract_snapshot(manifest, tmp_path)

    assert result.snapshot.categories["blogPosts"] == {"a": "Fallback body"}
    assert '"event":"scan_failed"' in caplog.text


def test_missing_artifact_propagates(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        extract_snapshot(_manifest([BENEFITS]), tmp_path)


def test_bilingual_reference_pairs_both_locales(tmp_path: Path) -> None:
    _write(tmp_path, CAREERS)
    manifest = _manifest(
        [BENEFITS, {"name": "careersHero", "kind": "ternary"}],
        references=[{"name": "inlineStrings"}],
    )
    previous = {"inlineStrings": {"cta": {"en": "Start", "ar": "ابدأ"}}}

    payload = build_bilingual_reference(manifest, tmp_path, previous)

    assert payload["careersBenefits"][1] == {
        "title": {"en": "Learning", "ar": "تعلم"},
        "description": {"en": "Budget", "ar": "ميزانية"},
    }
    assert payload["careersHero"] == {
        "Join Our Team": {"en": "Join Our Team", "ar": "انضم إلينا"}
    }
    assert payload["inlineStrings"] == {"cta": {"en": "Start", "ar": "ابدأ"}}
    assert payload["_meta"]["primary_locale"] == "en"


ONE_LINE_FAQS = (
    "const faqs = {\n  en: [{ q: 'Q1', a: 'A1' }],\n  ar: [{ q: 'old', a: 'old' }],\n};\n"
)

FAQ_CATEGORY = {
    "name": "faq",
    "kind": "record_block",
    "anchors": ["const faqs = {"],
    "fields": ["q", "a"],
}


def test_one_line_record_block_is_exported(tmp_path: Path) -> None:
    _write(tmp_path, ONE_LINE_FAQS)
    manifest = _manifest([FAQ_CATEGORY])

    result = extract_snapshot(manifest, tmp_path)
    secondary = extract_snapshot(manifest, tmp_path, locale="ar")

    assert result.snapshot.categories["faq"] == [{"q": "Q1", "a": "A1"}]
    assert secondary.snapshot.categories["faq"] == [{"q": "old", "a": "old"}]
    assert result.snapshot.meta is not None
    assert result.snapshot.meta.occurrences == {"faq": 1}


SEO = """export const seoByPath: Record<string, SeoEntry> = {
  "/": {
    title: "Home",
    description:
      "Plan your learning",
  },
  "/pricing": { title: "Pricing", description: "Plans" },
};

export const seoByPathAr: Record<string, SeoEntry> = {
  "/": {
    title: "الرئيسية",
    description:
      "خطط تعلمك",
  },
};
"""

SEO_CATEGORY = {
    "name": "seo",
    "kind": "keyed_record_block",
    "opener": "export const seoByPath: Record<string, SeoEntry> = {",
    "locale_openers": {"ar": "export const seoByPathAr: Record<string, SeoEntry> = {"},
    "fields": ["title", "description"],
}


def test_keyed_record_block_exports_multi_line_entries(tmp_path: Path) -> None:
    _write(tmp_path, SEO)

    result = extract_snapshot(_manifest([SEO_CATEGORY]), tmp_path)

    assert result.snapshot.categories["seo"] == {
        "/": {"title": "Home", "description": "Plan your learning"},
        "/pricing": {"title": "Pricing", "description": "Plans"},
    }
    entry = result.entry("seo")
    assert entry is not None
    assert (entry.source, entry.count) == ("artifact", 2)


def test_bilingual_reference_pairs_keyed_records(tmp_path: Path) -> None:
    _write(tmp_path, SEO)

    payload = build_bilingual_reference(_manifest([SEO_CATEGORY]), tmp_path)

    assert payload["seo"]["/"]["description"] == {
        "en": "Plan your learning",
        "ar": "خطط تعلمك",
    }
    assert payload["seo"]["/pricing"]["title"] == {"en": "Pricing", "ar": None}


def test_scalar_fields_follow_locale_labels(tmp_path: Path) -> None:
    _write(
        tmp_path,
        """const plans = {
  en: [
    { id: 'free', name: 'Free', ctaKey: 'Get Started Free', ctaKeyAr: 'ابدأ مجانا' },
  ],
  ar: [
    { id: 'free', name: 'مجاني', ctaKey: 'Get Started Free', ctaKeyAr: 'ابدأ الآن' },
  ],
};
""",
    )
    manifest = _manifest(
        [
            {
                "name": "planFree",
                "kind": "scalar_fields",
                "anchors": ["const plans = {", "{locale}: [", "id: 'free'"],
                "fields": [
                    {"name": "name"},
                    {"name": "description"},
                    {"name": "cta", "label": "ctaKey", "locale_labels": {"ar": "ctaKeyAr"}},
                ],
                "defaults": {"description": "Basic features"},
            }
        ]
    )

    primary = extract_snapshot(manifest, tmp_path)
    secondary = extract_snapshot(manifest, tmp_path, locale="ar")

    assert primary.snapshot.categories["planFree"] == {
        "name": "Free",
        "cta": "Get Started Free",
    }
    assert secondary.snapshot.categories["planFree"] == {
        "name": "مجاني",
        "cta": "ابدأ الآن",
    }
