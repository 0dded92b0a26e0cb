"""
Company name normalization.

Turns raw company names into a canonical display form and expands a name
into a handful of alternate spellings. Registry search is sensitive to exact
substrings, so searching every variation compensates for accent and
legal-form inconsistencies in the registry data.

The legal-form tokens and accent pairs are Quebec-specific and live in
NormalizationRules so they can be extended without touching the algorithm.
"""

import re
import unicodedata
from dataclasses import dataclass, field
from typing import Optional

from config.logging import logger

# Apostrophe variants folded to a plain "'"
APOSTROPHE_VARIANTS = "’‘ʼ`´′"

# Four digits, separator, four digits (numbered companies: "9123-4567 QUÉBEC INC"),
# not embedded in a longer run of digits
NUMBERED_COMPANY = r"(?<!\d)(\d{4})[\s-](\d{4})(?!\d)"


@dataclass
class NormalizationRules:
    """Domain data used by the normalizer."""

    # Tokens whose trailing period is dropped ("INC." -> "INC")
    legal_form_tokens: list[str] = field(default_factory=lambda: [
        "INC", "LTÉE", "LTD", "CORP", "CIE", "ENR", "LIMITÉE",
        "S.E.N.C.R.L", "S.E.N.C", "S.E.C", "COOP",
    ])

    # Variant spelling -> canonical spelling
    legal_form_folds: dict[str, str] = field(default_factory=lambda: {
        "LTEE": "LTÉE",
        "LIMITEE": "LIMITÉE",
    })

    # Tokens with two accepted renderings: (accented, unaccented)
    dual_spellings: list[tuple[str, str]] = field(default_factory=lambda: [
        ("QUÉBEC", "QUEBEC"),
        ("LTÉE", "LTEE"),
    ])

    # Jurisdiction word of numbered companies: (accented, unaccented)
    jurisdiction_words: tuple[str, str] = ("QUÉBEC", "QUEBEC")
    numbered_legal_form: str = "INC"

    # Letters that do not decompose under NFD
    character_folds: dict[str, str] = field(default_factory=lambda: {
        "Œ": "OE", "œ": "oe", "Æ": "AE", "æ": "ae",
    })

    # Institutional entities that never appear in a commercial registry
    public_body_patterns: list[str] = field(default_factory=lambda: [
        r"^VILLE\s+(DE?\s+|D'|DU\s+)",
        r"^MUNICIPALIT[EÉ]",
        r"^OMH\s+",
        r"^OFFICE\s+MUNICIPAL\s+D'HABITATION",
        r"^UNIVERSIT[EÉ]",
        r"^C[EÉ]GEP",
        r"^COMMISSION\s+SCOLAIRE",
        r"^CENTRE\s+DE\s+SERVICES\s+SCOLAIRE",
        r"^CIU?SSS\b",
        r"^GOUVERNEMENT\s+DU\s+QU[EÉ]BEC",
    ])

    def __post_init__(self):
        if len(self.jurisdiction_words) != 2:
            raise ValueError("jurisdiction_words must be an (accented, unaccented) pair")
        for pair in self.dual_spellings:
            if len(pair) != 2:
                raise ValueError(f"Invalid dual spelling: {pair!r}")
        for pattern in self.public_body_patterns:
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f"Invalid public body pattern {pattern!r}: {e}") from e


class CompanyNormalizer:
    """
    Canonicalizes company names.

    Usage:
        normalizer = CompanyNormalizer()
        name = normalizer.normalize("9123-4567 Quebec Inc.")  # "9123-4567 QUÉBEC INC"
        for variation in normalizer.generate_variations(name):
            ...
    """

    def __init__(self, rules: Optional[NormalizationRules] = None):
        self.rules = rules or NormalizationRules()

        self._apostrophes = re.compile(f"[{APOSTROPHE_VARIANTS}]")

        tokens = sorted(self.rules.legal_form_tokens, key=len, reverse=True)
        # A run of periods right after the token, unless the run continues into
        # another word ("INC." but not "INC.COM")
        self._legal_form_period = re.compile(
            r"\b(" + "|".join(re.escape(t) for t in tokens) + r")\.+(?![\w.])"
        )
        self._legal_form_folds = [
            (re.compile(rf"\b{re.escape(variant)}\b"), canonical)
            for variant, canonical in self.rules.legal_form_folds.items()
        ]

        self._dual_spellings = [
            (accented, plain, re.compile(rf"\b{re.escape(accented)}\b"), re.compile(rf"\b{re.escape(plain)}\b"))
            for accented, plain in self.rules.dual_spellings
        ]

        accented, plain = self.rules.jurisdiction_words
        jurisdiction = f"({re.escape(accented)}|{re.escape(plain)})"
        self._numbered = re.compile(rf"{NUMBERED_COMPANY}\s+{jurisdiction}\b")
        self._plain_jurisdiction = re.compile(rf"\b{re.escape(plain)}\b")

        self._public_bodies = [
            re.compile(p, re.IGNORECASE) for p in self.rules.public_body_patterns
        ]

    def normalize(self, raw: Optional[str]) -> str:
        """
        Canonical display form of a company name.

        Uppercase, single-spaced, apostrophes unified, bilingual names cut at
        the first "/", legal forms canonicalized and "&" spelled "ET".
        Accents are preserved. normalize(normalize(x)) == normalize(x).
        """
        if not raw:
            return ""

        name = raw.upper()
        name = self._collapse(name)
        name = self._apostrophes.sub("'", name)

        # Bilingual names: "ACME INC / ACME LTD"
        if "/" in name:
            name = name.split("/", 1)[0].strip()

        name = self._canonicalize_legal_forms(name)
        name = re.sub(r"\s*&\s*", " ET ", name)

        return self._collapse(name)

    def generate_variations(self, name: Optional[str]) -> list[str]:
        """
        Alternate spellings of a normalized name, input first, no duplicates.

        Order matters: candidates are scored in variation order, so ties go
        to the unmodified name.
        """
        if not name:
            return []

        variations = {name: None}

        if "/" in name:
            for part in name.split("/"):
                part = part.strip()
                if part:
                    variations[part] = None

        variations[self.strip_accents(name)] = None

        for accented, plain, accented_re, plain_re in self._dual_spellings:
            if accented_re.search(name):
                variations[accented_re.sub(plain, name)] = None
            elif plain_re.search(name):
                variations[plain_re.sub(accented, name)] = None

        match = self._numbered.search(name)
        if match:
            prefix = f"{match.group(1)}-{match.group(2)}"
            suffix = self.rules.numbered_legal_form
            for word in self.rules.jurisdiction_words:
                variations[f"{prefix} {word} {suffix}"] = None

        logger.debug(f"Variations for '{name}': {list(variations)}")
        return list(variations)

    def is_public_body(self, name: Optional[str]) -> bool:
        """True if the name starts like a municipality, school board, university, etc."""
        if not name:
            return False
        name = self._apostrophes.sub("'", name.strip())
        return any(pattern.match(name) for pattern in self._public_bodies)

    def strip_accents(self, text: Optional[str]) -> str:
        """Replace accented letters with their base Latin letter."""
        if not text:
            return ""
        for char, replacement in self.rules.character_folds.items():
            text = text.replace(char, replacement)
        decomposed = unicodedata.normalize("NFD", text)
        stripped = "".join(c for c in decomposed if unicodedata.category(c) != "Mn")
        return unicodedata.normalize("NFC", stripped)

    def _canonicalize_legal_forms(self, name: str) -> str:
        for pattern, canonical in self._legal_form_folds:
            name = pattern.sub(canonical, name)
        name = self._legal_form_period.sub(r"\1", name)

        # Numbered companies use the accented jurisdiction word
        if self._numbered.search(name):
            name = self._plain_jurisdiction.sub(self.rules.jurisdiction_words[0], name)

        return name

    @staticmethod
    def _collapse(text: str) -> str:
        return re.sub(r"\s+", " ", text).strip()


_default_normalizer = CompanyNormalizer()


def normalize(raw: Optional[str]) -> str:
    return _default_normalizer.normalize(raw)


def generate_variations(name: Optional[str]) -> list[str]:
    return _default_normalizer.generate_variations(name)


def is_public_body(name: Optional[str]) -> bool:
    return _default_normalizer.is_public_body(name)


def strip_accents(text: Optional[str]) -> str:
    return _default_normalizer.strip_accents(text)
