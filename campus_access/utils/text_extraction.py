# =======================================================================================
# campus_access/utils/text_extraction.py - Scanned Text Heuristics
# =======================================================================================
"""
Best-effort recovery of a document number and a name from noisy scanner text.

Campus ID cards encode lines such as ``"JUAN PEREZ 1014983221 APRENDIZ RH=O+"``.
Everything here is pure: no database, no clock, so the heuristics can be
tested on their own and the resolver only consumes the result.
"""
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from ..models.enums import ExtractionConfidence, MemberRole

DIGIT_RUN = re.compile(r"(?<![0-9])[0-9]{8,15}(?![0-9])")
NON_DIGIT = re.compile(r"[^0-9]")
ONLY_NUMBER = re.compile(r"^[0-9\s.,\-]+$")
BLOOD_TYPE = re.compile(r"(?:\bRH\s*[=:]?\s*)?\b(AB|A|B|O)\s*([+-])", re.IGNORECASE)
WORD = re.compile(r"[^\W\d_]+")

ROLE_KEYWORDS = {
    "APRENDIZ": MemberRole.STUDENT,
    "ESTUDIANTE": MemberRole.STUDENT,
    "STUDENT": MemberRole.STUDENT,
    "INSTRUCTOR": MemberRole.INSTRUCTOR,
    "ADMINISTRATIVO": MemberRole.ADMINISTRATIVE,
    "ADMINISTRATIVE": MemberRole.ADMINISTRATIVE,
    "FUNCIONARIO": MemberRole.ADMINISTRATIVE,
    "STAFF": MemberRole.ADMINISTRATIVE,
}

# words that show up on cards but are never part of a person's name
NOISE_WORDS = {
    "RH", "CC", "TI", "CE", "NIT", "PASAPORTE", "PASSPORT",
    "VISITANTE", "VISITOR", "NOMBRE", "NOMBRES", "APELLIDO", "APELLIDOS",
    "DOC", "DOCUMENTO", "NO", "NRO", "ID", "FICHA", "PROGRAMA", "SENA",
}


@dataclass(frozen=True)
class ExtractedCredential:
    document_number: Optional[str]
    given_names: Optional[str]
    family_names: Optional[str]
    role_hint: Optional[MemberRole]
    blood_type: Optional[str]
    confidence: ExtractionConfidence

    @property
    def has_name(self) -> bool:
        return bool(self.given_names)


def normalize_document_number(value: str) -> str:
    """Strip everything but ASCII digits."""
    return NON_DIGIT.sub("", value or "")


def split_name(words: List[str]) -> Tuple[Optional[str], Optional[str]]:
    """Split name words into (given, family).

    One word is a given name; two split evenly; three are read as one given
    name plus two family names; four or more as two given names plus the rest.
    """
    if not words:
        return None, None
    if len(words) == 1:
        return words[0], None
    given_count = 2 if len(words) >= 4 else 1
    return " ".join(words[:given_count]), " ".join(words[given_count:])


def extract_credential_text(raw: str) -> ExtractedCredential:
    text = (raw or "").strip()
    runs = list(DIGIT_RUN.finditer(text))
    if not runs:
        return ExtractedCredential(None, None, None, None, None, ExtractionConfidence.NONE)

    first = runs[0]
    candidate = normalize_document_number(first.group(0))
    surrounding = f"{text[:first.start()]} {text[first.end():]}"

    blood_type = None
    blood = BLOOD_TYPE.search(surrounding)
    if blood:
        blood_type = f"{blood.group(1).upper()}{blood.group(2)}"
        surrounding = BLOOD_TYPE.sub(" ", surrounding)

    role_hint = None
    name_words: List[str] = []
    for word in WORD.findall(surrounding):
        key = word.upper()
        if key in ROLE_KEYWORDS:
            role_hint = role_hint or ROLE_KEYWORDS[key]
            continue
        if key in NOISE_WORDS:
            continue
        name_words.append(word)

    given, family = split_name(name_words)

    if ONLY_NUMBER.match(text) and normalize_document_number(text) == candidate:
        confidence = ExtractionConfidence.HIGH
    elif len(runs) > 1 or not name_words:
        confidence = ExtractionConfidence.LOW
    else:
        confidence = ExtractionConfidence.MEDIUM

    return ExtractedCredential(
        document_number=candidate,
        given_names=given,
        family_names=family,
        role_hint=role_hint,
        blood_type=blood_type,
        confidence=confidence,
    )
