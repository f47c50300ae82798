"""Passenger extraction from reservation page text.

Reservation pages list passengers in a handful of layouts:

    JOAO DA SILVA, 01/02/1980, CPF 123.456.789-00, (81) 99999-8888, joao@x.com

or a name line followed by a details line:

    JOAO DA SILVA
    CPF: 123.456.789-00 Nasc: 01/02/1980

Some layouts collapse the whole block into one visual line. Every pass
below keys passengers by CPF digits and merges what it finds into the
same record, so running several passes over the same text is safe.
"""
from __future__ import annotations

import re
import unicodedata

from bs4 import BeautifulSoup

from models import Passenger
from extractor.text import br_to_iso, clean_spaces, only_digits, strip_invisible

I = re.IGNORECASE

LABEL_NAMES = {
    "adultos", "adulto",
    "crianças", "criancas", "criança", "crianca",
    "bebês", "bebes", "bebê", "bebe",
    "passageiros", "passageiro",
    "passageiros identificados", "passageiros identificadas",
    "identificados", "identificadas",
    "titular",
    "reservado por",
    "voo", "voos",
    "hospedagem", "hotel",
}

COMPANY_TERMS = {
    "LTDA", "LTD", "S/A", "SA", "ME", "EPP", "EIRELI", "ADMINISTRACAO", "HOLDING",
}

# Words that never start a name part: field labels and section labels.
_NAME_STOP = (
    r"(?!(?:CPF|RG|Nasc|Nascimento|Passaporte|Telefone|Tel|E-?mail|"
    r"Passageiros?|Adultos?|Crian[cç]as?|Beb[eê]s?|Identificad[oa]s?|"
    r"Titular|Reservado|Viajantes|Hospedagem|Hotel|Voos?)\b)"
)
_LETTER = r"[^\W\d_]"
NAME_WORD = rf"{_NAME_STOP}{_LETTER}(?:{_LETTER}|['’.\-])+"
NAME_CONNECTORS = r"(?:de|da|do|dos|das|e|d'|del|della|van|von|la|le)\b"
NAME_PART = rf"(?:{NAME_WORD}|{NAME_CONNECTORS})"
NAME_CAPTURE = rf"\b({NAME_WORD}(?:[ \t]+{NAME_PART}){{1,10}})"
_NAME_TOKEN = re.compile(rf"(?:{_LETTER}|['’.\-])+")
_CLEAN_WORD = re.compile(rf"{_LETTER}(?:{_LETTER}|['’.\-])*")

# Lazy gap between a name and its CPF label that never crosses another CPF.
_GAP_TO_CPF = r"(?:(?!\bCPF\b)[\s\S]){0,180}?"
# How far around a CPF a name with its gap, and a later birth date, can reach.
_NAME_REACH = 420
_BIRTH_REACH = 320

DATE_BR = r"(\d{2}/\d{2}/\d{4})"

RE_PRIMARY = re.compile(
    NAME_CAPTURE + r"\s*,\s*" + DATE_BR + r"\s*,\s*CPF\s*([0-9.\- ]{11,14})", I
)
RE_SECONDARY = re.compile(
    NAME_CAPTURE + _GAP_TO_CPF + r"\bCPF\b[:\s]*([0-9.\- ]{11,14})"
    r"(?:(?:(?!\bCPF\b)[\s\S]){0,260}?\bNasc\b[:\s]*" + DATE_BR + r")?",
    I,
)
RE_LOCAL_LINE = re.compile(NAME_CAPTURE + r"\s*,\s*" + DATE_BR + r"\s*,\s*CPF\b", I)

_SECTION_STARTS = [
    re.compile(r"Passageiros\s+Identificados", I),
    re.compile(r"Passageiros[\s:]*\d+\s*Adultos?", I),
    re.compile(r"\bPassageiros\b", I),
    re.compile(r"\bViajantes\b", I),
    re.compile(r"\bPassageiro\(s\)", I),
]
_SECTION_END_MARKERS = [
    "voo de ida", "voo de volta", "hospedagem", "hotel", "itinerário", "itinerario",
]
_SECTION_BREAK = re.compile(
    r"^(Hotel|Hospedagem|Voo|Voos|Forma de pagamento|Localizador|Código:)", I
)
_EXPECTED_COUNT = [
    re.compile(r"Passageiros\s*:\s*(\d+)", I),
    re.compile(r"Passageiros[\s:]*\s*(\d+)\s*Adultos?", I),
]

_CPF_LABELLED = re.compile(r"CPF[:\s]*([0-9.\- ]{11,14})", I)
_CPF_LOOSE = re.compile(r"(\d{3}\.?\d{3}\.?\d{3}[-\s]?\d{2})")
_CPF_ANY = re.compile(r"(?<!\d)(\d{3}\D{0,3}\d{3}\D{0,3}\d{3}\D{0,3}\d{2})(?!\d)")
_CPF_WORD = re.compile(r"\bCPF\b", I)

_PHONE = re.compile(r"\(\d{2}\)\s*\d{4,5}-\d{4}|\b\d{10,11}\b")
_EMAIL = re.compile(r"[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}", I)
_PASSPORT = re.compile(r"Passaporte[:\s]*([A-Z]{1,3}\d[A-Z0-9-]*)", I)
_BIRTH_LABELLED = re.compile(r"\b(Nasc|Nascimento)\b[:\s]*([0-3]\d/[0-1]\d/\d{4})", I)
_BIRTH_INLINE = re.compile(r",\s*([0-3]\d/[0-1]\d/\d{4})\s*,\s*CPF\b", I)

_AGENCY_TAG = re.compile(r"\s*\([A-Z0-9]{2,12}\)", I)
_NAME_END = re.compile(r",|\s-\s|\d")

_FILLABLE = ("birth_date", "phone", "email", "passport", "passport_expiry")


# ---------------------------------------------------------------------------
# Name heuristics
# ---------------------------------------------------------------------------

def is_label_name(raw: str) -> bool:
    s = (raw or "").strip().lower()
    if s in LABEL_NAMES:
        return True
    # "Adultos (2)", "Passageiros: 2 Adultos"
    return bool(re.match(r"^(adultos?|passageiros?)\b", s))


def is_probably_person_name(name: str) -> bool:
    n = (name or "").strip()
    if not n or is_label_name(n):
        return False
    if not re.search(_LETTER, n):
        return False
    parts = n.split()
    if len(parts) >= 2:
        return True
    # a single word is only accepted when it is long and not a label
    return len(parts[0]) >= 6 and parts[0].lower() not in LABEL_NAMES


def _fold(s: str) -> str:
    decomposed = unicodedata.normalize("NFD", s)
    return "".join(c for c in decomposed if not unicodedata.combining(c)).upper()


def looks_like_company_name(name: str) -> bool:
    if not name:
        return False
    clean = _fold(name).replace("S.A.", "S/A")
    if clean.strip().startswith("RESERVADO POR"):
        return True
    tokens = set(re.split(r"[^A-Z/]+", clean))
    return bool(tokens & COMPANY_TERMS)


def sanitize_passenger_name(name: str) -> str:
    """Drop agency tags such as ``(BR4BET)`` at the end of a name."""
    n = clean_spaces(name)
    return re.sub(r"\s*\(([A-Z0-9]{2,12})\)\s*$", "", n, flags=I).strip()


def is_clean_name(name: str) -> bool:
    """Only name words: no dates, digits, agency tags or dangling dashes."""
    words = (name or "").split()
    return bool(words) and all(_CLEAN_WORD.fullmatch(w) for w in words) and not name.endswith("-")


def _inline_name(before_cpf: str) -> str:
    """``NAME, 01/02/1980,`` or ``NAME (TAG) - 01/02/1980 -`` down to ``NAME``."""
    s = re.sub(r"^\d+[.)]?\s+", "", _AGENCY_TAG.sub("", before_cpf))
    return _NAME_END.split(s, maxsplit=1)[0].strip(" -")


def word_count(name: str) -> int:
    return len((name or "").split())


def best_name_from_context(before: str) -> str:
    """Closest plausible person name at the end of ``before``."""
    s = sanitize_passenger_name(before)
    s = re.sub(r"\bCPF\b[:\s]*", " ", s, flags=I)
    s = re.sub(r"\bRG\b[:\s]*", " ", s, flags=I)
    s = re.sub(r"\bNasc\b[:\s]*", " ", s, flags=I)
    s = re.sub(r"\b\d{2}/\d{2}/\d{4}\b", " ", s)
    s = re.sub(r"[\s,;:]+", " ", s).strip()

    words: list[str] = []
    for w in reversed(s.split(" ")):
        if not _NAME_TOKEN.fullmatch(w) or w.lower() in LABEL_NAMES:
            break
        words.append(w)
        if len(words) == 10:
            break

    candidate = " ".join(reversed(words))
    if candidate and not looks_like_company_name(candidate) and is_probably_person_name(candidate):
        return candidate
    return ""


def reserved_by(text: str) -> str:
    """Who made the booking. Usually the client company, never a passenger."""
    m = re.search(r"Reservado por\s+([A-ZÁÉÍÓÚÂÊÔÃÕÇ ]{5,})", text or "", I)
    return m.group(1).strip() if m else ""


def expected_passenger_count(text: str) -> int | None:
    for pattern in _EXPECTED_COUNT:
        m = pattern.search(text or "")
        if m:
            return int(m.group(1))
    return None


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------

def _find_phone(window: str, cpf: str) -> str:
    for m in _PHONE.finditer(window):
        if only_digits(m.group(0)) != cpf:
            return m.group(0).strip()
    return ""


def _contact_fields(window: str, cpf: str) -> dict:
    email = _EMAIL.search(window)
    passport = _PASSPORT.search(window)
    return {
        "phone": _find_phone(window, cpf),
        "email": email.group(0).strip() if email else "",
        "passport": passport.group(1).strip() if passport else "",
    }


def birth_near(text: str) -> str:
    # Only labelled dates: unlabelled dates near a CPF are usually travel dates.
    m = _BIRTH_LABELLED.search(text)
    return m.group(2) if m else ""


def birth_from_passenger_line(line: str) -> str:
    m = _BIRTH_LABELLED.search(line)
    if m:
        return m.group(2)
    m = _BIRTH_INLINE.search(line)
    return m.group(1) if m else ""


def line_around(text: str, idx: int) -> str:
    start = text.rfind("\n", 0, idx) + 1
    end = text.find("\n", idx)
    if end < 0:
        end = len(text)
    return text[start:end].strip()


def _fill_missing(existing: Passenger, incoming: Passenger) -> None:
    for field in _FILLABLE:
        if not getattr(existing, field) and getattr(incoming, field):
            setattr(existing, field, getattr(incoming, field))


def _keep_placeholder(found: dict[str, Passenger], cpf: str, contact: dict) -> None:
    """Keep a CPF without a usable name when the page announces more passengers."""
    existing = found.get(cpf)
    if existing is None:
        found[cpf] = Passenger(cpf=cpf, phone=contact["phone"], email=contact["email"])
        return
    if not existing.phone and contact["phone"]:
        existing.phone = contact["phone"]
    if not existing.email and contact["email"]:
        existing.email = contact["email"]


def _better_name(candidate: str, current: str) -> bool:
    if not current:
        return bool(candidate)
    if is_clean_name(candidate) != is_clean_name(current):
        return is_clean_name(candidate)
    return len(candidate) > len(current)


def _store(found: dict[str, Passenger], incoming: Passenger) -> None:
    """Insert, or merge into the record with the same CPF.

    The longer name wins, but never a name with leftovers over a clean one.
    """
    existing = found.get(incoming.cpf)
    if existing is None:
        found[incoming.cpf] = incoming
        return
    if _better_name(incoming.full_name, existing.full_name):
        existing.full_name = incoming.full_name
    _fill_missing(existing, incoming)


# ---------------------------------------------------------------------------
# Passes
# ---------------------------------------------------------------------------

def _upsert_labelled(found: dict[str, Passenger], p: Passenger) -> None:
    cpf = only_digits(p.cpf)
    if len(cpf) != 11:
        return
    name = sanitize_passenger_name(p.full_name)
    if not name or looks_like_company_name(name) or is_label_name(name):
        return

    incoming = p.model_copy(update={"full_name": name, "cpf": cpf})
    existing = found.get(cpf)
    if existing is None:
        found[cpf] = incoming
        return
    if word_count(name) > word_count(existing.full_name) and is_probably_person_name(name):
        existing.full_name = name
    _fill_missing(existing, incoming)


def _cpf_windows(text: str, anchor: re.Pattern) -> list[tuple[int, int]]:
    """Spans around each CPF that can hold a name, its gap and a birth date.

    The gap patterns are only run inside these spans; over a whole page
    they backtrack on every capitalized word.
    """
    spans: list[tuple[int, int]] = []
    for m in anchor.finditer(text):
        lo, hi = max(0, m.start() - _NAME_REACH), min(len(text), m.end() + _BIRTH_REACH)
        if spans and lo <= spans[-1][1]:
            spans[-1] = (spans[-1][0], hi)
        else:
            spans.append((lo, hi))
    return spans


def _scan_labelled_patterns(text: str, found: dict[str, Passenger]) -> None:
    for m in RE_PRIMARY.finditer(text):
        cpf = only_digits(m.group(3))
        window = text[m.start(): m.start() + 420]
        _upsert_labelled(found, Passenger(
            full_name=m.group(1).strip(),
            birth_date=br_to_iso(m.group(2)),
            cpf=cpf,
            **_contact_fields(window, cpf),
        ))

    for lo, hi in _cpf_windows(text, _CPF_WORD):
        for m in RE_SECONDARY.finditer(text, lo, hi):
            cpf = only_digits(m.group(2))
            window = text[m.start(): m.start() + 460]
            _upsert_labelled(found, Passenger(
                full_name=m.group(1).strip(),
                birth_date=br_to_iso(m.group(3) or ""),
                cpf=cpf,
                **_contact_fields(window, cpf),
            ))


def _passenger_lines(tail: str) -> list[str]:
    lines = [re.sub(r"^[-•]+\s*", "", line).strip() for line in tail.split("\n")]
    lines = [line for line in lines if line]

    collected: list[str] = []
    # "Passageiros: 2 Adultos" and the first passenger may share a line
    if lines and (_CPF_WORD.search(lines[0]) or _CPF_LOOSE.search(lines[0])):
        collected.append(lines[0])
    for line in lines[1:]:
        if _SECTION_BREAK.match(line):
            break
        collected.append(line)

    if not collected:
        for line in tail.split("\n")[:40]:
            line = line.strip()
            if _CPF_WORD.search(line) or _CPF_LOOSE.search(line):
                collected.append(line)
    return collected


def _scan_lines(tail: str, found: dict[str, Passenger], expected: int | None) -> None:
    pending_name = ""
    for raw in _passenger_lines(tail):
        line = clean_spaces(raw)
        if not line:
            continue
        if re.match(r"^Reservado por\b", line, I):
            pending_name = ""
            continue

        if not (_CPF_WORD.search(line) or _CPF_LOOSE.search(line)):
            name_only = line.split(",")[0].strip()
            if name_only and not looks_like_company_name(name_only):
                pending_name = name_only
            continue

        m = _CPF_LABELLED.search(line) or _CPF_LOOSE.search(line)
        if not m:
            continue
        cpf = only_digits(m.group(1))
        if len(cpf) != 11:
            continue

        before_cpf = _CPF_WORD.split(line, maxsplit=1)[0].strip()
        inline_name = _inline_name(before_cpf)
        candidate = inline_name if is_clean_name(inline_name) else pending_name
        pending_name = ""

        contact = _contact_fields(line, cpf)
        name = sanitize_passenger_name(candidate)
        if not name or looks_like_company_name(name) or not is_probably_person_name(name):
            if expected is not None:
                _keep_placeholder(found, cpf, contact)
            continue

        _store(found, Passenger(
            full_name=name,
            birth_date=br_to_iso(birth_from_passenger_line(line)),
            cpf=cpf,
            **contact,
        ))


def _scan_cpf_fallback(text: str, found: dict[str, Passenger], expected: int | None) -> None:
    for m in _CPF_ANY.finditer(text):
        cpf = only_digits(m.group(1))
        if len(cpf) != 11:
            continue
        idx = m.start()
        before = text[max(0, idx - 1100): idx]
        after = text[idx: idx + 420]

        local = RE_LOCAL_LINE.search(line_around(text, idx))
        raw_name = local.group(1) if local else best_name_from_context(before)
        raw_birth = local.group(2) if local else birth_near(after)

        contact = _contact_fields(after, cpf)
        name = sanitize_passenger_name(raw_name)
        if not name or looks_like_company_name(name) or not is_probably_person_name(name):
            if expected is not None:
                _keep_placeholder(found, cpf, contact)
            continue

        _store(found, Passenger(
            full_name=name,
            birth_date=br_to_iso(raw_birth),
            cpf=cpf,
            phone=contact["phone"],
            email=contact["email"],
        ))


def _cpf_flex(cpf: str) -> str:
    return rf"{cpf[:3]}\D{{0,3}}{cpf[3:6]}\D{{0,3}}{cpf[6:9]}\D{{0,3}}{cpf[9:]}(?!\d)"


def _best_name_for_cpf(text: str, cpf: str) -> tuple[str, str]:
    flex = _cpf_flex(cpf)
    patterns = [
        re.compile(NAME_CAPTURE + r"\s*,\s*" + DATE_BR + r"\s*,\s*CPF\s*" + flex, I),
        re.compile(
            NAME_CAPTURE + _GAP_TO_CPF + r"\bCPF\b[:\s]*" + flex
            + r"(?:(?:(?!\bCPF\b)[\s\S]){0,260}?\bNasc\b[:\s]*" + DATE_BR + r")?",
            I,
        ),
        re.compile(NAME_CAPTURE + r"\s*[,;:]?\s*CPF\s*[:\s]*" + flex, I),
    ]
    spans = _cpf_windows(text, re.compile(rf"(?<!\d){flex}"))
    best_name, best_birth = "", ""
    for pattern in patterns:
        m = next(filter(None, (pattern.search(text, lo, hi) for lo, hi in spans)), None)
        if not m:
            continue
        name = (m.group(1) or "").strip()
        birth = (m.group(2) or "").strip() if m.re.groups >= 2 else ""
        if not name or looks_like_company_name(name) or is_label_name(name):
            continue
        if word_count(name) >= 2 and word_count(name) >= word_count(best_name):
            best_name = name
            if birth:
                best_birth = birth
    return best_name, best_birth


def _promote_names(text: str, found: dict[str, Passenger]) -> None:
    """Complete one-word or missing names using the CPF as the anchor."""
    for cpf, p in found.items():
        if word_count(p.full_name) >= 2 and p.birth_date:
            continue
        name, birth = _best_name_for_cpf(text, cpf)
        if name and word_count(p.full_name) < 2:
            p.full_name = sanitize_passenger_name(name)
        if not p.birth_date and birth:
            p.birth_date = br_to_iso(birth)


def _has_unnamed(found: dict[str, Passenger]) -> bool:
    return any(not p.full_name for p in found.values())


def extract_passengers(page_text: str) -> list[Passenger]:
    text = strip_invisible(page_text).strip()

    start = 0
    for pattern in _SECTION_STARTS:
        m = pattern.search(text)
        if m:
            start = m.start()
            break
    tail_full = text[start:]

    # Cut at the next section. Generic words like "total" or "pagamento"
    # are not markers: some layouts print "Valor Total" inside this block.
    lower = tail_full.lower()
    end = len(tail_full)
    for marker in _SECTION_END_MARKERS:
        i = lower.find(marker, 10)
        if -1 < i < end:
            end = i
    tail = tail_full[:end]

    expected = expected_passenger_count(tail_full)
    if expected is None:
        expected = expected_passenger_count(tail)

    found: dict[str, Passenger] = {}
    _scan_labelled_patterns(tail, found)
    _scan_lines(tail, found, expected)

    # the rest of the page is only searched when the block came up short
    missing = expected is not None and len(found) < expected
    if not found or missing or _has_unnamed(found):
        _scan_labelled_patterns(tail_full, found)
        missing = expected is not None and len(found) < expected
    if not found or missing:
        _scan_cpf_fallback(tail_full if missing else tail, found, expected)

    _promote_names(tail_full if missing or _has_unnamed(found) else tail, found)
    return list(found.values())


def extract_passengers_from_dom(soup: BeautifulSoup) -> list[Passenger]:
    """IDDAS passenger banner: ``<p class="fs-6"><span class="fw-semibold">NAME</span> ... CPF ...``."""
    by_key: dict[str, Passenger] = {}
    for el in soup.select("p.fs-6"):
        txt = clean_spaces(el.get_text(" "))
        if not _CPF_WORD.search(txt):
            continue
        name_el = el.select_one("span.fw-semibold")
        full_name = clean_spaces(name_el.get_text(" ")) if name_el else ""
        if not full_name:
            continue

        cpf_m = re.search(r"\bCPF\s*([0-9.\-]{11,})", txt, I)
        birth_m = re.search(r"\b(\d{2}/\d{2}/\d{4})\b", txt)
        cpf = only_digits(cpf_m.group(1)) if cpf_m else ""
        cpf = cpf if len(cpf) == 11 else ""

        key = f"cpf:{cpf}" if cpf else f"name:{full_name.upper()}"
        if key in by_key:
            continue
        by_key[key] = Passenger(
            full_name=full_name,
            birth_date=br_to_iso(birth_m.group(1)) if birth_m else "",
            cpf=cpf,
        )
    return list(by_key.values())


def passenger_score(passengers: list[Passenger]) -> int:
    full = sum(1 for p in passengers if word_count(p.full_name) >= 2)
    birth = sum(1 for p in passengers if p.birth_date)
    return len(passengers) * 1000 + full * 10 + birth * 5


def choose_passengers(
    a: list[Passenger], b: list[Passenger], expected: int | None
) -> list[Passenger]:
    """Pick the better of two extractions of the same page."""
    chosen = b if passenger_score(b) > passenger_score(a) else a
    if expected is not None:
        if len(a) >= expected and len(b) < expected:
            chosen = a
        if len(b) >= expected and len(a) < expected:
            chosen = b
    return chosen


def merge_passengers(primary: list[Passenger], dom: list[Passenger]) -> list[Passenger]:
    """Merge DOM passengers into text passengers; DOM names fix implausible
    or polluted ones."""
    merged: dict[str, Passenger] = {}
    for p in [*primary, *dom]:
        cpf = only_digits(p.cpf)
        if len(cpf) != 11:
            continue
        existing = merged.get(cpf)
        if existing is None:
            existing = p.model_copy(update={"cpf": cpf, "full_name": ""})
            merged[cpf] = existing
        incoming_name = sanitize_passenger_name(p.full_name)
        if incoming_name and (
            not existing.full_name
            or not is_probably_person_name(existing.full_name)
            or not is_clean_name(existing.full_name)
        ):
            existing.full_name = incoming_name
        _fill_missing(existing, p)
    return list(merged.values())


def extract_passengers_simple(page_text: str) -> list[Passenger]:
    """Conservative extractor for non-IDDAS pages: every valid CPF and the
    capitalized name right before it."""
    out: list[Passenger] = []
    seen: set[str] = set()
    for m in re.finditer(r"(CPF\s*[:\-]?\s*)?(\d{3}\.?\d{3}\.?\d{3}-?\d{2})", page_text or "", I):
        cpf = only_digits(m.group(2))
        if len(cpf) != 11 or cpf in seen:
            continue
        # the name sits before the CPF on its line, or alone on the line above
        line_start = page_text.rfind("\n", 0, m.start()) + 1
        ctx = re.sub(r"[\s,;:\-]+$", "", page_text[max(line_start, m.start() - 120): m.start()])
        if not ctx.strip() and line_start > 0:
            ctx = line_around(page_text, line_start - 1)
        ctx = clean_spaces(ctx)
        name_m = re.search(
            r"([A-ZÁÉÍÓÚÂÊÔÃÕÇ][A-Za-zÀ-ÿ'’.\-]+(?:\s+[A-Za-zÀ-ÿ'’.\-]{2,}){1,8})\s*$",
            ctx,
        )
        after = page_text[m.start(): m.start() + 200]
        out.append(Passenger(
            full_name=clean_spaces(name_m.group(1)) if name_m else "",
            birth_date=br_to_iso(birth_near(after)),
            cpf=cpf,
        ))
        seen.add(cpf)
    return out
