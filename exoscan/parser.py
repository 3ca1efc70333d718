"""Module 1: Light curve file ingestion.

Turns the raw text of an uploaded .csv/.txt/.dat file into a cleaned,
time-ordered (time, flux) series. Nothing about the layout is assumed:
delimiters, header names, comment styles, decimal commas, Arabic-Indic digits
and calendar timestamps are all sniffed from the content. The file extension is
only a hint and is never consulted.

Column resolution falls through progressively weaker strategies:
    1. header names (time/flux synonyms, including Arabic)
    2. first two numeric fields of each row
    3. whole-file column inference (monotonic column -> time, noisiest -> flux)
    4. first numeric column as flux, row index as time
    5. every numeric token in the file as a flux series
"""

import logging
import math
import re
from datetime import datetime, timezone
from pathlib import Path

import numpy as np

logger = logging.getLogger(__name__)

MS_PER_DAY = 86400000.0

# Column inference thresholds
NUMERIC_COLUMN_FRACTION = 0.6
MONOTONIC_TIME_FRACTION = 0.6

COMMENT_PREFIXES = ("#", ";", "//", "--")

TIME_COLUMN_NAMES = (
    "time", "t", "jd", "hjd", "bjd", "mjd", "btjd", "bkjd", "date", "datetime",
    "timestamp", "epoch", "day", "days", "time_bjd", "time_jd",
    "الوقت", "الزمن", "التاريخ", "زمن", "وقت",
)
FLUX_COLUMN_NAMES = (
    "flux", "f", "rel_flux", "relative_flux", "normalized_flux", "norm_flux",
    "pdcsap_flux", "sap_flux", "flux_norm", "intensity", "brightness", "counts",
    "mag", "magnitude", "luminosity",
    "التدفق", "تدفق", "السطوع", "الشدة", "شدة", "القدر", "السطوع_النسبي",
)
# Header columns that describe uncertainties or quality, never the signal itself
_AUXILIARY_NAME_PARTS = ("err", "unc", "sigma", "quality", "flag", "std")

# Unicode space variants folded to ASCII space; zero-width marks are removed
_UNICODE_SPACES = re.compile("[\u00a0\u1680\u2000-\u200a\u202f\u205f\u3000]")
_ZERO_WIDTH = re.compile("[\u200b\u200c\u200d\u2060\ufeff]")

_INLINE_COMMENTS = (
    re.compile(r"\s*//.*$"),
    re.compile(r"\s*#.*$"),
    re.compile(r"\s+--.*$"),
    # " ; note" is a comment, "1 ; 2" is still a semicolon-delimited row
    re.compile(r"\s+;\s*(?=[^\d\s.,+\-\u0660-\u0669\u06f0-\u06f9]).*$"),
)

_DELIMITERS = (
    ("comma", re.compile(r",")),
    ("whitespace", re.compile(r"\s+")),
    ("semicolon", re.compile(r";")),
    ("tab", re.compile(r"\t")),
    ("pipe", re.compile(r"\|")),
)
_COMBINED_DELIMITER = re.compile(r"[,;\t| ]+")

_QUOTES = re.compile("[\"'`\u2018\u2019\u201c\u201d\u00ab\u00bb]")
_UNCERTAINTY = re.compile(r"\s*(?:\u00b1|\+/-).*$")
_UNIT_SUFFIX = re.compile(r"\s*\([^()]*\)\s*$")
_FLOAT = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")
_GROUPED_THOUSANDS = re.compile(r"^[+-]?[1-9]\d{0,2},\d{3}$")
_DATE_HINT = re.compile(r"[:\-/T]")
_NUMBER_TOKEN = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_HEADER_UNITS = re.compile(r"[\(\[\{][^\)\]\}]*[\)\]\}]")
_HEADER_SEPARATORS = re.compile(r"[\s\-\.\/]+")


def _build_char_table():
    table = {}
    for i in range(10):
        table[0x0660 + i] = str(i)  # Arabic-Indic
        table[0x06F0 + i] = str(i)  # Extended Arabic-Indic (Persian)
    for dash in ("\u2010", "\u2011", "\u2012", "\u2013", "\u2014", "\u2015",
                 "\u2212", "\ufe58", "\ufe63", "\uff0d"):
        table[ord(dash)] = "-"
    table[0x066B] = "."  # Arabic decimal separator
    table[0x066C] = ""   # Arabic thousands separator
    return table


_CHAR_TABLE = _build_char_table()

_STRPTIME_FORMATS = (
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y",
    "%d/%m/%Y %H:%M:%S",
    "%d/%m/%Y",
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d",
    "%d-%m-%Y %H:%M:%S",
    "%d-%m-%Y",
)


# ---------------------------------------------------------------------------
# Token parsing
# ---------------------------------------------------------------------------

def parse_number(token):
    """Parse a numeric token written in any of the supported conventions.

    Handles quotes, Arabic-Indic digits, Unicode dashes, Arabic separators,
    uncertainty suffixes ("1.2 +/- 0.1" or with a plus-minus sign), trailing percent signs,
    trailing parenthesised units, thousands grouping vs decimal commas, and
    calendar timestamps (converted to days since 1970-01-01 UTC).

    Parameters
    ----------
    token : str
        Raw field text.

    Returns
    -------
    float or None
        Parsed finite value, or None if the token is not numeric.
    """
    if token is None:
        return None
    text = _QUOTES.sub("", str(token)).translate(_CHAR_TABLE).strip()
    if not text:
        return None

    text = _UNCERTAINTY.sub("", text)
    text = _UNIT_SUFFIX.sub("", text)
    text = text.rstrip("%").strip()
    if not text:
        return None

    value = _to_float(_normalize_separators(text))
    if value is not None:
        return value

    if _DATE_HINT.search(text) and any(ch.isdigit() for ch in text):
        return parse_datetime_days(text)
    return None


def _normalize_separators(text):
    """Resolve grouping vs decimal separators into a plain float literal."""
    has_comma = "," in text
    has_dot = "." in text

    if has_comma and has_dot:
        # Whichever separator comes last is the decimal point
        if text.rfind(",") > text.rfind("."):
            return text.replace(".", "").replace(",", ".")
        return text.replace(",", "")

    if has_comma:
        if text.count(",") > 1:
            return text.replace(",", "")
        if _GROUPED_THOUSANDS.match(text):
            return text.replace(",", "")
        return text.replace(",", ".")

    if has_dot and text.count(".") > 1 and "e" not in text.lower():
        # 1.234.567 style grouping
        return text.replace(".", "")

    return text


def _to_float(text):
    if not _FLOAT.match(text):
        return None
    value = float(text)
    if not math.isfinite(value):
        return None
    return value


def parse_datetime_days(text):
    """Convert a calendar timestamp into days since the Unix epoch.

    Tries astropy's ISO/ISOT/FITS/year-day parsers first, then ISO-8601 with
    zone offsets, then a short list of slash/dash day-month layouts.
    Naive timestamps are taken as UTC.

    Returns
    -------
    float or None
        Unix milliseconds / 86 400 000, or None if unparseable.
    """
    from astropy.time import Time

    candidate = text.strip()
    if re.match(r"^\d{4}/", candidate):
        candidate = candidate.replace("/", "-")
    candidate = _zero_pad_iso_date(candidate)

    try:
        t = Time(candidate.rstrip("Z"), scale="utc")
        unix_s = float(t.unix)
        if math.isfinite(unix_s):
            return unix_s * 1000.0 / MS_PER_DAY
    except (ValueError, TypeError):
        pass

    try:
        dt = datetime.fromisoformat(candidate)
    except ValueError:
        dt = None
    if dt is None:
        for fmt in _STRPTIME_FORMATS:
            try:
                dt = datetime.strptime(text.strip(), fmt)
                break
            except ValueError:
                continue
    if dt is None:
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp() * 1000.0 / MS_PER_DAY


def _zero_pad_iso_date(text):
    """2020-1-5 -> 2020-01-05 so strict ISO parsers accept it."""
    match = re.match(r"^(\d{4})-(\d{1,2})-(\d{1,2})(.*)$", text)
    if not match:
        return text
    year, month, day, rest = match.groups()
    return f"{year}-{int(month):02d}-{int(day):02d}{rest}"


# ---------------------------------------------------------------------------
# Line handling
# ---------------------------------------------------------------------------

def normalize_text(text):
    """Strip the BOM, fold Unicode spaces to ASCII and unify line endings."""
    if isinstance(text, bytes):
        text = decode_bytes(text)
    text = text.lstrip("\ufeff")
    text = _ZERO_WIDTH.sub("", text)
    text = _UNICODE_SPACES.sub(" ", text)
    return text.replace("\r\n", "\n").replace("\r", "\n")


def decode_bytes(raw):
    """Decode file bytes as UTF-8 (BOM-aware), falling back to latin-1."""
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        logger.warning("File is not valid UTF-8; decoding as latin-1")
        return raw.decode("latin-1")


def content_lines(text):
    """Return non-blank, non-comment lines with inline comments removed."""
    lines = []
    for line in text.split("\n"):
        stripped = line.strip()
        if not stripped or stripped.startswith(COMMENT_PREFIXES):
            continue
        for pattern in _INLINE_COMMENTS:
            stripped = pattern.sub("", stripped)
        stripped = stripped.strip()
        if stripped:
            lines.append(stripped)
    return lines


def split_fields(line):
    """Split a line on the delimiter that yields the most fields.

    Ties go to the split with more numeric fields, then to the first
    delimiter in the order comma, whitespace, semicolon, tab, pipe.
    """
    splits = []
    for _, pattern in _DELIMITERS:
        fields = [f.strip() for f in pattern.split(line)]
        splits.append([f for f in fields if f])

    most = max(len(fields) for fields in splits)
    if most <= 1:
        fields = [f.strip() for f in _COMBINED_DELIMITER.split(line)]
        fields = [f for f in fields if f]
        return fields if len(fields) > 1 else splits[0]

    tied = [fields for fields in splits if len(fields) == most]
    if len(tied) == 1:
        return tied[0]

    best_fields, best_numeric = None, -1
    for fields in tied:
        n_numeric = sum(1 for f in fields if parse_number(f) is not None)
        if n_numeric > best_numeric:
            best_fields, best_numeric = fields, n_numeric
    return best_fields


def is_header(fields):
    """A line is a header if any field holds a letter and is not itself a value."""
    for field in fields:
        if any(ch.isalpha() for ch in field) and parse_number(field) is None:
            return True
    return False


def normalize_header_name(name):
    name = _QUOTES.sub("", name).strip().lower()
    name = _HEADER_UNITS.sub("", name).strip()
    return _HEADER_SEPARATORS.sub("_", name).strip("_")


def match_header_columns(header):
    """Find the (time, flux) column indices named in a header row.

    Exact synonym matches win over substring matches. Uncertainty and
    quality columns (flux_err, sap_quality, ...) are never chosen.

    Returns
    -------
    tuple of (int or None, int or None)
    """
    names = [normalize_header_name(h) for h in header]

    def find(candidates, exclude=None):
        usable = [i for i, n in enumerate(names)
                  if i != exclude and not any(part in n for part in _AUXILIARY_NAME_PARTS)]
        for i in usable:
            if names[i] in candidates:
                return i
        prefixes = [c for c in candidates if len(c) > 1]
        for i in usable:
            if any(names[i].startswith(c + "_") or names[i].endswith("_" + c) for c in prefixes):
                return i
        # Short synonyms (jd, mag, day) are too common inside unrelated words
        long_names = [c for c in candidates if len(c) >= 4]
        for i in usable:
            if any(c in names[i] for c in long_names):
                return i
        return None

    time_idx = find(TIME_COLUMN_NAMES)
    flux_idx = find(FLUX_COLUMN_NAMES, exclude=time_idx)

    # One named column is enough if the other can be taken from the remainder
    others = [i for i in range(len(names)) if i not in (time_idx, flux_idx)]
    if time_idx is not None and flux_idx is None and others:
        flux_idx = others[0]
    elif flux_idx is not None and time_idx is None and others:
        time_idx = others[0]

    if time_idx is None or flux_idx is None:
        return None, None
    return time_idx, flux_idx


# ---------------------------------------------------------------------------
# Column resolution strategies
# ---------------------------------------------------------------------------

def _rows_from_columns(rows, time_idx, flux_idx):
    pairs = []
    for fields in rows:
        if time_idx >= len(fields) or flux_idx >= len(fields):
            continue
        t = parse_number(fields[time_idx])
        f = parse_number(fields[flux_idx])
        if t is not None and f is not None:
            pairs.append((t, f))
    return pairs


def _rows_from_leading_numbers(rows):
    pairs = []
    for fields in rows:
        values = []
        for field in fields:
            value = parse_number(field)
            if value is not None:
                values.append(value)
                if len(values) == 2:
                    break
        if len(values) == 2:
            pairs.append((values[0], values[1]))
    return pairs


def _column_values(rows):
    """Parse every cell once; returns {column index: [value or None per row]}."""
    n_cols = max((len(r) for r in rows), default=0)
    columns = {}
    for j in range(n_cols):
        columns[j] = [parse_number(r[j]) if j < len(r) else None for r in rows]
    return columns


def _increasing_fraction(values):
    seq = [v for v in values if v is not None]
    if len(seq) < 2:
        return 0.0
    n_up = sum(1 for a, b in zip(seq[:-1], seq[1:]) if b > a)
    return n_up / (len(seq) - 1)


def _sample_variance(values):
    seq = np.array([v for v in values if v is not None], dtype=float)
    if seq.size < 2:
        return -1.0
    return float(np.var(seq, ddof=1))


def infer_columns(rows):
    """Whole-file inference of the time and flux columns.

    A column is numeric when at least 60% of rows parse there. The numeric
    column with the highest fraction of increasing neighbours becomes time
    (if that fraction is >= 0.6); the highest-variance remaining numeric
    column becomes flux.

    Returns
    -------
    dict
        time_column (int or None), flux_column (int or None),
        numeric_columns (list), columns (parsed values per column).
    """
    n_rows = len(rows)
    columns = _column_values(rows)
    numeric = [j for j, vals in columns.items()
               if n_rows and sum(v is not None for v in vals) >= NUMERIC_COLUMN_FRACTION * n_rows]

    time_col = None
    best_score = -1.0
    for j in numeric:
        score = _increasing_fraction(columns[j])
        if score > best_score:
            time_col, best_score = j, score
    if best_score < MONOTONIC_TIME_FRACTION:
        time_col = None

    flux_col = None
    best_var = None
    for j in numeric:
        if j == time_col:
            continue
        var = _sample_variance(columns[j])
        if var < 0:
            continue
        if best_var is None or var > best_var:
            flux_col, best_var = j, var

    logger.info("Column inference: numeric=%s, time=%s (score=%.2f), flux=%s",
                numeric, time_col, max(best_score, 0.0), flux_col)
    return {
        "time_column": time_col,
        "flux_column": flux_col,
        "numeric_columns": numeric,
        "columns": columns,
    }


def _rows_from_inference(inferred):
    columns = inferred["columns"]
    time_col = inferred["time_column"]
    flux_col = inferred["flux_column"]
    pairs = []
    for i, f in enumerate(columns[flux_col]):
        t = float(i) if time_col is None else columns[time_col][i]
        if t is not None and f is not None:
            pairs.append((t, f))
    return pairs


def _first_numeric_column(columns):
    for j in sorted(columns):
        if sum(v is not None for v in columns[j]) >= 2:
            return j
    return None


def _rows_from_token_scan(lines):
    pairs = []
    for line in lines:
        for token in _NUMBER_TOKEN.findall(line.translate(_CHAR_TABLE)):
            value = _to_float(token)
            if value is not None:
                pairs.append((float(len(pairs)), value))
    return pairs


def finalize_samples(pairs):
    """Drop non-finite pairs, keep the last flux per exact time, sort by time.

    Returns
    -------
    tuple of (ndarray, ndarray)
        Strictly increasing time and matching flux.
    """
    by_time = {}
    for t, f in pairs:
        if t is None or f is None:
            continue
        t, f = float(t), float(f)
        if math.isfinite(t) and math.isfinite(f):
            by_time[t] = f
    times = np.array(sorted(by_time), dtype=float)
    flux = np.array([by_time[t] for t in times], dtype=float)
    return times, flux


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

def parse_lightcurve_text(text):
    """Parse light curve text into a cleaned, time-ordered series.

    Parameters
    ----------
    text : str or bytes
        Raw file contents.

    Returns
    -------
    dict
        Keys: time (ndarray), flux (ndarray), n_rows (int), method (str, one of
        header, positional, inferred, single_column, token_scan, none),
        header (list or None), time_column, flux_column (int or None).
        Fewer than two rows is reported, not raised; callers decide.
    """
    text = normalize_text(text)
    lines = content_lines(text)
    rows = [split_fields(line) for line in lines]

    header = None
    if rows and is_header(rows[0]):
        header = rows[0]
        rows = rows[1:]

    result = {
        "header": header,
        "time_column": None,
        "flux_column": None,
    }

    # 1. Header names
    if header is not None:
        time_idx, flux_idx = match_header_columns(header)
        if time_idx is not None:
            time, flux = finalize_samples(_rows_from_columns(rows, time_idx, flux_idx))
            if time.size >= 2:
                logger.info("Parsed %d rows using header columns '%s' (time) and '%s' (flux)",
                            time.size, header[time_idx], header[flux_idx])
                return _parsed(result, time, flux, "header", time_idx, flux_idx)
            logger.info("Header columns matched but yielded %d rows; trying positional parse",
                        time.size)

    # 2. First two numeric fields of each row
    time, flux = finalize_samples(_rows_from_leading_numbers(rows))
    if time.size >= 2:
        logger.info("Parsed %d rows from the first two numeric fields", time.size)
        return _parsed(result, time, flux, "positional", None, None)

    # 3. Whole-file column inference
    if rows:
        inferred = infer_columns(rows)
        if inferred["flux_column"] is not None:
            time, flux = finalize_samples(_rows_from_inference(inferred))
            if time.size >= 2:
                logger.info("Parsed %d rows by column inference", time.size)
                return _parsed(result, time, flux, "inferred",
                               inferred["time_column"], inferred["flux_column"])

        # 4. One usable column: values are flux, row index is time
        flux_col = _first_numeric_column(inferred["columns"])
        if flux_col is not None:
            values = inferred["columns"][flux_col]
            time, flux = finalize_samples((float(i), v) for i, v in enumerate(values))
            if time.size >= 2:
                logger.warning("Single numeric column found; using row index as time")
                return _parsed(result, time, flux, "single_column", None, flux_col)

    # 5. Any numbers at all
    time, flux = finalize_samples(_rows_from_token_scan(lines))
    if time.size >= 2:
        logger.warning("No column structure found; treating %d numeric tokens as flux",
                       time.size)
        return _parsed(result, time, flux, "token_scan", None, None)

    logger.warning("No usable rows found in input (%d content lines)", len(lines))
    return _parsed(result, time, flux, "none", None, None)


def _parsed(result, time, flux, method, time_col, flux_col):
    out = dict(result)
    out["time"] = time
    out["flux"] = flux
    out["n_rows"] = int(time.size)
    out["method"] = method
    out["time_column"] = time_col
    out["flux_column"] = flux_col
    return out


def parse_lightcurve_file(path):
    """Read a light curve file from disk and parse it. Extension is ignored."""
    path = Path(path)
    raw = path.read_bytes()
    logger.info("Read %d bytes from %s", len(raw), path.name)
    return parse_lightcurve_text(decode_bytes(raw))


def format_lightcurve_csv(time, flux):
    """Serialise a series as `time,flux` CSV that parses back identically."""
    lines = ["time,flux"]
    for t, f in zip(time, flux):
        lines.append(f"{float(t)!r},{float(f)!r}")
    return "\n".join(lines) + "\n"
