# backend/utils/slugify.py
import re
import unicodedata

_NON_WORD = re.compile(r"[^a-z0-9]+")


def slugify(value: str) -> str:
    # "Beras Premium 5 Kg" -> "beras-premium-5-kg"
    ascii_value = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    return _NON_WORD.sub("-", ascii_value.lower()).strip("-")
