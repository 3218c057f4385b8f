import json
import re
from datetime import datetime, timezone

from .constants import DEFAULT_COLOR

_NON_DIGITS = re.compile(r'[^0-9]')
FALLBACK_COLOR = 0x5865f2
_HEX_COLOR = re.compile(r'^#?([0-9a-fA-F]{6})$')


def _is_meaningful(value):
    if value is None:
        return False
    return str(value).strip() != ""


def pick_first_nonempty(*candidates):
    for c in candidates:
        if _is_meaningful(c):
            return str(c).strip()
    return None


def strip_digits(text) -> str:
    """Remove tudo que não for dígito (ex.: '<@123>' -> '123')."""
    if text is None:
        return ""
    return _NON_DIGITS.sub('', str(text))


def truncate(text: str, limit: int, marker: str = "...") -> str:
    if len(text) <= limit:
        return text
    return text[: limit - len(marker)] + marker


def parse_hex_color(value, default=DEFAULT_COLOR) -> int:
    match = _HEX_COLOR.match(str(value or '').strip())
    if not match:
        match = _HEX_COLOR.match(str(default or '').strip())
    if not match:
        return FALLBACK_COLOR
    return int(match.group(1), 16)


def stringify_value(value) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def load_json_field(raw, default, field_name, warnings=None):
    """
    Decodifica uma coluna JSON da configuração.
    Valores já decodificados (listas/dicts) passam direto; vazio vira o default.
    Em caso de erro devolve o default e registra o problema em `warnings`.
    """
    if raw is None or raw == "":
        return default
    if not isinstance(raw, str):
        return raw
    try:
        return json.loads(raw)
    except (ValueError, TypeError) as exc:
        if warnings is not None:
            warnings.append(f"{field_name}: {exc}")
        return default


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def format_file_size(size_bytes: int) -> str:
    if size_bytes <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    size = float(size_bytes)
    idx = 0
    while size >= 1024 and idx < len(units) - 1:
        size /= 1024
        idx += 1
    return f"{round(size, 2):g} {units[idx]}"
