"""
Registros tipados trocados entre normalizador, resolvedor de menções e
construtor de embeds. Todos vivem apenas durante um relay.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from .constants import DEFAULT_COLOR, DEFAULT_FOOTER
from .utils import load_json_field, stringify_value


@dataclass(frozen=True)
class Answer:
    question_id: str
    text: str

    def to_dict(self) -> Dict[str, str]:
        return {"question_id": self.question_id, "text": self.text}


@dataclass(frozen=True)
class ConditionalMention:
    question_index: int
    answer_value: str
    role_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "question_index": self.question_index,
            "answer_value": self.answer_value,
            "role_id": self.role_id,
        }


def _to_index(value) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        index = int(str(value).strip())
    except (TypeError, ValueError):
        return None
    return index if index >= 0 else None


def parse_discord_id_fields(raw, warnings: Optional[List[str]] = None) -> List[int]:
    loaded = load_json_field(raw, [0], "discord_id_fields", warnings)
    if not isinstance(loaded, list):
        if warnings is not None:
            warnings.append(f"discord_id_fields: lista esperada, recebido {type(loaded).__name__}")
        return [0]

    indices: List[int] = []
    for item in loaded:
        index = _to_index(item)
        if index is None:
            if warnings is not None:
                warnings.append(f"discord_id_fields: índice inválido {item!r}")
            continue
        if index not in indices:
            indices.append(index)
    return indices


def parse_conditional_mentions(raw, warnings: Optional[List[str]] = None) -> List[ConditionalMention]:
    loaded = load_json_field(raw, [], "conditional_mentions", warnings)
    if not isinstance(loaded, list):
        if warnings is not None:
            warnings.append(f"conditional_mentions: lista esperada, recebido {type(loaded).__name__}")
        return []

    rules: List[ConditionalMention] = []
    for item in loaded:
        if not isinstance(item, dict):
            if warnings is not None:
                warnings.append(f"conditional_mentions: regra inválida {item!r}")
            continue
        index = _to_index(item.get("question_index"))
        if index is None:
            if warnings is not None:
                warnings.append(f"conditional_mentions: question_index inválido {item.get('question_index')!r}")
            continue
        if item.get("answer_value") is None or item.get("answer_value") == "":
            if warnings is not None:
                warnings.append(f"conditional_mentions: answer_value ausente na regra {item!r}")
            continue
        rules.append(ConditionalMention(
            question_index=index,
            answer_value=stringify_value(item.get("answer_value")),
            role_id=stringify_value(item.get("role_id")),
        ))
    return rules


def parse_question_titles(raw, warnings: Optional[List[str]] = None) -> Dict[int, str]:
    """
    Aceita os dois formatos gravados ao longo das versões:
    - lista de strings: ["Discord ID", "Nick", ...] (posição = índice)
    - lista de pares: [{"index": 0, "title": "Discord ID"}, ...]
    Também aceita um dict {"0": "Discord ID"}. Sempre devolve índice -> rótulo.
    """
    loaded = load_json_field(raw, [], "question_titles", warnings)
    titles: Dict[int, str] = {}

    if isinstance(loaded, dict):
        items = [{"index": k, "title": v} for k, v in loaded.items()]
    elif isinstance(loaded, list):
        items = loaded
    else:
        if warnings is not None:
            warnings.append(f"question_titles: lista esperada, recebido {type(loaded).__name__}")
        return titles

    for position, item in enumerate(items):
        if isinstance(item, dict):
            index = _to_index(item.get("index", position))
            title = stringify_value(item.get("title")).strip()
        else:
            index = position
            title = stringify_value(item).strip()
        if index is None or not title:
            continue
        titles.setdefault(index, title)
    return titles


@dataclass
class FormConfig:
    form_id: str = ""
    form_name: str = ""
    webhook_url: str = ""
    title: str = ""
    description: str = ""
    color: str = DEFAULT_COLOR
    footer: str = DEFAULT_FOOTER
    mentions: str = ""
    discord_id_fields: List[int] = field(default_factory=lambda: [0])
    conditional_mentions: List[ConditionalMention] = field(default_factory=list)
    question_titles: Dict[int, str] = field(default_factory=dict)
    parse_warnings: List[str] = field(default_factory=list)

    @classmethod
    def from_row(cls, row: Mapping) -> "FormConfig":
        """Monta a configuração a partir de uma linha do banco (ou dict equivalente)."""
        data = {key: row[key] for key in row.keys()}
        warnings: List[str] = []
        return cls(
            form_id=stringify_value(data.get("form_id")),
            form_name=stringify_value(data.get("form_name")),
            webhook_url=stringify_value(data.get("webhook_url")),
            title=stringify_value(data.get("title")),
            description=stringify_value(data.get("description")),
            color=stringify_value(data.get("color")) or DEFAULT_COLOR,
            footer=stringify_value(data.get("footer")),
            mentions=stringify_value(data.get("mentions")),
            discord_id_fields=parse_discord_id_fields(data.get("discord_id_fields"), warnings),
            conditional_mentions=parse_conditional_mentions(data.get("conditional_mentions"), warnings),
            question_titles=parse_question_titles(data.get("question_titles"), warnings),
            parse_warnings=warnings,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "color": self.color,
            "footer": self.footer,
            "mentions": self.mentions,
            "question_titles": [
                {"index": index, "title": title} for index, title in sorted(self.question_titles.items())
            ],
            "discord_id_fields": list(self.discord_id_fields),
            "conditional_mentions": [rule.to_dict() for rule in self.conditional_mentions],
        }


@dataclass
class MentionSet:
    role_ids: List[str] = field(default_factory=list)
    user_ids: List[str] = field(default_factory=list)

    @property
    def content_line(self) -> str:
        roles = " ".join(f"<@&{role_id}>" for role_id in self.role_ids)
        users = " ".join(f"<@{user_id}>" for user_id in self.user_ids)
        return f"{roles} {users}".strip()

    def __bool__(self) -> bool:
        return bool(self.role_ids or self.user_ids)


@dataclass(frozen=True)
class EmbedField:
    name: str
    value: str
    inline: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "value": self.value, "inline": self.inline}


@dataclass
class Embed:
    title: str
    color: int
    footer: str
    timestamp: str
    description: Optional[str] = None
    fields: List[EmbedField] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"title": self.title}
        if self.description:
            data["description"] = self.description
        data["color"] = self.color
        if self.fields:
            data["fields"] = [f.to_dict() for f in self.fields]
        data["footer"] = {"text": self.footer}
        data["timestamp"] = self.timestamp
        return data
