"""
Montagem do embed do Discord e do payload final enviado ao webhook.
"""
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .constants import (
    DEFAULT_FOOTER,
    DESCRIPTION_LIMIT,
    EMBED_TEXTS,
    FIELD_NAME_LIMIT,
    FIELD_VALUE_LIMIT,
    FOOTER_LIMIT,
    MAINTENANCE_COLOR,
    MAX_QUESTIONS,
    TITLE_LIMIT,
)
from .mentions import extract_discord_id, resolve_mentions
from .models import Answer, Embed, EmbedField, FormConfig, MentionSet
from .utils import parse_hex_color, pick_first_nonempty, truncate, utc_now_iso


def question_label(config: FormConfig, index: int) -> str:
    label = config.question_titles.get(index)
    if label:
        return truncate(label, FIELD_NAME_LIMIT)
    return EMBED_TEXTS["question_label"].format(number=index + 1)


def display_value(text: str, index: int, mention_fields) -> str:
    # Campos de Discord ID aparecem como menção no corpo do embed; é só exibição,
    # a notificação real vem do `content`.
    if index in mention_fields:
        discord_id = extract_discord_id(text)
        if discord_id:
            text = f"<@{discord_id}>"
    return truncate(text, FIELD_VALUE_LIMIT)


def build_embed(config: FormConfig, form_title: Optional[str], answers: Sequence[Answer],
                mention_fields: Optional[Iterable[int]] = None) -> Embed:
    if mention_fields is None:
        mention_fields = config.discord_id_fields
    mention_fields = set(mention_fields)

    title = config.title or EMBED_TEXTS["title_prefix"] + (pick_first_nonempty(form_title, config.form_name) or "")
    description = truncate(config.description, DESCRIPTION_LIMIT) if config.description else None

    fields: List[EmbedField] = []
    for index, answer in enumerate(answers[:MAX_QUESTIONS]):
        if not answer.text:
            continue
        fields.append(EmbedField(
            name=question_label(config, index),
            value=display_value(answer.text, index, mention_fields),
        ))

    if len(answers) > MAX_QUESTIONS:
        fields.append(EmbedField(
            name=EMBED_TEXTS["overflow_name"],
            value=EMBED_TEXTS["overflow_value"].format(shown=MAX_QUESTIONS, total=len(answers)),
        ))

    if not fields:
        fields.append(EmbedField(
            name=EMBED_TEXTS["placeholder_name"],
            value=EMBED_TEXTS["placeholder_value"],
        ))

    return Embed(
        title=truncate(title, TITLE_LIMIT),
        description=description,
        color=parse_hex_color(config.color),
        fields=fields,
        footer=truncate(config.footer or DEFAULT_FOOTER, FOOTER_LIMIT),
        timestamp=utc_now_iso(),
    )


def build_discord_payload(config: FormConfig, form_title: Optional[str], answers: Sequence[Answer],
                          mention_set: Optional[MentionSet] = None) -> Dict[str, Any]:
    """Payload do webhook: `content` só existe quando há alguma menção."""
    if mention_set is None:
        mention_set = resolve_mentions(config, answers)
    embed = build_embed(config, form_title, answers, config.discord_id_fields)

    payload: Dict[str, Any] = {"embeds": [embed.to_dict()]}
    content = mention_set.content_line
    if content:
        payload["content"] = content
    return payload


def build_maintenance_payload(message: str) -> Dict[str, Any]:
    embed = Embed(
        title=EMBED_TEXTS["maintenance_title"],
        description=truncate(message, DESCRIPTION_LIMIT),
        color=MAINTENANCE_COLOR,
        footer=f"{DEFAULT_FOOTER} - {EMBED_TEXTS['maintenance_footer']}",
        timestamp=utc_now_iso(),
    )
    return {"embeds": [embed.to_dict()]}
