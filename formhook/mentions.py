from typing import Iterable, List, Optional, Sequence

from .constants import MIN_DISCORD_ID_LENGTH
from .models import Answer, FormConfig, MentionSet
from .utils import strip_digits


def extract_discord_id(text) -> Optional[str]:
    """Retorna os dígitos do texto se formarem um ID do Discord válido (>= 17 dígitos)."""
    digits = strip_digits(text)
    if len(digits) >= MIN_DISCORD_ID_LENGTH:
        return digits
    return None


def split_role_ids(raw) -> List[str]:
    if not raw:
        return []
    tokens = [token.strip() for token in str(raw).split(',')]
    return [token for token in tokens if len(token) >= MIN_DISCORD_ID_LENGTH]


def _answer_at(answers: Sequence[Answer], index: int) -> Optional[Answer]:
    if 0 <= index < len(answers):
        return answers[index]
    return None


def _dedupe(values: Iterable[str]) -> List[str]:
    seen = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


def resolve_mentions(config: FormConfig, answers: Sequence[Answer]) -> MentionSet:
    """
    Calcula as menções do campo `content` da mensagem.

    - usuários: campos listados em discord_id_fields cujo texto contenha um ID
    - cargos: regras condicionais que casaram (comparação exata após strip),
      seguidas dos cargos estáticos de `mentions`; sem duplicatas
    """
    user_ids = []
    for index in config.discord_id_fields:
        answer = _answer_at(answers, index)
        if answer is None or not answer.text:
            continue
        discord_id = extract_discord_id(answer.text)
        if discord_id:
            user_ids.append(discord_id)

    role_ids = []
    for rule in config.conditional_mentions:
        if not rule.answer_value:
            continue
        answer = _answer_at(answers, rule.question_index)
        if answer is None or not answer.text:
            continue
        if answer.text.strip() == rule.answer_value:
            role_ids.extend(split_role_ids(rule.role_id))

    role_ids.extend(split_role_ids(config.mentions))

    return MentionSet(role_ids=_dedupe(role_ids), user_ids=_dedupe(user_ids))
