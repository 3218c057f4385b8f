"""
Normalização dos payloads recebidos do Yandex Forms.

O provedor (e integrações intermediárias) mandam as respostas em vários
formatos; tudo aqui converge para uma lista ordenada de `Answer`. A posição
na lista é o "número da pergunta" usado pelas regras de menção e títulos.
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

from .constants import ENVELOPE_KEYS
from .models import Answer
from .utils import pick_first_nonempty, stringify_value

logger = logging.getLogger(__name__)


def _answer_from_item(item, index: int) -> Answer:
    if isinstance(item, dict):
        question_id = pick_first_nonempty(item.get('question_id')) or f"q{index}"
        # mesma precedência do formato antigo: text -> value -> answer
        raw = item.get('text') or item.get('value') or item.get('answer') or ''
        return Answer(question_id=question_id, text=stringify_value(raw))
    return Answer(question_id=f"q{index}", text=stringify_value(item))


def _flatten_field_value(value) -> str:
    if isinstance(value, list):
        parts = []
        for element in value:
            if isinstance(element, dict) and element.get('text'):
                parts.append(stringify_value(element['text']))
            else:
                parts.append(stringify_value(element))
        return ", ".join(parts)
    if isinstance(value, dict):
        return json.dumps(value, ensure_ascii=False)
    return stringify_value(value)


def _parse_envelope(data: dict) -> List[Answer]:
    # Formato: { answer: { data: { campo: { value: ... } } } }
    answers = []
    for key, entry in data.items():
        if not isinstance(entry, dict):
            continue
        value = entry.get('value')
        if value is None:
            continue
        answers.append(Answer(question_id=str(key), text=_flatten_field_value(value)))
    return answers


def _parse(answers_data) -> List[Answer]:
    if not answers_data:
        return []

    if isinstance(answers_data, list):
        return [_answer_from_item(item, index) for index, item in enumerate(answers_data)]

    if isinstance(answers_data, str):
        try:
            parsed = json.loads(answers_data)
        except ValueError:
            # string simples vira uma resposta única
            return [Answer(question_id="q0", text=answers_data)]
        return _parse(parsed)

    if isinstance(answers_data, dict):
        envelope = answers_data.get('answer')
        if isinstance(envelope, dict) and isinstance(envelope.get('data'), dict):
            return _parse_envelope(envelope['data'])

        # Formato: { campo1: "valor1", campo2: "valor2" }
        return [
            Answer(question_id=str(key), text=stringify_value(value))
            for key, value in answers_data.items()
            if key not in ENVELOPE_KEYS
        ]

    return []


def parse_form_answers(answers_data) -> List[Answer]:
    """Converte qualquer formato suportado em lista de Answer. Nunca levanta exceção."""
    try:
        return _parse(answers_data)
    except Exception as exc:
        logger.warning(f"Falha ao normalizar respostas ({type(answers_data).__name__}): {exc}")
        return []


@dataclass
class Submission:
    form_id: Optional[str]
    form_title: Optional[str]
    answers: List[Answer] = field(default_factory=list)
    is_jsonrpc: bool = False
    rpc_id: Any = None
    method: Optional[str] = None


def extract_submission(body) -> Optional[Submission]:
    """
    Reduz o corpo recebido no webhook a uma Submission.
    Formatos: JSON-RPC 2.0, {form: {id, title}, answers} e o plano
    {formId|form_id, formTitle|form_title, answers|campos soltos}.
    Retorna None quando o corpo não é um objeto JSON.
    """
    if not isinstance(body, dict):
        return None

    if body.get('jsonrpc') == '2.0':
        params = body.get('params')
        if not isinstance(params, dict):
            params = {}
        return Submission(
            form_id=pick_first_nonempty(params.get('formId'), params.get('form_id')),
            form_title=pick_first_nonempty(params.get('formTitle'), params.get('form_title')),
            answers=parse_form_answers(params.get('answers')),
            is_jsonrpc=True,
            rpc_id=body.get('id'),
            method=body.get('method'),
        )

    form = body.get('form')
    if isinstance(form, dict) and pick_first_nonempty(form.get('id')):
        return Submission(
            form_id=pick_first_nonempty(form.get('id')),
            form_title=pick_first_nonempty(form.get('title')),
            answers=parse_form_answers(body.get('answers')),
        )

    if body.get('answers'):
        answers = parse_form_answers(body.get('answers'))
    else:
        answers = parse_form_answers({k: v for k, v in body.items() if k not in ENVELOPE_KEYS})
    return Submission(
        form_id=pick_first_nonempty(body.get('formId'), body.get('form_id')),
        form_title=pick_first_nonempty(body.get('formTitle'), body.get('form_title')),
        answers=answers,
    )
