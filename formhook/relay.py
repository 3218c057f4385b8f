"""
Fluxo completo de um envio: busca da configuração, montagem do payload e entrega.
O núcleo (normalizer/mentions/embeds) não faz I/O; tudo que toca banco ou rede fica aqui.
"""
import logging
from typing import Any, Callable, Dict, List

from .embeds import build_discord_payload, build_maintenance_payload
from .models import Answer, FormConfig
from .normalizer import Submission
from .services import DiscordDeliveryError, send_discord_payload
from .storage import FormStore

logger = logging.getLogger(__name__)

Sender = Callable[[str, Dict[str, Any]], Any]

TEST_ANSWERS = [
    Answer("q1", "817347897339281430"),
    Answer("q2", "TestNick"),
    Answer("q3", "Test user"),
    Answer("q4", "25 years"),
    Answer("q5", "This is a test submission to check the integration"),
]


class FormNotFoundError(Exception):
    pass


def _log_config_warnings(store: FormStore, config: FormConfig):
    for warning in config.parse_warnings:
        logger.warning(f"Configuração inválida na forma {config.form_id}: {warning}")
        store.log(config.form_id, 'CONFIG_WARNING', warning)


def deliver(store: FormStore, config: FormConfig, form_title, answers: List[Answer],
            sender: Sender = send_discord_payload) -> Dict[str, Any]:
    _log_config_warnings(store, config)
    payload = build_discord_payload(config, form_title or config.form_name, answers)
    sender(config.webhook_url, payload)
    return payload


def relay_submission(store: FormStore, submission: Submission, sender: Sender = send_discord_payload) -> FormConfig:
    config = store.get_form_config(submission.form_id)
    if config is None:
        logger.warning(f"Nenhum webhook registrado para a forma {submission.form_id}")
        store.log(submission.form_id, 'NOT_FOUND', 'Form is not registered')
        raise FormNotFoundError(submission.form_id)

    channel = "JSON-RPC" if submission.is_jsonrpc else "POST"
    try:
        deliver(store, config, submission.form_title, submission.answers, sender)
    except DiscordDeliveryError as exc:
        store.log(submission.form_id, 'DISCORD_ERROR', str(exc))
        raise

    logger.info(f"Forma '{config.form_name}' enviada ao Discord via {channel} ({len(submission.answers)} respostas)")
    store.log(submission.form_id, 'SENT', f"Delivered to Discord via {channel}")
    return config


def send_test_message(store: FormStore, form_id: str, sender: Sender = send_discord_payload) -> FormConfig:
    config = store.get_form_config(form_id)
    if config is None:
        raise FormNotFoundError(form_id)
    try:
        deliver(store, config, config.form_name, TEST_ANSWERS, sender)
    except DiscordDeliveryError as exc:
        store.log(form_id, 'TEST_ERROR', str(exc))
        raise
    store.log(form_id, 'TEST', 'Test message sent')
    return config


def broadcast_maintenance(store: FormStore, message: str, sender: Sender = send_discord_payload) -> List[Dict[str, Any]]:
    """Envia o aviso de manutenção para todos os webhooks; falhas individuais não param o envio."""
    payload = build_maintenance_payload(message)
    results = []
    for form in store.list_webhooks():
        try:
            sender(form['webhook_url'], payload)
        except DiscordDeliveryError as exc:
            logger.warning(f"Aviso de manutenção falhou para {form['form_id']}: {exc}")
            store.log(form['form_id'], 'MAINTENANCE_ERROR', str(exc))
            results.append({"formId": form['form_id'], "formName": form['form_name'],
                            "success": False, "message": str(exc)})
            continue
        store.log(form['form_id'], 'MAINTENANCE_SENT', 'Maintenance notice sent')
        results.append({"formId": form['form_id'], "formName": form['form_name'],
                        "success": True, "message": "Sent"})

    success = sum(1 for r in results if r["success"])
    store.log('SYSTEM', 'MAINTENANCE_BROADCAST', f"Sent {success}/{len(results)} maintenance notices")
    return results
