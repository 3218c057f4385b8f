import json
import logging
import os
import re
from datetime import datetime, timezone
from typing import Any, Dict, List

from .constants import BACKUP_DIR, BACKUP_VERSION
from .storage import FormStore
from .utils import format_file_size, utc_now_iso

logger = logging.getLogger(__name__)

_SAFE_NAME = re.compile(r'^[A-Za-z0-9][A-Za-z0-9._-]*\.json$')
REQUIRED_FORM_KEYS = ("form_id", "form_name", "webhook_url")


class BackupError(Exception):
    pass


def _timestamp_slug() -> str:
    return datetime.now(timezone.utc).isoformat().replace(':', '-').replace('.', '-').replace('+', '_')


def backup_filename(prefix: str) -> str:
    return f"{prefix}-{_timestamp_slug()}.json"


def build_backup(store: FormStore, backup_type: str = "export") -> Dict[str, Any]:
    data = store.dump()
    return {
        "metadata": {
            "version": BACKUP_VERSION,
            "exportDate": utc_now_iso(),
            "type": backup_type,
            "totalForms": len(data["forms"]),
            "totalLogs": len(data["logs"]),
        },
        "forms": data["forms"],
        "logs": data["logs"],
    }


def validate_backup(data) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise BackupError("Backup must be a JSON object")
    forms = data.get("forms", [])
    if not isinstance(forms, list):
        raise BackupError("'forms' must be a list")
    for position, form in enumerate(forms):
        if not isinstance(form, dict) or any(not form.get(key) for key in REQUIRED_FORM_KEYS):
            raise BackupError(f"Form #{position} is missing one of {', '.join(REQUIRED_FORM_KEYS)}")
    logs = data.get("logs", [])
    if not isinstance(logs, list):
        raise BackupError("'logs' must be a list")
    for position, entry in enumerate(logs):
        if not isinstance(entry, dict):
            raise BackupError(f"Log #{position} must be an object")
    return data


def parse_backup(raw) -> Dict[str, Any]:
    try:
        if isinstance(raw, bytes):
            raw = raw.decode('utf-8')
        data = json.loads(raw)
    except ValueError as exc:
        raise BackupError(f"Invalid JSON: {exc}") from exc
    return validate_backup(data)


def import_backup(store: FormStore, data) -> Dict[str, int]:
    return store.load(validate_backup(data))


def resolve_backup_path(filename: str, backup_dir: str = BACKUP_DIR) -> str:
    # só nomes simples; nada de '../' ou subdiretórios
    if not filename or not _SAFE_NAME.match(filename) or os.path.basename(filename) != filename:
        raise BackupError(f"Invalid backup name: {filename}")
    return os.path.join(backup_dir, filename)


def create_backup_file(store: FormStore, backup_dir: str = BACKUP_DIR) -> str:
    os.makedirs(backup_dir, exist_ok=True)
    filename = backup_filename("auto-backup")
    path = os.path.join(backup_dir, filename)
    with open(path, 'w', encoding='utf-8') as fp:
        json.dump(build_backup(store, "auto-backup"), fp, ensure_ascii=False, indent=2)
    logger.info(f"Backup criado: {path}")
    return filename


def list_backups(backup_dir: str = BACKUP_DIR) -> List[Dict[str, Any]]:
    if not os.path.isdir(backup_dir):
        return []
    backups = []
    for name in os.listdir(backup_dir):
        if not name.endswith('.json'):
            continue
        stats = os.stat(os.path.join(backup_dir, name))
        backups.append({
            "name": name,
            "size": format_file_size(stats.st_size),
            "bytes": stats.st_size,
            "created": datetime.fromtimestamp(stats.st_mtime, timezone.utc).isoformat(),
            "_mtime": stats.st_mtime,
        })
    backups.sort(key=lambda b: (b["_mtime"], b["name"]), reverse=True)
    for b in backups:
        b.pop("_mtime")
    return backups


def read_backup(filename: str, backup_dir: str = BACKUP_DIR) -> Dict[str, Any]:
    path = resolve_backup_path(filename, backup_dir)
    if not os.path.isfile(path):
        raise FileNotFoundError(filename)
    with open(path, 'r', encoding='utf-8') as fp:
        return parse_backup(fp.read())


def restore_backup(store: FormStore, filename: str, backup_dir: str = BACKUP_DIR) -> Dict[str, int]:
    return store.load(read_backup(filename, backup_dir))


def delete_backup(filename: str, backup_dir: str = BACKUP_DIR):
    path = resolve_backup_path(filename, backup_dir)
    if not os.path.isfile(path):
        raise FileNotFoundError(filename)
    os.remove(path)
