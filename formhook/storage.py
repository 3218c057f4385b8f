"""
Armazenamento das formas registradas, usuários do painel e log de requisições (SQLite).
Cada operação abre sua própria conexão para poder ser usada por várias threads do Flask.
"""
import json
import logging
import os
import secrets
import sqlite3
from contextlib import closing
from typing import Any, Dict, List, Optional

from werkzeug.security import check_password_hash, generate_password_hash

from .constants import (
    ADMIN_PASSWORD,
    ADMIN_USERNAME,
    BACKUP_LOG_LIMIT,
    DATABASE_FILE,
    DEFAULT_COLOR,
    DEFAULT_FOOTER,
    LOG_VIEW_LIMIT,
)
from .models import FormConfig

logger = logging.getLogger(__name__)

SCHEMA = (
    """CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        username TEXT UNIQUE NOT NULL,
        password_hash TEXT NOT NULL,
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP
    )""",
    """CREATE TABLE IF NOT EXISTS forms (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        form_id TEXT UNIQUE NOT NULL,
        form_name TEXT NOT NULL,
        webhook_url TEXT NOT NULL,
        title TEXT DEFAULT '',
        description TEXT DEFAULT '',
        color TEXT DEFAULT '#5865f2',
        footer TEXT DEFAULT '',
        mentions TEXT DEFAULT '',
        question_titles TEXT DEFAULT '[]',
        discord_id_fields TEXT DEFAULT '[0]',
        conditional_mentions TEXT DEFAULT '[]',
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
    )""",
    """CREATE TABLE IF NOT EXISTS logs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        form_id TEXT,
        status TEXT NOT NULL,
        message TEXT,
        timestamp DATETIME DEFAULT CURRENT_TIMESTAMP
    )""",
)

FORM_COLUMNS = (
    "form_id", "form_name", "webhook_url", "title", "description", "color", "footer",
    "mentions", "question_titles", "discord_id_fields", "conditional_mentions",
    "created_at", "updated_at",
)


class FormExistsError(Exception):
    pass


def _json_column(value, default: str) -> str:
    if value is None or value == "":
        return default
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)


class FormStore:
    def __init__(self, db_file: str = DATABASE_FILE):
        self.db_file = db_file

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_file)
        conn.row_factory = sqlite3.Row
        return conn

    def init_schema(self):
        directory = os.path.dirname(os.path.abspath(self.db_file))
        os.makedirs(directory, exist_ok=True)
        with closing(self._connect()) as conn, conn:
            for statement in SCHEMA:
                conn.execute(statement)
        logger.info(f"Banco SQLite pronto em {self.db_file}")

    # --- usuários -------------------------------------------------------

    def ensure_admin(self, username: str = ADMIN_USERNAME, password: Optional[str] = ADMIN_PASSWORD) -> bool:
        """Cria o admin padrão se ainda não existir. Retorna True quando criou."""
        generated = password is None
        if generated:
            password = secrets.token_urlsafe(12)
        with closing(self._connect()) as conn, conn:
            cur = conn.execute(
                "INSERT OR IGNORE INTO users (username, password_hash) VALUES (?, ?)",
                (username, generate_password_hash(password)),
            )
            created = cur.rowcount > 0
        if created:
            if generated:
                logger.warning(f"Admin '{username}' criado com senha gerada: {password} (defina ADMIN_PASSWORD)")
            else:
                logger.info(f"Admin '{username}' criado")
        return created

    def verify_user(self, username, password) -> bool:
        if not username or not password:
            return False
        with closing(self._connect()) as conn:
            row = conn.execute("SELECT password_hash FROM users WHERE username = ?", (username,)).fetchone()
        if row is None:
            return False
        return check_password_hash(row["password_hash"], password)

    # --- formas ---------------------------------------------------------

    def get_form_config(self, form_id) -> Optional[FormConfig]:
        with closing(self._connect()) as conn:
            row = conn.execute("SELECT * FROM forms WHERE form_id = ?", (form_id,)).fetchone()
        if row is None:
            return None
        return FormConfig.from_row(row)

    def list_forms(self) -> List[Dict[str, Any]]:
        with closing(self._connect()) as conn:
            rows = conn.execute(
                "SELECT form_id, form_name, webhook_url, mentions, created_at FROM forms "
                "ORDER BY created_at DESC, id DESC"
            ).fetchall()
        return [dict(row) for row in rows]

    def list_webhooks(self) -> List[Dict[str, Any]]:
        with closing(self._connect()) as conn:
            rows = conn.execute("SELECT form_id, form_name, webhook_url FROM forms ORDER BY id").fetchall()
        return [dict(row) for row in rows]

    def register_form(self, form_id: str, form_name: str, webhook_url: str):
        try:
            with closing(self._connect()) as conn, conn:
                conn.execute(
                    "INSERT INTO forms (form_id, form_name, webhook_url, color, footer) VALUES (?, ?, ?, ?, ?)",
                    (form_id, form_name, webhook_url, DEFAULT_COLOR, DEFAULT_FOOTER),
                )
        except sqlite3.IntegrityError as exc:
            raise FormExistsError(form_id) from exc

    def update_form_config(self, form_id: str, config: Dict[str, Any]) -> bool:
        with closing(self._connect()) as conn, conn:
            cur = conn.execute(
                """UPDATE forms SET
                    title = ?, description = ?, color = ?, footer = ?, mentions = ?,
                    question_titles = ?, discord_id_fields = ?, conditional_mentions = ?,
                    updated_at = CURRENT_TIMESTAMP
                WHERE form_id = ?""",
                (
                    config.get("title") or "",
                    config.get("description") or "",
                    config.get("color") or DEFAULT_COLOR,
                    config.get("footer") or "",
                    config.get("mentions") or "",
                    _json_column(config.get("question_titles"), "[]"),
                    _json_column(config.get("discord_id_fields"), "[0]"),
                    _json_column(config.get("conditional_mentions"), "[]"),
                    form_id,
                ),
            )
            return cur.rowcount > 0

    def delete_form(self, form_id: str) -> Optional[str]:
        """Remove a forma e devolve o nome dela, ou None se não existir."""
        with closing(self._connect()) as conn, conn:
            row = conn.execute("SELECT form_name FROM forms WHERE form_id = ?", (form_id,)).fetchone()
            if row is None:
                return None
            conn.execute("DELETE FROM forms WHERE form_id = ?", (form_id,))
            return row["form_name"]

    # --- log de requisições ---------------------------------------------

    def log(self, form_id, status: str, message: str = ""):
        # Falha no log nunca interrompe o relay
        try:
            with closing(self._connect()) as conn, conn:
                conn.execute(
                    "INSERT INTO logs (form_id, status, message) VALUES (?, ?, ?)",
                    (form_id, status, message),
                )
        except sqlite3.Error as exc:
            logger.error(f"Falha ao gravar log ({form_id}, {status}): {exc}")

    def list_logs(self, limit: int = LOG_VIEW_LIMIT) -> List[Dict[str, Any]]:
        with closing(self._connect()) as conn:
            rows = conn.execute(
                "SELECT form_id, status, message, timestamp FROM logs ORDER BY timestamp DESC, id DESC LIMIT ?",
                (limit,),
            ).fetchall()
        return [dict(row) for row in rows]

    def clear_logs(self):
        with closing(self._connect()) as conn, conn:
            conn.execute("DELETE FROM logs")

    # --- backup ---------------------------------------------------------

    def dump(self, log_limit: int = BACKUP_LOG_LIMIT) -> Dict[str, List[Dict[str, Any]]]:
        with closing(self._connect()) as conn:
            forms = conn.execute(f"SELECT {', '.join(FORM_COLUMNS)} FROM forms ORDER BY id").fetchall()
            logs = conn.execute(
                "SELECT form_id, status, message, timestamp FROM logs ORDER BY timestamp DESC, id DESC LIMIT ?",
                (log_limit,),
            ).fetchall()
        return {"forms": [dict(row) for row in forms], "logs": [dict(row) for row in logs]}

    def load(self, data: Dict[str, Any]) -> Dict[str, int]:
        """
        Substitui formas e logs pelo conteúdo do backup numa única transação.
        Usuários não são tocados para não perder o acesso ao painel.
        """
        forms = data.get("forms") if isinstance(data.get("forms"), list) else []
        logs = data.get("logs") if isinstance(data.get("logs"), list) else []

        with closing(self._connect()) as conn, conn:
            conn.execute("DELETE FROM forms")
            conn.execute("DELETE FROM logs")
            for form in forms:
                conn.execute(
                    f"INSERT INTO forms ({', '.join(FORM_COLUMNS)}) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, COALESCE(?, CURRENT_TIMESTAMP), COALESCE(?, CURRENT_TIMESTAMP))",
                    (
                        form["form_id"],
                        form["form_name"],
                        form["webhook_url"],
                        form.get("title") or "",
                        form.get("description") or "",
                        form.get("color") or DEFAULT_COLOR,
                        form.get("footer") or "",
                        form.get("mentions") or "",
                        _json_column(form.get("question_titles"), "[]"),
                        _json_column(form.get("discord_id_fields"), "[0]"),
                        _json_column(form.get("conditional_mentions"), "[]"),
                        form.get("created_at"),
                        form.get("updated_at"),
                    ),
                )
            for entry in logs:
                conn.execute(
                    "INSERT INTO logs (form_id, status, message, timestamp) "
                    "VALUES (?, ?, ?, COALESCE(?, CURRENT_TIMESTAMP))",
                    (entry.get("form_id"), entry.get("status") or "UNKNOWN", entry.get("message"), entry.get("timestamp")),
                )
        return {"forms": len(forms), "logs": len(logs)}
