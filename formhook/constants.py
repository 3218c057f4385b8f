import os
import secrets

# Configurações globais de ambiente
APP_PORT = int(os.getenv("APP_PORT", "3000"))
DEBUG_MODE = os.getenv("DEBUG_MODE", "False").lower() == "true"

# Armazenamento (SQLite) e backups
DATABASE_FILE = os.getenv("DATABASE_FILE", os.path.join(os.getcwd(), "yandex_forms_discord.db"))
BACKUP_DIR = os.getenv("BACKUP_DIR", os.path.join(os.getcwd(), "backups"))
BACKUP_VERSION = "2.0"
BACKUP_LOG_LIMIT = int(os.getenv("BACKUP_LOG_LIMIT", "1000"))
LOG_VIEW_LIMIT = int(os.getenv("LOG_VIEW_LIMIT", "100"))

# Sessão do painel admin
SECRET_KEY = os.getenv("SECRET_KEY") or secrets.token_hex(32)
ADMIN_USERNAME = os.getenv("ADMIN_USERNAME", "admin")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD")

# Discord
DISCORD_WEBHOOK_PREFIX = "https://discord.com/api/webhooks/"
DISCORD_TIMEOUT_SECONDS = int(os.getenv("DISCORD_TIMEOUT_SECONDS", "10"))
DEFAULT_COLOR = os.getenv("DEFAULT_COLOR", "#5865f2")
DEFAULT_FOOTER = os.getenv("DEFAULT_FOOTER", "Yandex Forms → Discord")
MAINTENANCE_COLOR = int(os.getenv("MAINTENANCE_COLOR", "16776960"))  # amarelo

# Limites impostos pelo Discord
MAX_QUESTIONS = 20
FIELD_VALUE_LIMIT = 1024
FIELD_NAME_LIMIT = 256
TITLE_LIMIT = 256
DESCRIPTION_LIMIT = 4096
FOOTER_LIMIT = 2048
MIN_DISCORD_ID_LENGTH = 17

# Chaves de envelope que nunca viram respostas
ENVELOPE_KEYS = ("formId", "form_id", "formTitle", "form_title", "answers")

# Textos fixos do embed
EMBED_TEXTS = {
    "title_prefix": "📋 ",
    "question_label": "Question {number}",
    "overflow_name": "📝 Note",
    "overflow_value": "Showing first {shown} of {total} questions.",
    "placeholder_name": "📝 Information",
    "placeholder_value": "No data to display",
    "maintenance_title": "⚠️ Maintenance",
    "maintenance_footer": "System notification",
}
