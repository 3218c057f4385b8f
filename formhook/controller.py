import sqlite3
from functools import wraps

from flask import Flask, Response, request, session

from .backup import (
    BackupError,
    backup_filename,
    build_backup,
    create_backup_file,
    delete_backup,
    import_backup,
    list_backups,
    parse_backup,
    read_backup,
    resolve_backup_path,
    restore_backup,
)
from .constants import BACKUP_DIR, DEBUG_MODE, LOG_VIEW_LIMIT, MAX_QUESTIONS, SECRET_KEY
from .models import FormConfig
from .normalizer import extract_submission
from .relay import FormNotFoundError, broadcast_maintenance, relay_submission, send_test_message
from .services import DiscordDeliveryError, is_valid_webhook_url, send_discord_payload
from .storage import FormExistsError, FormStore
from .utils import utc_now_iso


def _error(message, status):
    return {'status': 'error', 'message': message}, status


def _rpc_error(rpc_id, code, message):
    return {'jsonrpc': '2.0', 'error': {'code': code, 'message': message}, 'id': rpc_id}, 200


def create_app(store=None, sender=None, backup_dir=BACKUP_DIR):
    app = Flask(__name__)
    app.secret_key = SECRET_KEY
    app.config['MAX_CONTENT_LENGTH'] = 10 * 1024 * 1024

    if store is None:
        store = FormStore()
    store.init_schema()
    store.ensure_admin()
    if sender is None:
        sender = send_discord_payload

    def require_auth(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            if not session.get('authenticated'):
                return _error('Authentication required', 401)
            return view(*args, **kwargs)
        return wrapper

    @app.route('/health', methods=['GET'])
    def health():
        return {
            'status': 'ok',
            'service': 'yandex-forms-discord',
            'timestamp': utc_now_iso(),
            'max_questions': MAX_QUESTIONS,
        }, 200

    # ------------------------------------------------------------------
    # Webhook do Yandex Forms
    # ------------------------------------------------------------------

    @app.route('/webhook/yandex-form', methods=['POST'])
    def yandex_form_webhook():
        data = request.get_json(silent=True)
        if DEBUG_MODE:
            print(f"[DEBUG] Received data: {data}")

        if not data:
            store.log('UNKNOWN', 'ERROR', 'Empty request body')
            return _error('Empty request body', 400)

        submission = extract_submission(data)
        if submission is None:
            store.log('UNKNOWN', 'ERROR', 'Request body is not a JSON object')
            return _error('Invalid request format', 400)

        if submission.is_jsonrpc:
            return handle_jsonrpc(submission)
        return handle_plain(submission)

    def handle_jsonrpc(submission):
        rpc_id = submission.rpc_id
        try:
            config = relay_submission(store, submission, sender)
        except FormNotFoundError:
            return _rpc_error(rpc_id, -32601, f"Webhook for form {submission.form_id} is not registered")
        except DiscordDeliveryError as exc:
            return _rpc_error(rpc_id, -32000, f"Discord delivery failed: {exc}")
        except sqlite3.Error as exc:
            app.logger.error(f"Erro de banco ao processar JSON-RPC: {exc}")
            store.log(submission.form_id, 'ERROR', 'Database error')
            return _rpc_error(rpc_id, -32603, 'Internal error')
        return {
            'jsonrpc': '2.0',
            'result': {'status': 'success', 'message': 'Delivered to Discord', 'formName': config.form_name},
            'id': rpc_id,
        }, 200

    def handle_plain(submission):
        if not submission.form_id:
            store.log('UNKNOWN', 'ERROR', 'Invalid POST format: formId missing')
            return _error('Invalid data format: formId is missing', 400)
        try:
            config = relay_submission(store, submission, sender)
        except FormNotFoundError:
            return _error(f"Webhook for form {submission.form_id} is not registered", 404)
        except DiscordDeliveryError as exc:
            return _error(f"Discord delivery failed: {exc}", 500)
        except sqlite3.Error as exc:
            app.logger.error(f"Erro de banco ao processar POST: {exc}")
            store.log(submission.form_id, 'ERROR', 'Database error')
            return _error('Internal server error', 500)
        return {'status': 'success', 'message': 'Delivered to Discord', 'formName': config.form_name}, 200

    # ------------------------------------------------------------------
    # Autenticação
    # ------------------------------------------------------------------

    @app.route('/admin/login', methods=['POST'])
    def login():
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            data = request.form
        username = data.get('username')
        if not store.verify_user(username, data.get('password')):
            return _error('Invalid username or password', 401)
        session['authenticated'] = True
        session['username'] = username
        return {'status': 'success', 'message': 'Logged in'}, 200

    @app.route('/admin/logout', methods=['POST'])
    def logout():
        session.clear()
        return {'status': 'success', 'message': 'Logged out'}, 200

    # ------------------------------------------------------------------
    # Formas
    # ------------------------------------------------------------------

    @app.route('/admin/forms', methods=['GET'])
    @require_auth
    def list_forms():
        forms = []
        for row in store.list_forms():
            url = row['webhook_url'] or ''
            forms.append({
                'formId': row['form_id'],
                'formName': row['form_name'],
                'webhookUrl': url,
                'webhookPreview': (url[:50] + '...') if url else 'Not set',
                'mentions': row['mentions'],
                'createdAt': row['created_at'],
            })
        return {'status': 'success', 'total': len(forms), 'forms': forms}, 200

    @app.route('/admin/register-form', methods=['POST'])
    @require_auth
    def register_form():
        data = request.get_json(silent=True) or {}
        form_id = data.get('formId')
        form_name = data.get('formName')
        webhook_url = data.get('discordWebhookUrl')
        if not form_id or not form_name or not webhook_url:
            return _error('formId, formName and discordWebhookUrl are required', 400)
        if not is_valid_webhook_url(webhook_url):
            return _error('Invalid Discord webhook URL', 400)
        try:
            store.register_form(form_id, form_name, webhook_url)
        except FormExistsError:
            return _error(f"Form {form_id} is already registered", 400)
        app.logger.info(f"Forma registrada: {form_id} - {form_name}")
        store.log(form_id, 'REGISTERED', f'Form "{form_name}" registered')
        return {'status': 'success', 'message': f'Form "{form_name}" registered', 'formId': form_id}, 200

    @app.route('/admin/forms/<form_id>', methods=['DELETE'])
    @require_auth
    def delete_form(form_id):
        form_name = store.delete_form(form_id)
        if form_name is None:
            return _error(f"Form {form_id} not found", 404)
        store.log(form_id, 'DELETED', f'Form "{form_name}" deleted')
        return {'status': 'success', 'message': f'Form "{form_name}" deleted'}, 200

    @app.route('/admin/forms/<form_id>/config', methods=['GET'])
    @require_auth
    def get_form_config(form_id):
        config = store.get_form_config(form_id)
        if config is None:
            return _error('Form not found', 404)
        return {'status': 'success', 'config': config.to_dict()}, 200

    @app.route('/admin/forms/<form_id>/config', methods=['PUT'])
    @require_auth
    def update_form_config(form_id):
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return _error('JSON object expected', 400)
        # normaliza antes de gravar: o banco guarda sempre o formato {index, title}
        parsed = FormConfig.from_row(data)
        data = dict(data, **{
            'question_titles': parsed.to_dict()['question_titles'],
            'discord_id_fields': parsed.discord_id_fields,
            'conditional_mentions': [rule.to_dict() for rule in parsed.conditional_mentions],
        })
        if not store.update_form_config(form_id, data):
            return _error('Form not found', 404)
        store.log(form_id, 'CONFIG_UPDATED', 'Configuration updated')
        return {'status': 'success', 'message': 'Settings saved', 'warnings': parsed.parse_warnings}, 200

    @app.route('/admin/test-webhook/<form_id>', methods=['POST'])
    @require_auth
    def test_webhook(form_id):
        try:
            send_test_message(store, form_id, sender)
        except FormNotFoundError:
            return _error(f"Form {form_id} not found", 404)
        except DiscordDeliveryError as exc:
            return _error(f"Test message failed: {exc}", 500)
        return {'status': 'success', 'message': 'Test message sent to Discord'}, 200

    # ------------------------------------------------------------------
    # Logs e manutenção
    # ------------------------------------------------------------------

    @app.route('/admin/logs', methods=['GET'])
    @require_auth
    def get_logs():
        limit = request.args.get('limit', default=LOG_VIEW_LIMIT, type=int)
        lines = [
            f"[{row['timestamp']}] FORM:{row['form_id'] or 'SYSTEM'} STATUS:{row['status']} {row['message'] or ''}"
            for row in store.list_logs(limit)
        ]
        return Response("\n".join(lines), mimetype='text/plain')

    @app.route('/admin/logs', methods=['DELETE'])
    @require_auth
    def clear_logs():
        store.clear_logs()
        store.log('SYSTEM', 'LOGS_CLEARED', 'Logs cleared from admin panel')
        return {'status': 'success', 'message': 'Logs cleared'}, 200

    @app.route('/admin/broadcast-maintenance', methods=['POST'])
    @require_auth
    def maintenance():
        data = request.get_json(silent=True) or {}
        message = (data.get('message') or '').strip()
        if not message:
            return _error('Message must not be empty', 400)
        results = broadcast_maintenance(store, message, sender)
        success = sum(1 for r in results if r['success'])
        return {
            'status': 'success',
            'message': f"Broadcast finished. Delivered: {success}/{len(results)}",
            'results': results,
            'successCount': success,
            'totalCount': len(results),
        }, 200

    # ------------------------------------------------------------------
    # Backups
    # ------------------------------------------------------------------

    @app.route('/admin/backup/export', methods=['GET'])
    @require_auth
    def backup_export():
        backup = build_backup(store)
        store.log('SYSTEM', 'BACKUP_EXPORT', 'Backup exported')
        resp = app.response_class(app.json.dumps(backup), mimetype='application/json')
        resp.headers['Content-Disposition'] = f'attachment; filename="{backup_filename("yandex-forms-backup")}"'
        return resp

    @app.route('/admin/backup/import', methods=['POST'])
    @require_auth
    def backup_import():
        try:
            upload = request.files.get('backupFile')
            if upload is not None:
                data = parse_backup(upload.read())
            else:
                data = request.get_json(silent=True)
                if data is None:
                    return _error('No backup file uploaded', 400)
            counts = import_backup(store, data)
        except BackupError as exc:
            store.log('SYSTEM', 'BACKUP_IMPORT_ERROR', str(exc))
            return _error(f"Backup import failed: {exc}", 400)
        except sqlite3.Error as exc:
            store.log('SYSTEM', 'BACKUP_IMPORT_ERROR', str(exc))
            return _error('Backup import failed', 500)
        store.log('SYSTEM', 'BACKUP_IMPORT', f"Imported {counts['forms']} forms and {counts['logs']} logs")
        return {'status': 'success', 'message': f"Backup imported. Forms: {counts['forms']}, Logs: {counts['logs']}"}, 200

    @app.route('/admin/backup/create', methods=['POST'])
    @require_auth
    def backup_create():
        try:
            filename = create_backup_file(store, backup_dir)
        except OSError as exc:
            store.log('SYSTEM', 'BACKUP_CREATE_ERROR', str(exc))
            return _error('Could not create backup', 500)
        store.log('SYSTEM', 'BACKUP_CREATED', f"Backup created: {filename}")
        return {'status': 'success', 'message': f"Backup created: {filename}", 'filename': filename}, 200

    @app.route('/admin/backup/list', methods=['GET'])
    @require_auth
    def backup_list():
        return {'status': 'success', 'backups': list_backups(backup_dir)}, 200

    @app.route('/admin/backup/download/<filename>', methods=['GET'])
    @require_auth
    def backup_download(filename):
        try:
            data = read_backup(filename, backup_dir)
            path = resolve_backup_path(filename, backup_dir)
        except (BackupError, FileNotFoundError):
            return _error('File not found', 404)
        store.log('SYSTEM', 'BACKUP_DOWNLOAD', f"Backup downloaded: {filename}")
        if DEBUG_MODE:
            print(f"[DEBUG] Enviando backup {path} ({len(data.get('forms', []))} formas)")
        resp = app.response_class(app.json.dumps(data), mimetype='application/json')
        resp.headers['Content-Disposition'] = f'attachment; filename="{filename}"'
        return resp

    @app.route('/admin/backup/restore/<filename>', methods=['POST'])
    @require_auth
    def backup_restore(filename):
        try:
            counts = restore_backup(store, filename, backup_dir)
        except FileNotFoundError:
            return _error('File not found', 404)
        except (BackupError, sqlite3.Error) as exc:
            store.log('SYSTEM', 'BACKUP_RESTORE_ERROR', str(exc))
            return _error(f"Backup restore failed: {exc}", 400)
        store.log('SYSTEM', 'BACKUP_RESTORED', f"Backup restored: {filename}")
        return {'status': 'success', 'message': f"Backup restored. Forms: {counts['forms']}, Logs: {counts['logs']}"}, 200

    @app.route('/admin/backup/delete/<filename>', methods=['DELETE'])
    @require_auth
    def backup_delete(filename):
        try:
            delete_backup(filename, backup_dir)
        except (BackupError, FileNotFoundError):
            return _error('File not found', 404)
        store.log('SYSTEM', 'BACKUP_DELETED', f"Backup deleted: {filename}")
        return {'status': 'success', 'message': 'Backup deleted'}, 200

    return app
