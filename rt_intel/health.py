# rt_intel/health.py
from flask import Blueprint, jsonify, current_app
from rt_intel.store import IntelStore
import datetime

health_bp = Blueprint('health', __name__)


@health_bp.route('')
def health_check():
    """
    Liveness plus a summary of the queue and of the configured collaborators
    """
    try:
        store = IntelStore.from_app(current_app)
        counts = store.counts()
        telegram = store.telegram_settings()

        status = {
            'status': 'healthy',
            'timestamp': datetime.datetime.now().isoformat(),
            'database': {
                'connected': True,
                'articles_count': counts['total'],
                'scheduled_count': counts['scheduled'],
            },
            'config': {
                'llm_configured': bool(current_app.config.get('OPENAI_API_KEY')),
                'telegram_configured': bool(telegram['token'] and telegram['chat_id']),
                'telegram_status': telegram['status'],
            },
            'version': '1.0.0'
        }
        return jsonify(status)
    except Exception as e:
        return jsonify({
            'status': 'unhealthy',
            'error': str(e),
            'timestamp': datetime.datetime.now().isoformat()
        }), 500
