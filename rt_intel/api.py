# rt_intel/api.py
import logging
from functools import wraps

from flask import Blueprint, current_app, jsonify, request

from . import workflow
from .rewriter import rewrite
from .scraper import fetch_image_as_base64, scrape_article
from .store import IntelStore
from .workflow import ArticleNotFound, WorkflowError

logger = logging.getLogger('rt_intel.api')

api_bp = Blueprint('api', __name__)


def _store():
    return IntelStore.from_app(current_app)


def _payload():
    return request.get_json(silent=True) or {}


def _error(message, status=400):
    return jsonify({'success': False, 'error': message}), status


def _flag(value):
    if isinstance(value, str):
        return value.strip().lower() not in ('false', '0', 'no', 'off', '')
    return bool(value)


def json_endpoint(view):
    """Maps operation failures to the generic error body."""
    @wraps(view)
    def wrapper(*args, **kwargs):
        try:
            return view(*args, **kwargs)
        except ArticleNotFound as e:
            return _error(str(e), 404)
        except WorkflowError as e:
            return _error(str(e))
        except Exception as e:
            logger.error(f"Unhandled error in {request.path}: {e}", exc_info=True)
            return _error('Internal server error', 500)
    return wrapper


@api_bp.route('/process-article', methods=['POST'])
@json_endpoint
def process_article():
    data = _payload()
    article = workflow.process_article(
        _store(), current_app.config, data.get('url'), schedule=_flag(data.get('schedule', True))
    )
    return jsonify({'success': True, 'article': article.to_dict(include_image_data=True)})


@api_bp.route('/scrape-article', methods=['POST'])
@json_endpoint
def scrape():
    url = (_payload().get('url') or '').strip()
    if not url:
        return _error('URL is required')
    result = scrape_article(url, current_app.config)
    if not result.success:
        return _error(result.error or 'Failed to scrape article', 502)
    return jsonify({
        'success': True,
        'title': result.title,
        'content': result.content,
        'imageBase64': result.image_base64,
        'originalImageUrl': result.original_image_url,
    })


@api_bp.route('/rewrite-article', methods=['POST'])
@json_endpoint
def rewrite_article():
    data = _payload()
    title, content = data.get('title') or '', data.get('content') or ''
    if not (title or content):
        return _error('Title or content is required')
    result = rewrite(title, content, current_app.config)
    return jsonify({'success': True, **result})


@api_bp.route('/fetch-image', methods=['POST'])
@json_endpoint
def fetch_image():
    data = _payload()
    image_url = (data.get('imageUrl') or '').strip()
    if not image_url:
        return _error('imageUrl is required')
    image_base64 = fetch_image_as_base64(image_url, data.get('pageUrl'),
                                         timeout=current_app.config.get('TELEGRAM_TIMEOUT', 20))
    if not image_base64:
        return _error('Failed to fetch image', 502)
    return jsonify({'success': True, 'imageBase64': image_base64})


@api_bp.route('/discover', methods=['POST'])
@json_endpoint
def discover():
    data = _payload()
    articles = workflow.run_discovery(
        _store(), current_app.config, data.get('query'), data.get('timeframe') or 'آخر 24 ساعة'
    )
    return jsonify({'success': True, 'articles': [a.to_dict() for a in articles]})


@api_bp.route('/articles', methods=['GET'])
@json_endpoint
def list_articles():
    status = request.args.get('status')
    articles = _store().all_articles()
    if status:
        articles = [a for a in articles if a.status == status]
    return jsonify({'success': True, 'articles': [a.to_dict() for a in articles]})


@api_bp.route('/articles/<int:article_id>', methods=['DELETE'])
@json_endpoint
def delete_article(article_id):
    workflow.delete_article(_store(), current_app.config, article_id)
    return jsonify({'success': True})


@api_bp.route('/articles/<int:article_id>/publish', methods=['POST'])
@json_endpoint
def publish_article(article_id):
    article = workflow.publish_now(_store(), current_app.config, article_id)
    return jsonify({'success': True, 'article': article.to_dict()})


@api_bp.route('/articles/<int:article_id>/schedule', methods=['POST'])
@json_endpoint
def schedule_article(article_id):
    article = workflow.schedule_article(_store(), current_app.config, article_id)
    return jsonify({'success': True, 'article': article.to_dict()})


@api_bp.route('/sources', methods=['GET', 'POST'])
@json_endpoint
def sources():
    store = _store()
    if request.method == 'POST':
        data = _payload()
        name, url = (data.get('name') or '').strip(), (data.get('url') or '').strip()
        if not name or not url:
            return _error('Name and URL are required')
        source = store.add_source(name, url)
        return jsonify({'success': True, 'source': source.to_dict()}), 201
    return jsonify({'success': True, 'sources': [s.to_dict() for s in store.sources()]})


@api_bp.route('/telegram/connect', methods=['POST'])
@json_endpoint
def connect_telegram():
    data = _payload()
    settings = workflow.connect_telegram(_store(), current_app.config, data.get('token'), data.get('chatId'))
    return jsonify(_telegram_response(settings))


@api_bp.route('/telegram/import', methods=['POST'])
@json_endpoint
def import_telegram():
    settings = workflow.import_credentials(_store(), current_app.config, _payload().get('text') or '')
    return jsonify(_telegram_response(settings))


def _telegram_response(settings):
    return {
        'success': settings['status'] == workflow.STATUS_SUCCESS,
        'status': settings['status'],
        'botName': settings['bot_name'],
        'chatId': settings['chat_id'],
    }


@api_bp.route('/stats', methods=['GET'])
@json_endpoint
def stats():
    return jsonify({'success': True, **workflow.stats(_store())})
