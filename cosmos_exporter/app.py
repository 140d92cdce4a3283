import json
import socket
import time

import sentry_sdk
from flask import Flask, Response, abort, request
from sentry_sdk.integrations.flask import FlaskIntegration
from werkzeug.exceptions import HTTPException

from cosmos_exporter import settings
from cosmos_exporter.addresses import is_valid_address
from cosmos_exporter.delegator import count_delegators
from cosmos_exporter.logging import get_request_logger, report_exception
from cosmos_exporter.metrics import CONTENT_TYPE, DelegatorMetrics, UpgradeMetrics, ValidatorsMetrics
from cosmos_exporter.node import CosmosNode
from cosmos_exporter.upgrade import collect_upgrade_plan
from cosmos_exporter.validators import ValidatorsAggregator

SERVER_NAME = socket.gethostname()

if settings.ENABLE_SENTRY:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        integrations=[FlaskIntegration(transaction_style='url')],
        environment=settings.ENV,
        traces_sample_rate=0.003,
    )

app = Flask(__name__)


def get_node() -> CosmosNode:
    return CosmosNode(settings.NODE_URL, settings.REQUEST_TIMEOUT)


def create_response(response, status=200, mimetype='application/json'):
    return Response(
        response=response,
        status=status,
        mimetype=mimetype,
    )


def metrics_response(body: bytes) -> Response:
    return Response(response=body, status=200, headers={'Content-Type': CONTENT_TYPE})


def error(code: str, message: str, status: int = 400):
    abort(create_response(json.dumps({'status': 'failed', 'code': code, 'message': message}), status=status))


@app.errorhandler(Exception)
def handle_exception(exception):
    if isinstance(exception, HTTPException):
        return exception
    report_exception()
    return create_response('{"status":"failed","code":"InternalError"}', status=500)


@app.route('/')
def home():
    return 'cosmos-exporter'


@app.route('/check/debug', methods=['GET'])
def check_debug():
    return create_response(json.dumps({
        'status': 'ok',
        'version': settings.RELEASE_VERSION,
        'server': SERVER_NAME,
    }))


@app.route('/metrics/validators', methods=['GET'])
def validators_metrics():
    request_start = time.time()
    logger = get_request_logger()

    metrics = ValidatorsMetrics()
    snapshot = ValidatorsAggregator(get_node(), logger=logger).collect()
    metrics.observe_snapshot(snapshot)

    response = metrics_response(metrics.render())
    logger.info('Request processed: method=GET endpoint=/metrics/validators request-time=%.3f',
                time.time() - request_start)
    return response


@app.route('/metrics/delegator', methods=['GET'])
def delegator_metrics():
    request_start = time.time()
    logger = get_request_logger()

    validator_address = request.args.get('validator_address', '')
    if not is_valid_address(validator_address, settings.VALOPER_PREFIX):
        logger.error('Could not get validator address %r', validator_address)
        error('InvalidValidatorAddress', f'The address "{validator_address}" is not a valid validator address.')

    metrics = DelegatorMetrics()
    total = count_delegators(get_node(), validator_address, logger=logger)
    if total is not None:
        metrics.observe(validator_address, total)

    response = metrics_response(metrics.render())
    logger.info('Request processed: method=GET endpoint=/metrics/delegator?validator_address=%s request-time=%.3f',
                validator_address, time.time() - request_start)
    return response


@app.route('/metrics/upgrade', methods=['GET'])
def upgrade_metrics():
    request_start = time.time()
    logger = get_request_logger()

    metrics = UpgradeMetrics()
    collect_upgrade_plan(get_node(), metrics, logger=logger)

    response = metrics_response(metrics.render())
    logger.info('Request processed: method=GET endpoint=/metrics/upgrade request-time=%.3f',
                time.time() - request_start)
    return response
