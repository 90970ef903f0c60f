"""AWS Lambda handler serving cleaned Hyperplanning calendars."""
import base64
import json
import logging
import os
import time
from typing import Any, Dict, List, Optional, Tuple

from feed.hyperplanning_feed import HyperplanningFeedFetcher
from feed.ical_writer import render_calendar
from processor.calendar_assembler import CalendarAssembler
from processor.errors import (
    BadPreferenceID,
    CalendarError,
    EmptySourceCalendar,
    InvalidFilterInput,
    InvalidRegisterBody,
    MissingParameters,
    NotHyperplanningURL,
    RegisterFailed,
    SourceUnreachable,
)
from processor.models import CalendarPreference, FilterContext, Preference
from processor.subject_catalog import collect_subjects
from storage.preference_store import PreferenceStore


# Status code returned for each error kind
ERROR_STATUS = {
    NotHyperplanningURL: 412,
    MissingParameters: 412,
    InvalidFilterInput: 412,
    InvalidRegisterBody: 412,
    EmptySourceCalendar: 404,
    BadPreferenceID: 404,
    SourceUnreachable: 500,
    RegisterFailed: 500,
}

TRUTHY_VALUES = {'1', 'true', 'yes'}


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def _json_response(
    status_code: int,
    body: Any,
    headers: Optional[Dict[str, str]] = None
) -> Dict[str, Any]:
    return {
        'statusCode': status_code,
        'headers': {'Content-Type': 'application/json', **(headers or {})},
        'body': json.dumps(body)
    }


def _calendar_response(ical: bytes) -> Dict[str, Any]:
    return {
        'statusCode': 200,
        'headers': {'Content-Type': 'text/calendar; charset=utf-8'},
        'body': ical.decode('utf-8')
    }


def _error_response(error: CalendarError) -> Dict[str, Any]:
    return _json_response(
        ERROR_STATUS.get(type(error), 500),
        {'message': error.message, 'error_type': type(error).__name__}
    )


def _request_line(event: Dict[str, Any]) -> Tuple[str, str]:
    """Return the HTTP method and path of a REST or HTTP API event."""
    http = (event.get('requestContext') or {}).get('http') or {}
    method = event.get('httpMethod') or http.get('method') or 'GET'
    path = event.get('path') or event.get('rawPath') or '/'
    return method.upper(), path


def _query_params(event: Dict[str, Any]) -> Dict[str, str]:
    return event.get('queryStringParameters') or {}


def _request_body(event: Dict[str, Any]) -> str:
    body = event.get('body') or ''
    if event.get('isBase64Encoded'):
        body = base64.b64decode(body).decode('utf-8')
    return body


def parse_ignore(raw: Optional[str]) -> List[str]:
    """
    Decode the ``ignore`` parameter, a JSON list of subject codes.

    Raises:
        InvalidFilterInput: If the value is not a JSON list of strings
    """
    if raw is None:
        return []
    try:
        value = json.loads(raw)
    except ValueError as e:
        raise InvalidFilterInput('ignore', 'a JSON list of String') from e
    if not _is_string_list(value):
        raise InvalidFilterInput('ignore', 'a JSON list of String')
    return value


def parse_subjects(raw: Optional[str]) -> Dict[str, str]:
    """
    Decode the ``subjects`` parameter, a JSON object of code to title.

    Raises:
        InvalidFilterInput: If the value is not a JSON object of strings
    """
    if raw is None:
        return {}
    expected = 'a JSON dictionnary with String keys and values'
    try:
        value = json.loads(raw)
    except ValueError as e:
        raise InvalidFilterInput('subjects', expected) from e
    if not _is_string_dict(value):
        raise InvalidFilterInput('subjects', expected)
    return value


def parse_register_body(raw: str) -> Preference:
    """
    Decode a registration body into a preference.

    The body is a JSON list of {"url", "ignore", "subjects"} objects;
    ``ignore`` and ``subjects`` may be omitted.

    Raises:
        InvalidRegisterBody: If the body does not have that shape
    """
    try:
        value = json.loads(raw)
    except ValueError as e:
        raise InvalidRegisterBody() from e

    if not isinstance(value, list) or not value:
        raise InvalidRegisterBody()

    preference = []
    for entry in value:
        if not isinstance(entry, dict) or not isinstance(entry.get('url'), str):
            raise InvalidRegisterBody()
        ignore = entry.get('ignore', [])
        subjects = entry.get('subjects', {})
        if not _is_string_list(ignore) or not _is_string_dict(subjects):
            raise InvalidRegisterBody()
        preference.append(
            CalendarPreference(url=entry['url'], ignore=ignore, subjects=subjects)
        )
    return preference


def _is_string_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(item, str) for item in value)


def _is_string_dict(value: Any) -> bool:
    return isinstance(value, dict) and all(
        isinstance(key, str) and isinstance(item, str)
        for key, item in value.items()
    )


def _required_url(params: Dict[str, str]) -> str:
    url = params.get('url')
    if not url:
        raise MissingParameters(['url'])
    return url


def handle_single_calendar(
    event: Dict[str, Any],
    fetcher: HyperplanningFeedFetcher
) -> Dict[str, Any]:
    """Serve the cleaned calendar of a single feed given in the query."""
    params = _query_params(event)
    url = _required_url(params)
    context = FilterContext(
        ignored_codes=frozenset(parse_ignore(params.get('ignore'))),
        title_overrides=parse_subjects(params.get('subjects'))
    )

    assembler = CalendarAssembler()
    events = assembler.assemble(
        [(lambda: fetcher.fetch_events(url), context)],
        dedup=False
    )
    return _calendar_response(render_calendar(events))


def handle_subjects(
    event: Dict[str, Any],
    fetcher: HyperplanningFeedFetcher
) -> Dict[str, Any]:
    """List the subjects of a feed for the preference editor."""
    url = _required_url(_query_params(event))
    subjects = collect_subjects(fetcher.fetch_events(url))
    return _json_response(
        200, subjects, headers={'Access-Control-Allow-Origin': '*'}
    )


def handle_register(
    event: Dict[str, Any],
    fetcher: HyperplanningFeedFetcher,
    store: PreferenceStore
) -> Dict[str, Any]:
    """Save a preference and return its identifier."""
    preference = parse_register_body(_request_body(event))
    for calendar in preference:
        if not fetcher.is_hyperplanning_url(calendar.url):
            raise NotHyperplanningURL()

    preference_id = store.store(preference)
    return _json_response(
        200, {'id': preference_id}, headers={'Access-Control-Allow-Origin': '*'}
    )


def handle_saved_calendar(
    event: Dict[str, Any],
    preference_id: str,
    fetcher: HyperplanningFeedFetcher,
    store: PreferenceStore
) -> Dict[str, Any]:
    """Serve the merged calendar of a saved preference."""
    preference = store.lookup(preference_id)
    if preference is None:
        raise BadPreferenceID()

    dedup = _query_params(event).get('dedup', '').lower() in TRUTHY_VALUES
    assembler = CalendarAssembler()
    events = assembler.build_calendar(
        preference, fetcher.fetch_events, dedup=dedup
    )
    return _calendar_response(render_calendar(events))


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler function for API Gateway requests.

    Args:
        event: API Gateway proxy event
        context: Lambda context object

    Returns:
        API Gateway proxy response dict
    """
    # Read configuration from environment variables
    table_name = os.environ.get('TABLE_NAME', 'hyperplanning-preferences')
    log_level = os.environ.get('LOG_LEVEL', 'INFO')
    timeout_seconds = int(os.environ.get('TIMEOUT_SECONDS', '30'))
    url_fragment = os.environ.get(
        'HYPERPLANNING_URL_FRAGMENT', HyperplanningFeedFetcher.URL_FRAGMENT
    )

    setup_logging(log_level)
    logger = logging.getLogger(__name__)

    start_time = time.time()
    method, path = _request_line(event)
    logger.info(f"New {method} request on {path}")

    fetcher = HyperplanningFeedFetcher(
        timeout=timeout_seconds,
        url_fragment=url_fragment
    )
    route = path.rstrip('/') or '/'

    try:
        if method == 'GET' and route == '/':
            response = handle_single_calendar(event, fetcher)
        elif method == 'GET' and route == '/subjects':
            response = handle_subjects(event, fetcher)
        elif method == 'POST' and route == '/register':
            response = handle_register(
                event, fetcher, PreferenceStore(table_name)
            )
        elif method == 'GET' and route.startswith('/calendar/'):
            preference_id = route[len('/calendar/'):]
            response = handle_saved_calendar(
                event, preference_id, fetcher, PreferenceStore(table_name)
            )
        else:
            logger.warning(f"No route for {method} {path}")
            response = _json_response(404, {'message': 'Not found'})

    except CalendarError as e:
        logger.error(
            f"Request failed: {e.message}",
            extra={'error_type': type(e).__name__}
        )
        response = _error_response(e)

    except Exception as e:
        logger.error(
            f"Request failed unexpectedly: {str(e)}",
            extra={'error_type': type(e).__name__},
            exc_info=True
        )
        response = _json_response(500, {
            'message': 'Internal server error',
            'error': str(e),
            'error_type': type(e).__name__
        })

    duration = time.time() - start_time
    logger.info(
        f"Request completed with status {response['statusCode']}",
        extra={'duration_seconds': round(duration, 2)}
    )
    return response
