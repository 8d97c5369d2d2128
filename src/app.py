"""
Flask web application for event brackets.
"""
import os
import yaml
from typing import List, Optional
from filelock import FileLock, Timeout
from flask import Flask, request, jsonify

from brackets.elimination import add_consolation_match, remove_consolation_match
from brackets.errors import (
    BracketNotFound, BracketValidationError, ConfigurationError, NotFoundError, PlayerIdentityError,
)
from brackets.ids import random_ids
from brackets.manager import (
    bracket_summary,
    create_bracket,
    rename_participant,
    set_allow_draws,
    set_tiebreakers,
    update_match_details,
)
from brackets.models import Bracket, Event, ROUND_ROBIN
from brackets.normalize import dump_nested, dump_tree, load_tree
from brackets.progression import ActionLog, advance_byes, complete_match, reopen_match
from brackets.standings import Scoring, bracket_standings, is_round_robin_concluded

app = Flask(__name__)

BASE_DIR = os.path.dirname(os.path.dirname(__file__))
DATA_DIR = os.environ.get('BRACKETS_DATA_DIR', os.path.join(BASE_DIR, 'data'))
LOCK_TIMEOUT = float(os.environ.get('BRACKETS_LOCK_TIMEOUT', '10'))
ACTION_LOG_LIMIT = int(os.environ.get('BRACKETS_ACTION_LOG_LIMIT', '200'))

BRACKETS_FILE = os.path.join(DATA_DIR, 'brackets.yaml')
EVENTS_FILE = os.path.join(DATA_DIR, 'events.yaml')
SETTINGS_FILE = os.path.join(DATA_DIR, 'settings.yaml')
LOCK_FILE = os.path.join(DATA_DIR, '.lock')

_new_id = random_ids()
# At most ACTION_LOG_LIMIT recent transitions per bracket
_action_log = ActionLog(max_entries=ACTION_LOG_LIMIT)


def _data_lock() -> FileLock:
    """One writer at a time: every bracket mutation is fetch, change, save under this lock."""
    os.makedirs(os.path.dirname(LOCK_FILE), exist_ok=True)
    return FileLock(LOCK_FILE, timeout=LOCK_TIMEOUT)


def _read_yaml(path: str):
    if not os.path.exists(path):
        return None
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f)
    except (yaml.YAMLError, OSError) as e:
        app.logger.warning(f'Failed to parse {path}: {e}')
        return None


def get_default_settings() -> dict:
    """Return default settings."""
    return {
        'round_robin_scoring': {'win': 3, 'draw': 1, 'loss': 0},
        'include_third_place': False,
    }


def load_settings() -> dict:
    """Load settings from YAML file, merging with defaults."""
    defaults = get_default_settings()
    data = _read_yaml(SETTINGS_FILE)
    if not isinstance(data, dict):
        return defaults
    for key, value in defaults.items():
        if key not in data:
            data[key] = value
    return data


def get_scoring() -> Scoring:
    return Scoring.from_dict(load_settings().get('round_robin_scoring'))


TRUE_STRINGS = ('true', 'yes', 'on', '1')
FALSE_STRINGS = ('false', 'no', 'off', '0')


def parse_flag(value, name: str, default: Optional[bool] = None) -> Optional[bool]:
    """Read a true/false setting from JSON or YAML; strings like "false" are parsed, not truth-tested."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        if text in TRUE_STRINGS:
            return True
        if text in FALSE_STRINGS:
            return False
    raise ConfigurationError(f"{name} must be true or false, got {value!r}")


def load_events() -> list:
    """Load event records from YAML."""
    data = _read_yaml(EVENTS_FILE)
    return data.get('events', []) if isinstance(data, dict) else []


def get_event(event_id) -> Optional[Event]:
    if event_id is None:
        return None
    for record in load_events():
        if str(record.get('id')) == str(event_id):
            return Event.from_dict(record)
    return None


def load_brackets() -> List[dict]:
    """Load stored bracket records (each with its flat match list)."""
    data = _read_yaml(BRACKETS_FILE)
    return data.get('brackets', []) if isinstance(data, dict) else []


def save_brackets(records: List[dict]):
    """Save bracket records to YAML."""
    os.makedirs(os.path.dirname(BRACKETS_FILE), exist_ok=True)
    with open(BRACKETS_FILE, 'w', encoding='utf-8') as f:
        yaml.dump({'brackets': records}, f, default_flow_style=False, sort_keys=False)


def create_bracket_record(bracket: Bracket, matches: List[dict]) -> dict:
    record = bracket.to_record()
    record['matches'] = matches
    records = load_brackets()
    records.append(record)
    save_brackets(records)
    return record


def update_bracket_record(bracket_id: str, fields: dict, matches: Optional[List[dict]] = None) -> Optional[dict]:
    records = load_brackets()
    for record in records:
        if record.get('id') == bracket_id:
            record.update({key: value for key, value in fields.items() if key != 'id'})
            if matches is not None:
                record['matches'] = matches
            save_brackets(records)
            return record
    return None


def delete_bracket_record(bracket_id: str) -> bool:
    records = load_brackets()
    remaining = [record for record in records if record.get('id') != bracket_id]
    if len(remaining) == len(records):
        return False
    save_brackets(remaining)
    return True


def get_bracket_record(bracket_id: str) -> Optional[dict]:
    return next((record for record in load_brackets() if record.get('id') == bracket_id), None)


def list_brackets_by_event(event_id=None) -> List[dict]:
    records = load_brackets()
    if event_id is None:
        return records
    return [record for record in records if str(record.get('event_id')) == str(event_id)]


def _malformed_logger(bracket_id):
    def log(branch, reason):
        app.logger.warning(f'Skipped malformed match data in bracket {bracket_id}: {reason}')
    return log


def bracket_from_record(record: dict) -> Bracket:
    sections = load_tree(record.get('type'), record.get('matches'), record.get('id'),
                         on_malformed=_malformed_logger(record.get('id')))
    return Bracket.from_record(record, sections)


def load_bracket(bracket_id: str) -> Optional[Bracket]:
    record = get_bracket_record(bracket_id)
    return bracket_from_record(record) if record else None


def save_bracket(bracket: Bracket) -> Optional[dict]:
    return update_bracket_record(bracket.id, bracket.to_record(), dump_tree(bracket))


def bracket_to_json(bracket: Bracket) -> dict:
    data = bracket.to_record()
    data['matches'] = dump_nested(bracket)
    data['summary'] = bracket_summary(bracket, get_scoring())
    return data


def _advance_byes(bracket: Bracket) -> bool:
    """Run the BYE pass and report whether the tree changed."""
    before = dump_tree(bracket)
    results = advance_byes(bracket, _new_id, _action_log)
    for result in results:
        app.logger.info(f'Bracket {bracket.id}: match {result.match.id} won by BYE')
        _log_signal(bracket, result)
    return dump_tree(bracket) != before


def _log_signal(bracket: Bracket, result) -> None:
    if result.signal and result.winner:
        app.logger.info(f'Bracket {bracket.id}: {result.signal} is {result.winner.name}')


def _require_bracket(bracket_id: str) -> Bracket:
    bracket = load_bracket(bracket_id)
    if bracket is None:
        raise BracketNotFound(f"Bracket {bracket_id} not found")
    return bracket


@app.errorhandler(BracketValidationError)
def handle_validation_error(e):
    return jsonify({'error': str(e)}), 400


@app.errorhandler(NotFoundError)
def handle_not_found(e):
    return jsonify({'error': str(e)}), 404


@app.errorhandler(PlayerIdentityError)
def handle_player_identity_error(e):
    app.logger.error(f'Corrupt player data: {e}')
    body = {'error': str(e)}
    body.update(e.to_dict())
    return jsonify(body), 422


@app.errorhandler(Timeout)
def handle_lock_timeout(e):
    app.logger.warning(f'Timed out waiting for data lock: {e}')
    return jsonify({'error': 'Brackets are busy, try again'}), 503


@app.route('/api/brackets', methods=['GET'])
def api_list_brackets():
    """List brackets, optionally for a single event."""
    event_id = request.args.get('event_id')
    brackets = []
    for record in list_brackets_by_event(event_id):
        bracket = bracket_from_record(record)
        data = bracket.to_record()
        data['summary'] = bracket_summary(bracket, get_scoring())
        brackets.append(data)
    return jsonify({'brackets': brackets})


@app.route('/api/brackets', methods=['POST'])
def api_create_bracket():
    """Create a bracket and its full match tree."""
    data = request.get_json(silent=True) or {}
    names = data.get('names')
    number_of_players = data.get('number_of_players')
    if number_of_players is None and isinstance(names, list):
        number_of_players = len(names)

    event = None
    if data.get('event_id') is not None:
        event = get_event(data['event_id'])
        if event is None:
            return jsonify({'error': f"Event {data['event_id']} not found"}), 404

    include_third_place = parse_flag(
        data.get('include_third_place'), 'include_third_place',
        default=parse_flag(load_settings().get('include_third_place'), 'include_third_place', default=False),
    )
    bracket = create_bracket(
        data.get('name'),
        data.get('type'),
        number_of_players,
        _new_id,
        event=event,
        names=names,
        include_third_place=include_third_place,
        allow_draws=parse_flag(data.get('allow_draws'), 'allow_draws'),
    )
    _advance_byes(bracket)

    with _data_lock():
        create_bracket_record(bracket, dump_tree(bracket))
    app.logger.info(f'Created {bracket.type} bracket {bracket.id} ({bracket.name})')
    return jsonify(bracket_to_json(bracket)), 201


@app.route('/api/brackets/<bracket_id>', methods=['GET'])
def api_get_bracket(bracket_id):
    """Return a bracket, first applying any pending BYE advances."""
    with _data_lock():
        bracket = _require_bracket(bracket_id)
        if _advance_byes(bracket):
            save_bracket(bracket)
    return jsonify(bracket_to_json(bracket))


@app.route('/api/brackets/<bracket_id>', methods=['DELETE'])
def api_delete_bracket(bracket_id):
    with _data_lock():
        if not delete_bracket_record(bracket_id):
            return jsonify({'error': f'Bracket {bracket_id} not found'}), 404
    _action_log.clear(bracket_id)
    return jsonify({'success': True})


def _scores_from_request(data: dict):
    scores = data.get('scores')
    if isinstance(scores, list) and len(scores) == 2:
        return scores[0], scores[1]
    return data.get('score_a'), data.get('score_b')


@app.route('/api/brackets/<bracket_id>/matches/<match_id>/result', methods=['POST'])
def api_complete_match(bracket_id, match_id):
    """Record a match result and advance the players."""
    data = request.get_json(silent=True) or {}
    score_a, score_b = _scores_from_request(data)
    if score_a is None or score_b is None:
        return jsonify({'error': 'Both scores are required'}), 400

    with _data_lock():
        bracket = _require_bracket(bracket_id)
        result = complete_match(bracket, match_id, score_a, score_b, _new_id, _action_log)
        _log_signal(bracket, result)
        _advance_byes(bracket)
        save_bracket(bracket)

    return jsonify({
        'success': True,
        'result': result.to_dict(),
        'bracket': bracket_to_json(bracket),
    })


@app.route('/api/brackets/<bracket_id>/matches/<match_id>/reopen', methods=['POST'])
def api_reopen_match(bracket_id, match_id):
    """Set a completed match back to pending. Later rounds are left as they are."""
    with _data_lock():
        bracket = _require_bracket(bracket_id)
        reopen_match(bracket, match_id, _action_log)
        save_bracket(bracket)
    return jsonify({'success': True, 'bracket': bracket_to_json(bracket)})


@app.route('/api/brackets/<bracket_id>/matches/<match_id>', methods=['PUT'])
def api_update_match(bracket_id, match_id):
    """Change a match's date, time or venue."""
    data = request.get_json(silent=True) or {}
    with _data_lock():
        bracket = _require_bracket(bracket_id)
        match = update_match_details(
            bracket,
            match_id,
            event=get_event(bracket.event_id),
            match_date=data.get('date'),
            match_time=data.get('time'),
            venue=data.get('venue'),
        )
        save_bracket(bracket)
    return jsonify({'success': True, 'match': match.to_dict()})


@app.route('/api/brackets/<bracket_id>/consolation', methods=['POST'])
def api_toggle_consolation(bracket_id):
    """Add or remove the third-place match."""
    data = request.get_json(silent=True) or {}
    with _data_lock():
        bracket = _require_bracket(bracket_id)
        if parse_flag(data.get('enabled'), 'enabled', default=True):
            add_consolation_match(bracket, _new_id)
            _advance_byes(bracket)
        else:
            remove_consolation_match(bracket)
        save_bracket(bracket)
    return jsonify({'success': True, 'bracket': bracket_to_json(bracket)})


@app.route('/api/brackets/<bracket_id>/draws', methods=['POST'])
def api_toggle_draws(bracket_id):
    data = request.get_json(silent=True) or {}
    with _data_lock():
        bracket = _require_bracket(bracket_id)
        allow = parse_flag(data.get('allow_draws'), 'allow_draws', default=not bracket.allow_draws)
        set_allow_draws(bracket, allow)
        save_bracket(bracket)
    return jsonify({'success': True, 'allow_draws': bracket.allow_draws})


@app.route('/api/brackets/<bracket_id>/tiebreakers', methods=['PUT'])
def api_save_tiebreakers(bracket_id):
    data = request.get_json(silent=True)
    with _data_lock():
        bracket = _require_bracket(bracket_id)
        set_tiebreakers(bracket, data)
        save_bracket(bracket)
    return jsonify({'success': True, 'tiebreaker_data': bracket.tiebreaker_data})


@app.route('/api/brackets/<bracket_id>/standings', methods=['GET'])
def api_standings(bracket_id):
    """Round robin standings, with any groups the scoring could not separate."""
    bracket = _require_bracket(bracket_id)
    if bracket.type != ROUND_ROBIN:
        return jsonify({'error': 'Standings are only available for round robin brackets'}), 400
    standings = bracket_standings(bracket, get_scoring())
    data = standings.to_dict()
    data['concluded'] = is_round_robin_concluded(bracket)
    data['tiebreaker_data'] = bracket.tiebreaker_data
    return jsonify(data)


@app.route('/api/brackets/<bracket_id>/participants/<participant_id>', methods=['POST'])
def api_rename_participant(bracket_id, participant_id):
    data = request.get_json(silent=True) or {}
    with _data_lock():
        bracket = _require_bracket(bracket_id)
        renamed = rename_participant(bracket, participant_id, data.get('name'))
        if renamed == 0:
            return jsonify({'error': f'Participant {participant_id} not found'}), 404
        save_bracket(bracket)
    return jsonify({'success': True, 'renamed': renamed})


if __name__ == '__main__':
    app.run(debug=True, port=5000)
