import dataclasses

import pytest
from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError

from arcade import db
from arcade.errors import ConflictError, GameUnavailableError, NotFoundError, StoreError, ValidationError
from arcade.models import Player, PlayerGameStat, ScoreEntry
from arcade.services.ledger import recorder
from arcade.services.ledger.minting import mint_points
from arcade.services.ledger.recorder import rebuild_player_aggregate, record_score

from conftest import W1, W2


def _ledger_totals(wallet_address):
    return db.session.query(func.coalesce(func.sum(ScoreEntry.points), 0)).filter_by(wallet_address=wallet_address).scalar()


def _ledger_max(wallet_address, game_type):
    return db.session.query(func.max(ScoreEntry.score)).filter_by(wallet_address=wallet_address, game_type=game_type).scalar()


def test_first_submission_creates_player(settings):
    result = record_score(W1, 'snake', 50, 500, settings=settings)

    player = result.player
    assert player.wallet_address == W1
    assert player.total_points == 500
    assert player.minted_points == 0
    assert player.high_scores() == {'snake': 50}
    assert player.games_played() == {'snake': 1}
    assert result.entry.id is not None
    assert result.entry.score == 50
    assert result.entry.points == 500


def test_lower_score_keeps_high_score(settings):
    record_score(W1, 'snake', 50, 500, settings=settings)
    result = record_score(W1, 'snake', 30, 200, settings=settings)

    player = result.player
    assert player.total_points == 700
    assert player.high_scores()['snake'] == 50
    assert player.games_played()['snake'] == 2


def test_wallet_address_is_normalized(settings):
    record_score('  ' + W1.upper() + ' ', 'snake', 5, 10, settings=settings)

    assert Player.query.filter_by(wallet_address=W1).one().total_points == 10
    assert ScoreEntry.query.one().wallet_address == W1


def test_metadata_is_stored_on_the_entry(settings):
    result = record_score(W1, 'fallingFruit', 12, 120, {'level': 3, 'duration': 41}, settings=settings)

    assert db.session.get(ScoreEntry, result.entry.id).game_data == {'level': 3, 'duration': 41}
    assert result.entry.to_dict()['game_data'] == {'level': 3, 'duration': 41}


def test_aggregates_track_ledger_for_every_prefix(settings):
    plays = [
        ('snake', 10, 100),
        ('fallingFruit', 7, 70),
        ('snake', 25, 40),
        ('snake', 3, 0),
        ('fallingFruit', 9, 15),
        ('snake', 25, 5),
    ]
    for game_type, score, points in plays:
        player = record_score(W1, game_type, score, points, settings=settings).player
        assert player.total_points == _ledger_totals(W1)
        for stat in player.game_stats:
            assert stat.high_score == _ledger_max(W1, stat.game_type)
            assert stat.games_played == ScoreEntry.query.filter_by(wallet_address=W1, game_type=stat.game_type).count()

    assert player.total_points == 230
    assert player.high_scores() == {'fallingFruit': 9, 'snake': 25}


def test_players_do_not_share_aggregates(settings):
    record_score(W1, 'snake', 50, 500, settings=settings)
    record_score(W2, 'snake', 80, 100, settings=settings)

    first = Player.query.filter_by(wallet_address=W1).one()
    second = Player.query.filter_by(wallet_address=W2).one()
    assert first.total_points == 500
    assert first.high_scores()['snake'] == 50
    assert second.total_points == 100
    assert second.high_scores()['snake'] == 80


@pytest.mark.parametrize('game_type', ['breakBricks', 'carRacing'])
def test_coming_soon_game_is_rejected_without_side_effects(settings, game_type):
    with pytest.raises(GameUnavailableError) as excinfo:
        record_score(W1, game_type, 10, 100, settings=settings)

    assert excinfo.value.code == 'game_unavailable'
    assert excinfo.value.field == 'game_type'
    assert ScoreEntry.query.count() == 0
    assert Player.query.count() == 0


def test_coming_soon_game_rejected_even_for_existing_player(settings):
    record_score(W1, 'snake', 50, 500, settings=settings)

    with pytest.raises(GameUnavailableError):
        record_score(W1, 'breakBricks', 10, 100, settings=settings)

    player = Player.query.filter_by(wallet_address=W1).one()
    assert player.total_points == 500
    assert 'breakBricks' not in player.games_played()
    assert ScoreEntry.query.count() == 1


@pytest.mark.parametrize('game_type, code', [
    (None, 'missing_field'),
    ('', 'missing_field'),
    ('chess', 'invalid_game_type'),
    ('clickCounter', 'invalid_game_type'),
])
def test_unknown_game_type_is_rejected(settings, game_type, code):
    with pytest.raises(ValidationError) as excinfo:
        record_score(W1, game_type, 10, 100, settings=settings)
    assert excinfo.value.code == code
    assert excinfo.value.field == 'game_type'


@pytest.mark.parametrize('field', ['score', 'points'])
@pytest.mark.parametrize('bad_value', [None, -1, 'abc', float('nan'), float('inf'), True, 1.5])
def test_invalid_numbers_name_the_field(settings, field, bad_value):
    values = {'score': 10, 'points': 100}
    values[field] = bad_value

    with pytest.raises(ValidationError) as excinfo:
        record_score(W1, 'snake', values['score'], values['points'], settings=settings)

    assert excinfo.value.field == field
    assert ScoreEntry.query.count() == 0


@pytest.mark.parametrize('field', ['score', 'points'])
@pytest.mark.parametrize('huge', [2 ** 63, 2 ** 70, 10 ** 30, 1e300])
def test_values_beyond_storage_range_are_rejected(settings, field, huge):
    values = {'score': 10, 'points': 100}
    values[field] = huge

    with pytest.raises(ValidationError) as excinfo:
        record_score(W1, 'snake', values['score'], values['points'], settings=settings)

    assert excinfo.value.code == 'invalid_number'
    assert excinfo.value.field == field
    assert ScoreEntry.query.count() == 0
    assert Player.query.count() == 0


def test_integral_floats_are_accepted(settings):
    player = record_score(W1, 'snake', 40.0, 400.0, settings=settings).player
    assert player.total_points == 400
    assert player.high_scores()['snake'] == 40


def test_metadata_must_be_a_mapping(settings):
    with pytest.raises(ValidationError) as excinfo:
        record_score(W1, 'snake', 1, 1, ['not', 'a', 'dict'], settings=settings)
    assert excinfo.value.field == 'game_data'


def test_unknown_player_rejected_when_auto_create_disabled(settings):
    strict = dataclasses.replace(settings, auto_create_players=False)

    with pytest.raises(NotFoundError):
        record_score(W1, 'snake', 50, 500, settings=strict)

    assert ScoreEntry.query.count() == 0
    assert Player.query.count() == 0


def test_known_player_accepted_when_auto_create_disabled(settings):
    db.session.add(Player(wallet_address=W1, total_points=0, minted_points=0))
    db.session.commit()
    strict = dataclasses.replace(settings, auto_create_players=False)

    player = record_score(W1, 'snake', 50, 500, settings=strict).player
    assert player.total_points == 500


def test_failed_aggregate_update_rolls_back_ledger_entry(settings, monkeypatch):
    record_score(W1, 'snake', 50, 500, settings=settings)

    def broken(*args, **kwargs):
        raise SQLAlchemyError('player_game_stat unavailable')

    monkeypatch.setattr(recorder, '_bump_game_stat', broken)

    with pytest.raises(StoreError):
        record_score(W1, 'snake', 90, 900, settings=settings)

    player = Player.query.filter_by(wallet_address=W1).one()
    assert ScoreEntry.query.count() == 1
    assert player.total_points == 500
    assert player.high_scores()['snake'] == 50


def test_failed_first_submission_leaves_no_player(settings, monkeypatch):
    def broken(*args, **kwargs):
        raise SQLAlchemyError('player_game_stat unavailable')

    monkeypatch.setattr(recorder, '_bump_game_stat', broken)

    with pytest.raises(StoreError):
        record_score(W1, 'snake', 50, 500, settings=settings)

    assert Player.query.count() == 0
    assert ScoreEntry.query.count() == 0


def test_rebuild_restores_aggregates_from_ledger(settings):
    record_score(W1, 'snake', 50, 500, settings=settings)
    record_score(W1, 'snake', 30, 200, settings=settings)
    record_score(W1, 'fallingFruit', 12, 60, settings=settings)

    # Drift the cached aggregates away from the ledger
    db.session.execute(update(Player).where(Player.wallet_address == W1).values(total_points=1))
    db.session.execute(
        update(PlayerGameStat)
        .where(PlayerGameStat.wallet_address == W1, PlayerGameStat.game_type == 'snake')
        .values(games_played=9, high_score=3)
    )
    db.session.add(PlayerGameStat(wallet_address=W1, game_type='carRacing', games_played=4, high_score=99))
    db.session.commit()

    player = rebuild_player_aggregate(W1)

    assert player.total_points == 760
    assert player.games_played() == {'fallingFruit': 1, 'snake': 2}
    assert player.high_scores() == {'fallingFruit': 12, 'snake': 50}


def test_rebuild_unknown_wallet_returns_none(settings):
    assert rebuild_player_aggregate(W2) is None


def test_rebuild_cli_command(flask_app, settings):
    record_score(W1, 'snake', 50, 500, settings=settings)
    db.session.execute(update(Player).where(Player.wallet_address == W1).values(total_points=3))
    db.session.commit()

    runner = flask_app.test_cli_runner()
    result = runner.invoke(args=['rebuild-aggregates'])

    assert result.exit_code == 0, result.output
    assert 'Rebuilt aggregates for 1 player(s).' in result.output
    db.session.expire_all()
    assert Player.query.filter_by(wallet_address=W1).one().total_points == 500


def test_rebuild_refuses_when_minted_exceeds_ledger(settings):
    record_score(W1, 'snake', 50, 500, settings=settings)
    record_score(W1, 'snake', 10, 100, settings=settings)
    mint_points(W1, 550, settings=settings)
    # Lose the large entry so the ledger no longer covers what was minted
    ScoreEntry.query.filter_by(wallet_address=W1, points=500).delete()
    db.session.commit()

    with pytest.raises(ConflictError) as excinfo:
        rebuild_player_aggregate(W1)

    assert excinfo.value.code == 'minted_exceeds_ledger'
    player = Player.query.filter_by(wallet_address=W1).one()
    assert (player.total_points, player.minted_points) == (600, 550)
    assert player.games_played() == {'snake': 2}


def test_rebuild_cli_skips_conflicting_wallets(flask_app, settings):
    record_score(W1, 'snake', 50, 500, settings=settings)
    record_score(W1, 'snake', 10, 100, settings=settings)
    mint_points(W1, 550, settings=settings)
    ScoreEntry.query.filter_by(wallet_address=W1, points=500).delete()
    db.session.commit()
    record_score(W2, 'snake', 20, 200, settings=settings)

    result = flask_app.test_cli_runner().invoke(args=['rebuild-aggregates'])

    assert result.exit_code == 0, result.output
    assert f'Skipped {W1}' in result.output
    assert 'Rebuilt aggregates for 1 player(s).' in result.output
