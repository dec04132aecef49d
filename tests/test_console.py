# tests/test_console.py

import asyncio
import re

import pytest

from cs2_stats.orchestrator import ScraperManager
from main import ScraperConsole, parse_command

from tests.helpers import STEAM_A, STEAM_B, FakeStatsClient, SleepRecorder, create_test_db


@pytest.fixture
def fake_client():
    return FakeStatsClient()


@pytest.fixture
def console(tmp_path, fake_client):
    db = create_test_db(tmp_path)
    manager = ScraperManager(db, client_factory=lambda: fake_client, sleep=SleepRecorder())
    return ScraperConsole(manager)


def _run(console, *lines):
    async def scenario():
        results = [await console.handle(line) for line in lines]
        if console.scrape_task:
            await console.scrape_task
            console.scrape_task = None
        return results
    return asyncio.run(scenario())


class TestParseCommand:
    def test_aliases(self):
        assert parse_command('1') == ('start', [])
        assert parse_command('5 10') == ('logs', ['10'])
        assert parse_command('0') == ('exit', [])
        assert parse_command('quit') == ('exit', [])

    def test_case_and_whitespace(self):
        assert parse_command('  TOP 5 kills ') == ('top', ['5', 'kills'])
        assert parse_command('') == ('', [])


class TestConsole:
    def test_add_valid_and_invalid(self, console, capsys):
        _run(console, f'add {STEAM_A},{STEAM_B} 123')

        out = capsys.readouterr().out
        assert 'Invalid Steam ID(s)' in out
        assert '123' in out
        assert 'Queued 2 Steam ID(s)' in out
        assert console.manager.get_stats()['pending_steam_ids'] == 2

    def test_add_without_ids_shows_usage(self, console, capsys):
        _run(console, 'add')
        assert 'Usage: add' in capsys.readouterr().out

    def test_start_runs_in_background(self, console, fake_client, capsys):
        _run(console, f'add {STEAM_A}', 'start')

        out = capsys.readouterr().out
        assert 'Scraping started' in out
        assert 'SCRAPING RUN FINISHED' in out
        assert fake_client.fetched == [STEAM_A]
        assert console.manager.get_stats()['completed_steam_ids'] == 1

    def test_stop_when_idle(self, console, capsys):
        _run(console, 'stop')
        assert 'not currently running' in capsys.readouterr().out

    def test_stats_and_logs(self, console, capsys):
        _run(console, f'add {STEAM_A}', 'start')
        capsys.readouterr()

        _run(console, 'stats', 'logs 5')
        out = capsys.readouterr().out
        assert 'SCRAPING STATISTICS' in out
        assert re.search(r"Completed:\s+1\b", out)
        assert 'SUCCESS' in out
        assert 'PlayerOne' in out

    def test_reset(self, console, capsys):
        db = console.manager.db
        db.add_identifier(STEAM_A)
        db.set_status(STEAM_A, 'processing')
        db.set_status(STEAM_A, 'failed')
        questions = []

        async def answer_yes(message):
            questions.append(message)
            return 'y'

        console.prompt = answer_yes
        _run(console, 'reset')
        assert '(y/N)' in questions[0]
        assert 'Reset 1 failed Steam IDs' in capsys.readouterr().out
        assert db.get_identifier(STEAM_A)['status'] == 'pending'

    def test_reset_declined(self, console, capsys):
        db = console.manager.db
        db.add_identifier(STEAM_A)
        db.set_status(STEAM_A, 'processing')
        db.set_status(STEAM_A, 'failed')

        async def answer_default(message):
            return ''

        console.prompt = answer_default
        _run(console, 'reset')
        assert 'Reset cancelled' in capsys.readouterr().out
        assert db.get_identifier(STEAM_A)['status'] == 'failed'

    def test_reset_with_flag_skips_question(self, console, capsys):
        db = console.manager.db
        db.add_identifier(STEAM_A)
        db.set_status(STEAM_A, 'processing')
        db.set_status(STEAM_A, 'failed')

        async def unexpected(message):
            raise AssertionError(f"unexpected prompt: {message}")

        console.prompt = unexpected
        _run(console, 'reset -y')
        assert 'Reset 1 failed Steam IDs' in capsys.readouterr().out

    def test_top_rejects_unknown_field(self, console, capsys):
        _run(console, 'top 5 steam_id64')
        assert "Cannot rank by 'steam_id64'" in capsys.readouterr().out

    def test_top_lists_players(self, console, capsys):
        console.manager.db.upsert_stat_success(STEAM_A, {'kd_ratio': 1.34}, player_name='PlayerOne')
        _run(console, 'top')
        out = capsys.readouterr().out
        assert 'TOP PLAYERS BY KD_RATIO' in out
        assert 'PlayerOne' in out
        assert '1.34' in out

    def test_bad_number_shows_error(self, console, capsys):
        _run(console, 'logs ten')
        assert 'ERROR: Log limit must be a number' in capsys.readouterr().out

    def test_unknown_command(self, console, capsys):
        assert _run(console, 'dance') == [True]
        assert "Unknown command 'dance'" in capsys.readouterr().out

    def test_exit_returns_false(self, console):
        assert _run(console, 'help', 'exit') == [True, False]
