# tests/test_extraction.py
"""
Tests for the heuristic stat extraction rules.

Pages are built from small HTML fragments so each test shows exactly which
label/value layout a rule has to handle.
"""

import pytest

from cs2_stats.scraper import NoDataFound, extract, resolve_display_name
from cs2_stats.scraper.extraction import NO_DATA_MESSAGE, NumericGuard, Rule, match_rule

from tests.helpers import BASIC_PAGE, EMPTY_PAGE, labelled_stat, make_document, stat_page, svg_stat


class TestEndToEnd:
    def test_kd_and_headshot_page(self):
        extraction = extract(make_document(BASIC_PAGE))

        assert extraction.fields == {'kd_ratio': 1.34, 'headshot_percentage': '42%'}
        assert extraction.field_count == 2
        assert extraction.display_name == 'PlayerOne'
        assert extraction.source_url.endswith('/player/76561198000000001')

    def test_extraction_is_idempotent(self):
        document = make_document(BASIC_PAGE)
        assert extract(document) == extract(document)

    def test_empty_page_raises_no_data(self):
        with pytest.raises(NoDataFound) as excinfo:
            extract(make_document(EMPTY_PAGE))
        assert str(excinfo.value) == NO_DATA_MESSAGE


class TestIntegerRules:
    def test_disambiguation_of_counters(self):
        page = stat_page(
            labelled_stat('Kills:', '4821'),
            labelled_stat('Deaths', '3190'),
            labelled_stat('Rounds Played', '18452'),
        )
        fields = extract(make_document(page)).fields

        assert fields['kills'] == 4821
        assert fields['deaths'] == 3190
        assert fields['rounds_played'] == 18452
        assert 'matches_played' not in fields

    def test_integers_are_ints(self):
        fields = extract(make_document(stat_page(labelled_stat('Assists', '812')))).fields
        assert fields['assists'] == 812
        assert isinstance(fields['assists'], int)

    def test_first_match_wins(self):
        page = stat_page(
            labelled_stat('Kills', '4821'),
            labelled_stat('Kills', '999'),
        )
        assert extract(make_document(page)).fields['kills'] == 4821

    def test_zero_is_not_a_count(self):
        page = stat_page(svg_stat('K/D', '1.00'), labelled_stat('Total assists', '0'))
        assert 'assists' not in extract(make_document(page)).fields

    def test_headshot_guard(self):
        page = stat_page(svg_stat('K/D', '1.10'), labelled_stat('Total headshots', '60000'))
        assert 'headshots' not in extract(make_document(page)).fields

        page = stat_page(labelled_stat('Total headshots', '1400'))
        assert extract(make_document(page)).fields['headshots'] == 1400

    def test_match_result_guard(self):
        page = stat_page(
            labelled_stat('Won', '9999'),
            labelled_stat('Lost games', '10000'),
        )
        fields = extract(make_document(page)).fields
        assert fields['matches_won'] == 9999
        assert 'matches_lost' not in fields

    def test_rounds_and_damage_minimums(self):
        page = stat_page(
            svg_stat('K/D', '0.95'),
            labelled_stat('Rounds played', '500'),
            labelled_stat('Total damage', '5000'),
        )
        fields = extract(make_document(page)).fields
        assert 'rounds_played' not in fields
        assert 'total_damage' not in fields

        page = stat_page(labelled_stat('Total damage', '250000'))
        assert extract(make_document(page)).fields['total_damage'] == 250000


class TestDecimalAndPercentRules:
    def test_decimal_needs_svg_label(self):
        # A bare decimal next to "K/D" text outside a chart is ignored.
        page = stat_page(labelled_stat('K/D', '1.34'), labelled_stat('Kills', '100'))
        assert 'kd_ratio' not in extract(make_document(page)).fields

    def test_hltv_rating(self):
        page = stat_page(svg_stat('HLTV Rating', '1.07'))
        assert extract(make_document(page)).fields == {'hltv_rating': 1.07}

    def test_percentages_keep_display_form(self):
        page = stat_page(
            labelled_stat('Win Rate', '55%'),
            labelled_stat('HS', '48%'),
            labelled_stat('Clutch', '21%'),
            labelled_stat('Entry success', '47%'),
        )
        fields = extract(make_document(page)).fields
        assert fields == {
            'win_rate': '55%',
            'headshot_percentage': '48%',
            'clutch_success': '21%',
            'entry_success': '47%',
        }

    def test_adr(self):
        page = stat_page(labelled_stat('ADR', '87'))
        assert extract(make_document(page)).fields == {'adr': 87}


class TestLabelFallback:
    def test_uppercase_label_sibling_value(self):
        page = stat_page('<div class="row"><span>TIED</span><span>12</span></div>')
        assert extract(make_document(page)).fields == {'matches_tied': 12}

    def test_value_before_label(self):
        page = stat_page('<div class="row"><b>37</b><i>x</i><span>TIED</span></div>')
        assert extract(make_document(page)).fields == {'matches_tied': 37}

    def test_fallback_does_not_overwrite(self):
        page = stat_page(
            labelled_stat('Kills:', '4821'),
            '<div class="row"><span>KILLS</span><span>999</span></div>',
        )
        assert extract(make_document(page)).fields['kills'] == 4821


class TestDisplayName:
    def test_heading(self):
        document = make_document(stat_page(heading='s1mple'))
        assert resolve_display_name(document) == 's1mple'

    def test_player_name_class(self):
        document = make_document(stat_page('<div class="player-name">ZywOo</div>'))
        assert resolve_display_name(document) == 'ZywOo'

    def test_title_fallback(self):
        document = make_document(stat_page(title='NiKo - CS2 Stats'))
        assert resolve_display_name(document) == 'NiKo'

    def test_unknown(self):
        document = make_document(stat_page(title=''))
        assert resolve_display_name(document) == 'Unknown'


class TestMatchRule:
    def test_exclusions_and_guards(self):
        rules = (
            Rule('kills', ('kill',), exclusions=('death',)),
            Rule('small', ('kill',), guard=NumericGuard(below=10)),
        )
        assert match_rule(rules, 'kills', 5).target == 'kills'
        assert match_rule(rules, 'kill death', 5).target == 'small'
        assert match_rule(rules, 'kill death', 50) is None
        assert match_rule(rules, 'assists', 5) is None


class TestWarnings:
    def test_inconsistent_values_are_kept_with_warnings(self):
        page = stat_page(
            labelled_stat('Kills', '100'),
            labelled_stat('Total headshots', '150'),
        )
        extraction = extract(make_document(page))
        assert extraction.fields['headshots'] == 150
        assert any('headshots' in warning for warning in extraction.warnings)
