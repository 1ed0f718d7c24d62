"""
Tests for the pattern finder, additive search and lens analyzer
"""

import json

import pytest

from index_interconverter import (
    AnalysisReport,
    AnalyzerConfig,
    EvaluateAddition,
    LENS_ADDITIVE,
    LENS_GENERIC_REPEAT,
    LENS_LITERAL,
    LENS_REFERENCE_REPEAT,
    LENS_TEXT_LITERAL,
    LensAnalyzer,
    LiteralBigInt,
    LiteralText,
    NegativeIndex,
    RepeatTextPattern,
    SIMPLE_TEXT_ALPHABET_ID,
    SIMPLE_TEXT_SYMBOLS,
    additive_candidates,
    execute_instruction,
    find_minimal_period,
    find_reference_repeats,
    match_reference_pattern,
    text_to_index,
)

S = SIMPLE_TEXT_ALPHABET_ID


class TestPatternFinder:
    def test_minimal_period(self):
        assert find_minimal_period("ABABAB") == ("AB", 3)
        assert find_minimal_period("ABABABAB") == ("AB", 4)
        assert find_minimal_period("AAAA") == ("A", 4)
        assert find_minimal_period("ABCABC") == ("ABC", 2)

    def test_no_period(self):
        assert find_minimal_period("ABCABD") is None
        assert find_minimal_period("A") is None
        assert find_minimal_period("") is None
        assert find_minimal_period("ABA") is None

    def test_reference_match(self):
        assert match_reference_pattern("ABAB", "AB") == 2
        assert match_reference_pattern("AB", "AB") is None
        assert match_reference_pattern("ABA", "AB") is None
        assert match_reference_pattern("", "") is None

    def test_reference_catalog(self):
        assert find_reference_repeats(SIMPLE_TEXT_SYMBOLS * 2) == [
            ("ALPHABET", SIMPLE_TEXT_SYMBOLS, 2)]
        assert find_reference_repeats("ABABAB") == [("AB", "AB", 3)]
        assert find_reference_repeats("XYZXYZ") == []
        assert find_reference_repeats("ABAB", [("P", "ABAB"), ("Q", "AB")]) == [("Q", "AB", 2)]


class TestAdditiveCandidates:
    def test_small_indices_have_none(self):
        assert list(additive_candidates(0, 100)) == []
        assert list(additive_candidates(1, 100)) == []
        assert list(additive_candidates(2, 100)) == [(1, 1)]

    def test_stops_at_half(self):
        assert list(additive_candidates(7, 100)) == [(1, 6), (2, 5), (3, 4)]

    def test_iteration_cap(self):
        assert list(additive_candidates(10 ** 6, 3)) == [(1, 999999), (2, 999998), (3, 999997)]
        assert list(additive_candidates(10 ** 6, 0)) == []

    def test_never_negative(self):
        for index in (2, 3, 10, 101):
            for a, b in additive_candidates(index, 1000):
                assert a > 0 and b > 0
                assert a + b == index
                assert a <= b


class TestLensAnalyzer:
    def test_small_literal_wins(self):
        report = LensAnalyzer().analyze(200)
        assert report.recommended == LiteralBigInt("200")
        assert report.lens_ids()[:2] == [LENS_LITERAL, LENS_TEXT_LITERAL]
        assert report.entries[1].instruction == LiteralText("GK", S)
        assert LENS_ADDITIVE in report.lens_ids()
        assert LENS_REFERENCE_REPEAT not in report.lens_ids()
        assert LENS_GENERIC_REPEAT not in report.lens_ids()

    def test_zero_stays_literal(self):
        report = LensAnalyzer().analyze(0)
        assert report.recommended == LiteralBigInt("0")
        assert report.lens_ids() == [LENS_LITERAL, LENS_TEXT_LITERAL]
        assert report.entries[1].instruction == LiteralText(" ", S)
        assert report.entries[1].estimated_cost > report.entries[0].estimated_cost

    def test_one_has_no_additive_entries(self):
        assert LENS_ADDITIVE not in LensAnalyzer().analyze(1).lens_ids()

    def test_repeated_pair(self, simple):
        index = text_to_index("ABABAB", simple)
        report = LensAnalyzer().analyze(index)
        assert report.recommended == RepeatTextPattern("AB", 3, S)
        # the catalog already has AB x3, so the generic lens stays quiet
        assert LENS_REFERENCE_REPEAT in report.lens_ids()
        assert LENS_GENERIC_REPEAT not in report.lens_ids()

    def test_generic_repeat_without_catalog(self, simple):
        index = text_to_index("ABABAB", simple)
        report = LensAnalyzer(config=AnalyzerConfig(reference_patterns=())).analyze(index)
        assert report.recommended == RepeatTextPattern("AB", 3, S)
        assert report.lens_ids().count(LENS_GENERIC_REPEAT) == 1

    def test_repeat_lenses_respect_repeat_bound(self, registry, simple, monkeypatch):
        import index_interconverter
        monkeypatch.setattr(index_interconverter, "MAX_REPEAT_SYMBOLS", 8)
        index = text_to_index("AB" * 5, simple)
        report = LensAnalyzer(registry).analyze(index)
        assert LENS_REFERENCE_REPEAT not in report.lens_ids()
        assert LENS_GENERIC_REPEAT not in report.lens_ids()
        assert execute_instruction(report.recommended, registry) == index

    def test_repeat_at_bound_is_kept(self, registry, simple, monkeypatch):
        import index_interconverter
        monkeypatch.setattr(index_interconverter, "MAX_REPEAT_SYMBOLS", 10)
        index = text_to_index("AB" * 5, simple)
        report = LensAnalyzer(registry).analyze(index)
        assert report.recommended == RepeatTextPattern("AB", 5, S)
        assert execute_instruction(report.recommended, registry) == index

    def test_generic_repeat_outside_catalog(self, simple):
        index = text_to_index("XYZXYZXYZ", simple)
        report = LensAnalyzer().analyze(index)
        assert report.recommended == RepeatTextPattern("XYZ", 3, S)
        assert LENS_REFERENCE_REPEAT not in report.lens_ids()

    def test_alphabet_twice(self, simple):
        index = text_to_index(SIMPLE_TEXT_SYMBOLS * 2, simple)
        report = LensAnalyzer().analyze(index)
        assert report.recommended == RepeatTextPattern(SIMPLE_TEXT_SYMBOLS, 2, S)

    def test_hello_world(self, simple):
        index = text_to_index("HELLO WORLD " * 3, simple)
        report = LensAnalyzer().analyze(index)
        assert report.recommended == RepeatTextPattern("HELLO WORLD ", 3, S)

    def test_text_beats_long_literal(self):
        report = LensAnalyzer().analyze(10 ** 20)
        assert isinstance(report.recommended, LiteralText)

    def test_additive_sampling(self):
        config = AnalyzerConfig(additive_sample_entries=2)
        report = LensAnalyzer(config=config).analyze(10 ** 20)
        additive = [e for e in report.entries if e.lens_id == LENS_ADDITIVE]
        assert [e.instruction for e in additive] == [
            EvaluateAddition("1", "99999999999999999999"),
            EvaluateAddition("2", "99999999999999999998"),
        ]

    def test_additive_respects_half(self):
        report = LensAnalyzer().analyze(10)
        additive = [e.instruction for e in report.entries if e.lens_id == LENS_ADDITIVE]
        assert additive == [EvaluateAddition(str(a), str(10 - a)) for a in range(1, 6)]

    def test_failing_lens_is_skipped(self):
        config = AnalyzerConfig(default_alphabet_id="MISSING")
        report = LensAnalyzer(config=config).analyze(200)
        assert report.recommended == LiteralBigInt("200")
        assert LENS_TEXT_LITERAL not in report.lens_ids()
        assert LENS_ADDITIVE in report.lens_ids()

    def test_negative_index(self):
        with pytest.raises(NegativeIndex):
            LensAnalyzer().analyze(-3)

    @pytest.mark.parametrize("text", ["ABABAB", "HELLO WORLD HELLO WORLD ", "QUUX", "Z" * 40])
    def test_recommendation_reproduces_index(self, registry, simple, text):
        index = text_to_index(text, simple)
        report = LensAnalyzer(registry).analyze(index)
        assert execute_instruction(report.recommended, registry) == index
        wire = report.to_dict()["recommended_instruction_for_save"]
        assert execute_instruction(wire, registry) == index

    @pytest.mark.parametrize("index", [0, 1, 2, 200, 10 ** 30, 2 ** 100 + 1, 10 ** 1200 + 3])
    def test_recommendation_reproduces_number(self, registry, index):
        report = LensAnalyzer(registry).analyze(index)
        for entry in report.entries:
            assert execute_instruction(entry.instruction, registry) == index


class TestAnalysisReport:
    def test_ties_keep_earlier(self):
        report = AnalysisReport(5, LiteralBigInt("5"), 3)
        assert not report.offer("OTHER", LiteralText("E", S), 3)
        assert report.recommended == LiteralBigInt("5")
        assert report.offer("OTHER", LiteralText("E", S), 2)
        assert report.recommended == LiteralText("E", S)
        assert report.recommended_cost == 2

    def test_to_dict_and_json(self):
        report = LensAnalyzer().analyze(200)
        data = report.to_dict()
        assert data["ci_analyzed"] == "200"
        assert data["recommended_instruction_for_save"] == {"type": "LITERAL_BIGINT", "value": "200"}
        first = data["analysis_by_lens"][0]
        assert first == {"lens_id": LENS_LITERAL,
                         "instruction": {"type": "LITERAL_BIGINT", "value": "200"},
                         "estimated_cost": 5}
        assert json.loads(report.to_json()) == data

    def test_unserialisable_report(self):
        from index_interconverter import ReportError
        report = AnalysisReport(1, object(), 1)
        with pytest.raises(ReportError):
            report.to_dict()
