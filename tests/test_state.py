"""
Tests for the canonical index handle, the CLI and the lens benchmark
"""

import json
import os

import pytest

from index_interconverter import (
    CanonicalIndexState,
    InvalidInput,
    OutOfRange,
    PROGRAMMER_ALPHABET_ID,
    ParseError,
    UnknownSymbol,
    UnsupportedModality,
    main,
)


class TestCanonicalIndexState:
    def test_starts_at_zero(self):
        state = CanonicalIndexState()
        assert state.get_index() == 0
        assert state.index_to_text() == " "
        assert state.min_sequence_length() == 0

    def test_set_index(self):
        state = CanonicalIndexState()
        state.set_index("123")
        assert state.get_index() == 123
        state.set_index(2 ** 80)
        assert state.get_index() == 2 ** 80

    def test_set_index_rejects_without_clamping(self):
        state = CanonicalIndexState()
        state.set_index(9)
        for bad in (-1, "-1", "abc", True):
            with pytest.raises(InvalidInput):
                state.set_index(bad)
        assert state.get_index() == 9

    def test_text(self):
        state = CanonicalIndexState()
        state.text_to_index("hello")
        assert state.index_to_text() == "HELLO"

    def test_failed_text_keeps_index(self):
        state = CanonicalIndexState()
        state.set_index(200)
        with pytest.raises(UnknownSymbol):
            state.text_to_index("HELLO!")
        assert state.get_index() == 200

    def test_other_alphabet(self):
        state = CanonicalIndexState()
        state.text_to_index("Hello!", PROGRAMMER_ALPHABET_ID)
        assert state.index_to_text(PROGRAMMER_ALPHABET_ID) == "Hello!"

    def test_empty_alphabet_id_is_unknown(self):
        state = CanonicalIndexState()
        state.set_index(200)
        with pytest.raises(UnsupportedModality):
            state.index_to_text("")
        with pytest.raises(UnsupportedModality):
            state.text_to_index("GK", "")
        assert state.get_index() == 200

    def test_negative_zero_rejected(self):
        state = CanonicalIndexState()
        with pytest.raises(InvalidInput):
            state.set_index("-0")

    def test_sequence(self):
        state = CanonicalIndexState()
        state.sequence_to_index([1, 2, 3], 8)
        assert state.get_index() == 0x010203
        assert state.min_sequence_length(8) == 3
        assert state.index_to_sequence(3, 8) == [1, 2, 3]
        assert state.index_to_sequence(5, 8) == [0, 0, 1, 2, 3]
        with pytest.raises(OutOfRange):
            state.index_to_sequence(2, 8)

    def test_default_bit_depth(self):
        state = CanonicalIndexState()
        state.sequence_to_index([1, 0])
        assert state.get_index() == 2 ** 24
        assert state.index_to_sequence(2) == [1, 0]

    def test_execute_instruction_sets_index(self):
        state = CanonicalIndexState()
        result = state.execute_instruction(
            {"type": "REPEAT_TEXT_PATTERN_TO_CI", "pattern": "AB", "count": 3,
             "alphabet_id": "SIMPLE_TEXT_A_Z_SPACE"})
        assert result == state.get_index()
        assert state.index_to_text() == "ABABAB"

    def test_execute_bad_recipe_keeps_index(self):
        state = CanonicalIndexState()
        state.set_index(5)
        with pytest.raises(ParseError):
            state.execute_instruction({"kind": "LITERAL_BIGINT", "value": "1"})
        assert state.get_index() == 5

    def test_analyze(self):
        state = CanonicalIndexState()
        state.set_index(200)
        report = state.analyze()
        assert set(report) == {"ci_analyzed", "analysis_by_lens", "recommended_instruction_for_save"}
        assert report["recommended_instruction_for_save"] == {"type": "LITERAL_BIGINT", "value": "200"}
        assert state.get_index() == 200

    def test_analyze_then_save_round_trip(self):
        state = CanonicalIndexState()
        state.text_to_index("ABCABCABCABC")
        index = state.get_index()
        recipe = state.analyze()["recommended_instruction_for_save"]
        state.set_index(0)
        assert state.execute_instruction(recipe) == index


class TestMain:
    def test_show(self, capsys):
        assert main(["--index", "200"]) == 0
        out = capsys.readouterr().out
        assert "index:    200" in out
        assert "'GK'" in out

    def test_sequence_input(self, capsys):
        assert main(["--sequence", "1,0", "--bit-depth", "8"]) == 0
        assert "index:    256" in capsys.readouterr().out

    def test_execute(self, capsys):
        recipe = json.dumps({"type": "EVALUATE_ADDITION", "operand1": "2", "operand2": "3"})
        assert main(["--execute", recipe]) == 0
        assert "index:    5" in capsys.readouterr().out

    def test_analyze(self, capsys):
        assert main(["--text", "ABABAB", "--analyze"]) == 0
        report = json.loads(capsys.readouterr().out)
        assert report["recommended_instruction_for_save"]["type"] == "REPEAT_TEXT_PATTERN_TO_CI"

    def test_errors(self, capsys):
        assert main(["--index", "-5"]) == 1
        assert main(["--execute", "{not json"]) == 1
        assert main(["--index", "5", "--cap", "-1"]) == 1
        assert capsys.readouterr().out.count("error:") == 3


class TestBenchmark:
    def test_run_benchmarks(self, tmp_path):
        from benchmark_lenses import run_benchmarks
        plot_path = str(tmp_path / "plots" / "lenses.png")
        df, path = run_benchmarks(plot_path=plot_path)
        assert path == plot_path
        assert os.path.exists(path)
        assert df["valid"].all()
        assert set(df["dataset"]) >= {"zero", "small_literal", "alphabet_twice"}
        assert df.groupby("dataset")["recommended"].any().all()
