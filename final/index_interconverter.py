#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
index_interconverter.py -- Canonical index interconverter and recipe selector.

This module keeps a single arbitrary-precision nonnegative integer, the
*canonical index*, and converts it losslessly between several positional
numeral "modalities":

* **Text** over a registered alphabet.  An alphabet is built from a raw
  symbol string by sorting and deduplicating it; a symbol's value is its
  rank.  The text is read as a big-endian number in base ``len(alphabet)``.
* **Sequences** of fixed-width words.  ``U32`` sequences carry 1..32 bit
  words, ``BIGUINT`` sequences carry arbitrarily wide words.  The sequence
  is a big-endian number in base ``2**bit_depth``.

On top of the codec sits a tiny instruction language.  An instruction is a
recipe that rebuilds an index:

* ``LITERAL_BIGINT``            -- the decimal digits of the index.
* ``LITERAL_TEXT_TO_CI``        -- a text to decode over an alphabet.
* ``REPEAT_TEXT_PATTERN_TO_CI`` -- a pattern repeated ``count`` times, decoded.
* ``EVALUATE_ADDITION``         -- the sum of two decimal operands.

The *lens analyzer* evaluates several reconstruction strategies (lenses)
against the current index and recommends the cheapest recipe.  Cost is the
length of the recipe's binary record, so the selection is a small MDL game:
the shortest description wins, ties keep the earlier lens.

### Binary recipe record

Each recipe serialises to:

* ``u8 opcode`` -- 0 literal, 1 text, 2 repeat, 3 addition.
* alphabet references as ``u16`` little-endian registry slots.
* strings and decimal integers as ULEB128 length + UTF-8 bytes.
* ``count`` as ULEB128.

``estimate_cost(instr) == len(serialize_instruction(instr))``.

### Lenses, in evaluation order

1. ``LITERAL``                 -- always valid; the baseline recommendation.
2. ``TEXT_LITERAL``            -- minimal-length text over the default alphabet.
3. ``REFERENCE_REPEAT``        -- text is an exact multiple of a catalog pattern.
4. ``GENERIC_REPEAT``          -- text has a smaller repeating period.
5. ``ADDITIVE_DECOMPOSITION``  -- bounded search over ``a + (index - a)``.

A lens that fails is skipped; the rest of the analysis carries on.
"""

from __future__ import annotations

import json
import logging
import re
import struct
from dataclasses import dataclass, field
from typing import (Any, ClassVar, Dict, Iterable, Iterator, List, Mapping,
                    Optional, Sequence, Set, Tuple, Union)

logger = logging.getLogger(__name__)

###############################################################################
# Errors
###############################################################################

class InterconverterError(ValueError):
    """Base class of every typed failure raised by this module."""


class InvalidInput(InterconverterError):
    """Malformed decimal, wrong value type, negative operand or bad argument."""


class NegativeIndex(InvalidInput):
    def __init__(self, index: int) -> None:
        self.index = index
        super().__init__("Negative index is not supported")


class UnknownSymbol(InterconverterError):
    """A character that is not part of the alphabet being decoded."""

    def __init__(self, symbol: str, position: int, alphabet_id: Optional[str] = None) -> None:
        self.symbol = symbol
        self.position = position
        self.alphabet_id = alphabet_id
        where = f" of alphabet {alphabet_id}" if alphabet_id else ""
        super().__init__(
            f"Symbol {symbol!r} (U+{ord(symbol):04X}) at position {position} is not a member{where}"
        )


class OutOfRange(InterconverterError):
    """The index does not fit into ``target_length`` units of ``base``."""

    def __init__(self, index: int, target_length: int, base: int) -> None:
        self.index = index
        self.target_length = target_length
        self.base = base
        super().__init__(
            f"Index ({index.bit_length()} bits) is too large for length "
            f"{target_length} in base {base}"
        )


class WordOutOfRange(OutOfRange):
    """A sequence word does not fit into ``bit_depth`` bits."""

    def __init__(self, value: int, bit_depth: int, position: Optional[int] = None) -> None:
        self.value = value
        self.bit_depth = bit_depth
        self.position = position
        self.index = None
        self.target_length = None
        self.base = 1 << bit_depth
        at = f" at position {position}" if position is not None else ""
        InterconverterError.__init__(
            self,
            f"Sequence value {_preview(value)}{at} is out of the 0 to 2^{bit_depth}-1 "
            f"range for {bit_depth}-bit elements"
        )


class UnsupportedModality(InterconverterError):
    """Unknown alphabet or sequence modality, or an unsupported bit depth."""

    def __init__(self, modality_id: Any, reason: Optional[str] = None) -> None:
        self.modality_id = modality_id
        message = f"Unsupported modality {modality_id!r}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class ParseError(InterconverterError):
    """Malformed instruction: bad discriminator, shape or binary record."""


class ReportError(InterconverterError):
    """The analysis report could not be serialised."""


def _preview(value: Any, limit: int = 40) -> str:
    if isinstance(value, int) and not isinstance(value, bool):
        # repr of huge ints trips the interpreter digit limit
        text = decimal_string(value) if value.bit_length() < 4096 else f"<{value.bit_length()}-bit int>"
    elif isinstance(value, str):
        text = repr(value)
    else:
        text = f"<{type(value).__name__}>"
    return text if len(text) <= limit else text[:limit] + "..."

###############################################################################
# Configuration
###############################################################################

SIMPLE_TEXT_ALPHABET_ID = "SIMPLE_TEXT_A_Z_SPACE"
SIMPLE_TEXT_SYMBOLS = "ABCDEFGHIJKLMNOPQRSTUVWXYZ "

PROGRAMMER_ALPHABET_ID = "PROGRAMMER_CHARS"
PROGRAMMER_SYMBOLS = (
    " \n\t\rabcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
    "!\"#$%&'()*+,-./:;<=>?@[\\]^_`{|}~"
    "←↑→↓↔∑√≈≠≤≥÷±∞€₹₽£¥₩"
    "¡¢£¤¥¦§¨©ª«¬®¯°±²³´µ¶·¸¹º»¼½¾¿"
    "ÀÁÂÃÄÅÆÇÈÉÊËÌÍÎÏÐÑÒÓÔÕÖ×ØÙÚÛÜÝÞß"
    "àáâãäåæçèéêëìíîïðñòóôõö÷øùúûüýþÿ"
)

U32_SEQUENCE_ID = "U32"
BIGUINT_SEQUENCE_ID = "BIGUINT"
DEFAULT_SEQUENCE_BIT_DEPTH = 24
MAX_WIDE_BIT_DEPTH = 4096

# modality id -> inclusive (min, max) bit depth
SEQUENCE_MODALITIES: Dict[str, Tuple[int, int]] = {
    U32_SEQUENCE_ID: (1, 32),
    BIGUINT_SEQUENCE_ID: (1, MAX_WIDE_BIT_DEPTH),
}

# upper bound on len(pattern) * count when a repeat recipe is materialised
MAX_REPEAT_SYMBOLS = 1 << 20

ADDITIVE_ITERATION_CAP = 1000
ADDITIVE_SAMPLE_ENTRIES = 5

# (name, pattern) in catalog order; patterns are in the default alphabet
REFERENCE_PATTERNS: Tuple[Tuple[str, str], ...] = (
    ("ALPHABET", SIMPLE_TEXT_SYMBOLS),
    ("AB", "AB"),
    ("ABC", "ABC"),
    ("HELLO", "HELLO "),
    ("HELLO_WORLD", "HELLO WORLD "),
)


@dataclass
class AnalyzerConfig:
    """Knobs of the lens analyzer.  The CLI overrides these."""
    additive_iteration_cap: int = ADDITIVE_ITERATION_CAP
    additive_sample_entries: int = ADDITIVE_SAMPLE_ENTRIES
    default_alphabet_id: str = SIMPLE_TEXT_ALPHABET_ID
    reference_patterns: Tuple[Tuple[str, str], ...] = REFERENCE_PATTERNS

    def __post_init__(self) -> None:
        if self.additive_iteration_cap < 0:
            raise InvalidInput("additive_iteration_cap must be >= 0")
        if self.additive_sample_entries < 0:
            raise InvalidInput("additive_sample_entries must be >= 0")

###############################################################################
# Decimal and ULEB128 helpers
###############################################################################

# well below the interpreter's default int<->str digit limit (4300)
_DEC_CHUNK = 1000
_DEC_CHUNK_POW = 10 ** _DEC_CHUNK
_DECIMAL_RE = re.compile(r"[+-]?[0-9]+")


def decimal_string(n: int) -> str:
    """Render ``n`` in base 10 without tripping the int/str digit limit.

    Values below ``10**1000`` go straight through ``str``; larger values
    are peeled off in 1000-digit chunks, least significant first, and each
    chunk is zero padded back to full width.
    """
    if n < 0:
        return "-" + decimal_string(-n)
    if n < _DEC_CHUNK_POW:
        return str(n)
    chunks: List[int] = []
    while n:
        n, r = divmod(n, _DEC_CHUNK_POW)
        chunks.append(r)
    head = str(chunks[-1])
    return head + "".join(str(c).zfill(_DEC_CHUNK) for c in reversed(chunks[:-1]))


def parse_decimal(value: Union[str, int]) -> int:
    """Parse a signed decimal string (or pass an ``int`` through).

    Only ASCII digits with an optional sign are accepted; whitespace,
    underscores and non-ASCII digits are rejected with ``InvalidInput``.
    """
    if isinstance(value, bool):
        raise InvalidInput("Booleans are not integers here")
    if isinstance(value, int):
        return value
    if not isinstance(value, str) or not _DECIMAL_RE.fullmatch(value):
        raise InvalidInput(f"Malformed decimal integer: {_preview(value)}")
    negative = value[0] == "-"
    digits = value.lstrip("+-")
    n = 0
    for i in range(0, len(digits), _DEC_CHUNK):
        chunk = digits[i:i + _DEC_CHUNK]
        n = n * 10 ** len(chunk) + int(chunk)
    return -n if negative else n


def parse_index(value: Union[str, int]) -> int:
    """Parse a canonical index; negative values raise ``NegativeIndex``."""
    index = parse_decimal(value)
    if index < 0 or (isinstance(value, str) and value.startswith("-")):
        raise NegativeIndex(index)
    return index


def _check_index(index: Any) -> int:
    if isinstance(index, bool) or not isinstance(index, int):
        raise InvalidInput(f"Index must be an int, got {type(index).__name__}")
    if index < 0:
        raise NegativeIndex(index)
    return index


def _check_length(target_length: Any) -> int:
    if isinstance(target_length, bool) or not isinstance(target_length, int):
        raise InvalidInput(f"Target length must be an int, got {type(target_length).__name__}")
    if target_length < 0:
        raise InvalidInput("Target length cannot be negative")
    return target_length


def uleb128_encode(n: int) -> bytes:
    """Encode a non-negative integer into unsigned LEB128."""
    if n < 0:
        raise InvalidInput("ULEB128 only supports unsigned integers")
    out = bytearray()
    while True:
        b = n & 0x7F
        n >>= 7
        if n:
            out.append(b | 0x80)
        else:
            out.append(b)
            break
    return bytes(out)


def uleb128_decode_stream(data: bytes, pos: int = 0) -> Tuple[int, int]:
    """Decode a ULEB128 value from ``data`` starting at ``pos``.

    Returns ``(value, new_pos)``; truncated input raises ``ParseError``.
    """
    shift = 0
    result = 0
    while True:
        if pos >= len(data):
            raise ParseError("Truncated ULEB128")
        b = data[pos]
        pos += 1
        result |= (b & 0x7F) << shift
        if (b & 0x80) == 0:
            return result, pos
        shift += 7

###############################################################################
# Alphabets
###############################################################################

class Alphabet:
    """An immutable, sorted and deduplicated symbol table.

    ``fold_case`` names the canonical case ("upper" or "lower") that input
    text is folded to before lookup.  Encoding always emits the canonical
    case, so decoding ``"ab"`` and re-encoding yields ``"AB"``: case is lost
    on purpose.  ``None`` makes the alphabet case sensitive.
    """
    __slots__ = ("alphabet_id", "symbols", "base", "fold_case", "_values")

    def __init__(self, alphabet_id: str, raw_symbols: str,
                 fold_case: Optional[str] = None) -> None:
        if fold_case not in (None, "upper", "lower"):
            raise InvalidInput(f"fold_case must be 'upper', 'lower' or None, got {fold_case!r}")
        symbols = tuple(sorted(set(raw_symbols)))
        if len(symbols) < 2:
            raise InvalidInput(f"Alphabet {alphabet_id!r} needs at least 2 distinct symbols")
        self.alphabet_id = alphabet_id
        self.symbols = symbols
        self.base = len(symbols)
        self.fold_case = fold_case
        self._values = {s: i for i, s in enumerate(symbols)}

    @property
    def zero_symbol(self) -> str:
        return self.symbols[0]

    @property
    def text(self) -> str:
        return "".join(self.symbols)

    def fold(self, symbol: str) -> str:
        if self.fold_case is None:
            return symbol
        folded = symbol.upper() if self.fold_case == "upper" else symbol.lower()
        # 'ß'.upper() == 'SS'; keep such symbols as they are
        return folded if len(folded) == 1 else symbol

    def value_of(self, symbol: str, position: int = 0) -> int:
        value = self._values.get(self.fold(symbol))
        if value is None:
            raise UnknownSymbol(symbol, position, self.alphabet_id)
        return value

    def symbol_of(self, value: int) -> str:
        return self.symbols[value]

    def __contains__(self, symbol: object) -> bool:
        return isinstance(symbol, str) and self.fold(symbol) in self._values

    def __len__(self) -> int:
        return self.base

    def __repr__(self) -> str:
        return f"Alphabet({self.alphabet_id!r}, base={self.base})"


class AlphabetRegistry:
    """Named alphabets, each registered once and kept in slot order.

    The slot (registration order) is what the binary recipe record stores,
    so two registries with the same registrations produce the same costs.
    """

    def __init__(self) -> None:
        self._alphabets: Dict[str, Alphabet] = {}
        self._order: List[str] = []

    @classmethod
    def with_defaults(cls) -> "AlphabetRegistry":
        registry = cls()
        registry.register(SIMPLE_TEXT_ALPHABET_ID, SIMPLE_TEXT_SYMBOLS, fold_case="upper")
        registry.register(PROGRAMMER_ALPHABET_ID, PROGRAMMER_SYMBOLS)
        return registry

    def register(self, alphabet_id: str, raw_symbols: str,
                 fold_case: Optional[str] = None) -> Alphabet:
        if not isinstance(alphabet_id, str) or not alphabet_id:
            raise InvalidInput("Alphabet id must be a non-empty string")
        if alphabet_id in self._alphabets:
            raise InvalidInput(f"Alphabet {alphabet_id!r} is already registered")
        if len(self._order) >= 0x10000:
            raise InvalidInput("Alphabet registry is full (u16 slots)")
        alphabet = Alphabet(alphabet_id, raw_symbols, fold_case)
        self._alphabets[alphabet_id] = alphabet
        self._order.append(alphabet_id)
        logger.debug("Registered alphabet %s with base %d", alphabet_id, alphabet.base)
        return alphabet

    def get(self, alphabet_id: Any) -> Alphabet:
        alphabet = self._alphabets.get(alphabet_id) if isinstance(alphabet_id, str) else None
        if alphabet is None:
            raise UnsupportedModality(alphabet_id, "unknown alphabet")
        return alphabet

    def slot_of(self, alphabet_id: str) -> int:
        self.get(alphabet_id)
        return self._order.index(alphabet_id)

    def by_slot(self, slot: int) -> Alphabet:
        if not 0 <= slot < len(self._order):
            raise UnsupportedModality(slot, "unknown alphabet slot")
        return self._alphabets[self._order[slot]]

    def ids(self) -> List[str]:
        return list(self._order)

    def __contains__(self, alphabet_id: object) -> bool:
        return alphabet_id in self._alphabets

    def __len__(self) -> int:
        return len(self._order)

###############################################################################
# Numeral codec
###############################################################################

def _check_base(base: int) -> int:
    if isinstance(base, bool) or not isinstance(base, int) or base <= 1:
        raise InvalidInput(f"Base must be an int >= 2, got {base!r}")
    return base


def min_length(index: int, base: int) -> int:
    """Number of base-``base`` digits needed for ``index`` (0 for index 0).

    Power-of-two bases are answered from ``bit_length``; other bases count
    divisions until the quotient reaches zero.
    """
    _check_index(index)
    _check_base(base)
    if index == 0:
        return 0
    if base & (base - 1) == 0:
        width = base.bit_length() - 1
        return -(-index.bit_length() // width)
    length = 0
    while index:
        index //= base
        length += 1
    return length


def encode_digits(index: int, base: int, target_length: int) -> List[int]:
    """Big-endian digits of ``index`` in ``base``, left padded to ``target_length``.

    Raises ``OutOfRange`` when ``index`` needs more than ``target_length``
    digits.  Index 0 gives ``target_length`` zeros (an empty list for 0).
    """
    _check_index(index)
    _check_base(base)
    _check_length(target_length)
    if index == 0:
        return [0] * target_length
    digits: List[int] = []
    remaining = index
    while remaining and len(digits) < target_length:
        remaining, r = divmod(remaining, base)
        digits.append(r)
    if remaining:
        raise OutOfRange(index, target_length, base)
    digits.extend([0] * (target_length - len(digits)))
    digits.reverse()
    return digits


def decode_digits(digits: Iterable[int], base: int) -> int:
    """Horner evaluation of big-endian ``digits``; digits must be < ``base``."""
    _check_base(base)
    index = 0
    for position, d in enumerate(digits):
        if isinstance(d, bool) or not isinstance(d, int) or not 0 <= d < base:
            raise InvalidInput(f"Digit {_preview(d)} at position {position} is not valid in base {base}")
        index = index * base + d
    return index


def text_to_index(text: str, alphabet: Alphabet) -> int:
    """Decode ``text`` over ``alphabet``; the empty text is index 0."""
    if not isinstance(text, str):
        raise InvalidInput(f"Text must be a str, got {type(text).__name__}")
    return decode_digits(
        (alphabet.value_of(symbol, position) for position, symbol in enumerate(text)),
        alphabet.base,
    )


def index_to_text(index: int, alphabet: Alphabet,
                  target_length: Optional[int] = None) -> str:
    """Encode ``index`` over ``alphabet``.

    Without ``target_length`` the shortest nonempty text is produced, so
    index 0 becomes a single zero symbol.
    """
    if target_length is None:
        target_length = max(1, min_length(index, alphabet.base))
    return "".join(alphabet.symbols[d] for d in encode_digits(index, alphabet.base, target_length))

###############################################################################
# Sequence modality
###############################################################################

def word_base(bit_depth: int, modality_id: str = U32_SEQUENCE_ID) -> int:
    """Return ``2**bit_depth`` after checking the modality supports it."""
    bounds = SEQUENCE_MODALITIES.get(modality_id) if isinstance(modality_id, str) else None
    if bounds is None:
        raise UnsupportedModality(modality_id, "unknown sequence modality")
    lo, hi = bounds
    if isinstance(bit_depth, bool) or not isinstance(bit_depth, int) or not lo <= bit_depth <= hi:
        raise UnsupportedModality(modality_id, f"bit depth {bit_depth!r} outside {lo}..{hi}")
    return 1 << bit_depth


def sequence_to_index(words: Sequence[int], bit_depth: int = DEFAULT_SEQUENCE_BIT_DEPTH,
                      modality_id: str = U32_SEQUENCE_ID) -> int:
    """Decode a big-endian sequence of ``bit_depth``-bit words."""
    base = word_base(bit_depth, modality_id)
    index = 0
    for position, word in enumerate(words):
        if isinstance(word, bool) or not isinstance(word, int):
            raise InvalidInput(f"Sequence element at position {position} is not an int")
        if word < 0 or word >= base:
            raise WordOutOfRange(word, bit_depth, position)
        index = (index << bit_depth) | word
    return index


def index_to_sequence(index: int, target_length: int,
                      bit_depth: int = DEFAULT_SEQUENCE_BIT_DEPTH,
                      modality_id: str = U32_SEQUENCE_ID) -> List[int]:
    """Encode ``index`` as exactly ``target_length`` big-endian words."""
    return encode_digits(index, word_base(bit_depth, modality_id), target_length)


def min_sequence_length(index: int, bit_depth: int = DEFAULT_SEQUENCE_BIT_DEPTH,
                        modality_id: str = U32_SEQUENCE_ID) -> int:
    return min_length(index, word_base(bit_depth, modality_id))

###############################################################################
# Pattern finder
###############################################################################

def find_minimal_period(text: str) -> Optional[Tuple[str, int]]:
    """Smallest repeating unit of ``text`` as ``(pattern, count)``.

    Periods ``p`` in ``1..len(text)//2`` that divide the length are tried
    in increasing order; the first ``p`` with ``text == text[:p] * (n//p)``
    wins.  A text that only repeats itself once yields ``None``.  The scan
    is quadratic in the text length, which grows only logarithmically with
    the index.
    """
    n = len(text)
    for p in range(1, n // 2 + 1):
        if n % p:
            continue
        count = n // p
        if text[:p] * count == text:
            return text[:p], count
    return None


def match_reference_pattern(text: str, pattern: str) -> Optional[int]:
    """Multiplicity of ``pattern`` in ``text`` when text is pattern * k, k > 1."""
    m = len(pattern)
    if m == 0 or len(text) % m:
        return None
    count = len(text) // m
    if count > 1 and pattern * count == text:
        return count
    return None


def find_reference_repeats(text: str,
                           catalog: Iterable[Tuple[str, str]] = REFERENCE_PATTERNS
                           ) -> List[Tuple[str, str, int]]:
    """All catalog entries ``(name, pattern, count)`` that tile ``text``."""
    hits: List[Tuple[str, str, int]] = []
    for name, pattern in catalog:
        count = match_reference_pattern(text, pattern)
        if count is not None:
            hits.append((name, pattern, count))
    return hits

###############################################################################
# Instructions
###############################################################################

@dataclass(frozen=True)
class LiteralBigInt:
    value: str
    KIND: ClassVar[str] = "LITERAL_BIGINT"
    OPCODE: ClassVar[int] = 0


@dataclass(frozen=True)
class LiteralText:
    text: str
    alphabet_id: str
    KIND: ClassVar[str] = "LITERAL_TEXT_TO_CI"
    OPCODE: ClassVar[int] = 1


@dataclass(frozen=True)
class RepeatTextPattern:
    pattern: str
    count: int
    alphabet_id: str
    KIND: ClassVar[str] = "REPEAT_TEXT_PATTERN_TO_CI"
    OPCODE: ClassVar[int] = 2


@dataclass(frozen=True)
class EvaluateAddition:
    operand1: str
    operand2: str
    KIND: ClassVar[str] = "EVALUATE_ADDITION"
    OPCODE: ClassVar[int] = 3


Instruction = Union[LiteralBigInt, LiteralText, RepeatTextPattern, EvaluateAddition]

_INSTRUCTION_KINDS: Dict[str, type] = {
    cls.KIND: cls for cls in (LiteralBigInt, LiteralText, RepeatTextPattern, EvaluateAddition)
}


def to_wire(instruction: Instruction) -> Dict[str, Any]:
    """Wire dict of an instruction (discriminator under ``type``)."""
    if isinstance(instruction, LiteralBigInt):
        return {"type": instruction.KIND, "value": instruction.value}
    if isinstance(instruction, LiteralText):
        return {"type": instruction.KIND, "text": instruction.text,
                "alphabet_id": instruction.alphabet_id}
    if isinstance(instruction, RepeatTextPattern):
        return {"type": instruction.KIND, "pattern": instruction.pattern,
                "count": instruction.count, "alphabet_id": instruction.alphabet_id}
    if isinstance(instruction, EvaluateAddition):
        return {"type": instruction.KIND, "operand1": instruction.operand1,
                "operand2": instruction.operand2}
    raise ParseError(f"Not an instruction: {type(instruction).__name__}")


def _field(recipe: Mapping[str, Any], name: str, kinds: Tuple[type, ...]) -> Any:
    if name not in recipe:
        raise ParseError(f"{recipe['type']} recipe is missing field {name!r}")
    value = recipe[name]
    if isinstance(value, bool) or not isinstance(value, kinds):
        raise ParseError(f"Field {name!r} of {recipe['type']} has wrong type {type(value).__name__}")
    return value


def _decimal_field(recipe: Mapping[str, Any], name: str) -> str:
    value = _field(recipe, name, (str, int))
    return decimal_string(value) if isinstance(value, int) else value


def from_wire(recipe: Any) -> Instruction:
    """Build an instruction from a wire dict.

    The shape is checked here (``ParseError``); value checks such as
    negative operands happen at execution time (``InvalidInput``).
    """
    if not isinstance(recipe, Mapping):
        raise ParseError(f"Recipe must be a mapping, got {type(recipe).__name__}")
    kind = recipe.get("type")
    if not isinstance(kind, str):
        raise ParseError("Recipe has no string 'type' discriminator")
    if kind not in _INSTRUCTION_KINDS:
        raise ParseError(f"Unknown recipe type {_preview(kind)}")
    if kind == LiteralBigInt.KIND:
        return LiteralBigInt(_decimal_field(recipe, "value"))
    if kind == LiteralText.KIND:
        return LiteralText(_field(recipe, "text", (str,)), _field(recipe, "alphabet_id", (str,)))
    if kind == RepeatTextPattern.KIND:
        return RepeatTextPattern(_field(recipe, "pattern", (str,)),
                                 _field(recipe, "count", (int,)),
                                 _field(recipe, "alphabet_id", (str,)))
    return EvaluateAddition(_decimal_field(recipe, "operand1"), _decimal_field(recipe, "operand2"))

###############################################################################
# Executor
###############################################################################

def execute_instruction(instruction: Union[Instruction, Mapping[str, Any]],
                        registry: AlphabetRegistry) -> int:
    """Evaluate a recipe (instruction or wire dict) to its canonical index."""
    if isinstance(instruction, Mapping):
        instruction = from_wire(instruction)
    if isinstance(instruction, LiteralBigInt):
        return parse_index(instruction.value)
    if isinstance(instruction, LiteralText):
        return text_to_index(instruction.text, registry.get(instruction.alphabet_id))
    if isinstance(instruction, RepeatTextPattern):
        count = instruction.count
        if isinstance(count, bool) or not isinstance(count, int):
            raise ParseError("Repeat count must be an int")
        if count < 0:
            raise InvalidInput("Repeat count cannot be negative")
        if not instruction.pattern or count == 0:
            return 0
        if len(instruction.pattern) * count > MAX_REPEAT_SYMBOLS:
            raise InvalidInput(
                f"Repeat of {len(instruction.pattern)} symbols x {count} exceeds "
                f"{MAX_REPEAT_SYMBOLS} symbols"
            )
        alphabet = registry.get(instruction.alphabet_id)
        return text_to_index(instruction.pattern * count, alphabet)
    if isinstance(instruction, EvaluateAddition):
        a = parse_decimal(instruction.operand1)
        b = parse_decimal(instruction.operand2)
        if a < 0 or b < 0:
            raise InvalidInput("Addition operands must be non-negative")
        return a + b
    raise ParseError(f"Not an instruction: {type(instruction).__name__}")

###############################################################################
# Binary recipe record and cost model
###############################################################################

def _write_str(out: bytearray, s: str) -> None:
    data = s.encode("utf-8")
    out += uleb128_encode(len(data))
    out += data


def _read_str(blob: bytes, pos: int) -> Tuple[str, int]:
    n, pos = uleb128_decode_stream(blob, pos)
    if pos + n > len(blob):
        raise ParseError("Truncated string field")
    try:
        return blob[pos:pos + n].decode("utf-8"), pos + n
    except UnicodeDecodeError as exc:
        raise ParseError(f"String field is not UTF-8: {exc}") from exc


def _read_slot(blob: bytes, pos: int) -> Tuple[int, int]:
    if pos + 2 > len(blob):
        raise ParseError("Truncated alphabet slot")
    return struct.unpack_from("<H", blob, pos)[0], pos + 2


def serialize_instruction(instruction: Instruction, registry: AlphabetRegistry) -> bytes:
    """Binary record of ``instruction``; see the module docstring."""
    out = bytearray()
    if isinstance(instruction, LiteralBigInt):
        out.append(instruction.OPCODE)
        _write_str(out, instruction.value)
    elif isinstance(instruction, LiteralText):
        out.append(instruction.OPCODE)
        out += struct.pack("<H", registry.slot_of(instruction.alphabet_id))
        _write_str(out, instruction.text)
    elif isinstance(instruction, RepeatTextPattern):
        out.append(instruction.OPCODE)
        out += struct.pack("<H", registry.slot_of(instruction.alphabet_id))
        _write_str(out, instruction.pattern)
        out += uleb128_encode(instruction.count)
    elif isinstance(instruction, EvaluateAddition):
        out.append(instruction.OPCODE)
        _write_str(out, instruction.operand1)
        _write_str(out, instruction.operand2)
    else:
        raise ParseError(f"Not an instruction: {type(instruction).__name__}")
    return bytes(out)


def deserialize_instruction(blob: bytes, registry: AlphabetRegistry) -> Instruction:
    """Inverse of ``serialize_instruction``.  Trailing bytes are an error."""
    if not blob:
        raise ParseError("Empty recipe record")
    opcode = blob[0]
    pos = 1
    instruction: Instruction
    if opcode == LiteralBigInt.OPCODE:
        value, pos = _read_str(blob, pos)
        instruction = LiteralBigInt(value)
    elif opcode == LiteralText.OPCODE:
        slot, pos = _read_slot(blob, pos)
        text, pos = _read_str(blob, pos)
        instruction = LiteralText(text, registry.by_slot(slot).alphabet_id)
    elif opcode == RepeatTextPattern.OPCODE:
        slot, pos = _read_slot(blob, pos)
        pattern, pos = _read_str(blob, pos)
        count, pos = uleb128_decode_stream(blob, pos)
        instruction = RepeatTextPattern(pattern, count, registry.by_slot(slot).alphabet_id)
    elif opcode == EvaluateAddition.OPCODE:
        op1, pos = _read_str(blob, pos)
        op2, pos = _read_str(blob, pos)
        instruction = EvaluateAddition(op1, op2)
    else:
        raise ParseError(f"Unknown recipe opcode {opcode}")
    if pos != len(blob):
        raise ParseError(f"Extra trailing {len(blob) - pos} bytes after recipe")
    return instruction


class CostModel:
    """Serialized size, in bytes, of a recipe's binary record."""

    def __init__(self, registry: AlphabetRegistry) -> None:
        self.registry = registry

    def estimate(self, instruction: Instruction) -> int:
        return len(serialize_instruction(instruction, self.registry))

###############################################################################
# Additive search
###############################################################################

def additive_candidates(index: int, iteration_cap: int) -> Iterator[Tuple[int, int]]:
    """Yield ``(a, index - a)`` for ``a = 1, 2, ...``.

    Stops once ``a`` passes ``index // 2`` or ``iteration_cap`` pairs have
    been produced.  Indices 0 and 1 have no decomposition.
    """
    _check_index(index)
    if index <= 1:
        return
    half = index // 2
    a = 1
    iterations = 0
    while a <= half and iterations < iteration_cap:
        yield a, index - a
        a += 1
        iterations += 1

###############################################################################
# Lens analyzer
###############################################################################

LENS_LITERAL = "LITERAL"
LENS_TEXT_LITERAL = "TEXT_LITERAL"
LENS_REFERENCE_REPEAT = "REFERENCE_REPEAT"
LENS_GENERIC_REPEAT = "GENERIC_REPEAT"
LENS_ADDITIVE = "ADDITIVE_DECOMPOSITION"


@dataclass(frozen=True)
class AnalysisEntry:
    lens_id: str
    instruction: Instruction
    estimated_cost: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lens_id": self.lens_id,
            "instruction": to_wire(self.instruction),
            "estimated_cost": self.estimated_cost,
        }


@dataclass
class AnalysisReport:
    """Outcome of one ``LensAnalyzer.analyze`` call.

    ``entries`` keeps evaluation order.  ``recommended`` is the cheapest
    instruction seen; it only ever changed on a strictly lower cost.
    """
    index_analyzed: int
    recommended: Instruction
    recommended_cost: int
    entries: List[AnalysisEntry] = field(default_factory=list)

    def offer(self, lens_id: str, instruction: Instruction, cost: int) -> bool:
        """Record an entry; adopt it as the recommendation if strictly cheaper."""
        self.entries.append(AnalysisEntry(lens_id, instruction, cost))
        if cost < self.recommended_cost:
            logger.debug("Lens %s improves cost %d -> %d", lens_id, self.recommended_cost, cost)
            self.recommended = instruction
            self.recommended_cost = cost
            return True
        return False

    def lens_ids(self) -> List[str]:
        return [e.lens_id for e in self.entries]

    def to_dict(self) -> Dict[str, Any]:
        try:
            return {
                "ci_analyzed": decimal_string(self.index_analyzed),
                "analysis_by_lens": [e.to_dict() for e in self.entries],
                "recommended_instruction_for_save": to_wire(self.recommended),
            }
        except (InterconverterError, TypeError) as exc:
            raise ReportError(f"Could not serialise analysis report: {exc}") from exc

    def to_json(self, indent: Optional[int] = None) -> str:
        try:
            return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            raise ReportError(f"Could not serialise analysis report: {exc}") from exc


class LensAnalyzer:
    """Evaluate every lens against an index and pick the cheapest recipe.

    The literal lens is computed first and is the baseline; every later
    lens replaces the recommendation only on a strictly lower cost, so ties
    keep the earlier lens.  Lenses that raise an ``InterconverterError`` (or
    any ``ValueError``) are logged and skipped.
    """

    def __init__(self, registry: Optional[AlphabetRegistry] = None,
                 config: Optional[AnalyzerConfig] = None) -> None:
        self.registry = registry if registry is not None else AlphabetRegistry.with_defaults()
        self.config = config if config is not None else AnalyzerConfig()
        self.cost_model = CostModel(self.registry)

    def analyze(self, index: int) -> AnalysisReport:
        _check_index(index)
        literal = LiteralBigInt(decimal_string(index))
        report = AnalysisReport(index, literal, self.cost_model.estimate(literal))
        report.entries.append(AnalysisEntry(LENS_LITERAL, literal, report.recommended_cost))

        text: Optional[str] = None
        try:
            text = self._text_literal(index, report)
        except ValueError as exc:
            logger.warning("Lens %s unavailable: %s", LENS_TEXT_LITERAL, exc)

        seen: Set[Tuple[str, int]] = set()
        # pattern * count == text, so a longer text could never be executed
        if text is not None and len(text) > MAX_REPEAT_SYMBOLS:
            logger.debug("Repeat lenses skipped: text of %d symbols exceeds %d",
                         len(text), MAX_REPEAT_SYMBOLS)
        elif text is not None:
            for lens_id, lens in ((LENS_REFERENCE_REPEAT, self._reference_repeat),
                                  (LENS_GENERIC_REPEAT, self._generic_repeat)):
                try:
                    lens(text, report, seen)
                except ValueError as exc:
                    logger.warning("Lens %s unavailable: %s", lens_id, exc)

        try:
            self._additive(index, report)
        except ValueError as exc:
            logger.warning("Lens %s unavailable: %s", LENS_ADDITIVE, exc)

        logger.debug("Analyzed %d-bit index: %d entries, best cost %d",
                     index.bit_length(), len(report.entries), report.recommended_cost)
        return report

    def _text_literal(self, index: int, report: AnalysisReport) -> str:
        alphabet = self.registry.get(self.config.default_alphabet_id)
        text = index_to_text(index, alphabet)
        instruction = LiteralText(text, alphabet.alphabet_id)
        report.offer(LENS_TEXT_LITERAL, instruction, self.cost_model.estimate(instruction))
        return text

    def _reference_repeat(self, text: str, report: AnalysisReport,
                          seen: Set[Tuple[str, int]]) -> None:
        alphabet_id = self.config.default_alphabet_id
        for _name, pattern, count in find_reference_repeats(text, self.config.reference_patterns):
            instruction = RepeatTextPattern(pattern, count, alphabet_id)
            report.offer(LENS_REFERENCE_REPEAT, instruction, self.cost_model.estimate(instruction))
            seen.add((pattern, count))

    def _generic_repeat(self, text: str, report: AnalysisReport,
                        seen: Set[Tuple[str, int]]) -> None:
        found = find_minimal_period(text)
        if found is None or found[1] <= 1 or found in seen:
            return
        pattern, count = found
        instruction = RepeatTextPattern(pattern, count, self.config.default_alphabet_id)
        report.offer(LENS_GENERIC_REPEAT, instruction, self.cost_model.estimate(instruction))

    def _additive(self, index: int, report: AnalysisReport) -> None:
        # every candidate is costed; only the first few and the improving
        # ones are kept as report entries
        sample = self.config.additive_sample_entries
        for n, (a, b) in enumerate(additive_candidates(index, self.config.additive_iteration_cap)):
            instruction = EvaluateAddition(decimal_string(a), decimal_string(b))
            cost = self.cost_model.estimate(instruction)
            if n < sample or cost < report.recommended_cost:
                report.offer(LENS_ADDITIVE, instruction, cost)

###############################################################################
# Canonical index state
###############################################################################

class CanonicalIndexState:
    """The one mutable handle: a canonical index plus its conversions.

    Every ``*_to_index`` call and ``execute_instruction`` overwrite the
    index; everything else reads it.  No locking is done here; callers
    sharing a handle across threads must serialise access themselves.
    """

    def __init__(self, registry: Optional[AlphabetRegistry] = None,
                 config: Optional[AnalyzerConfig] = None) -> None:
        self.registry = registry if registry is not None else AlphabetRegistry.with_defaults()
        self.config = config if config is not None else AnalyzerConfig()
        self.analyzer = LensAnalyzer(self.registry, self.config)
        self._index = 0

    def get_index(self) -> int:
        return self._index

    def set_index(self, value: Union[int, str]) -> None:
        self._index = parse_index(value)

    def _alphabet(self, alphabet_id: Optional[str]) -> Alphabet:
        if alphabet_id is None:
            alphabet_id = self.config.default_alphabet_id
        return self.registry.get(alphabet_id)

    def text_to_index(self, text: str, alphabet_id: Optional[str] = None) -> None:
        self._index = text_to_index(text, self._alphabet(alphabet_id))

    def index_to_text(self, alphabet_id: Optional[str] = None) -> str:
        return index_to_text(self._index, self._alphabet(alphabet_id))

    def sequence_to_index(self, words: Sequence[int],
                          bit_depth: int = DEFAULT_SEQUENCE_BIT_DEPTH,
                          modality_id: str = U32_SEQUENCE_ID) -> None:
        self._index = sequence_to_index(words, bit_depth, modality_id)

    def index_to_sequence(self, target_length: int,
                          bit_depth: int = DEFAULT_SEQUENCE_BIT_DEPTH,
                          modality_id: str = U32_SEQUENCE_ID) -> List[int]:
        return index_to_sequence(self._index, target_length, bit_depth, modality_id)

    def min_sequence_length(self, bit_depth: int = DEFAULT_SEQUENCE_BIT_DEPTH,
                            modality_id: str = U32_SEQUENCE_ID) -> int:
        return min_sequence_length(self._index, bit_depth, modality_id)

    def execute_instruction(self, recipe: Union[Instruction, Mapping[str, Any]]) -> int:
        self._index = execute_instruction(recipe, self.registry)
        return self._index

    def analyze_report(self) -> AnalysisReport:
        return self.analyzer.analyze(self._index)

    def analyze(self) -> Dict[str, Any]:
        return self.analyze_report().to_dict()

###############################################################################
# CLI
###############################################################################

def _parse_words(text: str) -> List[int]:
    try:
        return [int(w) for w in text.replace(",", " ").split()]
    except ValueError as exc:
        raise InvalidInput(f"Sequence must be integers separated by commas: {exc}") from exc


def main(argv: Optional[Sequence[str]] = None) -> int:
    import argparse
    parser = argparse.ArgumentParser(description="Canonical index interconverter")
    src = parser.add_mutually_exclusive_group()
    src.add_argument('-i', '--index', help='Set the canonical index (decimal)')
    src.add_argument('-t', '--text', help='Set the index from text')
    src.add_argument('-s', '--sequence', help='Set the index from comma separated words')
    src.add_argument('-x', '--execute', help='Set the index by executing a JSON recipe')
    parser.add_argument('-a', '--alphabet', default=SIMPLE_TEXT_ALPHABET_ID, help='Alphabet id for text')
    parser.add_argument('-b', '--bit-depth', type=int, default=DEFAULT_SEQUENCE_BIT_DEPTH,
                        help='Bits per sequence word (default 24)')
    parser.add_argument('-m', '--modality', default=U32_SEQUENCE_ID,
                        choices=sorted(SEQUENCE_MODALITIES), help='Sequence modality')
    parser.add_argument('--analyze', action='store_true', help='Print the lens analysis as JSON')
    parser.add_argument('--cap', type=int, default=ADDITIVE_ITERATION_CAP,
                        help='Additive decomposition iteration cap')
    parser.add_argument('--samples', type=int, default=ADDITIVE_SAMPLE_ENTRIES,
                        help='Additive entries kept in the report')
    parser.add_argument('--progress', action='store_true', help='Log lens evaluation')
    args = parser.parse_args(argv)

    if args.progress:
        logging.basicConfig(level=logging.DEBUG, format="[%(levelname)s] %(message)s")

    try:
        state = CanonicalIndexState(config=AnalyzerConfig(
            additive_iteration_cap=args.cap, additive_sample_entries=args.samples))
        if args.index is not None:
            state.set_index(args.index)
        elif args.text is not None:
            state.text_to_index(args.text, args.alphabet)
        elif args.sequence is not None:
            state.sequence_to_index(_parse_words(args.sequence), args.bit_depth, args.modality)
        elif args.execute is not None:
            try:
                recipe = json.loads(args.execute)
            except json.JSONDecodeError as exc:
                raise ParseError(f"Recipe is not valid JSON: {exc}") from exc
            state.execute_instruction(recipe)

        if args.analyze:
            print(state.analyze_report().to_json(indent=2))
            return 0
        n = state.min_sequence_length(args.bit_depth, args.modality)
        print(f"index:    {decimal_string(state.get_index())}")
        print(f"text:     {state.index_to_text(args.alphabet)!r}")
        print(f"sequence: {state.index_to_sequence(n, args.bit_depth, args.modality)} "
              f"({n} x {args.bit_depth}-bit)")
    except InterconverterError as exc:
        print(f"error: {exc}")
        return 1
    return 0


if __name__ == '__main__':
    import sys
    sys.exit(main())
