"""
SCL keyword tables.

Static lookup data driving the structural scanner, the lint rules and the
formatter. Every opener/closer family lives in exactly one table so that a
closer can only ever be matched against its own stack.
"""

from enum import Enum
from typing import Dict, FrozenSet


class Family(Enum):
    """Delimiter families. Each one has its own nesting stack."""
    BLOCK = "block"
    VAR = "var"
    CONTROL = "control"


class BlockKind(Enum):
    """Top-level declaration units."""
    FUNCTION_BLOCK = "FUNCTION_BLOCK"            # stateful callable
    FUNCTION = "FUNCTION"                        # stateless callable
    ORGANIZATION_BLOCK = "ORGANIZATION_BLOCK"    # event callable
    DATA_BLOCK = "DATA_BLOCK"                    # data storage
    TYPE = "TYPE"                                # user-defined type

    @property
    def closer(self) -> str:
        return BLOCK_PAIRS[self.value]

    @property
    def is_data(self) -> bool:
        """Blocks that hold data rather than executable code."""
        return self in (BlockKind.DATA_BLOCK, BlockKind.TYPE)


class VarSection(Enum):
    """Parameter classes of a variable section."""
    VAR_INPUT = "VAR_INPUT"
    VAR_OUTPUT = "VAR_OUTPUT"
    VAR_IN_OUT = "VAR_IN_OUT"
    VAR_TEMP = "VAR_TEMP"
    VAR_GLOBAL = "VAR_GLOBAL"
    VAR = "VAR"                  # static
    VAR_CONSTANT = "VAR_CONSTANT"
    STRUCT = "STRUCT"            # struct members


# Order matters: FUNCTION_BLOCK must be tried before FUNCTION.
BLOCK_PAIRS: Dict[str, str] = {
    "FUNCTION_BLOCK": "END_FUNCTION_BLOCK",
    "FUNCTION": "END_FUNCTION",
    "ORGANIZATION_BLOCK": "END_ORGANIZATION_BLOCK",
    "DATA_BLOCK": "END_DATA_BLOCK",
    "TYPE": "END_TYPE",
}

BLOCK_END_TO_OPEN: Dict[str, str] = {close: open_ for open_, close in BLOCK_PAIRS.items()}

# VAR must come last so VAR_INPUT etc. are not shadowed.
VAR_OPENS = (
    "VAR_INPUT",
    "VAR_OUTPUT",
    "VAR_IN_OUT",
    "VAR_TEMP",
    "VAR_GLOBAL",
    "VAR",
    "STRUCT",
)

VAR_CLOSES = ("END_VAR", "END_STRUCT")

CONTROL_PAIRS: Dict[str, str] = {
    "IF": "END_IF",
    "FOR": "END_FOR",
    "WHILE": "END_WHILE",
    "REPEAT": "END_REPEAT",
    "CASE": "END_CASE",
    "REGION": "END_REGION",
}

CONTROL_END_TO_OPEN: Dict[str, str] = {close: open_ for open_, close in CONTROL_PAIRS.items()}

LOOP_KEYWORDS: FrozenSet[str] = frozenset({"FOR", "WHILE", "REPEAT"})

# Words that can never be a declared variable name.
RESERVED_WORDS: FrozenSet[str] = frozenset({
    "IF", "THEN", "ELSIF", "ELSE", "END_IF",
    "FOR", "TO", "BY", "DO", "END_FOR",
    "WHILE", "END_WHILE", "REPEAT", "UNTIL", "END_REPEAT",
    "CASE", "OF", "END_CASE", "RETURN", "EXIT", "CONTINUE",
    "BEGIN", "END_VAR", "END_STRUCT", "REGION", "END_REGION",
    "TRUE", "FALSE", "AND", "OR", "XOR", "NOT", "MOD",
})

# Conventional name prefixes per block kind.
NAMING_PREFIXES: Dict[str, str] = {
    "FUNCTION_BLOCK": "FB_",
    "FUNCTION": "FC_",
    "DATA_BLOCK": "DB_",
}

USER_TYPE_PREFIX = "UDT_"

# Keywords uppercased by the formatter.
FORMAT_KEYWORDS: FrozenSet[str] = frozenset({
    # Blocks
    "FUNCTION_BLOCK", "END_FUNCTION_BLOCK", "FUNCTION", "END_FUNCTION",
    "ORGANIZATION_BLOCK", "END_ORGANIZATION_BLOCK", "DATA_BLOCK", "END_DATA_BLOCK",
    "TYPE", "END_TYPE", "INTERFACE", "END_INTERFACE",
    # Variable sections
    "VAR_INPUT", "VAR_OUTPUT", "VAR_IN_OUT", "VAR_TEMP", "VAR_GLOBAL",
    "VAR", "END_VAR", "STRUCT", "END_STRUCT",
    # Control flow
    "IF", "THEN", "ELSIF", "ELSE", "END_IF",
    "FOR", "TO", "BY", "DO", "END_FOR",
    "WHILE", "END_WHILE", "REPEAT", "UNTIL", "END_REPEAT",
    "CASE", "OF", "END_CASE",
    "RETURN", "EXIT", "CONTINUE", "GOTO",
    "BEGIN", "REGION", "END_REGION",
    # Operators and literals
    "AND", "OR", "XOR", "NOT", "MOD",
    "TRUE", "FALSE", "NULL",
    # Modifiers
    "VERSION", "RETAIN", "NON_RETAIN", "CONSTANT",
    "ARRAY", "REF_TO",
    # Data types
    "BOOL", "BYTE", "CHAR", "WCHAR",
    "SINT", "USINT", "INT", "UINT", "DINT", "UDINT", "LINT", "ULINT",
    "WORD", "DWORD", "LWORD",
    "REAL", "LREAL",
    "STRING", "WSTRING",
    "TIME", "LTIME", "DATE", "DATE_AND_TIME", "DTL", "TIME_OF_DAY", "S5TIME",
    "VOID", "ANY", "POINTER", "VARIANT", "DB_ANY",
    "TON", "TOF", "TP", "TONR", "CTU", "CTD", "CTUD",
    "R_TRIG", "F_TRIG",
    "IEC_TIMER", "IEC_COUNTER",
})


def match_keyword(upper: str, keyword: str) -> bool:
    """
    Check whether an uppercased, trimmed line starts with ``keyword``.

    Matches ``K``, ``K;`` and ``K`` followed by a space, tab or semicolon,
    so ``IFX := 1;`` never matches ``IF``.
    """
    if upper == keyword or upper == keyword + ";":
        return True
    if not upper.startswith(keyword):
        return False
    return upper[len(keyword):len(keyword) + 1] in (" ", "\t", ";")


def is_reserved(word: str) -> bool:
    return word.upper() in RESERVED_WORDS
