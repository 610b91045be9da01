"""
Tests for the structural scanner.
"""

import pytest

from conftest import block_source
from sclscan.scanner import (
    BlockKind,
    Family,
    Scanner,
    StructuralModel,
    VarSection,
    scan_file,
    scan_source,
)
from sclscan.scanner.preprocess import split_lines


class TestBlocks:
    """Block declarations."""

    @pytest.mark.parametrize("opener,closer,kind", [
        ('FUNCTION_BLOCK "FB_A"', "END_FUNCTION_BLOCK", BlockKind.FUNCTION_BLOCK),
        ('FUNCTION "FC_A" : Void', "END_FUNCTION", BlockKind.FUNCTION),
        ('ORGANIZATION_BLOCK "Main"', "END_ORGANIZATION_BLOCK", BlockKind.ORGANIZATION_BLOCK),
        ('DATA_BLOCK "DB_A"', "END_DATA_BLOCK", BlockKind.DATA_BLOCK),
        ('TYPE "UDT_A"', "END_TYPE", BlockKind.TYPE),
    ])
    def test_open_close_on_next_line(self, opener, closer, kind):
        """An opener closed on the next line gives one closed block and no unmatched entries."""
        model = scan_source(f"{opener}\n{closer}")
        assert len(model.blocks) == 1
        block = model.blocks[0]
        assert block.kind is kind
        assert block.start_line == 0
        assert block.end_line == 1
        assert model.unmatched_opens == []
        assert model.unmatched_closes == []

    def test_block_name_from_quotes(self):
        model = scan_source('FUNCTION_BLOCK "FB_Motor"\nEND_FUNCTION_BLOCK')
        assert model.blocks[0].name == "FB_Motor"

    def test_unnamed_block(self):
        model = scan_source("ORGANIZATION_BLOCK\nEND_ORGANIZATION_BLOCK")
        assert model.blocks[0].name == ""
        assert model.blocks[0].display_name == "ORGANIZATION_BLOCK"

    def test_lowercase_keywords(self):
        model = scan_source('function_block "FB_A"\nend_function_block')
        assert model.blocks[0].kind is BlockKind.FUNCTION_BLOCK
        assert model.blocks[0].is_closed

    def test_unclosed_block(self):
        model = scan_source('FUNCTION_BLOCK "FB_A"\nVAR\nEND_VAR')
        assert model.blocks[0].end_line == -1
        assert [e.keyword for e in model.opens_of(Family.BLOCK)] == ["FUNCTION_BLOCK"]

    def test_wrong_closer(self):
        """A closer for another block kind is unmatched and leaves the block open."""
        model = scan_source('FUNCTION_BLOCK "FB_A"\nEND_FUNCTION')
        assert [e.keyword for e in model.closes_of(Family.BLOCK)] == ["END_FUNCTION"]
        assert [e.keyword for e in model.opens_of(Family.BLOCK)] == ["FUNCTION_BLOCK"]

    def test_pragma_and_version(self, motor_model):
        block = motor_model.blocks[0]
        assert block.has_pragma
        assert block.has_version_marker

    def test_begin_and_code(self, motor_model):
        block = motor_model.blocks[0]
        assert block.has_begin_section
        assert block.has_executable_code

    def test_empty_begin(self):
        model = scan_source(block_source("BEGIN\n    ;"))
        assert model.blocks[0].has_begin_section
        assert not model.blocks[0].has_executable_code

    def test_prefix_keyword_not_matched(self):
        """FUNCTIONAL is not FUNCTION."""
        model = scan_source("FUNCTIONAL := 1;")
        assert model.blocks == []

    def test_keyword_in_string_ignored(self):
        model = scan_source(block_source("BEGIN\n    #msg := 'END_FUNCTION_BLOCK';"))
        assert model.is_balanced
        assert model.blocks[0].end_line == 5


class TestVariables:
    """Variable sections and declarations."""

    def test_sections_and_types(self, motor_model):
        found = [(v.name, v.declared_type, v.section) for v in motor_model.variables]
        assert found == [
            ("Start", "Bool", VarSection.VAR_INPUT),
            ("Stop", "Bool", VarSection.VAR_INPUT),
            ("Running", "Bool", VarSection.VAR_OUTPUT),
            ("State", "Int", VarSection.VAR),
        ]

    def test_owning_block(self, motor_model):
        assert {v.owning_block for v in motor_model.variables} == {"FB_Motor"}

    def test_declaration_position(self, motor_model):
        start = motor_model.variables[0]
        assert start.line == 4
        assert start.column == 6

    def test_default_value_stripped(self):
        model = scan_source(block_source("VAR\n    Count : Int := 5;\nEND_VAR"))
        assert model.variables[0].declared_type == "Int"

    def test_var_constant(self):
        model = scan_source(block_source("VAR CONSTANT\n    Max : Int := 10;\nEND_VAR"))
        assert model.variables[0].section is VarSection.VAR_CONSTANT

    def test_var_temp(self):
        model = scan_source(block_source("VAR_TEMP\n    i : Int;\nEND_VAR"))
        assert model.variables[0].section is VarSection.VAR_TEMP

    def test_struct_members(self):
        source = block_source(
            "STRUCT\n    Speed : Real;\nEND_STRUCT", kind="TYPE", name="UDT_Drive", header=""
        )
        model = scan_source(source)
        assert [(v.name, v.section) for v in model.variables] == [("Speed", VarSection.STRUCT)]
        assert model.is_balanced

    def test_inline_struct(self):
        """A member typed STRUCT opens a nested section closed by END_STRUCT."""
        source = block_source(
            "VAR\n    Cfg : Struct\n        Gain : Real;\n    END_STRUCT;\nEND_VAR"
        )
        model = scan_source(source)
        assert [(v.name, v.section) for v in model.variables] == [
            ("Cfg", VarSection.VAR),
            ("Gain", VarSection.STRUCT),
        ]
        assert model.is_balanced

    def test_array_of_struct(self):
        """ARRAY[..] OF STRUCT opens a member section like a plain STRUCT."""
        source = block_source(
            "VAR\n"
            "    Slots : ARRAY[0..3] OF STRUCT\n"
            "        Id : Int;\n"
            "    END_STRUCT;\n"
            "END_VAR"
        )
        model = scan_source(source)
        assert [(v.name, v.section) for v in model.variables] == [
            ("Slots", VarSection.VAR),
            ("Id", VarSection.STRUCT),
        ]
        assert model.unmatched_opens == []
        assert model.unmatched_closes == []

    def test_struct_suffix_in_type_name(self):
        """A type merely ending in _STRUCT does not open a section."""
        model = scan_source(block_source("VAR\n    Cfg : MY_STRUCT;\nEND_VAR"))
        assert model.is_balanced

    def test_reserved_word_not_declared(self):
        model = scan_source(block_source("VAR\n    IF : Int;\nEND_VAR"))
        assert model.variables == []

    def test_no_declarations_after_begin(self):
        model = scan_source(block_source("VAR\n    a : Int;\nBEGIN\n    b : Int;"))
        assert [v.name for v in model.variables] == ["a"]

    def test_loose_declaration_fixture(self, loose_path):
        """name : type without a semicolon is still taken as a declaration."""
        model = scan_file(loose_path)
        assert [(v.name, v.declared_type) for v in model.variables] == [
            ("Raw", "Int"),
            ("Factor", "Real"),
        ]

    def test_loose_declaration_in_open_section(self):
        """Inside a section left open, any name : value line reads as a declaration."""
        source = 'FUNCTION_BLOCK "FB_A"\nVAR\n    Count : Int;\nNext : Step\n'
        model = scan_source(source)
        assert [(v.name, v.declared_type) for v in model.variables] == [
            ("Count", "Int"),
            ("Next", "Step"),
        ]
        assert [e.keyword for e in model.opens_of(Family.VAR)] == ["VAR"]

    def test_unmatched_end_var(self):
        model = scan_source("END_VAR")
        assert [e.keyword for e in model.closes_of(Family.VAR)] == ["END_VAR"]


class TestControlFlow:
    """Control-flow stack inside BEGIN sections."""

    def test_balanced_nesting(self):
        body = "\n".join([
            "BEGIN",
            "    REGION Init",
            "    FOR #i := 0 TO 9 DO",
            "        WHILE #busy DO",
            "            REPEAT",
            "                #n := #n + 1;",
            "            UNTIL #n > 3",
            "            END_REPEAT;",
            "        END_WHILE;",
            "    END_FOR;",
            "    END_REGION",
        ])
        model = scan_source(block_source(body))
        assert model.is_balanced

    def test_missing_end_if(self):
        model = scan_source(block_source("BEGIN\n    IF #a THEN\n        #b := 1;"))
        opens = model.opens_of(Family.CONTROL)
        assert [(e.keyword, e.line) for e in opens] == [("IF", 4)]
        assert opens[0].column == 4

    def test_single_line_if_stays_open(self):
        """Only the leading keyword of a line is classified."""
        model = scan_source(block_source("BEGIN\n    IF #a THEN #b := 1; END_IF;"))
        assert [e.keyword for e in model.opens_of(Family.CONTROL)] == ["IF"]
        assert model.closes_of(Family.CONTROL) == []

    def test_stray_end_for(self):
        model = scan_source(block_source("BEGIN\n    END_FOR;"))
        assert [e.keyword for e in model.closes_of(Family.CONTROL)] == ["END_FOR"]

    def test_elsif_does_not_open(self):
        source = block_source("BEGIN\n    IF #a THEN\n    ELSIF #b THEN\n    ELSE\n    END_IF;")
        assert scan_source(source).is_balanced

    def test_control_outside_begin_ignored(self):
        """IF before BEGIN is not executable code."""
        model = scan_source('FUNCTION_BLOCK "FB_A"\nIF\nEND_FUNCTION_BLOCK')
        assert model.is_balanced

    def test_case_else_tracking(self):
        source = block_source("BEGIN\n    CASE #s OF\n        1: ;\n    END_CASE;")
        model = scan_source(source)
        assert model.blocks[0].case_else == {4: False}

    def test_case_with_else(self):
        source = block_source("BEGIN\n    CASE #s OF\n        1: ;\n    ELSE\n        ;\n    END_CASE;")
        model = scan_source(source)
        assert model.blocks[0].case_else == {4: True}

    def test_else_of_if_inside_case(self):
        """ELSE of an IF nested in a CASE does not count for the CASE."""
        body = "\n".join([
            "BEGIN",
            "    CASE #s OF",
            "        1:",
            "            IF #a THEN",
            "                ;",
            "            ELSE",
            "                ;",
            "            END_IF;",
            "    END_CASE;",
        ])
        model = scan_source(block_source(body))
        assert model.blocks[0].case_else == {4: False}
        assert model.is_balanced

    def test_exit_outside_loop(self):
        model = scan_source(block_source("BEGIN\n    EXIT;"))
        assert [(e.keyword, e.line) for e in model.exit_outside_loop] == [("EXIT", 4)]

    def test_exit_inside_for(self):
        model = scan_source(block_source("BEGIN\n    FOR #i := 0 TO 3 DO\n        EXIT;\n    END_FOR;"))
        assert model.exit_outside_loop == []

    def test_continue_inside_if_inside_while(self):
        body = "BEGIN\n    WHILE #a DO\n        IF #b THEN\n            CONTINUE;\n        END_IF;\n    END_WHILE;"
        assert scan_source(block_source(body)).exit_outside_loop == []


class TestUsedVariables:
    """#name references."""

    def test_sigils_recorded_lowercase(self, motor_model):
        assert motor_model.used_variables == {"start", "stop", "state", "running"}

    def test_sigil_in_comment_ignored(self):
        model = scan_source(block_source("BEGIN\n    ; // #ghost"))
        assert "ghost" not in model.used_variables

    def test_sigil_in_block_comment_ignored(self):
        model = scan_source(block_source("BEGIN\n    (*\n    #ghost := 1;\n    *)\n    ;"))
        assert "ghost" not in model.used_variables


class TestScanProperties:
    """Whole-scan guarantees."""

    def test_well_formed_is_balanced(self, motor_model):
        assert motor_model.unmatched_opens == []
        assert motor_model.unmatched_closes == []
        assert motor_model.exit_outside_loop == []

    @pytest.mark.parametrize("source", [
        "",
        "(* never closed\nFUNCTION_BLOCK\nEND_VAR",
        "END_IF;\nEND_FOR;\nEND_TYPE\n\n\n",
        "'unterminated string\n\"another\r\nIF THEN ELSE",
        "\r\n\r\n\r",
    ])
    def test_line_count_matches_input(self, source):
        """Every input line is processed, whatever its content."""
        assert scan_source(source).line_count == len(split_lines(source))

    def test_deterministic(self, motor_source):
        first = scan_source(motor_source)
        second = scan_source(motor_source)
        assert first == second
        assert first.to_dict() == second.to_dict()

    def test_crlf_same_as_lf(self, motor_source):
        crlf = motor_source.replace("\n", "\r\n")
        assert scan_source(crlf).to_dict() == scan_source(motor_source).to_dict()

    def test_model_dict_roundtrip(self, motor_model):
        assert StructuralModel.from_dict(motor_model.to_dict()) == motor_model

    def test_feed_lines_incrementally(self, motor_source):
        scanner = Scanner()
        for index, line in enumerate(split_lines(motor_source)):
            scanner.feed_line(index, line)
        assert scanner.finish() == scan_source(motor_source)

    def test_finish_is_idempotent(self):
        scanner = Scanner()
        scanner.feed_line(0, "IF")
        scanner.feed_line(1, 'FUNCTION_BLOCK "FB_A"')
        first = list(scanner.finish().unmatched_opens)
        assert scanner.finish().unmatched_opens == first
        assert len(first) == 1
