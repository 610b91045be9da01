"""
Tests for the SCL formatter.
"""

import pytest

from sclscan.tools.format import (
    FormatOptions,
    SclFormatter,
    check_formatted,
    format_directory,
    format_source,
    main,
)


MOTOR_FORMATTED = """\
FUNCTION_BLOCK "FB_Motor"
    { S7_Optimized_Access := 'TRUE' }
    VERSION : 0.1
    VAR_INPUT
        Start : BOOL;
        Stop : BOOL;
    END_VAR
    VAR_OUTPUT
        Running : BOOL;
    END_VAR
    VAR
        State : INT := 0;
    END_VAR

BEGIN
    (* start/stop latch *)
    IF #Start AND NOT #Stop THEN
        #State := 1;
    ELSIF #Stop THEN
        #State := 0;
    END_IF;
    CASE #State OF
        1:
            #Running := TRUE;
        ELSE
            #Running := FALSE;
    END_CASE;
END_FUNCTION_BLOCK
"""

MESSY_FORMATTED = """\
FUNCTION_BLOCK "Conveyor"
    VAR
        Speed : INT;
        Speed : REAL;
        Unused : BOOL;
    END_VAR
BEGIN
    CASE #Speed OF
        1, 2:
            #Speed := 0;
    END_CASE;
    EXIT;
    FOR #i := 0 TO 10 DO
        IF #Speed>0 THEN
            EXIT;
        END_IF;
    END_FOR;
END_FUNCTION_BLOCK
"""


def fmt(text, **options):
    return SclFormatter(FormatOptions(**options)).format_string(text)


class TestIndentation:
    """Nesting-driven indentation."""

    def test_motor(self, motor_source):
        assert fmt(motor_source) == MOTOR_FORMATTED

    def test_messy(self, messy_source):
        assert fmt(messy_source) == MESSY_FORMATTED

    def test_repeat_until(self):
        source = "BEGIN\nREPEAT\n#n:=#n+1;\nUNTIL #n>3\nEND_REPEAT;"
        assert fmt(source).splitlines() == [
            "BEGIN",
            "REPEAT",
            "    #n := #n+1;",
            "UNTIL #n>3",
            "END_REPEAT;",
        ]

    def test_while_and_region(self):
        source = "REGION Main\nWHILE #a DO\n;\nEND_WHILE;\nEND_REGION"
        assert fmt(source).splitlines() == [
            "REGION Main",
            "    WHILE #a DO",
            "        ;",
            "    END_WHILE;",
            "END_REGION",
        ]

    def test_inline_struct(self):
        source = "VAR\nCfg : Struct\nGain : Real;\nEND_STRUCT;\nEND_VAR"
        assert fmt(source).splitlines() == [
            "VAR",
            "    Cfg : STRUCT",
            "        Gain : REAL;",
            "    END_STRUCT;",
            "END_VAR",
        ]

    def test_array_of_struct(self):
        source = "VAR\nSlots : ARRAY[0..3] OF STRUCT\nId : Int;\nEND_STRUCT;\nEND_VAR"
        assert fmt(source).splitlines() == [
            "VAR",
            "    Slots : ARRAY[0..3] OF STRUCT",
            "        Id : INT;",
            "    END_STRUCT;",
            "END_VAR",
        ]

    def test_case_label_ranges(self):
        source = "CASE #s OF\n1..5:\n;\n10,20:\n;\nEND_CASE;"
        assert fmt(source).splitlines() == [
            "CASE #s OF",
            "    1..5:",
            "        ;",
            "    10, 20:",
            "        ;",
            "END_CASE;",
        ]

    def test_if_else_inside_case_label(self):
        source = "CASE #s OF\n1:\nIF #a THEN\n;\nELSE\n;\nEND_IF;\nEND_CASE;"
        assert fmt(source).splitlines() == [
            "CASE #s OF",
            "    1:",
            "        IF #a THEN",
            "            ;",
            "        ELSE",
            "            ;",
            "        END_IF;",
            "END_CASE;",
        ]

    def test_stray_closer_does_not_dedent_below_zero(self):
        assert fmt("END_IF;\n#a := 1;").splitlines() == ["END_IF;", "#a := 1;"]

    def test_indent_size(self):
        assert fmt("IF #a THEN\n;\nEND_IF;", indent_size=2).splitlines() == [
            "IF #a THEN",
            "  ;",
            "END_IF;",
        ]


class TestNormalization:
    """Keyword case and spacing."""

    def test_keywords_uppercased(self):
        assert fmt("if #a and not #b then") == "IF #a AND NOT #b THEN"

    def test_keep_case(self):
        assert fmt("if #a then", uppercase_keywords=False) == "if #a then"

    def test_sigil_names_not_uppercased(self):
        assert fmt("#time := #int;") == "#time := #int;"

    def test_member_names_not_uppercased(self):
        assert fmt("#cfg.time := 1;") == "#cfg.time := 1;"

    def test_strings_untouched(self):
        assert fmt("#s:='if  then,x';") == "#s := 'if  then,x';"

    def test_quoted_block_name_untouched(self):
        assert fmt('"FB_x"(a:=1,b:=2);') == '"FB_x"(a := 1, b := 2);'

    def test_declaration_colon(self):
        assert fmt("Count:Int;") == "Count : INT;"

    def test_collapse_spaces(self):
        assert fmt("#a   :=   #b    +  1;") == "#a := #b + 1;"

    def test_trailing_line_comment(self):
        assert fmt("#x:=1;   // set  x") == "#x := 1;  // set  x"

    def test_comment_only_line(self):
        assert fmt("IF #a THEN\n// note\nEND_IF;").splitlines()[1] == "    // note"

    def test_line_comment_inside_string(self):
        assert fmt("#url:='http://plc';") == "#url := 'http://plc';"

    def test_inline_block_comment_untouched(self):
        assert fmt("#a:=1; (* if  x *)") == "#a := 1; (* if  x *)"


class TestPreserved:
    """Text the formatter must not rewrite."""

    def test_pragma_only_indented(self):
        source = 'FUNCTION_BLOCK "FB_A"\n{S7_Optimized_Access:=\'TRUE\'}\nEND_FUNCTION_BLOCK'
        assert fmt(source).splitlines()[1] == "    {S7_Optimized_Access:='TRUE'}"

    def test_multiline_comment_content(self):
        source = "IF #a THEN\n(*\n   keep   this  \nexactly\n*)\nEND_IF;"
        assert fmt(source).splitlines() == [
            "IF #a THEN",
            "    (*",
            "   keep   this",
            "exactly",
            "*)",
            "END_IF;",
        ]

    def test_blank_lines(self):
        assert fmt("#a := 1;\n   \n#b := 2;") == "#a := 1;\n\n#b := 2;"

    def test_crlf_output_uses_lf(self):
        assert fmt("IF #a THEN\r\n;\r\nEND_IF;") == "IF #a THEN\n    ;\nEND_IF;"


class TestIdempotence:
    """Formatting formatted text changes nothing."""

    @pytest.mark.parametrize("name", ["motor.scl", "messy.scl", "loose_declaration.scl"])
    def test_fixtures(self, fixtures_dir, name):
        once = SclFormatter().format_file(fixtures_dir / name)
        assert format_source(once) == once


class TestFileHelpers:
    """check_formatted, format_directory and the tool entry point."""

    def test_check_formatted(self, tmp_path, motor_path):
        formatted = tmp_path / "formatted.scl"
        formatted.write_text(MOTOR_FORMATTED, encoding="utf-8")
        assert check_formatted(formatted)
        assert not check_formatted(motor_path)

    def test_format_directory_inplace(self, tmp_path, messy_source):
        (tmp_path / "sub").mkdir()
        target = tmp_path / "sub" / "messy.scl"
        target.write_text(messy_source, encoding="utf-8")
        (tmp_path / "notes.txt").write_text("if x then", encoding="utf-8")

        files = format_directory(tmp_path, recursive=True, inplace=True)
        assert files == [target]
        assert target.read_text(encoding="utf-8") == MESSY_FORMATTED
        assert (tmp_path / "notes.txt").read_text(encoding="utf-8") == "if x then"

    def test_main_check(self, tmp_path, motor_path):
        formatted = tmp_path / "formatted.scl"
        formatted.write_text(MOTOR_FORMATTED, encoding="utf-8")
        assert main([str(formatted), "--check"]) == 0
        assert main([str(motor_path), "--check"]) == 1

    def test_main_inplace(self, tmp_path, motor_source):
        target = tmp_path / "motor.scl"
        target.write_text(motor_source, encoding="utf-8")
        assert main([str(target), "--inplace"]) == 0
        assert target.read_text(encoding="utf-8") == MOTOR_FORMATTED

    def test_main_missing(self, tmp_path):
        assert main([str(tmp_path / "nope.scl")]) == 1
