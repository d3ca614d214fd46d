# tests/test_renderer.py
"""Tests for the template engine: syntax, pipelines, control flow and strict missing keys."""

import pytest

from reltmpl.core.templating import TemplateRenderer
from reltmpl.core.templating.helpers import BUILTIN_HELPERS
from reltmpl.exceptions import MissingFieldError, TemplateExecError, TemplateSyntaxError

DATA = {
    "ProjectName": "proj",
    "Version": "1.2.3",
    "Major": 1,
    "IsSnapshot": False,
    "Arm": "",
    "Env": {"HOME": "/home/ci", "USER": "ci"},
    "Items": ["a", "b", "c"],
}


def render(source: str, data=None) -> str:
    return TemplateRenderer(source, helpers=BUILTIN_HELPERS).render(DATA if data is None else data)


class TestActions:
    def test_text_and_fields(self):
        assert render("{{.ProjectName}}-{{ .Version }}.tar.gz") == "proj-1.2.3.tar.gz"

    def test_nested_map_access(self):
        assert render("{{ .Env.HOME }}") == "/home/ci"

    def test_dot_and_root_variable(self):
        assert render("{{ $.ProjectName }}") == "proj"
        assert render("{{ . }}", {"A": 1}) == "map[A:1]"

    def test_literals(self):
        assert render('{{ "quoted\\tstring" }}') == "quoted\tstring"
        assert render("{{ `raw\\n` }}") == "raw\\n"
        assert render("{{ 42 }} {{ 1.5 }} {{ true }} {{ false }}") == "42 1.5 true false"

    def test_integer_literal_bases(self):
        assert render("{{ 010 }} {{ 0x1F }} {{ 0o17 }} {{ 0b101 }} {{ 0 }} {{ -010 }}") == "8 31 15 5 0 -8"

    def test_comments_render_nothing(self):
        assert render("a{{/* a comment */}}b") == "ab"
        assert render("a {{- /* trimmed */ -}} b") == "ab"

    def test_trim_markers(self):
        assert render("a  {{- .ProjectName -}}  b") == "aprojb"
        assert render("x\n{{- .ProjectName }}\n") == "xproj\n"

    def test_lists_print_space_separated(self):
        assert render("{{ .Items }}") == "[a b c]"

    def test_variable_declaration(self):
        assert render("{{ $name := .ProjectName }}{{ $name }}-{{ $name | toupper }}") == "proj-PROJ"


class TestPipelines:
    def test_piped_value_is_last_argument(self):
        assert render('{{ .Version | replace "." "_" }}') == "1_2_3"

    def test_chained_pipes(self):
        assert render('{{ .Env.USER | toupper | printf "%s!" }}') == "CI!"

    def test_parenthesized_pipeline(self):
        assert render('{{ replace "/" "-" (dir .Env.HOME) }}') == "-home"

    def test_field_on_parenthesized_value(self):
        data = {"Outer": {"Inner": {"Leaf": "x"}}}
        assert render("{{ (.Outer).Inner.Leaf }}", data) == "x"

    def test_argument_to_non_function(self):
        with pytest.raises(TemplateExecError, match="can't give argument to non-function"):
            render('{{ .ProjectName "extra" }}')


class TestControlFlow:
    def test_if_else(self):
        source = "{{ if .IsSnapshot }}snapshot{{ else }}release{{ end }}"
        assert render(source) == "release"
        assert render(source, {**DATA, "IsSnapshot": True}) == "snapshot"

    def test_else_if_chain(self):
        source = '{{ if eq .Major 0 }}zero{{ else if eq .Major 1 }}one{{ else }}many{{ end }}'
        assert render(source) == "one"
        assert render(source, {**DATA, "Major": 0}) == "zero"
        assert render(source, {**DATA, "Major": 7}) == "many"

    def test_empty_string_is_false(self):
        assert render("arm{{ if .Arm }}v{{ .Arm }}{{ end }}") == "arm"

    def test_with_rebinds_dot(self):
        assert render("{{ with .Env }}{{ .USER }}{{ end }}") == "ci"
        assert render("{{ with .Arm }}{{ . }}{{ else }}none{{ end }}") == "none"

    def test_range_over_list(self):
        assert render("{{ range .Items }}<{{ . }}>{{ end }}") == "<a><b><c>"

    def test_range_over_map_with_variables_is_sorted(self):
        assert render("{{ range $k, $v := .Env }}{{ $k }}={{ $v }};{{ end }}") == "HOME=/home/ci;USER=ci;"

    def test_range_else(self):
        assert render("{{ range .Items }}x{{ else }}empty{{ end }}", {"Items": []}) == "empty"

    def test_range_index_variable(self):
        assert render("{{ range $i, $e := .Items }}{{ $i }}{{ $e }}{{ end }}") == "0a1b2c"

    def test_range_variable_does_not_leak(self):
        source = '{{ $e := "outer" }}{{ range $e := .Items }}{{ $e }}{{ end }}-{{ $e }}'
        assert render(source) == "abc-outer"


class TestBuiltins:
    def test_boolean_logic(self):
        assert render("{{ and .Major .ProjectName }}") == "proj"
        assert render("{{ or .Arm .ProjectName }}") == "proj"
        assert render("{{ not .IsSnapshot }}") == "true"

    def test_and_short_circuits(self):
        # .Missing would fail if it were evaluated.
        assert render("{{ and .IsSnapshot .Missing }}") == "false"

    def test_comparisons(self):
        assert render("{{ eq .ProjectName \"proj\" }} {{ ne .Major 2 }} {{ lt .Major 2 }} {{ ge .Major 1 }}") == \
            "true true true true"
        assert render('{{ eq .ProjectName "a" "b" "proj" }}') == "true"

    def test_incompatible_comparison_fails(self):
        with pytest.raises(TemplateExecError, match="error calling lt"):
            render('{{ lt .Major "x" }}')

    def test_len_and_index(self):
        assert render("{{ len .Items }} {{ index .Items 1 }} {{ index .Env \"USER\" }}") == "3 b ci"

    def test_index_missing_map_key_is_empty(self):
        assert render('[{{ index .Env "NOPE" }}]') == "[]"

    def test_index_out_of_range(self):
        with pytest.raises(TemplateExecError, match="index out of range"):
            render("{{ index .Items 9 }}")

    def test_print_family(self):
        assert render('{{ print "a" 1 2 "b" }}') == "a1 2b"
        assert render('{{ printf "%s-%d-%v-%05.1f" .ProjectName .Major .IsSnapshot 3.14159 }}') == "proj-1-false-003.1"
        assert render('{{ printf "%q" .ProjectName }}') == '"proj"'
        assert render('{{ println "a" "b" }}') == "a b\n"


class TestErrors:
    def test_missing_key_is_error(self):
        with pytest.raises(MissingFieldError) as excinfo:
            render("{{ .Nope }}")
        assert excinfo.value.node == ".Nope"
        assert 'executing "tmpl" at <.Nope>: map has no entry for key "Nope"' in str(excinfo.value)

    def test_missing_nested_key_is_error(self):
        with pytest.raises(MissingFieldError):
            render("{{ .Env.NOPE }}")

    def test_field_of_string_is_error(self):
        with pytest.raises(TemplateExecError, match="can't evaluate field BAR in type str"):
            render("{{ .ProjectName.BAR }}")

    def test_error_reports_line(self):
        with pytest.raises(MissingFieldError) as excinfo:
            render("line one\nline two {{ .Nope }}")
        assert excinfo.value.line == 2

    @pytest.mark.parametrize("source,message", [
        ("{{ .ProjectName", "unclosed action"),
        ("{{ }}", "missing value for command"),
        ("{{ end }}", "unexpected {{end}}"),
        ("{{ if .IsSnapshot }}x", "unexpected EOF"),
        ('{{ "unterminated }}', "unterminated quoted string"),
        ("{{ $undefined }}", 'undefined variable "$undefined"'),
        ("{{ nosuchfunc }}", 'function "nosuchfunc" not defined'),
        ("{{ .A | }}", "missing command after |"),
        ("{{/* never closed", "unclosed comment"),
        ("{{ \"a\\\nb\" }}", "unterminated quoted string"),
        ("{{ if .IsSnapshot }}a{{ else }}b{{ else }}c{{ end }}", "expected end; found {{else}}"),
    ])
    def test_syntax_errors(self, source, message):
        with pytest.raises(TemplateSyntaxError) as excinfo:
            TemplateRenderer(source, helpers=BUILTIN_HELPERS)
        assert message in str(excinfo.value)

    def test_no_partial_output_on_error(self):
        renderer = TemplateRenderer("prefix {{ .Nope }}", helpers=BUILTIN_HELPERS)
        with pytest.raises(MissingFieldError):
            renderer.render(DATA)

    def test_compiled_template_renders_repeatedly(self):
        renderer = TemplateRenderer("{{ .ProjectName }}")
        assert renderer.render({"ProjectName": "a"}) == "a"
        assert renderer.render({"ProjectName": "b"}) == "b"
