"""Tests for the logic backends: code generation and native modules."""

from __future__ import annotations

import pytest

from pactum.core.errors import TemplateError
from pactum.core.template import Template
from pactum.runtime.codegen import generate_python
from pactum.runtime.native import CLAUSE_ATTR, NativeExecutor, clause, load_module


class TestCodegen:
    def test_generated_module_compiles(self, template: Template) -> None:
        source = generate_python(template.logic)
        compile(source, "compiled.py", "exec")

    def test_clause_signature(self, template: Template) -> None:
        source = generate_python(template.logic)
        assert "def latedeliveryandpenalty(ctx, v_request):" in source
        assert (
            "returns='org.accordproject.latedeliveryandpenalty.LateDeliveryAndPenaltyResponse'"
            in source
        )

    def test_throw_becomes_fail(self, template: Template) -> None:
        source = generate_python(template.logic)
        assert "ctx.fail('Cannot exercise late delivery before delivery date')" in source

    def test_clock_comes_from_context(self, template: Template) -> None:
        assert "ctx.now" in generate_python(template.logic)

    def test_loaded_module_has_clause(self, template: Template) -> None:
        module = load_module(generate_python(template.logic), "logic/compiled.py")
        spec = getattr(module.latedeliveryandpenalty, CLAUSE_ATTR)
        assert spec.name == "latedeliveryandpenalty"
        assert spec.params == (
            ("request", "org.accordproject.latedeliveryandpenalty.LateDeliveryAndPenaltyRequest"),
        )


class TestNativeModules:
    def test_decorator_defaults_to_function_name(self) -> None:
        @clause(params={"request": "Request"})
        def pay(ctx, request):
            return None

        assert getattr(pay, CLAUSE_ATTR).name == "pay"

    def test_syntax_error(self) -> None:
        with pytest.raises(TemplateError, match="logic/bad.py:1"):
            load_module("def broken(:\n", "logic/bad.py")

    def test_import_failure(self) -> None:
        with pytest.raises(TemplateError, match="failed to load logic module"):
            load_module("import does_not_exist_anywhere\n", "logic/bad.py")

    def test_no_clauses(self, native_template: Template) -> None:
        module = load_module("x = 1\n", "logic/empty.py")
        with pytest.raises(TemplateError, match="No @clause functions"):
            NativeExecutor([module], native_template.model_manager, "org.accordproject.latedeliveryandpenalty")

    def test_duplicate_clause(self, native_template: Template) -> None:
        source = (
            "from pactum.runtime import clause\n"
            "@clause(name='a', params={'request': 'LateDeliveryAndPenaltyRequest'})\n"
            "def one(ctx, request):\n    return None\n"
        )
        modules = [load_module(source, "logic/one.py"), load_module(source, "logic/two.py")]
        with pytest.raises(TemplateError, match="defined twice"):
            NativeExecutor(modules, native_template.model_manager, "org.accordproject.latedeliveryandpenalty")

    def test_params_must_be_transactions(self, native_template: Template) -> None:
        source = (
            "from pactum.runtime import clause\n"
            "@clause(params={'data': 'TemplateModel'})\n"
            "def bad(ctx, data):\n    return None\n"
        )
        module = load_module(source, "logic/bad.py")
        with pytest.raises(TemplateError, match="must be a transaction"):
            NativeExecutor([module], native_template.model_manager, "org.accordproject.latedeliveryandpenalty")

    def test_executor_lists_clauses(self, native_template: Template) -> None:
        names = [signature.name for signature in native_template.executor.clauses]
        assert names == ["latedeliveryandpenalty"]
