"""Tests for template archives, author signatures and verification."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from pactum.archive import (
    Keystore,
    archive,
    default_archive_name,
    load_keystore,
    verify,
    verify_files,
)
from pactum.archive.packager import write_zip
from pactum.core.errors import AuthorSignatureError, TemplateError, UnknownTargetError
from pactum.core.manifest import LogicTarget
from pactum.core.template import (
    COMPILED_LOGIC_FILE,
    GENERATED_PYTHON_FILE,
    SIGNATURE_FILE,
    Template,
    read_archive,
)
from pactum.engine import trigger

CLOCK = "2017-12-19T17:38:01Z"
TIMESTAMP = "2024-01-01T00:00:00.000Z"
STATE = {"$class": "org.accordproject.runtime.State"}


# =============================================================================
# Packaging
# =============================================================================


class TestArchive:
    def test_default_name(self, template: Template) -> None:
        assert default_archive_name(template) == "latedeliveryandpenalty@0.17.0.cta"

    def test_archive_is_deterministic(self, template: Template) -> None:
        assert archive(template, "bytecode") == archive(template, "bytecode")

    def test_unknown_target(self, template: Template) -> None:
        with pytest.raises(UnknownTargetError) as exc:
            archive(template, "foo")
        assert exc.value.message == "Unknown target: foo (available: bytecode,python)"

    def test_bytecode_archive_contains_compiled_logic(self, template: Template) -> None:
        files = read_archive(archive(template, "bytecode"))
        assert COMPILED_LOGIC_FILE in files
        assert "logic/logic.logic" in files
        assert SIGNATURE_FILE not in files

    def test_python_archive_contains_generated_module(self, template: Template) -> None:
        data = archive(template, "python")
        files = read_archive(data)
        assert GENERATED_PYTHON_FILE in files
        loaded = Template.from_archive(data)
        assert loaded.target == LogicTarget.PYTHON

    def test_native_logic_cannot_target_bytecode(self, native_template: Template) -> None:
        with pytest.raises(TemplateError, match="native logic only"):
            archive(native_template, "bytecode")

    def test_archive_written_to_file(self, template: Template, tmp_path: Path) -> None:
        output = tmp_path / default_archive_name(template)
        data = archive(template, "bytecode", output)
        assert output.read_bytes() == data

    @pytest.mark.parametrize("target", ["bytecode", "python"])
    def test_archived_template_runs_the_same(
        self, template: Template, data: dict, request_json: dict, target: str
    ) -> None:
        loaded = Template.from_archive(archive(template, target))
        expected = trigger(template, data, request_json, STATE, CLOCK)["response"]
        assert trigger(loaded, data, request_json, STATE, CLOCK)["response"] == expected

    def test_compiled_logic_without_sources(self, template: Template, data: dict, request_json: dict) -> None:
        files = read_archive(archive(template, "bytecode"))
        del files["logic/logic.logic"]
        loaded = Template.from_archive(write_zip(files))
        response = trigger(loaded, data, request_json, STATE, CLOCK)["response"]
        assert response["penalty"] == pytest.approx(3.1111111111111107)

    def test_bad_zip(self) -> None:
        with pytest.raises(TemplateError, match="Not a template archive"):
            Template.from_archive(b"not a zip")


# =============================================================================
# Signing and verification
# =============================================================================


class TestSignatures:
    def test_signed_archive_verifies(self, template: Template, keystore: Keystore) -> None:
        loaded = Template.from_archive(archive(template, "bytecode", keystore=keystore))
        assert loaded.is_signed()
        verify(loaded)

    def test_signature_block(self, template: Template, keystore: Keystore) -> None:
        files = read_archive(archive(template, "bytecode", keystore=keystore, timestamp=TIMESTAMP))
        block = json.loads(files[SIGNATURE_FILE])
        assert block["timestamp"] == TIMESTAMP
        assert block["algorithm"] == "RSA-SHA256"
        assert block["certificate"].startswith("-----BEGIN CERTIFICATE-----")
        assert block["templateHash"] == Template.from_archive(write_zip(files)).hash()

    def test_signed_archive_is_deterministic_for_a_timestamp(
        self, template: Template, keystore: Keystore
    ) -> None:
        first = archive(template, "bytecode", keystore=keystore, timestamp=TIMESTAMP)
        second = archive(template, "bytecode", keystore=keystore, timestamp=TIMESTAMP)
        assert first == second

    def test_tampered_content_is_rejected(self, template: Template, keystore: Keystore) -> None:
        files = read_archive(archive(template, "bytecode", keystore=keystore))
        files["text/grammar.md"] = files["text/grammar.md"].replace(b"penalty", b"bonus")
        with pytest.raises(AuthorSignatureError, match="Template's author signature is invalid!"):
            verify(Template.from_archive(write_zip(files)))

    def test_tampered_signature_is_rejected(self, template: Template, keystore: Keystore) -> None:
        files = read_archive(archive(template, "bytecode", keystore=keystore))
        block = json.loads(files[SIGNATURE_FILE])
        block["timestamp"] = TIMESTAMP
        files[SIGNATURE_FILE] = json.dumps(block).encode("utf-8")
        with pytest.raises(AuthorSignatureError, match="invalid"):
            verify(Template.from_archive(write_zip(files)))

    def test_malformed_signature_block(self, template: Template) -> None:
        files = read_archive(archive(template, "bytecode"))
        files[SIGNATURE_FILE] = b'{"templateHash": "abc"}'
        with pytest.raises(AuthorSignatureError, match="invalid"):
            verify(Template.from_archive(write_zip(files)))

    def test_unloadable_content_is_rejected_before_loading(
        self, template: Template, keystore: Keystore
    ) -> None:
        files = read_archive(archive(template, "bytecode", keystore=keystore))
        del files["logic/logic.logic"]
        files[COMPILED_LOGIC_FILE] = b"{}"
        with pytest.raises(TemplateError):
            Template.from_archive(write_zip(files))
        with pytest.raises(AuthorSignatureError, match="Template's author signature is invalid!"):
            verify_files(files)

    def test_unsigned_template(self, template: Template) -> None:
        with pytest.raises(AuthorSignatureError, match="no author signature"):
            verify(template)

    def test_wrong_passphrase(self, keystore: Keystore) -> None:
        with pytest.raises(AuthorSignatureError, match="Cannot open keystore"):
            load_keystore(Keystore(keystore.path, "wrong"))

    def test_missing_keystore(self, tmp_path: Path) -> None:
        with pytest.raises(AuthorSignatureError, match="Cannot read keystore"):
            load_keystore(Keystore(tmp_path / "missing.p12"))


class TestContentHash:
    def test_directory_and_archive_hash_alike(self, template: Template) -> None:
        files = read_archive(archive(template, "bytecode"))
        loaded = Template.from_archive(write_zip(files))
        assert Template(files).hash() == loaded.hash()

    def test_signature_does_not_change_the_hash(self, template: Template, keystore: Keystore) -> None:
        unsigned = Template.from_archive(archive(template, "bytecode"))
        signed = Template.from_archive(archive(template, "bytecode", keystore=keystore))
        assert unsigned.hash() == signed.hash()
