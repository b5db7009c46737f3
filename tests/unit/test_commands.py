"""Tests for the file-level commands."""

from __future__ import annotations

import json
import logging
import shutil
from pathlib import Path

import pytest

from pactum import commands
from pactum.archive import Keystore
from pactum.archive.packager import write_zip
from pactum.core.errors import AuthorSignatureError, MethodResolutionError, UnknownTargetError
from pactum.core.manifest import MANIFEST_FILE
from pactum.core.template import COMPILED_LOGIC_FILE, read_archive
from pactum.grammar import DraftOptions

CLOCK = "2017-12-19T17:38:01Z"


# =============================================================================
# Grammar commands
# =============================================================================


class TestParse:
    def test_defaults_to_template_sample(self, template_dir: Path) -> None:
        data = commands.parse(template_dir)
        assert data is not None
        assert data["penaltyPercentage"] == 7.0
        assert data["penaltyDuration"]["unit"] == "days"

    def test_writes_output(self, template_dir: Path, tmp_path: Path) -> None:
        out = tmp_path / "data.json"
        data = commands.parse(template_dir, output_path=out)
        assert json.loads(out.read_text(encoding="utf-8")) == data

    def test_bad_sample_returns_none(
        self, template_dir: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.ERROR, logger="pactum.commands"):
            assert commands.parse(template_dir, template_dir / "sample_err.md") is None
        assert "Parse failed" in caplog.text

    def test_missing_template_returns_none(self, tmp_path: Path) -> None:
        assert commands.parse(tmp_path / "nowhere") is None


class TestDraft:
    def test_defaults_to_template_data(self, template_dir: Path, sample_text: str) -> None:
        assert commands.draft(template_dir) == sample_text.rstrip("\n")

    def test_output_file_ends_with_newline(
        self, template_dir: Path, tmp_path: Path, sample_text: str
    ) -> None:
        out = tmp_path / "contract.md"
        commands.draft(template_dir, output_path=out)
        assert out.read_text(encoding="utf-8") == sample_text

    def test_invalid_data_returns_none(self, template_dir: Path) -> None:
        assert commands.draft(template_dir, template_dir / "data_err.json") is None

    def test_tree_format(self, template_dir: Path) -> None:
        result = commands.draft(template_dir, options=DraftOptions(format="tree"))
        assert isinstance(result, dict)


class TestNormalize:
    def test_overwrite_replaces_sample(self, template_dir: Path, tmp_path: Path) -> None:
        sample = tmp_path / "sample.md"
        original = (template_dir / "text" / "sample.md").read_text(encoding="utf-8")
        sample.write_text(original.replace("7.0%", "7%"), encoding="utf-8")

        text = commands.normalize(template_dir, sample, overwrite=True)

        assert text == original.rstrip("\n")
        assert sample.read_text(encoding="utf-8") == original

    def test_without_overwrite_leaves_sample(self, template_dir: Path, tmp_path: Path) -> None:
        sample = tmp_path / "sample.md"
        sample.write_text("Late Delivery and Penalty. In case of delayed delivery", encoding="utf-8")
        before = sample.read_text(encoding="utf-8")
        assert commands.normalize(template_dir, sample) is None
        assert sample.read_text(encoding="utf-8") == before


# =============================================================================
# Execution commands
# =============================================================================


class TestTrigger:
    def test_defaults(self, template_dir: Path) -> None:
        result = commands.trigger(template_dir)
        assert result is not None
        assert result["response"]["penalty"] == 4.0
        assert result["response"]["buyerMayTerminate"] is True

    def test_with_clock_and_explicit_inputs(self, template_dir: Path) -> None:
        result = commands.trigger(
            template_dir,
            template_dir / "text" / "sample.md",
            [template_dir / "request.json"],
            template_dir / "state.json",
            CLOCK,
        )
        assert result is not None
        assert result["response"]["penalty"] == pytest.approx(3.1111111111111107)
        assert result["response"]["buyerMayTerminate"] is False

    def test_data_file_replaces_sample(self, native_template_dir: Path) -> None:
        result = commands.trigger(native_template_dir, data_path=native_template_dir / "data.json")
        assert result is not None
        assert result["clause_id"] == "2a5d8e14-3c4b-4a7e-9f61-0d8c2b7e5a90"

    def test_invalid_request_returns_none(self, template_dir: Path) -> None:
        assert commands.trigger(template_dir, request_paths=[template_dir / "request_err.json"]) is None

    def test_invalid_data_returns_none(self, template_dir: Path) -> None:
        assert commands.trigger(template_dir, data_path=template_dir / "data_err.json") is None

    def test_failing_logic_returns_none(
        self, template_dir: Path, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        root = shutil.copytree(template_dir, tmp_path / "broken")
        logic = root / "logic" / "logic.logic"
        source = logic.read_text(encoding="utf-8")
        logic.write_text(
            source.replace("    let diff", "    let boom = contract.penaltyDuration * 2;\n    let diff", 1),
            encoding="utf-8",
        )
        with caplog.at_level(logging.ERROR, logger="pactum.commands"):
            assert commands.trigger(root, current_time=CLOCK) is None
        assert "Cannot apply" in caplog.text

    def test_unreadable_state_uses_default(
        self, template_dir: Path, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        state = tmp_path / "state.json"
        state.write_text("{not json", encoding="utf-8")
        with caplog.at_level(logging.WARNING):
            result = commands.trigger(template_dir, state_path=state)
        assert result is not None
        assert result["state"]["$class"] == "org.accordproject.runtime.State"
        assert "Cannot read state" in caplog.text

    def test_unmatched_request_is_raised(self, template_dir: Path, tmp_path: Path) -> None:
        request = tmp_path / "request.json"
        request.write_text(json.dumps({"$class": "org.accordproject.runtime.Request"}), encoding="utf-8")
        with pytest.raises(MethodResolutionError):
            commands.trigger(template_dir, request_paths=[request])


class TestInvoke:
    def test_defaults_to_template_params(self, template_dir: Path) -> None:
        result = commands.invoke(template_dir, "latedeliveryandpenalty")
        assert result is not None
        assert result["response"]["penalty"] == 4.0

    def test_unknown_clause_is_raised(self, template_dir: Path) -> None:
        with pytest.raises(MethodResolutionError):
            commands.invoke(template_dir, "nosuchclause")

    def test_wrong_params_return_none(self, template_dir: Path) -> None:
        assert (
            commands.invoke(
                template_dir, "latedeliveryandpenalty", params_path=template_dir / "params_err.json"
            )
            is None
        )


class TestInitialize:
    def test_default_state(self, template_dir: Path) -> None:
        result = commands.initialize(template_dir)
        assert result is not None
        assert result["state"]["$class"] == "org.accordproject.runtime.State"

    def test_invalid_sample_returns_none(self, template_dir: Path) -> None:
        assert commands.initialize(template_dir, template_dir / "sample_err.md") is None


# =============================================================================
# Archives and compilers
# =============================================================================


class TestArchive:
    def test_default_name_in_cwd(
        self, template_dir: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(tmp_path)
        assert commands.archive(template_dir, "bytecode") is True
        assert (tmp_path / "latedeliveryandpenalty@0.17.0.cta").exists()

    def test_explicit_output(self, template_dir: Path, tmp_path: Path) -> None:
        out = tmp_path / "out.cta"
        assert commands.archive(template_dir, "python", out) is True
        assert out.exists()

    def test_unknown_target_is_raised(self, template_dir: Path, tmp_path: Path) -> None:
        with pytest.raises(UnknownTargetError):
            commands.archive(template_dir, "foo", tmp_path / "out.cta")
        assert not (tmp_path / "out.cta").exists()

    def test_archive_round_trip_runs(self, template_dir: Path, tmp_path: Path) -> None:
        out = tmp_path / "out.cta"
        commands.archive(template_dir, "bytecode", out)
        result = commands.trigger(
            out,
            template_dir / "text" / "sample.md",
            [template_dir / "request.json"],
            current_time=CLOCK,
        )
        assert result is not None
        assert result["response"]["penalty"] == pytest.approx(3.1111111111111107)


class TestVerify:
    def test_signed_archive(self, template_dir: Path, tmp_path: Path, keystore: Keystore) -> None:
        out = tmp_path / "signed.cta"
        commands.archive(template_dir, "bytecode", out, keystore)
        assert commands.verify(out) is True

    def test_unsigned_archive(self, template_dir: Path, tmp_path: Path) -> None:
        out = tmp_path / "unsigned.cta"
        commands.archive(template_dir, "bytecode", out)
        with pytest.raises(AuthorSignatureError, match="no author signature"):
            commands.verify(out)

    @pytest.mark.parametrize(
        "path, content",
        [
            ("model/model.model", None),
            (COMPILED_LOGIC_FILE, b"{}"),
            (MANIFEST_FILE, b"not toml ["),
        ],
    )
    def test_content_broken_after_signing_is_an_invalid_signature(
        self,
        template_dir: Path,
        tmp_path: Path,
        keystore: Keystore,
        path: str,
        content: bytes | None,
    ) -> None:
        signed = tmp_path / "signed.cta"
        commands.archive(template_dir, "bytecode", signed, keystore)
        files = read_archive(signed.read_bytes())
        files[path] = content if content is not None else files[path] + b"\nconcept {\n"
        tampered = tmp_path / "tampered.cta"
        tampered.write_bytes(write_zip(files))

        with pytest.raises(AuthorSignatureError, match="Template's author signature is invalid!"):
            commands.verify(tampered)

    def test_tampered_directory(self, template_dir: Path, tmp_path: Path, keystore: Keystore) -> None:
        signed = tmp_path / "signed.cta"
        commands.archive(template_dir, "bytecode", signed, keystore)
        unpacked = tmp_path / "unpacked"
        for name, data in read_archive(signed.read_bytes()).items():
            (unpacked / name).parent.mkdir(parents=True, exist_ok=True)
            (unpacked / name).write_bytes(data)
        assert commands.verify(unpacked) is True

        (unpacked / "text" / "grammar.md").write_text("{{#if}}", encoding="utf-8")
        with pytest.raises(AuthorSignatureError, match="invalid"):
            commands.verify(unpacked)


class TestCompile:
    def test_writes_files(self, template_dir: Path, tmp_path: Path) -> None:
        written = commands.compile(template_dir, "PlantUML", tmp_path)
        assert written == [tmp_path / "model.puml"]

    def test_unknown_target(self, template_dir: Path, tmp_path: Path) -> None:
        assert commands.compile(template_dir, "BLAH", tmp_path / "out") == []
