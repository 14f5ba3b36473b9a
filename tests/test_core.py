import json
from pathlib import Path

import pytest

from anytomd import (
    ConversionOptions,
    ConversionService,
    convert_bytes,
    convert_file,
    convert_file_async,
)
from anytomd.config import AppConfig
from anytomd.core import dispatch_key
from anytomd.exceptions import (
    InputTooLargeError,
    IoFailure,
    MalformedDocumentError,
    StrictModeError,
    UnsupportedFormatError,
)

from builders import make_docx, w_paragraph


def write(tmp_path: Path, name: str, data: bytes) -> Path:
    path = tmp_path / name
    path.write_bytes(data)
    return path


def test_convert_file_uses_extension(tmp_path: Path) -> None:
    result = convert_file(write(tmp_path, "data.csv", b"A,B\n1,2\n"))
    assert result.markdown == "| A | B |\n|---|---|\n| 1 | 2 |\n"


def test_convert_file_sniffs_ooxml_behind_wrong_extension(tmp_path: Path) -> None:
    path = write(tmp_path, "report.txt", make_docx(w_paragraph("hello")))
    assert "hello" in convert_file(path).markdown


def test_convert_file_sniffs_json_content(tmp_path: Path) -> None:
    result = convert_file(write(tmp_path, "payload.txt", b'{"a": 1}'))
    assert result.markdown.startswith("```json\n")


def test_dispatch_key_keeps_finer_extension() -> None:
    assert dispatch_key("script.py", b"print(1)") == "py"
    assert dispatch_key("notes.MD", b"# hi") == "md"
    assert dispatch_key("scan.pdf.bin", b"%PDF-1.4") == "pdf"
    assert dispatch_key("nb.ipynb", b'{"cells": []}') == "ipynb"


def test_unsupported_format() -> None:
    with pytest.raises(UnsupportedFormatError) as excinfo:
        convert_bytes(b"MZ", "exe")
    assert excinfo.value.code == "UNSUPPORTED_FORMAT"


def test_unknown_extension_without_signature(tmp_path: Path) -> None:
    with pytest.raises(UnsupportedFormatError):
        convert_file(write(tmp_path, "blob.qqq", b"opaque"))


def test_missing_file_is_io_failure(tmp_path: Path) -> None:
    with pytest.raises(IoFailure):
        convert_file(tmp_path / "absent.csv")


def test_input_size_limit_for_bytes() -> None:
    with pytest.raises(InputTooLargeError) as excinfo:
        convert_bytes(b"12345", "txt", ConversionOptions(max_input_bytes=4))
    assert (excinfo.value.size, excinfo.value.limit) == (5, 4)


def test_input_size_limit_checked_before_reading(tmp_path: Path) -> None:
    path = write(tmp_path, "big.txt", b"x" * 64)
    with pytest.raises(InputTooLargeError):
        convert_file(path, ConversionOptions(max_input_bytes=63))


def test_strict_mode_promotes_first_warning() -> None:
    assert convert_bytes(b"caf\xe9", "txt").warnings
    with pytest.raises(StrictModeError) as excinfo:
        convert_bytes(b"caf\xe9", "txt", ConversionOptions(strict=True))
    assert isinstance(excinfo.value, MalformedDocumentError)
    assert excinfo.value.code == "STRICT_MODE"


def test_strict_mode_passes_clean_input() -> None:
    result = convert_bytes(b"clean", "txt", ConversionOptions(strict=True))
    assert result.markdown == "clean"


@pytest.mark.asyncio
async def test_convert_file_async(tmp_path: Path) -> None:
    result = await convert_file_async(write(tmp_path, "t.csv", b"h\nv\n"))
    assert result.markdown == "| h |\n|---|\n| v |\n"


def test_service_options_apply_config_and_overrides() -> None:
    config = AppConfig()
    config.runtime.max_input_bytes = 10
    service = ConversionService(config)
    options = service.options(strict=True)
    assert options.max_input_bytes == 10
    assert options.strict is True
    assert options.image_describer is None


def test_convert_many_preserves_input_order(tmp_path: Path) -> None:
    paths = [write(tmp_path, f"f{index}.csv", f"h\n{index}\n".encode()) for index in range(6)]
    paths.insert(3, tmp_path / "missing.csv")
    outcomes = ConversionService(AppConfig()).convert_many(paths, parallelism=4)
    assert [outcome.source for outcome in outcomes] == [str(path) for path in paths]
    assert [outcome.ok for outcome in outcomes] == [True, True, True, False, True, True, True]
    assert isinstance(outcomes[3].error, IoFailure)
    assert outcomes[4].result is not None
    assert "| 3 |" in outcomes[4].result.markdown


def test_convert_many_forced_format(tmp_path: Path) -> None:
    path = write(tmp_path, "table.dat", b"a,b\n1,2\n")
    [outcome] = ConversionService(AppConfig()).convert_many([path], format_tag="csv")
    assert outcome.result is not None
    assert outcome.result.markdown.startswith("| a | b |")


def test_run_log_records_success_and_failure(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "runs.jsonl"
    service = ConversionService(AppConfig(), run_log=log_file)
    good = write(tmp_path, "ok.txt", b"caf\xe9")
    bad = write(tmp_path, "bad.json", b"{")
    service.convert_many([good, bad])

    entries = [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]
    assert [entry["status"] for entry in entries] == ["success", "failure"]
    assert entries[0]["source"] == str(good)
    assert entries[0]["format"] == "txt"
    assert entries[0]["warnings"] == ["UnsupportedFeature"]
    assert entries[0]["markdown_chars"] == 4
    assert set(entries[0]["timings"]) == {"read_ms", "detect_ms", "convert_ms"}
    assert entries[1]["error_code"] == "MALFORMED_DOCUMENT"
    assert entries[1]["format"] == "json"


def test_run_log_from_config(tmp_path: Path) -> None:
    config = AppConfig()
    config.runtime.log_file = str(tmp_path / "from-config.jsonl")
    service = ConversionService(config)
    service.convert_data(b"x", "inline.txt")
    assert (tmp_path / "from-config.jsonl").exists()


@pytest.mark.asyncio
async def test_service_async_conversion_with_forced_format() -> None:
    result = await ConversionService(AppConfig()).convert_data_async(b"a,b\n", "upload", format_tag="csv")
    assert result.markdown == "| a | b |\n|---|---|\n"
