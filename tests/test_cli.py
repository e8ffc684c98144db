import httpx
import respx
from openpyxl import load_workbook

import main
from invoice_lens.utils.helpers import collect_files


def test_collect_files_filters_and_sorts(tmp_path):
    for name in ("b.PDF", "a.png", "notes.txt", "c.webp"):
        (tmp_path / name).write_bytes(b"x")
    (tmp_path / "nested").mkdir()

    files = collect_files(tmp_path, [".pdf", ".png", ".webp"])

    assert [f.name for f in files] == ["a.png", "b.PDF", "c.webp"]


def test_collect_files_single_unsupported_file(tmp_path):
    path = tmp_path / "notes.txt"
    path.write_text("x")
    assert collect_files(path, [".pdf"]) == []


def test_missing_input_exits_with_error(tmp_path, capsys):
    code = main.main(["--input", str(tmp_path / "missing"), "--quiet"])

    assert code == 1
    assert "Input path not found" in capsys.readouterr().err


def test_directory_without_documents(tmp_path):
    (tmp_path / "readme.txt").write_text("nothing here")
    assert main.main(["--input", str(tmp_path), "--quiet"]) == 1


def test_no_credentials_fails_every_file(tmp_path, make_image, capsys):
    (tmp_path / "a.png").write_bytes(make_image(100, 150))

    code = main.main(["--input", str(tmp_path), "--no-excel"])

    assert code == 1
    assert "FAIL  a.png: No API key configured." in capsys.readouterr().out


def test_extracts_and_exports(tmp_path, monkeypatch, make_image, valid_response, capsys):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
    inputs = tmp_path / "in"
    inputs.mkdir()
    for name in ("a.png", "b.png", "c.png", "d.png"):
        (inputs / name).write_bytes(make_image(120, 160))
    output = tmp_path / "out" / "results.xlsx"

    with respx.mock:
        respx.post("https://api.anthropic.com/v1/messages").mock(return_value=httpx.Response(200, json={
            "content": [{"type": "text", "text": valid_response}],
            "stop_reason": "end_turn",
        }))

        code = main.main(["--input", str(inputs), "--output", str(output)])

    assert code == 0
    out = capsys.readouterr().out
    assert out.count("OK    ") == 4

    sheet = load_workbook(output)["Invoices"]
    assert [sheet.cell(row=r, column=15).value for r in range(2, 6)] == ["a.png", "b.png", "c.png", "d.png"]
