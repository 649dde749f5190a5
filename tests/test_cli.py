"""Tests for the command line interface."""
from __future__ import annotations

import io

import pytest

from asciidia.cli import build_parser, main, parse_cell_size, resolve_format


def write_input(tmp_path, text: str = "A->B", name: str = "in.txt"):
    path = tmp_path / name
    path.write_text(text)
    return str(path)


class TestParseCellSize:
    def test_square(self):
        assert parse_cell_size("12") == (12, 12)

    def test_width_and_height(self):
        assert parse_cell_size("8x16") == (8, 16)

    @pytest.mark.parametrize("spec", ["8x", "x8", "axb", "8x8x8", ""])
    def test_invalid(self, spec):
        with pytest.raises(ValueError, match="cell-size"):
            parse_cell_size(spec)


class TestResolveFormat:
    def test_explicit_format_wins(self):
        assert resolve_format("SVG", "out.png") == "svg"

    def test_from_extension(self):
        assert resolve_format(None, "out.mvg") == "mvg"

    def test_defaults_to_png(self):
        assert resolve_format(None, "-") == "png"
        assert resolve_format(None, "out") == "png"


class TestParser:
    def test_requires_input_and_output(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["-t", "diagram"])

    def test_rejects_unknown_types(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["-t", "ebnf", "-i", "a", "-o", "b"])


class TestMain:
    def test_renders_mvg(self, tmp_path):
        out = tmp_path / "out.mvg"
        assert main(["-i", write_input(tmp_path), "-o", str(out)]) == 0
        assert out.read_text().startswith("push graphic-context")

    def test_renders_svg_with_options(self, tmp_path):
        out = tmp_path / "out.svg"
        code = main([
            "-i", write_input(tmp_path, "/--\\\n|  |\n\\--/"),
            "-o", str(out),
            "-c", "8x16", "-d", "--theme", "dark",
        ])
        assert code == 0
        svg = out.read_text()
        assert 'class="debug"' in svg
        assert "stroke: #FAFAFA;" in svg
        assert 'transform="translate(0.5 0.5)"' in svg

    def test_writes_to_stdout(self, tmp_path, capsys):
        assert main(["-i", write_input(tmp_path), "-o", "-", "-f", "svg"]) == 0
        assert "<svg" in capsys.readouterr().out

    def test_reads_from_stdin(self, tmp_path, monkeypatch, capsys):
        monkeypatch.setattr("sys.stdin", io.StringIO("A->B"))
        assert main(["-i", "-", "-o", "-", "-f", "mvg"]) == 0
        assert "text 0.000000,11.250000 'A'" in capsys.readouterr().out

    def test_existing_output_is_rejected(self, tmp_path, capsys):
        out = tmp_path / "out.svg"
        out.write_text("keep me")
        assert main(["-i", write_input(tmp_path), "-o", str(out)]) == 1
        assert "error: output already exists" in capsys.readouterr().err
        assert out.read_text() == "keep me"

    def test_directory_output_is_rejected(self, tmp_path, capsys):
        assert main(["-i", write_input(tmp_path), "-o", str(tmp_path), "-f", "svg"]) == 1
        assert "only a filename is allowed" in capsys.readouterr().err

    def test_missing_input(self, tmp_path, capsys):
        code = main(["-i", str(tmp_path / "nope.txt"), "-o", "-", "-f", "svg"])
        assert code == 1
        assert "error: input is not readable" in capsys.readouterr().err

    def test_bad_scale(self, tmp_path, capsys):
        code = main(["-i", write_input(tmp_path), "-o", "-", "-s", "big"])
        assert code == 1
        assert "error: wrong scaling parameter" in capsys.readouterr().err

    def test_bad_cell_size(self, tmp_path, capsys):
        code = main(["-i", write_input(tmp_path), "-o", "-", "-f", "svg", "-c", "0x"])
        assert code == 1
        assert "cell-size" in capsys.readouterr().err

    def test_directory_input_needs_tree_type(self, tmp_path, capsys):
        (tmp_path / "src").mkdir()
        code = main(["-i", str(tmp_path), "-o", "-", "-f", "svg"])
        assert code == 1
        assert "only allowed for tree" in capsys.readouterr().err

    def test_tree_from_directory(self, tmp_path, capsys):
        (tmp_path / "src").mkdir()
        code = main(["-t", "tree", "-i", str(tmp_path), "-o", "-", "-f", "svg"])
        assert code == 0
        assert ">src<" in capsys.readouterr().out

    def test_flow(self, tmp_path, capsys):
        code = main([
            "-t", "flow", "-i", write_input(tmp_path, "A -> B"),
            "-o", "-", "-f", "svg", "--round",
        ])
        assert code == 0
        out = capsys.readouterr().out
        assert ">A<" in out
        assert 'rx="5"' in out

    def test_flow_parse_error(self, tmp_path, capsys):
        code = main(["-t", "flow", "-i", write_input(tmp_path, "A =>"), "-o", "-", "-f", "svg"])
        assert code == 1
        assert "error: Invalid flow syntax" in capsys.readouterr().err

    def test_missing_convert(self, tmp_path, monkeypatch, capsys):
        monkeypatch.setattr("asciidia.backends.imagemagick.shutil.which", lambda name: None)
        code = main(["-i", write_input(tmp_path), "-o", str(tmp_path / "out.png")])
        assert code == 1
        assert 'error: imagemagick "convert" is not found in path' in capsys.readouterr().err
