"""Tests for the output backends -- MVG command lists and SVG documents."""
from __future__ import annotations

import subprocess
import xml.etree.ElementTree as ET

import pytest

from asciidia.backends import (
    ImageMagickBackend,
    MvgBackend,
    RasterizerError,
    SvgBackend,
    create_backend,
    get_backend,
)
from asciidia.theme import DiagramColors, resolve_colors
from asciidia.types import Arrow, DiagramOptions

NS = "{http://www.w3.org/2000/svg}"


def parse_svg(document: str) -> ET.Element:
    return ET.fromstring(document.encode("utf-8"))


# ============================================================================
# Backend selection
# ============================================================================


class TestGetBackend:
    def test_svg(self):
        assert isinstance(get_backend("svg"), SvgBackend)

    def test_mvg(self):
        assert isinstance(get_backend("mvg"), MvgBackend)

    @pytest.mark.parametrize("fmt", ["png", "gif", "jpg"])
    def test_raster_formats_use_imagemagick(self, fmt):
        backend = get_backend(fmt)
        assert type(backend) is ImageMagickBackend
        assert backend.format == fmt

    def test_create_backend_applies_options(self):
        backend = create_backend(DiagramOptions(
            format="svg", cell_width=12, scale_to="200x", debug=True, theme="dark",
        ))
        ctx = backend.get_context()
        assert ctx.get_cell_size() == (12.0, 12.0)
        assert backend.scale_to == "200x"
        assert ctx.debug.value > 0
        assert ctx.bg == "#18181B"


class TestScaleTo:
    @pytest.mark.parametrize("spec", ["100x200", "100x", "x200"])
    def test_accepts_valid_specs(self, spec):
        backend = MvgBackend()
        backend.set_scale_to(spec)
        assert backend.scale_to == spec

    @pytest.mark.parametrize("spec", ["x", "100", "abc", "10x10x10", ""])
    def test_rejects_invalid_specs(self, spec):
        with pytest.raises(ValueError):
            MvgBackend().set_scale_to(spec)


# ============================================================================
# MVG
# ============================================================================


class TestMvgCommands:
    def test_empty_document_is_just_the_prologue(self):
        assert MvgBackend().get_document() == [
            "push graphic-context",
            "stroke black",
            "fill transparent",
            "font Courier",
            "font-size 15.000000",
            "pop graphic-context",
        ]

    def test_line_command(self):
        backend = MvgBackend()
        backend.get_context().draw_hline(0, 0, 2)
        assert "line 0.000000,7.500000 30.000000,7.500000" in backend.get_document()

    def test_translate_command(self):
        backend = MvgBackend()
        backend.get_context().translate(1, 2)
        assert "translate 10.000000,30.000000" in backend.get_document()

    def test_round_rectangle(self):
        backend = MvgBackend()
        backend.get_context().draw_rectangle(0, 0, 2, 2, round=True)
        assert (
            "roundrectangle 5.000000,7.500000 25.000000,37.500000 5.000000,7.500000"
            in backend.get_document()
        )

    def test_text_quotes_are_escaped(self):
        backend = MvgBackend()
        backend.get_context().draw_text(0, 0, "it's")
        assert "text 0.000000,11.250000 'it\\'s'" in backend.get_document()

    def test_arrow_heads_are_isolated_fills(self):
        backend = MvgBackend()
        backend.get_context().draw_hline(0, 0, 3, Arrow.END)
        commands = backend.get_document()
        idx = next(i for i, c in enumerate(commands) if c.startswith("fill black path"))
        assert commands[idx - 1] == "push graphic-context"
        assert commands[idx + 1] == "pop graphic-context"

    def test_child_commands_are_expanded_in_place(self):
        backend = MvgBackend()
        ctx = backend.get_context()
        ctx.draw_text(0, 0, "a")
        child = ctx.add_context()
        child.draw_text(0, 0, "b")
        ctx.draw_text(0, 1, "c")

        commands = backend.get_document()
        texts = [c for c in commands if c.startswith("text")]
        assert [t[-3:] for t in texts] == ["'a'", "'b'", "'c'"]
        assert commands.count("push graphic-context") == 2
        assert commands.count("pop graphic-context") == 2

    def test_style_settings(self):
        backend = MvgBackend()
        ctx = backend.get_context()
        ctx.set_stroke(color="red", width=2)
        ctx.set_fill(color=(0, 0, 255), opacity=0.5)
        commands = backend.get_document()
        assert "stroke-width 2.000000 stroke red" in commands
        assert "fill rgb(0,0,255) fill-opacity 0.500000" in commands

    def test_font_and_raw_path(self):
        backend = MvgBackend()
        ctx = backend.get_context()
        ctx.set_font(family="Helvetica", size=12)
        ctx.draw_path("M 0,0 L 10,10")
        commands = backend.get_document()
        assert "font Helvetica font-size 12.000000" in commands
        assert "path 'M 0,0 L 10,10'" in commands

    def test_raw_commands(self):
        ctx = MvgBackend().get_context()
        ctx.add_command("point 1,1")
        assert ctx.get_commands()[3] == "point 1,1"
        ctx.clear_commands()
        assert "point 1,1" not in ctx.get_commands()

    def test_theme_colors_open_the_document(self):
        backend = MvgBackend(resolve_colors("dark"))
        backend.get_context().draw_hline(0, 0, 2, Arrow.END)
        commands = backend.get_document()
        assert commands[1:3] == ["stroke #FAFAFA", "fill transparent"]
        assert any(c.startswith("fill #FAFAFA path") for c in commands)

    def test_fill_color_reaches_the_context(self):
        backend = MvgBackend(DiagramColors(bg="white", fg="black", fill="#eeeeee"))
        assert backend.get_context().fill["color"] == "#eeeeee"
        assert backend.get_document()[2] == "fill #eeeeee"

    def test_debug_overlay(self):
        backend = MvgBackend()
        backend.enable_debug(True)
        backend.get_context().draw_line(0, 0, 1, 0)
        commands = backend.get_document()

        assert "fill transparent" in commands
        assert "rectangle 0,0 20.000000,15.000000" in commands
        assert "text 0.000000,11.250000 '2,1'" in commands
        assert commands[-1] == "pop graphic-context"

    def test_save_file_writes_commands(self, tmp_path):
        backend = MvgBackend()
        backend.get_context().draw_line(0, 0, 1, 0)
        out = tmp_path / "out.mvg"
        backend.save_file(str(out), backend.get_document())
        assert out.read_text().splitlines()[0] == "push graphic-context"

    def test_save_file_to_stdout(self, capsys):
        backend = MvgBackend()
        backend.save_file("-", backend.get_document())
        assert capsys.readouterr().out.startswith("push graphic-context")


class TestImageMagickBackend:
    def test_command_line(self):
        backend = ImageMagickBackend(resolve_colors("dark"), "gif")
        backend.get_context().draw_line(0, 0, 1, 1)
        backend.set_scale_to("50x")

        cmd = backend.build_command("out.gif", backend.get_document())

        assert cmd[:8] == [
            "convert", "-size", "19x29", "xc:#18181B",
            "-stroke", "#FAFAFA", "-fill", "none",
        ]
        assert cmd[8] == "-draw"
        assert cmd[9].startswith("push graphic-context stroke #FAFAFA fill transparent font Courier")
        assert cmd[-3:] == ["-scale", "50x", "gif:out.gif"]

    def test_failing_rasterizer_raises(self, monkeypatch):
        def fake_run(cmd, **kwargs):
            return subprocess.CompletedProcess(cmd, 1, stderr="no decode delegate\n")

        monkeypatch.setattr("asciidia.backends.imagemagick.subprocess.run", fake_run)

        backend = ImageMagickBackend()
        with pytest.raises(RasterizerError, match="status 1: no decode delegate") as info:
            backend.save_file("out.png", backend.get_document())
        assert info.value.returncode == 1

    def test_successful_rasterizer(self, monkeypatch):
        seen = []

        def fake_run(cmd, **kwargs):
            seen.append(cmd)
            return subprocess.CompletedProcess(cmd, 0, stderr="")

        monkeypatch.setattr("asciidia.backends.imagemagick.subprocess.run", fake_run)

        backend = ImageMagickBackend()
        backend.save_file("out.png", backend.get_document())
        assert seen[0][-1] == "png:out.png"

    def test_env_requires_convert(self, monkeypatch):
        monkeypatch.setattr("asciidia.backends.imagemagick.shutil.which", lambda name: None)
        ok, msg = ImageMagickBackend().test_env()
        assert not ok
        assert "convert" in msg

    def test_mvg_backend_needs_no_tool(self, monkeypatch):
        monkeypatch.setattr("asciidia.backends.imagemagick.shutil.which", lambda name: None)
        assert MvgBackend().test_env() == (True, "")


# ============================================================================
# SVG
# ============================================================================


class TestSvgDocument:
    def test_xml_declaration_and_root(self):
        doc = SvgBackend().get_document()
        assert doc.startswith('<?xml version="1.0" encoding="UTF-8"?>')

        svg = parse_svg(doc)
        assert svg.tag == f"{NS}svg"
        assert svg.get("version") == "1.1"

    def test_canvas_size(self):
        backend = SvgBackend()
        backend.get_context().draw_line(0, 0, 1, 1)
        svg = parse_svg(backend.get_document())
        assert svg.get("width") == "19"
        assert svg.get("height") == "29"
        assert svg.get("viewBox") == "0 0 19 29"

    def test_crisp_edge_shift_for_even_cell_sizes(self):
        backend = SvgBackend()
        svg = parse_svg(backend.get_document())
        assert svg[0].get("transform") == "translate(0.5 0)"

        backend = SvgBackend()
        backend.set_cell_size(9, 15)
        svg = parse_svg(backend.get_document())
        assert svg[0].get("transform") is None

    def test_translate_nests_groups(self):
        backend = SvgBackend()
        ctx = backend.get_context()
        ctx.translate(1, 1)
        ctx.draw_line(0, 0, 1, 0)
        svg = parse_svg(backend.get_document())

        inner = svg[0][0]
        assert inner.tag == f"{NS}g"
        assert inner.get("transform") == "translate(10 15)"
        assert inner[0].tag == f"{NS}line"

    def test_line_style(self):
        backend = SvgBackend()
        backend.get_context().draw_line(0, 0, 1, 0)
        line = parse_svg(backend.get_document()).find(f".//{NS}line")
        assert line.get("x1") == "5"
        assert line.get("y1") == "7.5"
        assert line.get("style") == (
            "fill: transparent; fill-opacity: 1; stroke: black; "
            "stroke-opacity: 1; stroke-width: 1;"
        )

    def test_arrow_head_is_a_group_with_a_filled_path(self):
        backend = SvgBackend()
        backend.get_context().draw_hline(0, 0, 2, Arrow.END)
        svg = parse_svg(backend.get_document())
        group = svg[0].find(f"{NS}g")
        path = group.find(f"{NS}path")
        assert path.get("d").startswith("M ")
        assert path.get("d").endswith(" Z")
        assert "fill: black;" in path.get("style")

    def test_round_corner_is_an_arc_path(self):
        backend = SvgBackend()
        backend.get_context().draw_corner(1, 1, "br", round=True)
        path = parse_svg(backend.get_document()).find(f".//{NS}path")
        assert path.get("d") == "M 15,15 A 5 7.5 0 0 1 10,22.5"

    def test_text_uses_the_foreground_color(self):
        backend = SvgBackend(resolve_colors("dark"))
        backend.get_context().draw_text(0, 0, "a<b")
        text = parse_svg(backend.get_document()).find(f".//{NS}text")
        assert text.text == "a<b"
        assert text.get("fill") == "#FAFAFA"
        assert text.get("font-family") == "Courier"
        assert text.get("font-size") == "15"

    def test_circle_marker_is_punched_out_with_the_background(self):
        backend = SvgBackend()
        backend.get_context().draw_marker(0, 0, "o", True, False, False, False)
        ellipse = parse_svg(backend.get_document()).find(f".//{NS}ellipse")
        assert "fill: white;" in ellipse.get("style")

    def test_box_interior_uses_the_fill_color(self):
        backend = SvgBackend(DiagramColors(bg="white", fg="black", fill="#eeeeee"))
        backend.get_context().draw_rectangle(0, 0, 2, 2)
        rect = parse_svg(backend.get_document()).find(f".//{NS}rect")
        assert rect.get("style").startswith("fill: #eeeeee;")

    def test_debug_overlay_is_rebuilt_not_duplicated(self):
        backend = SvgBackend()
        backend.enable_debug(True)
        ctx = backend.get_context()
        ctx.draw_line(0, 0, 2, 0)
        backend.get_document()
        svg = parse_svg(backend.get_document())

        overlays = svg.findall(f".//{NS}g[@class='debug']")
        assert len(overlays) == 1
        assert overlays[0].find(f"{NS}text").text == "3,1"

    def test_debug_overlay_per_child_context(self):
        backend = SvgBackend()
        backend.enable_debug(True)
        ctx = backend.get_context()
        ctx.add_context().draw_text(0, 0, "x")
        svg = parse_svg(backend.get_document())
        assert len(svg.findall(f".//{NS}g[@class='debug']")) == 2

    def test_raw_path_element(self):
        backend = SvgBackend()
        backend.get_context().draw_path("M 0,0 L 10,10")
        path = parse_svg(backend.get_document()).find(f".//{NS}path")
        assert path.get("d") == "M 0,0 L 10,10"

    def test_font_setting_applies_to_text(self):
        backend = SvgBackend()
        ctx = backend.get_context()
        ctx.set_font(family="Helvetica", size=12)
        ctx.draw_text(0, 0, "a")
        text = parse_svg(backend.get_document()).find(f".//{NS}text")
        assert text.get("font-family") == "Helvetica"
        assert text.get("font-size") == "12"

    def test_env_always_ok(self):
        assert SvgBackend().test_env() == (True, "")
