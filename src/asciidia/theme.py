from __future__ import annotations

from dataclasses import dataclass

# ============================================================================
# Types
# ============================================================================


@dataclass(slots=True)
class DiagramColors:
    """Diagram color configuration.

    bg fills the canvas and punches out circle markers, fg strokes lines,
    arrow heads and text. fill is the interior of closed shapes.
    """

    bg: str
    fg: str
    fill: str = "transparent"


# ============================================================================
# Defaults
# ============================================================================

DEFAULTS = {"bg": "white", "fg": "black"}

# ============================================================================
# Well-known palettes
# ============================================================================

THEMES: dict[str, DiagramColors] = {
    "light": DiagramColors(bg="white", fg="black"),
    "dark": DiagramColors(bg="#18181B", fg="#FAFAFA"),
    "blueprint": DiagramColors(bg="#1d3b66", fg="#e6f0ff"),
    "solarized-light": DiagramColors(bg="#fdf6e3", fg="#657b83"),
    "solarized-dark": DiagramColors(bg="#002b36", fg="#839496"),
    "nord": DiagramColors(bg="#2e3440", fg="#d8dee9"),
}


def resolve_colors(
    theme: str | None = None,
    bg: str | None = None,
    fg: str | None = None,
) -> DiagramColors:
    """Build colors from an optional theme name plus explicit overrides.

    Raises ValueError for an unknown theme name.
    """
    if theme is not None:
        if theme not in THEMES:
            raise ValueError(
                f'Unknown theme "{theme}" (available: {", ".join(sorted(THEMES))})'
            )
        base = THEMES[theme]
    else:
        base = DiagramColors(bg=DEFAULTS["bg"], fg=DEFAULTS["fg"])

    return DiagramColors(
        bg=bg or base.bg,
        fg=fg or base.fg,
        fill=base.fill,
    )
