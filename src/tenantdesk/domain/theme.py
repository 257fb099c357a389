"""Theme presets and CSS custom property rendering."""

from typing import Dict, Mapping, Optional

TOKEN_NAMES = frozenset(
    {
        "primary",
        "primary-foreground",
        "secondary",
        "secondary-foreground",
        "background",
        "foreground",
        "muted",
        "muted-foreground",
        "accent",
        "accent-foreground",
        "card",
        "card-foreground",
        "popover",
        "popover-foreground",
        "border",
        "input",
        "ring",
        "destructive",
        "destructive-foreground",
        "radius",
        "font-sans",
    }
)

# Colors are HSL triplets as consumed by hsl(var(--token))
THEME_PRESETS: Dict[str, Dict[str, str]] = {
    "clean": {
        "primary": "221 83% 53%",
        "primary-foreground": "210 40% 98%",
        "background": "0 0% 100%",
        "foreground": "240 10% 3.9%",
        "muted": "210 40% 96.1%",
        "muted-foreground": "215.4 16.3% 46.9%",
        "border": "214.3 31.8% 91.4%",
        "radius": "0.625rem",
        "font-sans": "'Inter', system-ui, -apple-system, sans-serif",
    },
    "bold": {
        "primary": "262 83% 58%",
        "primary-foreground": "210 40% 98%",
        "background": "222.2 84% 4.9%",
        "foreground": "210 40% 98%",
        "muted": "217.2 32.6% 17.5%",
        "muted-foreground": "215 20.2% 65.1%",
        "border": "217.2 32.6% 17.5%",
        "radius": "0.75rem",
        "font-sans": "'Inter', system-ui, -apple-system, sans-serif",
    },
    "muted": {
        "primary": "25 34% 45%",
        "primary-foreground": "40 33% 96%",
        "background": "40 33% 96%",
        "foreground": "20 14.3% 14.1%",
        "muted": "40 20% 90%",
        "muted-foreground": "25 5.3% 44.7%",
        "border": "30 15% 85%",
        "radius": "0.5rem",
        "font-sans": "'Georgia', 'Times New Roman', serif",
    },
}

DEFAULT_PRESET = "clean"
CUSTOM_PRESET = "custom"


def default_theme() -> Dict[str, object]:
    """Theme returned for accounts that never stored one."""
    return {"preset": DEFAULT_PRESET, "tokens": {}, "dark_tokens": {}, "logo_url": None}


def unknown_tokens(tokens: Optional[Mapping[str, object]]) -> list:
    """Token keys that are not known theme tokens, sorted."""
    return sorted(k for k in (tokens or {}) if k not in TOKEN_NAMES)


def resolve_tokens(
    preset: Optional[str], overrides: Optional[Mapping[str, Optional[str]]] = None
) -> Dict[str, Optional[str]]:
    """Overlay explicit token overrides on a preset.

    Unknown presets (including ``custom``) contribute nothing, so only the
    overrides are returned.
    """
    resolved: Dict[str, Optional[str]] = dict(THEME_PRESETS.get(preset or "", {}))
    resolved.update(overrides or {})
    return resolved


def to_css_variables(tokens: Mapping[str, Optional[str]]) -> Dict[str, str]:
    """Map tokens to CSS custom properties, skipping unset values."""
    return {f"--{key}": value for key, value in tokens.items() if value is not None}


def _block(selector: str, variables: Mapping[str, str]) -> str:
    lines = [f"  {name}: {value};" for name, value in variables.items()]
    return selector + " {\n" + "\n".join(lines) + "\n}\n"


def render_theme_css(
    tokens: Mapping[str, Optional[str]],
    dark_tokens: Optional[Mapping[str, Optional[str]]] = None,
) -> str:
    """Render a stylesheet with ``:root`` variables and an optional ``.dark`` block."""
    css = _block(":root", to_css_variables(tokens))
    dark = to_css_variables(dark_tokens or {})
    if dark:
        css += "\n" + _block(".dark", dark)
    return css
