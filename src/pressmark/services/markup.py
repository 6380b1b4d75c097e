"""Render responsive image markup for splicing into serialized records."""

import json
import re
from pathlib import Path

from jinja2 import Environment, FileSystemLoader

from pressmark.models.content import FluidImage

TEMPLATES_PATH = Path(__file__).parent.parent / "templates"
RESPONSIVE_IMAGE_TEMPLATE = "responsive_image.html"

# Line breaks the template puts between tags
_INTER_TAG_WHITESPACE = re.compile(r">\s*\n\s*<")

_env = Environment(
    loader=FileSystemLoader(TEMPLATES_PATH),
    autoescape=True,
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=False,
)


def render_responsive_image(
    fluid: FluidImage,
    width: int,
    css_class: str | None = None,
    alt: str | None = None,
) -> str:
    """
    Render the markup replacing an inline img tag.

    The wrapper never grows past its container (max-width 100%) nor past
    ``width`` pixels, and the image is shown immediately without a fade-in.
    """
    template = _env.get_template(RESPONSIVE_IMAGE_TEMPLATE)
    html = template.render(
        fluid=fluid,
        width=width,
        css_class=css_class,
        alt=alt,
        padding_bottom=round(100 / fluid.aspect_ratio, 4),
    )
    return _INTER_TAG_WHITESPACE.sub("><", html.strip())


def to_json_fragment(html: str) -> str:
    """Encode markup as JSON string content, without the surrounding quotes."""
    encoded = json.dumps(html, ensure_ascii=False)
    return encoded[1:-1]
