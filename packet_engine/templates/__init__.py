"""Template rendering engine.

Templates are ordered sections of content blocks with `{{ path }}`
placeholders and optional display conditions. Rendering turns a template
and a client context into a typed content tree.
"""

from packet_engine.templates.renderer import render_template
from packet_engine.templates.schemas import PacketContent, TemplateContext, TemplateDefinition

__all__ = [
    "PacketContent",
    "TemplateContext",
    "TemplateDefinition",
    "render_template",
]
