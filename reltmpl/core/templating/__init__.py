"""
Templating module for reltmpl.

Provides the Template object that builds and enriches the Field Set, and the
TemplateRenderer that compiles and renders ``{{ }}`` template strings.
"""
from .template import Template, build_opts_to_fields
from .renderer import TemplateRenderer
from .context_builder import build_general_fields
from .fields import Fields

__all__ = [
    "Template",
    "TemplateRenderer",
    "build_general_fields",
    "build_opts_to_fields",
    "Fields",
]
