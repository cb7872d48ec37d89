"""
Code Generator Module

This module renders Jinja2 template trees for annotated API models.
"""

from .template_engine import (
    CodeGenerator,
    DictTemplateProvider,
    FileSystemTemplateProvider,
    GeneratedFile,
    TemplateEngine,
    TemplateProvider,
    generate,
    walk_templates,
)

__all__ = [
    "CodeGenerator",
    "DictTemplateProvider",
    "FileSystemTemplateProvider",
    "GeneratedFile",
    "TemplateEngine",
    "TemplateProvider",
    "generate",
    "walk_templates",
]
