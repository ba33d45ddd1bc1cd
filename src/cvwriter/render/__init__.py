"""
Document rendering for finished resumes.
"""

from cvwriter.render.renderer import CommandRenderer, Renderer

__all__ = [
    "CommandRenderer",
    "Renderer",
]
