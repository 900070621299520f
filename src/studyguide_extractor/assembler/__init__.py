"""Prompt content assembly from extraction results."""

from .content import assemble_text, build_message_content, has_limited_content

__all__ = ["assemble_text", "build_message_content", "has_limited_content"]
