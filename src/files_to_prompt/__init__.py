"""
Files to Prompt - concatenate files and directories into a single LLM prompt.

This package walks the given paths, filters files by extension, hidden-file
rules, .gitignore rules and ignore patterns, and writes their contents either
as plain ``---`` delimited blocks or as an XML-ish ``<documents>`` stream.
"""

__version__ = "0.1.0"
