"""ABL lexer, tolerant parser and syntax tree."""

from syntax.parser import ABLParser, parse_source
from syntax.tree import LineIndex, Node, Tree

__all__ = ["ABLParser", "LineIndex", "Node", "Tree", "parse_source"]
