"""Adventure graph and narrative router."""

from .adventure import Adventure, AdventureNode, AdventureRunner, Choice, NodeType, SkillCheck

__all__ = ["Adventure", "AdventureNode", "AdventureRunner", "Choice", "NodeType", "SkillCheck"]
