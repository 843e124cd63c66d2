"""Full crawl of the remote tree."""

from drive_registry.crawl.governor import TimeBudget
from drive_registry.crawl.membership import MembershipIndex
from drive_registry.crawl.traversal import FrontierTraversal

__all__ = ["FrontierTraversal", "MembershipIndex", "TimeBudget"]
