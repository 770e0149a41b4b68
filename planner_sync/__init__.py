"""
ADHD Planner sync backend
Local planner store, remote store client and the local-to-remote migration engine
"""

__version__ = "1.1.0"
