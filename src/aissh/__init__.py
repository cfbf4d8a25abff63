"""
aissh — drive many remote shell sessions through one backend connection,
and hand operational goals to an autonomous command agent.
"""

__version__ = "0.1.0"
