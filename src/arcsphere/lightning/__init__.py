"""
Lightning arcs between particle shells.
"""

from arcsphere.lightning.automaton import LightningAutomaton, LightningConfig
from arcsphere.lightning.pool import Bolt, BoltPool, Tip, Track
