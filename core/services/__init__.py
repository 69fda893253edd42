"""
Core services for the application.

This package contains the simulated sources, the stall roster, the feedback
queue, alert aggregation and the engine that supervises them.
"""

from .alerts import AlertAggregator, AlertIdAllocator
from .engine import MonitoringEngine
from .environment import EnvironmentSimulator
from .feedback import FeedbackQueue
from .flow import FlowSimulator
from .records import InMemoryRecordStore, RecordStore
from .supplies import SuppliesSimulator
from .ticker import Result, SimulationTicker, TickerConfig, TickReport
from .toilets import OccupancySimulator, ToiletStatusStore

__all__ = [
    "AlertAggregator",
    "AlertIdAllocator",
    "EnvironmentSimulator",
    "FeedbackQueue",
    "FlowSimulator",
    "InMemoryRecordStore",
    "MonitoringEngine",
    "OccupancySimulator",
    "RecordStore",
    "Result",
    "SimulationTicker",
    "SuppliesSimulator",
    "TickReport",
    "TickerConfig",
    "ToiletStatusStore",
]
