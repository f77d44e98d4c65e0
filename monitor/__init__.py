"""
monitor/ — Device event listeners (battery, connectivity, calls, SMS, system)
"""

from monitor.base import Listener
from monitor.battery import BatteryMonitor, BatteryMonitorState
from monitor.calls import CallMonitor
from monitor.connectivity import ConnectivityMonitor
from monitor.sms import SmsForwarder
from monitor.system import SystemMonitor

__all__ = [
    "Listener",
    "BatteryMonitor",
    "BatteryMonitorState",
    "CallMonitor",
    "ConnectivityMonitor",
    "SmsForwarder",
    "SystemMonitor",
]
