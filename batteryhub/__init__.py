"""
batteryhub: read telemetry from batteries sharing one Modbus bus.
"""

__version__ = "0.1.0"
