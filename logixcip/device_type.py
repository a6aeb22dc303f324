"""Names for CIP device type codes from the identity object."""

from __future__ import annotations

# One entry per line: hexadecimal code, a space, then the name.
_TABLE = """
00 Generic Device (deprecated)
02 AC Drive
03 Motor Overload
04 Limit Switch
05 Inductive Proximity Switch
06 Photoelectric Sensor
07 General Purpose Discrete I/O
09 Resolver
0C Communications Adapter
0E Programmable Logic Controller
10 Position Controller
13 DC Drive
15 Contactor
16 Motor Starter
17 Soft Start
18 Human-Machine Interface
1A Mass Flow Controller
1B Pneumatic Valve
1C Vacuum Pressure Gauge
1D Process Control Value
1E Residual Gas Analyzer
1F DC Power Generator
20 RF Power Generator
21 Turbomolecular Vacuum Pump
22 Encoder
23 Safety Discrete I/O Device
24 Fluid Flow Controller
25 CIP Motion Drive
26 CompoNet Repeater
27 Mass Flow Controller, Enhanced
28 CIP Modbus Device
29 CIP Modbus Translator
2A Safety Analog I/O Device
2B Generic Device (keyable)
2C Managed Ethernet Switch
2D CIP Motion Safety Drive Device
2E Safety Drive Device
2F CIP Motion Encoder
30 CIP Motion Converter
31 CIP Motion I/O
32 ControlNet Physical Layer Component
33 Circuit Breaker
34 HART Device
35 CIP-HART Translator
C8 Embedded Component
"""


def _parse_table(text: str) -> dict[int, str]:
    entries = (line.split(" ", 1) for line in text.strip().splitlines())
    return {int(code, 16): name for code, name in entries}


DEVICE_TYPE_NAMES: dict[int, str] = _parse_table(_TABLE)


def device_type_name(code: int) -> str:
    """Return the name of a device type code, or "Unknown"."""
    return DEVICE_TYPE_NAMES.get(int(code), "Unknown")