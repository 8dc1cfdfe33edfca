"""Human-readable names for chip reset reason codes."""

from __future__ import annotations

_NO_MEAN = "NO_MEAN"

# Codes that do not exist on the C3 target.
_NOT_ON_C3 = frozenset({4, 6, 14})

_VERBOSE = {
    1: "Vbat power on reset",
    3: "Software reset digital core",
    4: "Legacy watch dog reset digital core",
    5: "Deep Sleep reset digital core",
    6: "Reset by SLC module, reset digital core",
    7: "Timer Group0 Watch dog reset digital core",
    8: "Timer Group1 Watch dog reset digital core",
    9: "RTC Watch dog Reset digital core",
    10: "Instrusion tested to reset CPU",
    11: "Time Group reset CPU",
    12: "Software reset CPU",
    13: "RTC Watch dog Reset CPU",
    14: "for APP CPU, reseted by PRO CPU",
    15: "Reset when the vdd voltage is not stable",
    16: "RTC Watch dog reset digital core and rtc module",
}

_SHORT = {
    1: "POWERON_RESET",
    3: "SW_RESET",
    4: "OWDT_RESET",
    5: "DEEPSLEEP_RESET",
    6: "SDIO_RESET",
    7: "TG0WDT_SYS_RESET",
    8: "TG1WDT_SYS_RESET",
    9: "RTCWDT_SYS_RESET",
    10: "INTRUSION_RESET",
    11: "TGWDT_CPU_RESET",
    12: "SW_CPU_RESET",
    13: "RTCWDT_CPU_RESET",
    14: "EXT_CPU_RESET",
    15: "RTCWDT_BROWN_OUT_RESET",
    16: "RTCWDT_RTC_RESET",
}


def _lookup(table: dict[int, str], code: int, target_c3: bool) -> str:
    if target_c3 and code in _NOT_ON_C3:
        return _NO_MEAN
    return table.get(code, _NO_MEAN)


def reset_reason_verbose(code: int, target_c3: bool = False) -> str:
    """Descriptive text for a reset reason code."""
    return _lookup(_VERBOSE, code, target_c3)


def reset_reason_short(code: int, target_c3: bool = False) -> str:
    """Symbolic name for a reset reason code."""
    return _lookup(_SHORT, code, target_c3)