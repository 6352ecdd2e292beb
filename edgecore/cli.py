"""Interactive menu that exercises the environment, warning and assertion facilities."""

from __future__ import annotations

import argparse
import sys
import warnings
from typing import Callable, Optional, TextIO, TypeVar

from .assertion import AssertionBreak, edge_assert
from .environment import (
    EnvironmentInfo,
    GlobalConfig,
    UnsupportedEnvironmentError,
    compile_error,
    compile_warning,
    detect_architecture,
    detect_build_type,
    detect_environment,
    detect_implementation,
    detect_language_version,
    detect_platform,
    is_debug,
    validate_environment,
    version_warnings,
)

_T = TypeVar("_T")

_MENU_ENTRIES = (
    ("1", "Compiler Test"),
    ("2", "Compiler Version Test"),
    ("3", "Platform / Supported Platforms Test"),
    ("4", "Build Configuration Test"),
    ("5", "Architecture Test"),
    ("6", "Global Support Test"),
    ("7", "Python Version / Version Requirement Test"),
    ("8", "Log Error Test (Runtime)"),
    ("9", "Log Warning Test (Runtime)"),
    ("0", "Assert Test (Runtime)"),
)


def menu_text() -> str:
    """Return the menu shown before every choice, ending with the prompt."""
    lines = ["", "--- Edge Core Test Menu ---"]
    lines.extend(f"{key} - {label}" for key, label in _MENU_ENTRIES)
    lines.append("Enter your choice (or any other key to exit): ")
    return "\n".join(lines)


def _detected(probe: Callable[[], _T]) -> Optional[_T]:
    try:
        return probe()
    except UnsupportedEnvironmentError:
        return None


def _enabled(flag: bool) -> str:
    return "Enabled" if flag else "Disabled"


def _version_text(version: tuple[int, int]) -> str:
    return ".".join(str(part) for part in version)


def _snapshot() -> EnvironmentInfo:
    implementation = _detected(detect_implementation) or ("Unknown", 0)
    return EnvironmentInfo(
        implementation=implementation[0],
        implementation_version=implementation[1],
        platform=_detected(detect_platform) or "Unknown",
        architecture=_detected(detect_architecture) or "Unknown",
        build_type=detect_build_type(),
        language_version=detect_language_version(),
    )


def _test_warning() -> None:
    compile_warning("This is a test warning message.")


def _test_error() -> None:
    compile_error("This is a test error message.")


def run_assert_test(out: TextIO) -> None:
    """Exercise the assertion macros; a failing debug assertion raises AssertionBreak."""
    out.write("--- Testing Assertions ---\n")
    edge_assert(1 == 1, "This assertion should pass and do nothing.")
    out.write("Successfully passed the first assertion.\n")
    if is_debug():
        out.write(
            "Running a failing assertion in Debug mode. The program should break here.\n"
        )
        out.write("If you continue execution, it's because you are in a debugger.\n")
        out.flush()
        edge_assert(1 == 0, "This assertion will fail in Debug builds!")
    else:
        out.write(
            "This is a Release build. The failing assertion will be compiled out "
            "and have no effect.\n"
        )
        edge_assert(1 == 0, "This assertion will fail in Debug builds!")
        out.write("The program continued without issue after the (disabled) assertion.\n")
    out.write("--- End of Assertion Test ---\n")


def _compiler(out: TextIO) -> None:
    out.write("\n--- Compiler Test ---\n")
    detected = _detected(detect_implementation)
    out.write(f"Compiler: {detected[0] if detected else 'Unknown'}\n")


def _compiler_version(out: TextIO) -> None:
    out.write("\n--- Compiler Version Test ---\n")
    detected = _detected(detect_implementation)
    out.write(f"Compiler Version: {detected[1] if detected else 'Unknown'}\n")


def _platform(out: TextIO) -> None:
    out.write("\n--- Platform Test ---\n")
    out.write(f"Platform: {_detected(detect_platform) or 'Unknown'}\n")
    config = GlobalConfig()
    out.write("--- Supported Platforms (Global Config) ---\n")
    out.write(f"Windows Support: {_enabled(config.windows_supported)}\n")
    out.write(f"macOS Support:   {_enabled(config.macos_supported)}\n")
    out.write(f"iOS Support:     {_enabled(config.ios_supported)}\n")
    out.write(f"Android Support: {_enabled(config.android_supported)}\n")


def _build(out: TextIO) -> None:
    out.write("\n--- Build Configuration Test ---\n")
    out.write(f"Build: {detect_build_type().value}\n")


def _architecture(out: TextIO) -> None:
    out.write("\n--- Architecture Test ---\n")
    out.write(f"Architecture: {_detected(detect_architecture) or 'Unknown'}\n")


def _global_support(out: TextIO) -> None:
    out.write("\n--- Global Support Test ---\n")
    out.write(
        "This test passes if the running environment validates against the "
        "project configuration.\n"
    )
    try:
        validate_environment(detect_environment(), GlobalConfig())
    except UnsupportedEnvironmentError as error:
        out.write(f"Result: {error}\n")
    else:
        out.write("Result: Supported\n")


def _language_version(out: TextIO) -> None:
    config = GlobalConfig()
    info = _snapshot()
    out.write("\n--- Python Version Test ---\n")
    out.write(f"Detected version: {sys.version.split()[0]}\n")
    out.write(f"Language Version: Python {_version_text(info.language_version)}\n")
    out.write("--- Project Requirements ---\n")
    out.write(f"Minimum Required:  {_version_text(config.min_version)}\n")
    out.write(f"Maximum Supported: {_version_text(config.max_version)}\n")
    out.write(f"Preferred Version: {_version_text(config.preferred_version)}\n")
    for message in version_warnings(info, config):
        out.write(f"{message}\n")


def _log_error(out: TextIO) -> None:
    out.write("\n--- Log Error Test ---\n")
    out.write("The error raised by the test function is shown below with its file and line.\n")
    try:
        _test_error()
    except RuntimeError as error:
        out.write(f"{error}\n")


def _log_warning(out: TextIO) -> None:
    out.write("\n--- Log Warning Test ---\n")
    out.write("The warning emitted by the test function is shown below with its file and line.\n")
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        _test_warning()
    for item in caught:
        out.write(f"{item.filename}({item.lineno}) : Warning: {item.message}\n")


_ACTIONS: dict[str, Callable[[TextIO], None]] = {
    "1": _compiler,
    "2": _compiler_version,
    "3": _platform,
    "4": _build,
    "5": _architecture,
    "6": _global_support,
    "7": _language_version,
    "8": _log_error,
    "9": _log_warning,
    "0": run_assert_test,
}


def run_choice(choice: str, out: TextIO) -> bool:
    """Run the menu entry for ``choice``; return False when the menu should exit."""
    action = _ACTIONS.get(choice[:1])
    if action is None:
        out.write("Exiting...\n")
        return False
    action(out)
    return True


def _read_choice(stream: TextIO) -> Optional[str]:
    for line in stream:
        stripped = line.strip()
        if stripped:
            return stripped[0]
    return None


def main(argv: Optional[list[str]] = None) -> int:
    """Run the interactive test menu on standard input and output."""
    parser = argparse.ArgumentParser(
        prog="edgecore", description="Interactive test menu for the core facilities."
    )
    parser.parse_args(argv)
    out = sys.stdout
    while True:
        out.write(menu_text())
        out.flush()
        choice = _read_choice(sys.stdin)
        try:
            if not run_choice(choice or "", out):
                return 0
        except AssertionBreak as stop:
            out.flush()
            print(f"Execution stopped: {stop}", file=sys.stderr)
            return 1